"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import Any, Dict

import pytest

from swagger_adapter.config import Settings
from swagger_adapter.dialects import normalize_document


@pytest.fixture
def swagger2_document() -> Dict[str, Any]:
    """A small Swagger 2.0 description."""
    return {
        "swagger": "2.0",
        "info": {"title": "Pet Store", "version": "1.0"},
        "host": "petstore.example.com",
        "basePath": "/v2",
        "schemes": ["https", "http"],
        "securityDefinitions": {"api_key": {"type": "apiKey", "name": "api_key", "in": "header"}},
        "security": [{"api_key": []}],
        "parameters": {
            "limitParam": {"name": "limit", "in": "query", "type": "integer", "minimum": 1, "maximum": 100},
        },
        "definitions": {
            "Pet": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "tag": {"type": "string"},
                    "status": {"type": "string", "enum": ["available", "sold"]},
                },
            },
        },
        "paths": {
            "/pets": {
                "get": {
                    "operationId": "listPets",
                    "summary": "List pets",
                    "parameters": [{"$ref": "#/parameters/limitParam"}],
                    "responses": {"200": {"description": "ok", "schema": {"type": "array"}}},
                },
                "post": {
                    "operationId": "createPet",
                    "security": [],
                    "parameters": [
                        {"name": "pet", "in": "body", "required": True, "schema": {"$ref": "#/definitions/Pet"}},
                        {"name": "avatar", "in": "formData", "type": "file"},
                    ],
                    "responses": {"201": {"description": "created"}},
                },
            },
            "/pets/{petId}": {
                "parameters": [
                    {"name": "petId", "in": "path", "required": True, "type": "string"},
                ],
                "get": {
                    "operationId": "getPet",
                    "parameters": [
                        {"name": "petId", "in": "path", "required": True, "type": "integer", "format": "int64"},
                    ],
                    "responses": {"200": {"description": "ok"}},
                },
            },
        },
    }


@pytest.fixture
def openapi3_document() -> Dict[str, Any]:
    """A small OpenAPI 3.0 description."""
    return {
        "openapi": "3.0.3",
        "info": {"title": "Users API", "version": "1.0.0", "description": "Manage users"},
        "servers": [{"url": "https://api.example.com"}],
        "components": {
            "schemas": {
                "User": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "email": {"type": "string", "format": "email"},
                    },
                },
            },
            "parameters": {
                "UserId": {
                    "name": "id",
                    "in": "path",
                    "required": True,
                    "description": "User identifier",
                    "schema": {"type": "integer"},
                },
            },
            "requestBodies": {
                "UserBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/User"}}},
                },
            },
        },
        "paths": {
            "/users": {
                "get": {
                    "operationId": "listUsers",
                    "summary": "List users",
                    "parameters": [
                        {"name": "page", "in": "query", "schema": {"type": "integer", "minimum": 1}},
                    ],
                    "responses": {"200": {"description": "ok"}},
                },
            },
            "/users/{id}": {
                "parameters": [{"$ref": "#/components/parameters/UserId"}],
                "post": {
                    "operationId": "updateUser",
                    "requestBody": {"$ref": "#/components/requestBodies/UserBody"},
                    "responses": {"200": {"description": "ok"}},
                },
                "delete": {
                    "responses": {"204": {"description": "deleted"}},
                },
            },
        },
    }


@pytest.fixture
def parsed_openapi3(openapi3_document):
    return normalize_document(openapi3_document)


@pytest.fixture
def settings_factory(monkeypatch):
    """Build Settings without picking up the developer's environment or .env file."""
    for name in (
        "SWAGGER_URL",
        "SWAGGER_PATH",
        "API_BASE_URL",
        "API_TIMEOUT_SECONDS",
        "REFRESH_INTERVAL_SECONDS",
        "AUTH_TYPE",
        "AUTH_TOKEN",
        "AUTH_HEADER",
        "TOOL_PREFIX",
        "ADAPTER_TRANSPORT",
        "ADAPTER_AUTH_TOKEN",
        "ENABLE_REQUEST_LOGGING",
        "API_KEY_HEADER",
        "SERVICE_NAME",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    def factory(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **overrides)

    return factory


class ScriptedLoader:
    """Stands in for OpenAPILoader, returning (or raising) queued results in order."""

    def __init__(self, *results: Any, source_url: str = "https://api.example.com/openapi.json") -> None:
        self.results = list(results)
        self.source_url = source_url
        self.calls = 0

    async def load_document(self) -> Dict[str, Any]:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def scripted_loader():
    return ScriptedLoader
