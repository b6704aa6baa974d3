"""Unit tests for tool invocation through the adapter service."""

import json

import httpx
import pytest
import pytest_asyncio
import respx

from swagger_adapter.errors import DocumentFetchError
from swagger_adapter.lifecycle import ToolLifecycle
from swagger_adapter.service import AdapterService


@pytest.fixture
def settings(settings_factory):
    return settings_factory(
        swagger_url="https://api.example.com/openapi.json",
        refresh_interval_seconds=0,
        auth_type="bearer",
        auth_token="secret-token",
    )


@pytest_asyncio.fixture
async def service(settings, scripted_loader, openapi3_document):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document))
    await lifecycle.load()
    return AdapterService(lifecycle)


@pytest.mark.asyncio
@respx.mock
async def test_path_parameter_and_body_split(service):
    route = respx.post("https://api.example.com/users/42").mock(
        return_value=httpx.Response(200, json={"id": 42, "name": "a"})
    )

    result = await service.execute_tool("post-users-id", {"id": 42, "name": "a"})

    assert "is_error" not in result
    assert json.loads(result["content"][0]["text"]) == {"id": 42, "name": "a"}
    request = route.calls.last.request
    assert json.loads(request.content) == {"name": "a"}
    assert request.headers["authorization"] == "Bearer secret-token"


@pytest.mark.asyncio
@respx.mock
async def test_result_is_pretty_printed(service):
    respx.get("https://api.example.com/users").mock(return_value=httpx.Response(200, json=[{"id": 1}]))

    result = await service.execute_tool("get-users", {"page": 2})

    assert result == {"content": [{"type": "text", "text": json.dumps([{"id": 1}], indent=2)}]}


@pytest.mark.asyncio
async def test_invalid_arguments_are_reported(service):
    result = await service.execute_tool("post-users-id", {"id": "not-a-number", "name": "a"})

    assert result["is_error"] is True
    text = result["content"][0]["text"]
    assert text.startswith("Error: Invalid arguments for tool post-users-id")
    assert "id" in text


@pytest.mark.asyncio
async def test_missing_required_argument_is_reported(service):
    result = await service.execute_tool("post-users-id", {"id": 1})

    assert result["is_error"] is True
    assert "name" in result["content"][0]["text"]


@pytest.mark.asyncio
async def test_unknown_tool(service):
    result = await service.execute_tool("nope", {})

    assert result == {"content": [{"type": "text", "text": "Error: Unknown tool: nope"}], "is_error": True}


@pytest.mark.asyncio
@respx.mock
async def test_remote_error_is_reported(service):
    respx.delete("https://api.example.com/users/9").mock(
        return_value=httpx.Response(500, json={"error": "boom"})
    )

    result = await service.execute_tool("delete-users-id", {"id": 9})

    assert result["is_error"] is True
    assert "returned 500" in result["content"][0]["text"]


@pytest.mark.asyncio
@respx.mock
async def test_unset_optional_fields_are_not_sent(service):
    route = respx.post("https://api.example.com/users/5").mock(return_value=httpx.Response(200, json={}))

    await service.execute_tool("post-users-id", {"id": 5, "name": "b", "unknown": "dropped"})

    assert json.loads(route.calls.last.request.content) == {"name": "b"}


@pytest.mark.asyncio
@respx.mock
async def test_tools_stay_servable_after_failed_reload(settings, scripted_loader, openapi3_document):
    lifecycle = ToolLifecycle(settings, loader=scripted_loader(openapi3_document, DocumentFetchError("down")))
    service = AdapterService(lifecycle)
    await lifecycle.load()
    await lifecycle.load()
    respx.get("https://api.example.com/users").mock(return_value=httpx.Response(200, json=[]))

    result = await service.execute_tool("get-users", {})

    assert "is_error" not in result
    assert lifecycle.generation == 1
