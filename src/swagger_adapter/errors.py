"""Error taxonomy for the Swagger MCP Adapter."""

from __future__ import annotations

import json
from typing import Any, Optional


class AdapterError(Exception):
    """Base exception for adapter errors."""


class ConfigurationError(AdapterError):
    """No usable configuration; aborts startup."""


class UnsupportedVersionError(AdapterError):
    """The API description is neither Swagger 2.0 nor OpenAPI 3.0/3.1."""


class DocumentFetchError(AdapterError):
    """The API description could not be fetched, read or parsed."""


class InvalidDocumentError(AdapterError):
    """The API description has a supported version but a malformed structure."""


class ToolGenerationError(AdapterError):
    """A single operation could not be turned into a tool."""

    def __init__(self, operation_id: str, message: str) -> None:
        super().__init__(f"{operation_id}: {message}")
        self.operation_id = operation_id


class InputValidationError(AdapterError):
    """Tool arguments were rejected by the tool's input model."""

    def __init__(self, tool_name: str, details: Any) -> None:
        super().__init__(f"Invalid arguments for tool {tool_name}: {details}")
        self.tool_name = tool_name
        self.details = details


class ExecutionError(AdapterError):
    pass


class RemoteError(ExecutionError):
    """The upstream API answered with an error status."""

    def __init__(self, method: str, path: str, status_code: int, body: Any) -> None:
        super().__init__(
            f"API request failed: {method} {path} returned {status_code}. "
            f"Response: {json.dumps(body, default=str)}"
        )
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body


class TransportError(ExecutionError):
    """No response was received (network failure or timeout)."""

    def __init__(self, method: str, path: str, reason: str) -> None:
        super().__init__(f"API request failed: {method} {path} - no response received. Error: {reason}")
        self.method = method
        self.path = path
        self.reason = reason


class RequestConstructionError(ExecutionError):
    """The request could not be assembled before sending."""

    def __init__(self, method: str, path: str, reason: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"API request setup failed: {method} {path}. Error: {reason}")
        self.method = method
        self.path = path
        self.reason = reason
        self.cause = cause
