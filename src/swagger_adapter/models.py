"""Internal models for operations and tool definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel

if TYPE_CHECKING:
    from .schema import CompiledSchema


HTTP_METHODS: Tuple[str, ...] = ("get", "post", "put", "delete", "patch", "options", "head", "trace")

PARAMETER_LOCATIONS = frozenset({"path", "query", "header", "cookie"})

JSON_MEDIA_TYPE = "application/json"


@dataclass(frozen=True)
class Parameter:
    name: str
    location: str
    required: bool = False
    schema: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    example: Any = None


@dataclass(frozen=True)
class RequestBody:
    required: bool = False
    description: Optional[str] = None
    content: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def json_schema(self) -> Optional[Dict[str, Any]]:
        media = self.content.get(JSON_MEDIA_TYPE)
        if media is None:
            media = next(
                (value for key, value in self.content.items() if key.split(";")[0].strip().endswith("+json")),
                None,
            )
        if not isinstance(media, dict):
            return None
        return media.get("schema")


@dataclass(frozen=True)
class ResponseSpec:
    description: str = ""
    content: Optional[Dict[str, Dict[str, Any]]] = None


@dataclass(frozen=True)
class Operation:
    operation_id: str
    method: str
    path: str
    summary: Optional[str] = None
    description: Optional[str] = None
    parameters: Tuple[Parameter, ...] = ()
    request_body: Optional[RequestBody] = None
    responses: Dict[str, ResponseSpec] = field(default_factory=dict)
    security: List[Dict[str, List[str]]] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ParsedDocument:
    version: str
    title: str
    base_url: str
    operations: List[Operation]
    description: Optional[str] = None
    security_schemes: Dict[str, Any] = field(default_factory=dict)
    schemas: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InputField:
    schema: "CompiledSchema"
    required: bool
    description: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class AdapterTool:
    tool_name: str
    title: str
    description: str
    input_shape: Dict[str, InputField]
    input_model: Type[BaseModel]
    operation: Operation
    body_mode: str = "none"
