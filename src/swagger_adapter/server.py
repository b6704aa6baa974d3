"""MCP server setup for the Swagger MCP Adapter."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from .config import Settings
from .lifecycle import Snapshot, ToolLifecycle
from .models import AdapterTool
from .schema import inline_json_schema
from .service import AdapterService

logger = logging.getLogger(__name__)

HTTP_TRANSPORTS = {"http", "streamable-http", "streamablehttp", "sse"}

ToolHandler = Callable[[str, Dict[str, Any]], Awaitable[Dict[str, Any]]]


class AdapterMcpTool(Tool):
    """A fastmcp tool that forwards its arguments to the adapter service."""

    handler: ToolHandler

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        result = await self.handler(self.name, arguments)
        text = "\n".join(block.get("text", "") for block in result.get("content", []))
        if result.get("is_error"):
            raise ToolError(text)
        return ToolResult(content=text)


class BearerTokenMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, token: str) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        if request.method == "OPTIONS" or request.url.path.endswith("/health"):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        token = auth_header.replace("Bearer", "", 1).strip()
        if token == self.token:
            return await call_next(request)
        return JSONResponse({"error": "Unauthorized"}, status_code=401)


async def build_server(settings: Settings) -> tuple[FastMCP, Optional[Any], ToolLifecycle]:
    lifecycle = ToolLifecycle(settings)
    service = AdapterService(lifecycle)

    mcp = FastMCP(settings.service_name, instructions=_instructions())
    _attach_healthcheck(mcp, lifecycle)
    lifecycle.add_listener(_tool_sync(mcp, service))

    await lifecycle.load()

    app = _get_http_app(mcp, settings)
    return mcp, app, lifecycle


def to_mcp_tool(tool: AdapterTool, handler: ToolHandler) -> AdapterMcpTool:
    return AdapterMcpTool(
        name=tool.tool_name,
        title=tool.title,
        description=tool.description,
        parameters=inline_json_schema(tool.input_model),
        tags=set(tool.operation.tags),
        handler=handler,
    )


def _tool_sync(mcp: FastMCP, service: AdapterService) -> Callable[[Snapshot, Optional[Snapshot]], None]:
    def sync(snapshot: Snapshot, previous: Optional[Snapshot]) -> None:
        previous_names = set(previous.tools) if previous else set()
        for name in previous_names:
            mcp.remove_tool(name)
        for tool in snapshot.tools.values():
            mcp.add_tool(to_mcp_tool(tool, service.execute_tool))

        added = set(snapshot.tools) - previous_names
        removed = previous_names - set(snapshot.tools)
        logger.info(
            "Registered %s tools (generation %s, %s added, %s removed)",
            len(snapshot.tools),
            snapshot.generation,
            len(added),
            len(removed),
        )

    return sync


def _attach_healthcheck(mcp: FastMCP, lifecycle: ToolLifecycle) -> None:
    @mcp.custom_route("/health", methods=["GET"])
    async def healthcheck(_request: Request) -> JSONResponse:
        return JSONResponse(
            {"status": "ok", "state": lifecycle.state.value, "generation": lifecycle.generation}
        )


def _instructions() -> str:
    return (
        "Swagger MCP Adapter. "
        "Each tool maps to one operation of the configured REST API and proxies the call upstream."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.adapter_transport.lower()
    if transport not in HTTP_TRANSPORTS:
        return None

    middleware = _middleware(settings)
    if transport == "http":
        return mcp.http_app(transport="http", middleware=middleware, stateless_http=True, json_response=True)
    if transport in {"streamable-http", "streamablehttp"}:
        return mcp.http_app(
            transport="streamable-http", middleware=middleware, stateless_http=True, json_response=True
        )
    return mcp.http_app(transport="sse", middleware=middleware)


def _middleware(settings: Settings) -> List[Middleware]:
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    ]
    if settings.adapter_auth_token:
        middleware.append(Middleware(BearerTokenMiddleware, token=settings.adapter_auth_token))
    else:
        logger.warning("ADAPTER_AUTH_TOKEN not set; HTTP transport is unauthenticated")
    return middleware
