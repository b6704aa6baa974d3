"""CLI entry point for the Swagger MCP Adapter."""

from __future__ import annotations

import asyncio
import logging
import sys

import uvicorn

from .config import get_settings
from .errors import AdapterError, ConfigurationError
from .logging import configure_logging
from .server import build_server

logger = logging.getLogger(__name__)


async def _run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.enable_request_logging)

    mcp, app, lifecycle = await build_server(settings)
    transport = settings.adapter_transport.lower()
    lifecycle.start_refresh()

    try:
        if app is not None:
            logger.info(
                "Serving %s transport on %s:%s", transport, settings.adapter_host, settings.adapter_port
            )
            config = uvicorn.Config(app, host=settings.adapter_host, port=settings.adapter_port)
            server = uvicorn.Server(config)
            await server.serve()
            return
        if transport != "stdio":
            logger.warning("Unknown transport %s, falling back to stdio", transport)
        await mcp.run_stdio_async()
    finally:
        await lifecycle.stop()


def main() -> None:
    try:
        asyncio.run(_run())
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(2)
    except AdapterError as exc:
        logger.error("Startup failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
