"""Core adapter service logic."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .errors import AdapterError, InputValidationError
from .lifecycle import ToolLifecycle
from .logging import redact_payload
from .models import AdapterTool
from .schema import to_wire

logger = logging.getLogger(__name__)


class AdapterService:
    """Validates tool arguments and runs them against the current snapshot."""

    def __init__(self, lifecycle: ToolLifecycle) -> None:
        self.lifecycle = lifecycle

    async def execute_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        # One snapshot for the whole call, even if a reload publishes meanwhile.
        snapshot = self.lifecycle.snapshot
        tool = snapshot.tools.get(name)
        if tool is None:
            logger.warning("Unknown tool requested: %s", name)
            return self._format_error(f"Unknown tool: {name}")

        arguments = arguments or {}
        logger.info("Executing tool=%s payload=%s", name, redact_payload(arguments))
        try:
            params = self.validate_arguments(tool, arguments)
            result = await snapshot.executor.execute(tool.operation, params, tool.body_mode)
        except AdapterError as exc:
            logger.error("Tool execution failed: %s", exc)
            return self._format_error(str(exc))

        return self._format_result(result)

    def validate_arguments(self, tool: AdapterTool, arguments: Dict[str, Any]) -> Dict[str, Any]:
        try:
            validated = tool.input_model.model_validate(arguments)
        except ValidationError as exc:
            raise InputValidationError(tool.tool_name, _describe_errors(exc)) from exc
        return to_wire(validated)

    def _format_result(self, result: Any) -> Dict[str, Any]:
        return {"content": [{"type": "text", "text": json.dumps(result, indent=2, default=str)}]}

    def _format_error(self, message: str) -> Dict[str, Any]:
        return {"content": [{"type": "text", "text": f"Error: {message}"}], "is_error": True}


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)
