"""Tool registry for the Swagger MCP Adapter."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Dict, List, Set

from .errors import ToolGenerationError
from .models import AdapterTool, InputField, Operation, ParsedDocument
from .schema import UNCONSTRAINED, SchemaCompiler, SchemaRegistry, build_model, model_name


logger = logging.getLogger(__name__)

MAX_TOOL_NAME_LENGTH = 64
BODY_FIELD = "body"

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9-]")
_REPEATED_HYPHENS = re.compile(r"-+")


class ToolGenerator:
    def __init__(self, compiler: SchemaCompiler, tool_prefix: str = "") -> None:
        self.compiler = compiler
        self.tool_prefix = tool_prefix

    def generate(self, operation: Operation) -> AdapterTool:
        try:
            tool_name = self.tool_name(operation)
            input_shape, body_mode = self._input_shape(operation)
            input_model = build_model(model_name(f"{tool_name}_input"), input_shape, extra="ignore")
        except Exception as exc:
            raise ToolGenerationError(operation.operation_id, str(exc)) from exc

        logger.debug("Generated tool: %s", tool_name)
        return AdapterTool(
            tool_name=tool_name,
            title=self.title(operation),
            description=self.description(operation),
            input_shape=input_shape,
            input_model=input_model,
            operation=operation,
            body_mode=body_mode,
        )

    def tool_name(self, operation: Operation) -> str:
        if "-" in operation.operation_id:
            name = operation.operation_id.lower()
        else:
            parts = [operation.method.lower(), *(_strip_braces(part).lower() for part in _segments(operation.path))]
            name = _REPEATED_HYPHENS.sub("-", _INVALID_NAME_CHARS.sub("", "-".join(parts))).strip("-")

        if self.tool_prefix:
            name = f"{self.tool_prefix}-{name}"
        return shorten_tool_name(name)

    def title(self, operation: Operation) -> str:
        if operation.summary:
            return operation.summary
        words = [_strip_braces(part) for part in _segments(operation.path)]
        return " ".join([operation.method, *(word[:1].upper() + word[1:] for word in words)])

    def description(self, operation: Operation) -> str:
        description = operation.description or operation.summary or ""
        if not description:
            description = f"{operation.method} request to {operation.path}"

        if operation.parameters:
            lines = [
                f"- {param.name} ({param.location}{', required' if param.required else ''}): "
                f"{param.description or 'No description'}"
                for param in operation.parameters
            ]
            description += "\n\nParameters:\n" + "\n".join(lines)
        return description

    def _input_shape(self, operation: Operation) -> tuple[Dict[str, InputField], str]:
        shape: Dict[str, InputField] = {}
        for param in operation.parameters:
            if param.schema is None:
                logger.warning("Parameter %s has no schema, using any type", param.name)
                compiled = UNCONSTRAINED
            else:
                compiled = self.compiler.compile(param.schema, model_name(f"{operation.operation_id}_{param.name}"))
            shape[param.name] = InputField(
                schema=compiled,
                required=param.required,
                description=param.description,
                location=param.location,
            )

        body = operation.request_body
        body_schema = body.json_schema() if body is not None else None
        if body is None or body_schema is None:
            return shape, "none"

        compiled_body = self.compiler.compile(body_schema, model_name(f"{operation.operation_id}_body"))
        if compiled_body.is_object and compiled_body.fields:
            for name, input_field in compiled_body.fields.items():
                if name in shape:
                    logger.warning(
                        "Body field %s of %s collides with a parameter; keeping the parameter",
                        name,
                        operation.operation_id,
                    )
                    continue
                required = input_field.required and body.required
                shape[name] = InputField(
                    schema=input_field.schema,
                    required=required,
                    description=input_field.description,
                    location="body",
                )
            return shape, "fields"

        if BODY_FIELD in shape:
            logger.warning(
                "Request body of %s collides with a parameter named %s; keeping the parameter",
                operation.operation_id,
                BODY_FIELD,
            )
            return shape, "none"
        shape[BODY_FIELD] = InputField(
            schema=compiled_body,
            required=body.required,
            description=body.description,
            location="body",
        )
        return shape, "raw"


class ToolRegistry:
    """Runs one generation pass over a parsed document."""

    def __init__(self, tool_prefix: str = "") -> None:
        self.tool_prefix = tool_prefix

    def build(self, document: ParsedDocument) -> Dict[str, AdapterTool]:
        compiler = SchemaCompiler(SchemaRegistry(document.schemas))
        generator = ToolGenerator(compiler, self.tool_prefix)
        tools: Dict[str, AdapterTool] = {}
        seen: Set[str] = set()
        skipped = 0

        for operation in document.operations:
            try:
                tool = generator.generate(operation)
            except ToolGenerationError as exc:
                skipped += 1
                logger.error("Failed to generate tool for operation %s: %s", exc.operation_id, exc)
                continue

            name = unique_tool_name(tool.tool_name, seen)
            if name != tool.tool_name:
                logger.warning("Tool name collision: %s renamed to %s", tool.tool_name, name)
                tool = replace(tool, tool_name=name)
            seen.add(name)
            tools[name] = tool

        logger.info(
            "Generated %s tools from %s operations (%s skipped)",
            len(tools),
            len(document.operations),
            skipped,
        )
        return tools


def shorten_tool_name(name: str, limit: int = MAX_TOOL_NAME_LENGTH) -> str:
    """Fit ``name`` into ``limit`` characters, keeping its first and last segments."""
    if len(name) <= limit:
        return name

    segments = name.split("-")
    first, last = segments[0], segments[-1]
    if len(first) + 1 + len(last) > limit:
        shortened = name[:limit]
    else:
        kept: List[str] = []
        for segment in segments[1:-1]:
            if len("-".join([first, *kept, segment, last])) <= limit:
                kept.append(segment)
        shortened = "-".join([first, *kept, last])

    logger.warning("Tool name exceeds %s characters: %s -> %s", limit, name, shortened)
    return shortened


def unique_tool_name(name: str, seen: Set[str], limit: int = MAX_TOOL_NAME_LENGTH) -> str:
    if name not in seen:
        return name
    suffix = 2
    while True:
        tail = f"-{suffix}"
        candidate = name[: limit - len(tail)] + tail
        if candidate not in seen:
            return candidate
        suffix += 1


def _segments(path: str) -> List[str]:
    return [part for part in path.split("/") if part]


def _strip_braces(part: str) -> str:
    if part.startswith("{") and part.endswith("}"):
        return part[1:-1]
    return part
