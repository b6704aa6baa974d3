"""Compile OpenAPI schema nodes into pydantic validators."""

from __future__ import annotations

import json
import keyword
import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from functools import cached_property
from typing import Annotated, Any, Callable, Dict, FrozenSet, List, Literal, Optional, Set, Type, Union
from uuid import UUID

from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PydanticInvalidForJsonSchema,
    PydanticSchemaGenerationError,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    create_model,
)
from pydantic_core import to_jsonable_python

from .models import InputField


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledSchema:
    """A runtime validator compiled from one schema node.

    ``annotation`` is a pydantic-compatible type. Object schemas also keep their
    ordered ``fields`` so callers can splice them into a flat input shape.
    """

    kind: str
    annotation: Any = Any
    fields: Dict[str, InputField] = field(default_factory=dict)
    extra: str = "allow"
    json_extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_object(self) -> bool:
        return self.kind == "object"

    @property
    def is_unconstrained(self) -> bool:
        return self.kind == "unconstrained"

    @cached_property
    def adapter(self) -> TypeAdapter:
        return TypeAdapter(self.annotation)

    def validate(self, value: Any) -> Any:
        return self.adapter.validate_python(value)

    def accepts(self, value: Any) -> bool:
        try:
            self.validate(value)
        except ValidationError:
            return False
        return True

    def optional(self) -> "CompiledSchema":
        if self.is_unconstrained:
            return self
        return replace(self, annotation=Optional[self.annotation])


UNCONSTRAINED = CompiledSchema(kind="unconstrained")


class SchemaRegistry:
    """Named component definitions addressable by ``$ref`` token."""

    def __init__(self, definitions: Optional[Dict[str, Any]] = None) -> None:
        self._refs: Dict[str, Any] = {}
        for name, schema in (definitions or {}).items():
            self.register(name, schema)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "SchemaRegistry":
        registry = cls()
        for name, schema in (document.get("definitions") or {}).items():
            registry.register(name, schema)
        components = document.get("components") or {}
        for name, schema in (components.get("schemas") or {}).items():
            registry.register(name, schema)
        return registry

    def register(self, name: str, schema: Any) -> None:
        escaped = name.replace("~", "~0").replace("/", "~1")
        for token in {name, escaped}:
            self._refs[f"#/definitions/{token}"] = schema
            self._refs[f"#/components/schemas/{token}"] = schema

    def resolve(self, ref: str) -> Optional[Any]:
        return self._refs.get(ref)

    def __contains__(self, ref: object) -> bool:
        return ref in self._refs

    def __len__(self) -> int:
        return len(self._refs)


class SchemaCompiler:
    def __init__(self, registry: Optional[SchemaRegistry] = None) -> None:
        self.registry = registry or SchemaRegistry()
        self._ref_cache: Dict[str, CompiledSchema] = {}
        self._cycle_cuts = 0

    def compile(self, node: Any, name: str = "Object") -> CompiledSchema:
        return self._compile(node, name, frozenset())

    def _compile(self, node: Any, name: str, stack: FrozenSet[str]) -> CompiledSchema:
        if not isinstance(node, dict):
            return UNCONSTRAINED

        ref = node.get("$ref")
        if isinstance(ref, str):
            return self._compile_ref(ref, stack)

        for combinator in ("allOf", "oneOf", "anyOf"):
            members = node.get(combinator)
            if isinstance(members, list):
                compiled = self._compile_combinator(combinator, members, name, stack)
                return compiled.optional() if node.get("nullable") is True else compiled

        schema_type = node.get("type")
        if isinstance(schema_type, list):
            return self._compile_type_list(node, schema_type, name, stack)

        compiled = self._compile_typed(node, schema_type, name, stack)
        if node.get("nullable") is True:
            return compiled.optional()
        return compiled

    def _compile_ref(self, ref: str, stack: FrozenSet[str]) -> CompiledSchema:
        if ref in stack:
            logger.debug("Cutting recursive $ref %s", ref)
            self._cycle_cuts += 1
            return UNCONSTRAINED
        cached = self._ref_cache.get(ref)
        if cached is not None:
            return cached

        resolved = self.registry.resolve(ref)
        if resolved is None:
            logger.warning("Unable to resolve $ref: %s", ref)
            return UNCONSTRAINED

        cuts_before = self._cycle_cuts
        compiled = self._compile(resolved, ref.rsplit("/", 1)[-1], stack | {ref})
        if self._cycle_cuts == cuts_before:
            self._ref_cache[ref] = compiled
        return compiled

    def _compile_combinator(
        self, combinator: str, members: List[Any], name: str, stack: FrozenSet[str]
    ) -> CompiledSchema:
        compiled = [
            self._compile(member, f"{name}{index + 1}" if len(members) > 1 else name, stack)
            for index, member in enumerate(members)
        ]
        if not compiled:
            return UNCONSTRAINED
        if len(compiled) == 1:
            return compiled[0]
        if combinator == "allOf":
            return _conjunction(compiled, name)
        return _union(compiled)

    def _compile_type_list(
        self, node: Dict[str, Any], types: List[Any], name: str, stack: FrozenSet[str]
    ) -> CompiledSchema:
        concrete = [t for t in types if t != "null"]
        nullable = len(concrete) != len(types)
        if not concrete:
            return CompiledSchema(kind="null", annotation=None)
        variants = [self._compile_typed(node, t, name, stack) for t in concrete]
        compiled = variants[0] if len(variants) == 1 else _union(variants)
        return compiled.optional() if nullable else compiled

    def _compile_typed(
        self, node: Dict[str, Any], schema_type: Any, name: str, stack: FrozenSet[str]
    ) -> CompiledSchema:
        enum = node.get("enum")
        if isinstance(enum, list) and enum and schema_type in (None, "string", "number", "integer", "boolean"):
            compiled_enum = _compile_enum(enum)
            if compiled_enum is not None:
                return compiled_enum

        if schema_type == "string":
            return _compile_string(node)
        if schema_type == "number":
            return _compile_number(node)
        if schema_type == "integer":
            return _compile_integer(node)
        if schema_type == "boolean":
            return CompiledSchema(kind="boolean", annotation=bool)
        if schema_type == "null":
            return CompiledSchema(kind="null", annotation=None)
        if schema_type == "array":
            return self._compile_array(node, name, stack)
        if schema_type == "object" or "properties" in node:
            return self._compile_object(node, name, stack)
        return UNCONSTRAINED

    def _compile_array(self, node: Dict[str, Any], name: str, stack: FrozenSet[str]) -> CompiledSchema:
        items = node.get("items")
        item_schema = self._compile(items, f"{name}Item", stack) if isinstance(items, dict) else UNCONSTRAINED
        metadata: List[Any] = []
        constraints = _drop_none(min_length=node.get("minItems"), max_length=node.get("maxItems"))
        if constraints:
            metadata.append(Field(**constraints))
        if node.get("uniqueItems") is True:
            metadata.append(AfterValidator(_ensure_unique))
        annotation: Any = List[item_schema.annotation]
        if metadata:
            annotation = Annotated[(annotation, *metadata)]
        return CompiledSchema(kind="array", annotation=annotation)

    def _compile_object(self, node: Dict[str, Any], name: str, stack: FrozenSet[str]) -> CompiledSchema:
        properties = node.get("properties")
        if not isinstance(properties, dict):
            properties = {}
        required = node.get("required")
        required_names: Set[str] = set()
        if isinstance(required, list):
            required_names = {item for item in required if isinstance(item, str)}

        fields: Dict[str, InputField] = {}
        for prop_name, prop_node in properties.items():
            compiled = self._compile(prop_node, model_name(f"{name}_{prop_name}"), stack)
            description = prop_node.get("description") if isinstance(prop_node, dict) else None
            fields[prop_name] = InputField(
                schema=compiled,
                required=prop_name in required_names,
                description=description,
            )

        additional = node.get("additionalProperties")
        extra = "forbid" if additional is False else "allow"
        model = build_model(model_name(name), fields, extra=extra)
        return CompiledSchema(kind="object", annotation=model, fields=fields, extra=extra)


def build_model(name: str, fields: Dict[str, InputField], extra: str = "allow") -> Type[BaseModel]:
    """Create a pydantic model whose aliases are the wire names in ``fields``."""
    definitions: Dict[str, Any] = {}
    used: set[str] = set()
    for wire_name, input_field in fields.items():
        attribute = _attribute_name(wire_name, used)
        annotation = input_field.schema.annotation
        extra_schema = input_field.schema.json_extra or None
        if input_field.required:
            default = Field(
                ..., alias=wire_name, description=input_field.description, json_schema_extra=extra_schema
            )
        else:
            annotation = Optional[annotation]
            default = Field(
                None, alias=wire_name, description=input_field.description, json_schema_extra=extra_schema
            )
        definitions[attribute] = (annotation, default)

    model_config = ConfigDict(extra=extra)
    return create_model(name, __config__=model_config, **definitions)


def to_wire(value: Any) -> Any:
    """Convert validated values back to plain JSON data, dropping unset fields."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_unset=True)
    if isinstance(value, list):
        return [to_wire(item) for item in value]
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    return to_jsonable_python(value, by_alias=True)


def inline_json_schema(annotation: Any) -> Dict[str, Any]:
    try:
        schema = TypeAdapter(annotation).json_schema()
    except (PydanticInvalidForJsonSchema, PydanticSchemaGenerationError):
        return {}
    definitions = schema.pop("$defs", {})

    def resolve(node: Any, seen: FrozenSet[str]) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str) and ref.startswith("#/$defs/"):
                key = ref[len("#/$defs/"):]
                if key in seen or key not in definitions:
                    return {}
                return resolve(definitions[key], seen | {key})
            return {key: resolve(value, seen) for key, value in node.items()}
        if isinstance(node, list):
            return [resolve(item, seen) for item in node]
        return node

    return resolve(schema, frozenset())


class _JsonSchemaOverride:
    def __init__(self, schema: Dict[str, Any]) -> None:
        self.schema = schema

    def __get_pydantic_json_schema__(self, core_schema: Any, handler: Any) -> Dict[str, Any]:
        return dict(self.schema)


def _compile_enum(values: List[Any]) -> Optional[CompiledSchema]:
    try:
        annotation = Literal[tuple(values)]
        hash(annotation)
    except TypeError:
        logger.debug("Ignoring enum with unhashable members: %s", values)
        return None
    return CompiledSchema(kind="enum", annotation=annotation)


def _compile_string(node: Dict[str, Any]) -> CompiledSchema:
    metadata: List[Any] = []
    json_extra: Dict[str, Any] = {}

    constraints = _drop_none(min_length=node.get("minLength"), max_length=node.get("maxLength"))
    if constraints:
        metadata.append(StringConstraints(**constraints))

    fmt = node.get("format")
    checker = _FORMAT_CHECKS.get(fmt) if isinstance(fmt, str) else None
    if checker is not None:
        metadata.append(AfterValidator(checker))
        json_extra["format"] = fmt

    pattern = node.get("pattern")
    if isinstance(pattern, str):
        try:
            metadata.append(AfterValidator(_pattern_check(re.compile(pattern))))
            json_extra["pattern"] = pattern
        except re.error as exc:
            logger.warning("Ignoring invalid pattern %r: %s", pattern, exc)

    annotation: Any = Annotated[(str, *metadata)] if metadata else str
    return CompiledSchema(kind="string", annotation=annotation, json_extra=json_extra)


def _compile_integer(node: Dict[str, Any]) -> CompiledSchema:
    bounds = _integral_bounds(_numeric_bounds(node)) or {}
    annotation: Any = Annotated[int, Field(**bounds)] if bounds else int
    return CompiledSchema(kind="integer", annotation=annotation)


def _compile_number(node: Dict[str, Any]) -> CompiledSchema:
    bounds = _numeric_bounds(node)
    multiple_of = node.get("multipleOf")
    if _is_number(multiple_of) and multiple_of > 0:
        bounds["multiple_of"] = multiple_of

    arms: List[Any] = []
    int_bounds = _integral_bounds(bounds)
    if int_bounds is not None:
        arms.append(Annotated[int, Field(**int_bounds)] if int_bounds else int)
    arms.append(Annotated[float, Field(**bounds)] if bounds else float)

    json_schema: Dict[str, Any] = {"type": "number"}
    for key, keyword_name in (
        ("ge", "minimum"),
        ("gt", "exclusiveMinimum"),
        ("le", "maximum"),
        ("lt", "exclusiveMaximum"),
        ("multiple_of", "multipleOf"),
    ):
        if key in bounds:
            json_schema[keyword_name] = bounds[key]

    annotation = Annotated[(Union[tuple(arms)], _JsonSchemaOverride(json_schema))]
    return CompiledSchema(kind="number", annotation=annotation)


def _numeric_bounds(node: Dict[str, Any]) -> Dict[str, Any]:
    bounds: Dict[str, Any] = {}
    for bound, inclusive, exclusive, flag_name in (
        ("minimum", "ge", "gt", "exclusiveMinimum"),
        ("maximum", "le", "lt", "exclusiveMaximum"),
    ):
        value = node.get(bound)
        flag = node.get(flag_name)
        if isinstance(flag, bool) or flag is None:
            if _is_number(value):
                bounds[exclusive if flag else inclusive] = value
        elif _is_number(flag):
            bounds[exclusive] = flag
            if _is_number(value):
                bounds[inclusive] = value
    return bounds


def _integral_bounds(bounds: Dict[str, Any]) -> Optional[Dict[str, int]]:
    """Express numeric bounds as integer bounds, or None when integers cannot satisfy ``multiple_of``."""
    result: Dict[str, int] = {}
    for key, value in bounds.items():
        if key == "multiple_of":
            if not float(value).is_integer():
                return None
            result[key] = int(value)
            continue
        if key in ("gt", "ge"):
            lower = math.floor(value) + 1 if key == "gt" else math.ceil(value)
            result["ge"] = max(lower, result.get("ge", lower))
        else:
            upper = math.ceil(value) - 1 if key == "lt" else math.floor(value)
            result["le"] = min(upper, result.get("le", upper))
    return result


def _conjunction(members: List[CompiledSchema], name: str) -> CompiledSchema:
    if any(member.is_unconstrained for member in members):
        members = [member for member in members if not member.is_unconstrained]
        if not members:
            return UNCONSTRAINED
        if len(members) == 1:
            return members[0]

    if all(member.is_object and member.extra != "forbid" for member in members):
        fields: Dict[str, InputField] = {}
        for member in members:
            for field_name, input_field in member.fields.items():
                previous = fields.get(field_name)
                required = input_field.required or (previous is not None and previous.required)
                fields[field_name] = replace(input_field, required=required)
        model = build_model(model_name(name), fields, extra="allow")
        return CompiledSchema(kind="object", annotation=model, fields=fields, extra="allow")

    def check_all(value: Any) -> Any:
        results = []
        for member in members:
            try:
                results.append(to_wire(member.validate(value)))
            except ValidationError as exc:
                raise ValueError(f"value does not match all allOf members: {exc}") from None
        if all(isinstance(result, dict) for result in results):
            merged: Dict[str, Any] = {}
            for result in results:
                merged.update(result)
            return merged
        return results[-1]

    json_schema = {"allOf": [inline_json_schema(member.annotation) for member in members]}
    annotation = Annotated[Any, AfterValidator(check_all), _JsonSchemaOverride(json_schema)]
    return CompiledSchema(kind="conjunction", annotation=annotation)


def _union(members: List[CompiledSchema]) -> CompiledSchema:
    if any(member.is_unconstrained for member in members):
        return UNCONSTRAINED
    return CompiledSchema(kind="union", annotation=Union[tuple(member.annotation for member in members)])


def _ensure_unique(values: List[Any]) -> List[Any]:
    seen = set()
    for value in values:
        key = json.dumps(to_wire(value), sort_keys=True, default=str)
        if key in seen:
            raise ValueError("Array must contain unique items")
        seen.add(key)
    return values


def _pattern_check(pattern: "re.Pattern[str]") -> Callable[[str], str]:
    def check(value: str) -> str:
        if not pattern.search(value):
            raise ValueError(f"String should match pattern '{pattern.pattern}'")
        return value

    return check


def _format_check(fmt: str, target: Any) -> Callable[[str], str]:
    adapter = TypeAdapter(target)

    def check(value: str) -> str:
        try:
            adapter.validate_python(value)
        except ValidationError:
            raise ValueError(f"value is not a valid {fmt}") from None
        return value

    return check


_FORMAT_CHECKS: Dict[str, Callable[[str], str]] = {
    "email": _format_check("email", EmailStr),
    "uri": _format_check("uri", AnyUrl),
    "url": _format_check("url", AnyUrl),
    "uuid": _format_check("uuid", UUID),
    "date": _format_check("date", date),
    "date-time": _format_check("date-time", datetime),
}


_IDENTIFIER_UNSAFE = re.compile(r"[^0-9a-zA-Z_]")


def _attribute_name(wire_name: str, used: set[str]) -> str:
    name = _IDENTIFIER_UNSAFE.sub("_", wire_name)
    if (
        not name
        or name[0].isdigit()
        or name.startswith("_")
        or keyword.iskeyword(name)
        or name.startswith("model_")
        or hasattr(BaseModel, name)
    ):
        name = f"field_{name.lstrip('_')}"
    candidate = name
    suffix = 2
    while candidate in used:
        candidate = f"{name}_{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


def model_name(hint: str) -> str:
    parts = [part for part in re.split(r"[^0-9a-zA-Z]+", hint) if part]
    name = "".join(part[:1].upper() + part[1:] for part in parts)
    if not name or name[0].isdigit():
        name = f"Model{name}"
    return name


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _drop_none(**values: Any) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}
