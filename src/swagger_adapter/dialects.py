"""Dialect detection and normalization of Swagger 2.0 / OpenAPI 3.x documents."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import urlsplit

from .errors import InvalidDocumentError, UnsupportedVersionError
from .models import (
    HTTP_METHODS,
    JSON_MEDIA_TYPE,
    PARAMETER_LOCATIONS,
    Operation,
    Parameter,
    ParsedDocument,
    RequestBody,
    ResponseSpec,
)


logger = logging.getLogger(__name__)

LOCALHOST = "http://localhost"

# Sibling keywords that describe a Swagger 2.0 non-body parameter's value.
_PARAMETER_SCHEMA_KEYS = (
    "type",
    "format",
    "enum",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "minLength",
    "maxLength",
    "pattern",
    "items",
    "minItems",
    "maxItems",
    "uniqueItems",
    "multipleOf",
)

_MAPPING_SECTIONS = ("info", "paths", "components", "definitions", "parameters", "responses", "securityDefinitions")
_LIST_SECTIONS = ("servers", "security", "tags")
_COMPONENT_SECTIONS = ("schemas", "parameters", "requestBodies", "responses", "securitySchemes")


class Dialect(str, Enum):
    SWAGGER_2 = "2.0"
    OPENAPI_3_0 = "3.0"
    OPENAPI_3_1 = "3.1"

    @property
    def is_legacy(self) -> bool:
        return self is Dialect.SWAGGER_2


def detect_dialect(document: Dict[str, Any]) -> Dialect:
    if str(document.get("swagger", "")) == "2.0":
        return Dialect.SWAGGER_2
    version = document.get("openapi")
    if isinstance(version, str):
        if version.startswith("3.0"):
            return Dialect.OPENAPI_3_0
        if version.startswith("3.1"):
            return Dialect.OPENAPI_3_1
    raise UnsupportedVersionError(
        f"Unable to detect OpenAPI version (swagger={document.get('swagger')!r}, openapi={version!r})"
    )


def normalize_document(document: Dict[str, Any], source_url: Optional[str] = None) -> ParsedDocument:
    if not isinstance(document, dict):
        raise InvalidDocumentError(f"API description must be an object, got {type(document).__name__}")
    dialect = detect_dialect(document)
    check_structure(document)
    logger.info("Parsing OpenAPI %s document", dialect.value)
    normalizer = _Swagger2Normalizer if dialect.is_legacy else _OpenAPI3Normalizer
    return normalizer(document, dialect, source_url).parse()


def check_structure(document: Dict[str, Any]) -> None:
    """Reject top-level sections whose shape rules out any reading of the document."""
    for section in _MAPPING_SECTIONS:
        if document.get(section) is not None and not isinstance(document[section], dict):
            raise InvalidDocumentError(f"'{section}' must be an object, got {type(document[section]).__name__}")
    for section in _LIST_SECTIONS:
        if document.get(section) is not None and not isinstance(document[section], list):
            raise InvalidDocumentError(f"'{section}' must be a list, got {type(document[section]).__name__}")
    components = document.get("components") or {}
    for section in _COMPONENT_SECTIONS:
        value = components.get(section)
        if value is not None and not isinstance(value, dict):
            raise InvalidDocumentError(
                f"'components.{section}' must be an object, got {type(value).__name__}"
            )


class _ComponentLookup:
    """Same-document lookup of named parameters, bodies and responses."""

    def __init__(self, document: Dict[str, Any]) -> None:
        self._refs: Dict[str, Any] = {}
        for section in ("parameters", "responses"):
            for name, value in (document.get(section) or {}).items():
                self._refs[f"#/{section}/{name}"] = value
        components = document.get("components") or {}
        for section in ("parameters", "requestBodies", "responses", "schemas"):
            for name, value in (components.get(section) or {}).items():
                self._refs[f"#/components/{section}/{name}"] = value

    def resolve(self, value: Any, kind: str) -> Optional[Dict[str, Any]]:
        seen: set[str] = set()
        while isinstance(value, dict) and isinstance(value.get("$ref"), str):
            ref = value["$ref"]
            if ref in seen or ref not in self._refs:
                logger.warning("Unresolved %s reference treated as absent: %s", kind, ref)
                return None
            seen.add(ref)
            value = self._refs[ref]
        return value if isinstance(value, dict) else None


class _BaseNormalizer:
    def __init__(self, document: Dict[str, Any], dialect: Dialect, source_url: Optional[str]) -> None:
        self.document = document
        self.dialect = dialect
        self.source_url = source_url
        self.components = _ComponentLookup(document)

    def parse(self) -> ParsedDocument:
        info = self.document.get("info") or {}
        return ParsedDocument(
            version=self.dialect.value,
            title=info.get("title") or "Untitled API",
            description=info.get("description"),
            base_url=self.extract_base_url(),
            operations=self.extract_operations(),
            security_schemes=self.security_schemes(),
            schemas=self.schemas(),
        )

    def extract_base_url(self) -> str:
        raise NotImplementedError

    def security_schemes(self) -> Dict[str, Any]:
        raise NotImplementedError

    def schemas(self) -> Dict[str, Any]:
        raise NotImplementedError

    def extract_operations(self) -> List[Operation]:
        operations: List[Operation] = []
        paths = self.document.get("paths") or {}
        global_security = self.document.get("security") or []
        entries = [
            (path, method, path_item, operation)
            for path, path_item in paths.items()
            if isinstance(path_item, dict)
            for method in HTTP_METHODS
            for operation in [path_item.get(method)]
            if isinstance(operation, dict)
        ]
        used_ids = {
            operation["operationId"]
            for _, _, _, operation in entries
            if isinstance(operation.get("operationId"), str) and operation["operationId"]
        }

        for path, method, path_item, operation in entries:
            operation_id = operation.get("operationId")
            if not isinstance(operation_id, str) or not operation_id:
                operation_id = _reserve_operation_id(generate_operation_id(method, path), used_ids)

            parameters, request_body = self.convert_parameters(
                _as_list(path_item.get("parameters")), _as_list(operation.get("parameters"))
            )
            if not self.dialect.is_legacy:
                request_body = self.convert_request_body(operation.get("requestBody"))

            responses = operation.get("responses")
            operations.append(
                Operation(
                    operation_id=operation_id,
                    method=method.upper(),
                    path=path,
                    summary=operation.get("summary"),
                    description=operation.get("description"),
                    parameters=tuple(parameters),
                    request_body=request_body,
                    responses=self.convert_responses(responses if isinstance(responses, dict) else {}),
                    security=operation.get("security") if "security" in operation else global_security,
                    tags=[tag for tag in _as_list(operation.get("tags")) if isinstance(tag, str)],
                )
            )

        return operations

    def convert_parameters(
        self, shared: List[Any], own: List[Any]
    ) -> Tuple[List[Parameter], Optional[RequestBody]]:
        merged: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for raw in [*shared, *own]:
            param = self.components.resolve(raw, "parameter")
            if not param or not isinstance(param.get("name"), str) or not isinstance(param.get("in", ""), str):
                continue
            merged[(param.get("in", ""), param["name"])] = param

        parameters: List[Parameter] = []
        request_body: Optional[RequestBody] = None
        for (location, name), param in merged.items():
            if location == "body":
                request_body = RequestBody(
                    required=bool(param.get("required", False)),
                    description=param.get("description"),
                    content={JSON_MEDIA_TYPE: {"schema": param.get("schema")}},
                )
                continue
            if location not in PARAMETER_LOCATIONS:
                logger.debug("Skipping unsupported %s parameter %s", location, name)
                continue
            parameters.append(
                Parameter(
                    name=name,
                    location=location,
                    required=bool(param.get("required", location == "path")),
                    schema=self.parameter_schema(param),
                    description=param.get("description"),
                    example=param.get("example", param.get("x-example")),
                )
            )
        return parameters, request_body

    def parameter_schema(self, param: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        schema = param.get("schema")
        if isinstance(schema, dict):
            return schema
        synthesized = {key: param[key] for key in _PARAMETER_SCHEMA_KEYS if key in param}
        return synthesized or None

    def convert_request_body(self, raw: Any) -> Optional[RequestBody]:
        if raw is None:
            return None
        body = self.components.resolve(raw, "request body")
        if body is None:
            return None
        return RequestBody(
            required=bool(body.get("required", False)),
            description=body.get("description"),
            content=dict(body["content"]) if isinstance(body.get("content"), dict) else {},
        )

    def convert_responses(self, responses: Dict[str, Any]) -> Dict[str, ResponseSpec]:
        converted: Dict[str, ResponseSpec] = {}
        for status_code, raw in responses.items():
            response = self.components.resolve(raw, "response")
            if response is None:
                continue
            converted[str(status_code)] = ResponseSpec(
                description=response.get("description") or "",
                content=self.response_content(response),
            )
        return converted

    def response_content(self, response: Dict[str, Any]) -> Optional[Dict[str, Dict[str, Any]]]:
        content = response.get("content")
        return content if isinstance(content, dict) else None

    def source_parts(self) -> Optional[Tuple[str, str]]:
        if not self.source_url:
            return None
        parts = urlsplit(self.source_url)
        if not parts.scheme or not parts.netloc:
            logger.error("Failed to parse source URL for host extraction: %s", self.source_url)
            return None
        return parts.scheme, parts.netloc


class _Swagger2Normalizer(_BaseNormalizer):
    def extract_base_url(self) -> str:
        schemes = [scheme for scheme in _as_list(self.document.get("schemes")) if isinstance(scheme, str)]
        scheme = schemes[0] if schemes else "https"
        host = self.document.get("host") or ""
        base_path = self.document.get("basePath") or ""
        logger.debug("OpenAPI 2.0 - scheme: %s, host: %s, basePath: %s", scheme, host, base_path)

        if not host or "." not in host:
            source = self.source_parts()
            if source is not None:
                logger.info("No valid host in API description, using host from source URL: %s", source[1])
                host = source[1]

        base_url = f"{scheme}://{host}{base_path}"
        logger.info("Extracted base URL: %s", base_url)
        return base_url

    def security_schemes(self) -> Dict[str, Any]:
        return dict(self.document.get("securityDefinitions") or {})

    def schemas(self) -> Dict[str, Any]:
        return dict(self.document.get("definitions") or {})

    def response_content(self, response: Dict[str, Any]) -> Optional[Dict[str, Dict[str, Any]]]:
        schema = response.get("schema")
        if schema is None:
            return None
        return {JSON_MEDIA_TYPE: {"schema": schema}}


class _OpenAPI3Normalizer(_BaseNormalizer):
    def extract_base_url(self) -> str:
        servers = self.document.get("servers") or []
        if not servers or not isinstance(servers[0], dict):
            logger.warning("No servers defined in OpenAPI document, using default localhost")
            return LOCALHOST

        server = servers[0]
        url = str(server.get("url") or "")
        logger.debug("Original server URL from OpenAPI: %s", url)

        variables = server.get("variables")
        for name, variable in (variables if isinstance(variables, dict) else {}).items():
            variable = variable if isinstance(variable, dict) else {}
            value = variable.get("default")
            if value is None:
                value = (_as_list(variable.get("enum")) or [""])[0]
            url = url.replace(f"{{{name}}}", str(value))

        if url.startswith("/") and not url.startswith("//"):
            source = self.source_parts()
            if source is not None:
                url = f"{source[0]}://{source[1]}{url}"
                logger.info("Resolved relative server URL using source URL host: %s", url)
            else:
                logger.warning("Relative server URL found but no source URL to extract host from")
                url = f"{LOCALHOST}{url}"
        elif url.startswith("//"):
            url = f"https:{url}"

        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"

        logger.info("Extracted base URL: %s", url)
        return url

    def security_schemes(self) -> Dict[str, Any]:
        components = self.document.get("components") or {}
        return dict(components.get("securitySchemes") or {})

    def schemas(self) -> Dict[str, Any]:
        components = self.document.get("components") or {}
        return dict(components.get("schemas") or {})


def generate_operation_id(method: str, path: str) -> str:
    """Derive ``postApiUsersIdProfile`` from ``POST /api/users/{id}/profile``."""
    parts = [
        part[1:-1] if part.startswith("{") and part.endswith("}") else part
        for part in path.split("/")
        if part
    ]
    camel = "".join(part if index == 0 else part[:1].upper() + part[1:] for index, part in enumerate(parts))
    return method.lower() + camel




def _reserve_operation_id(candidate: str, used: Set[str]) -> str:
    operation_id = candidate
    suffix = 2
    while operation_id in used:
        operation_id = f"{candidate}_{suffix}"
        suffix += 1
    if operation_id != candidate:
        logger.warning("Generated operationId '%s' is taken, using '%s'", candidate, operation_id)
    used.add(operation_id)
    return operation_id


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []
