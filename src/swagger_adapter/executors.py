"""Execution layer for REST tool calls."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional, Set, Tuple
from urllib.parse import quote

import httpx

from .auth import AuthManager
from .errors import RemoteError, RequestConstructionError, TransportError
from .logging import log_request, log_response
from .models import Operation

logger = logging.getLogger(__name__)

JSONP_ACCEPT = "application/javascript, application/json"
JSON_ACCEPT = "application/json"

_JSONP_WRAPPER = re.compile(r"^\s*[\w$.]+\s*\((.*)\)\s*;?\s*$", re.DOTALL)
_PATH_SAFE = "!~*'()"


class RestExecutor:
    def __init__(self, base_url: str, auth_manager: AuthManager, timeout_seconds: float = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.auth_manager = auth_manager
        self.timeout_seconds = timeout_seconds

    async def execute(
        self,
        operation: Operation,
        params: Dict[str, Any],
        body_mode: Optional[str] = None,
    ) -> Any:
        method = operation.method.upper()
        path, query, headers, claimed = self._apply_parameters(operation, params)

        if not _has_header(headers, "Accept"):
            headers["Accept"] = JSONP_ACCEPT if "callback" in query else JSON_ACCEPT

        body, has_body = self._build_body(operation, params, claimed, body_mode)
        if method != "GET" and not _has_header(headers, "Content-Type"):
            headers["Content-Type"] = "application/json"

        self.auth_manager.apply(headers)

        url = f"{self.base_url}{path}"
        log_request(logger, method, url, headers, body if has_body else None)

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            try:
                request = client.build_request(
                    method,
                    url,
                    params=query,
                    headers=headers,
                    content=json.dumps(body) if has_body else None,
                )
            except (httpx.InvalidURL, TypeError, ValueError) as exc:
                raise RequestConstructionError(operation.method, operation.path, str(exc), exc) from exc

            try:
                response = await client.send(request)
            except httpx.RequestError as exc:
                logger.error("Request to %s %s failed: %s", method, url, exc)
                raise TransportError(operation.method, operation.path, str(exc) or type(exc).__name__) from exc

        result = self._decode(response)
        log_response(logger, method, url, response.status_code, result)
        if response.status_code >= 400:
            raise RemoteError(operation.method, operation.path, response.status_code, result)
        return result

    def _apply_parameters(
        self, operation: Operation, params: Dict[str, Any]
    ) -> Tuple[str, Dict[str, Any], Dict[str, str], Set[str]]:
        path = operation.path
        query: Dict[str, Any] = {}
        headers: Dict[str, str] = {}
        claimed: Set[str] = set()

        for param in operation.parameters:
            claimed.add(param.name)
            value = params.get(param.name)
            if value is None:
                continue

            if param.location == "path":
                path = path.replace(f"{{{param.name}}}", quote(_stringify(value), safe=_PATH_SAFE))
            elif param.location == "query":
                query[param.name] = value
            elif param.location == "header":
                headers[param.name] = _stringify(value)
            elif param.location == "cookie":
                logger.warning("Cookie parameter %s is not directly supported", param.name)

        return path, query, headers, claimed

    def _build_body(
        self,
        operation: Operation,
        params: Dict[str, Any],
        claimed: Set[str],
        body_mode: Optional[str],
    ) -> Tuple[Any, bool]:
        if operation.request_body is None or body_mode == "none":
            return None, False

        unclaimed = {key: value for key, value in params.items() if key not in claimed}
        if body_mode is None and set(unclaimed) == {"body"}:
            body_mode = "raw"

        if body_mode == "raw":
            if "body" in unclaimed:
                return unclaimed["body"], True
            return None, False

        if unclaimed:
            return unclaimed, True
        return None, False

    def _decode(self, response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "").lower()
        if "javascript" in content_type or "ecmascript" in content_type:
            return _unwrap_jsonp(response.text)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text


def _unwrap_jsonp(text: str) -> Any:
    match = _JSONP_WRAPPER.match(text)
    if match is None:
        return text
    try:
        return json.loads(match.group(1))
    except ValueError:
        logger.debug("JSONP payload is not valid JSON, returning raw text")
        return text


def _has_header(headers: Dict[str, str], name: str) -> bool:
    return any(key.lower() == name.lower() for key in headers)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)
