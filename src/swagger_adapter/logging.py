"""Logging helpers with redaction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional


_SENSITIVE_KEYS = re.compile(r"(token|secret|api[_-]?key|password|authorization|cookie)", re.IGNORECASE)

_request_logging_enabled = False


def configure_logging(level: str, enable_request_logging: bool = False) -> None:
    global _request_logging_enabled
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    _request_logging_enabled = enable_request_logging


def redact_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    redacted: Dict[str, Any] = {}
    for key, value in payload.items():
        if _SENSITIVE_KEYS.search(str(key)):
            redacted[key] = "***REDACTED***"
        elif isinstance(value, dict):
            redacted[key] = redact_payload(value)
        else:
            redacted[key] = value
    return redacted


def log_request(
    logger: logging.Logger,
    method: str,
    url: str,
    headers: Dict[str, str],
    body: Optional[Any] = None,
) -> None:
    if not _request_logging_enabled:
        return
    logger.debug(
        "Request: %s %s headers=%s body=%s",
        method,
        url,
        redact_payload(headers),
        redact_payload(body) if isinstance(body, dict) else body,
    )


def log_response(logger: logging.Logger, method: str, url: str, status_code: int, body: Any) -> None:
    if not _request_logging_enabled:
        return
    logger.debug(
        "Response: %s %s - %s body=%s",
        method,
        url,
        status_code,
        redact_payload(body) if isinstance(body, dict) else body,
    )
