"""OpenAPI document loader and pre-validation repair pass."""

from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Set

import httpx
import yaml

from .errors import ConfigurationError, DocumentFetchError
from .models import HTTP_METHODS


logger = logging.getLogger(__name__)


class OpenAPILoader:
    def __init__(
        self,
        url: Optional[str] = None,
        path: Optional[str] = None,
        timeout_seconds: float = 30,
    ) -> None:
        self.url = url
        self.path = path
        self.timeout_seconds = timeout_seconds

    @property
    def source_url(self) -> Optional[str]:
        return self.url

    async def load_document(self) -> Dict[str, Any]:
        if self.url:
            logger.info("Fetching API description from URL: %s", self.url)
            return await self._fetch(self.url)
        if self.path:
            logger.info("Reading API description from file: %s", self.path)
            return self._read(Path(self.path))
        raise ConfigurationError("No API description source configured")

    async def _fetch(self, url: str) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, follow_redirects=True) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise DocumentFetchError(f"Failed to fetch API description {url}: {exc}") from exc

        if response.status_code != 200:
            raise DocumentFetchError(
                f"Failed to fetch API description {url}: status {response.status_code}"
            )
        return _parse(response.text, url)

    def _read(self, path: Path) -> Dict[str, Any]:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise DocumentFetchError(f"Failed to read API description {path}: {exc}") from exc
        return _parse(content, str(path))


def _parse(content: str, origin: str) -> Dict[str, Any]:
    try:
        document = json.loads(content)
    except json.JSONDecodeError:
        try:
            document = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise DocumentFetchError(f"API description {origin} is neither JSON nor YAML: {exc}") from exc

    if not isinstance(document, dict):
        raise DocumentFetchError(f"API description {origin} is not an object")
    return document


def repair_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``document`` with known real-world malformations fixed."""
    repaired = copy.deepcopy(document)
    fix_duplicate_operation_ids(repaired)
    if repaired.get("swagger") == "2.0":
        fix_malformed_host(repaired)
    return repaired


def fix_duplicate_operation_ids(document: Dict[str, Any]) -> int:
    paths = document.get("paths")
    if not isinstance(paths, dict):
        return 0

    operations = [
        (path, method, operation)
        for path, path_item in paths.items()
        if isinstance(path_item, dict)
        for method in HTTP_METHODS
        for operation in [path_item.get(method)]
        if isinstance(operation, dict)
    ]

    existing: Set[str] = {
        operation["operationId"]
        for _, _, operation in operations
        if isinstance(operation.get("operationId"), str)
    }
    assigned: Set[str] = set()
    fixed = 0

    for path, method, operation in operations:
        operation_id = operation.get("operationId")
        if not isinstance(operation_id, str):
            continue
        if operation_id not in assigned:
            assigned.add(operation_id)
            continue

        suffix = 2
        candidate = f"{operation_id}_{suffix}"
        while candidate in existing or candidate in assigned:
            suffix += 1
            candidate = f"{operation_id}_{suffix}"

        operation["operationId"] = candidate
        assigned.add(candidate)
        fixed += 1
        logger.warning(
            "Fixed duplicate operationId: '%s' -> '%s' (%s %s)",
            operation_id,
            candidate,
            method.upper(),
            path,
        )

    if fixed:
        logger.info("Fixed %s duplicate operationIds in API description", fixed)
    return fixed


_REPEATED_SLASHES = re.compile(r"/{2,}")


def fix_malformed_host(document: Dict[str, Any]) -> bool:
    host = document.get("host")
    if not isinstance(host, str) or "/" not in host:
        return False

    real_host, _, host_path = host.partition("/")
    base_path = document.get("basePath") or ""
    merged = _REPEATED_SLASHES.sub("/", f"/{host_path}/{base_path}")
    if len(merged) > 1:
        merged = merged.rstrip("/")

    document["host"] = real_host
    document["basePath"] = merged
    logger.warning(
        "Fixed malformed host: '%s' -> host '%s', basePath '%s'", host, real_host, merged
    )
    return True
