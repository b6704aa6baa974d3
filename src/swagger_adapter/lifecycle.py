"""Load, publish and refresh the tool surface."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from .auth import AuthManager
from .config import Settings
from .dialects import normalize_document
from .errors import AdapterError
from .executors import RestExecutor
from .models import AdapterTool, ParsedDocument
from .openapi import OpenAPILoader, repair_document
from .tool_registry import ToolRegistry


logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class Snapshot:
    """Everything one tool invocation needs, published as a unit."""

    document: ParsedDocument
    base_url: str
    tools: Dict[str, AdapterTool]
    executor: RestExecutor
    generation: int


Listener = Callable[[Snapshot, Optional[Snapshot]], None]


class ToolLifecycle:
    def __init__(
        self,
        settings: Settings,
        loader: Optional[OpenAPILoader] = None,
        auth_manager: Optional[AuthManager] = None,
        registry: Optional[ToolRegistry] = None,
    ) -> None:
        self.settings = settings
        if loader is None:
            kind, source = settings.document_source()
            loader = OpenAPILoader(
                url=source if kind == "url" else None,
                path=source if kind == "path" else None,
                timeout_seconds=settings.api_timeout_seconds,
            )
        self.loader = loader
        self.auth_manager = auth_manager or AuthManager.from_settings(settings)
        self.registry = registry or ToolRegistry(settings.tool_prefix)
        self.state = LifecycleState.UNINITIALIZED
        self._snapshot: Optional[Snapshot] = None
        self._listeners: List[Listener] = []
        self._lock = asyncio.Lock()
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> Snapshot:
        if self._snapshot is None:
            raise RuntimeError("Tools have not been loaded yet")
        return self._snapshot

    @property
    def generation(self) -> Optional[int]:
        return self._snapshot.generation if self._snapshot else None

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    async def load(self) -> Snapshot:
        """Build and publish a new snapshot.

        The first load propagates its error and leaves the lifecycle FAILED. Later
        loads log the error and keep serving the previous snapshot.
        """
        async with self._lock:
            previous = self._snapshot
            self.state = LifecycleState.LOADING
            try:
                snapshot = await self._build(previous.generation + 1 if previous else 1)
            except Exception as exc:
                unexpected = not isinstance(exc, AdapterError)
                if previous is None:
                    self.state = LifecycleState.FAILED
                    logger.error("Initial load of API description failed: %s", exc, exc_info=unexpected)
                    raise
                self.state = LifecycleState.READY
                logger.error(
                    "Reload of API description failed, keeping generation %s: %s",
                    previous.generation,
                    exc,
                    exc_info=unexpected,
                )
                return previous

            self._snapshot = snapshot
            self.state = LifecycleState.READY
            logger.info(
                "Published generation %s with %s tools (base URL %s)",
                snapshot.generation,
                len(snapshot.tools),
                snapshot.base_url,
            )

        for listener in self._listeners:
            listener(snapshot, previous)
        return snapshot

    async def _build(self, generation: int) -> Snapshot:
        raw = await self.loader.load_document()
        document = normalize_document(repair_document(raw), self.loader.source_url)

        base_url = document.base_url
        if self.settings.api_base_url:
            logger.info("Overriding base URL %s with %s", base_url, self.settings.api_base_url)
            base_url = self.settings.api_base_url

        tools = self.registry.build(document)
        executor = RestExecutor(base_url, self.auth_manager, self.settings.api_timeout_seconds)
        return Snapshot(
            document=document,
            base_url=base_url,
            tools=tools,
            executor=executor,
            generation=generation,
        )

    def start_refresh(self) -> None:
        interval = self.settings.refresh_interval_seconds
        if interval <= 0:
            logger.info("Periodic refresh disabled")
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop(interval))
        logger.info("Refreshing API description every %s seconds", interval)

    async def _refresh_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.load()
            except Exception:
                logger.exception("Unexpected error while refreshing tools")

    async def stop(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
