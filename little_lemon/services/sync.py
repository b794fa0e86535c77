"""
Once-per-session menu sync.

    UNINITIALIZED -> INITIALIZING -> EMPTY or POPULATED -> READY
    any failure -> FAILED

An empty store triggers one remote fetch (cold start); a populated store is
read as-is without touching the network (warm start). ``run`` always starts
from UNINITIALIZED and never retries on its own: calling it again is the
retry.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from opentelemetry import trace

from little_lemon.exceptions import MenuSyncError
from little_lemon.metrics import MENU_SYNC_RUNS
from little_lemon.schemas.menu_item import MenuItemResponse
from little_lemon.services.image_cache import ImageCache
from little_lemon.services.menu_fetcher import MenuFetcher
from little_lemon.services.menu_store import MenuStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    EMPTY = "empty"
    POPULATED = "populated"
    READY = "ready"
    FAILED = "failed"


@dataclass
class SyncResult:
    state: SyncState
    items: list[MenuItemResponse] = field(default_factory=list)
    cold_start: bool = False
    duration_ms: int = 0
    error: MenuSyncError | None = None

    @property
    def ok(self) -> bool:
        return self.state == SyncState.READY


class SyncOrchestrator:
    def __init__(self, store: MenuStore, fetcher: MenuFetcher, image_cache: ImageCache) -> None:
        self._store = store
        self._fetcher = fetcher
        self._image_cache = image_cache
        self.state = SyncState.UNINITIALIZED
        self.last_result: SyncResult | None = None

    def _transition(self, state: SyncState) -> None:
        logger.debug("Sync state %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(self) -> SyncResult:
        """Hydrate or read the local menu. Always returns a SyncResult, never raises."""
        self.state = SyncState.UNINITIALIZED
        start = time.monotonic()
        cold_start = False

        with tracer.start_as_current_span("menu.sync") as span:
            try:
                self._transition(SyncState.INITIALIZING)
                await self._store.initialize()
                await self._image_cache.initialize()

                if await self._store.is_populated():
                    self._transition(SyncState.POPULATED)
                    items = await self._store.read_all()
                else:
                    self._transition(SyncState.EMPTY)
                    cold_start = True
                    items = await self._hydrate()

                self._transition(SyncState.READY)
            except MenuSyncError as exc:
                self._transition(SyncState.FAILED)
                span.record_exception(exc)
                elapsed_ms = int((time.monotonic() - start) * 1000)
                MENU_SYNC_RUNS.labels("failed").inc()
                logger.error(
                    "Menu sync failed",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "cold_start": cold_start,
                        "duration_ms": elapsed_ms,
                    },
                )
                self.last_result = SyncResult(
                    state=SyncState.FAILED,
                    cold_start=cold_start,
                    duration_ms=elapsed_ms,
                    error=exc,
                )
                return self.last_result

            span.set_attribute("menu.cold_start", cold_start)
            span.set_attribute("menu.item_count", len(items))

        elapsed_ms = int((time.monotonic() - start) * 1000)
        MENU_SYNC_RUNS.labels("cold" if cold_start else "warm").inc()
        logger.info(
            "Menu sync complete",
            extra={"cold_start": cold_start, "item_count": len(items), "duration_ms": elapsed_ms},
        )
        self.last_result = SyncResult(
            state=SyncState.READY,
            items=items,
            cold_start=cold_start,
            duration_ms=elapsed_ms,
        )
        return self.last_result

    async def _hydrate(self) -> list[MenuItemResponse]:
        with tracer.start_as_current_span("menu.fetch"):
            raw_items = await self._fetcher.fetch_menu()
        transformed = self._fetcher.transform(raw_items)

        # Warm the image cache; rows keep the remote URL either way
        with tracer.start_as_current_span("menu.cache_images"):
            for item in transformed:
                if item.image:
                    await self._image_cache.resolve(item.image)

        with tracer.start_as_current_span("menu.populate"):
            await self._store.replace_all(transformed)
        return await self._store.read_all()
