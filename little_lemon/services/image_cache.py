"""
Filesystem image cache keyed by the remote image URL.

The ``image_cache`` table is the only index of what has been downloaded:
a lookup is a hit when its row is younger than the retention window and the
file it points to still exists. Files live in one flat directory, named by
the trailing path segment of their URL.

``resolve`` never raises. When anything goes wrong it hands back the remote
URL so callers can still render the image over the network.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError

from little_lemon.database import Base, Database
from little_lemon.exceptions import CacheDownloadError, StorageUnavailable
from little_lemon.metrics import IMAGE_CACHE_EVICTIONS, IMAGE_CACHE_LOOKUPS
from little_lemon.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=7)


def utcnow() -> datetime:
    # Naive UTC, matching what SQLite DateTime columns hand back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def cache_filename(url: str) -> str:
    """Trailing path segment of ``url`` (query string and fragment dropped)."""
    try:
        path = urlparse(url).path
    except ValueError as exc:
        raise CacheDownloadError(f"Malformed image URL {url!r}: {exc}") from exc
    name = unquote(path.rstrip("/").rsplit("/", 1)[-1])
    if not name or name in (".", ".."):
        raise CacheDownloadError(f"Cannot derive a file name from {url!r}")
    return name


class ImageCache:
    def __init__(
        self,
        db: Database,
        client: httpx.AsyncClient,
        cache_dir: str | Path,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._client = client
        self.cache_dir = Path(cache_dir)
        self.retention = retention
        self._clock = clock

    async def initialize(self) -> None:
        try:
            async with self._db.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, tables=[CacheEntry.__table__])
        except (SQLAlchemyError, OSError) as exc:
            raise StorageUnavailable(f"Cannot open image cache index: {exc}") from exc

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def resolve(self, url: str) -> str:
        """Return a local file path for ``url``, downloading it on a miss."""
        try:
            entry = await self._lookup(url)
            if entry is not None:
                IMAGE_CACHE_LOOKUPS.labels("hit").inc()
                return entry.local_path

            local_path = await self._download(url)
            await self._record(url, local_path)
        except CacheDownloadError as exc:
            IMAGE_CACHE_LOOKUPS.labels("fallback").inc()
            logger.warning(
                "Image cache unavailable, falling back to remote URL",
                extra={"url": url, "error": str(exc)},
            )
            return url

        IMAGE_CACHE_LOOKUPS.labels("miss").inc()
        return local_path

    async def _lookup(self, url: str) -> CacheEntry | None:
        try:
            async with self._db.session() as db:
                entry = await db.get(CacheEntry, url)
        except (SQLAlchemyError, StorageUnavailable) as exc:
            raise CacheDownloadError(f"Cache index lookup failed: {exc}") from exc

        if entry is None or self._is_expired(entry):
            return None
        if not Path(entry.local_path).is_file():
            logger.info("Cached file missing on disk", extra={"url": url, "path": entry.local_path})
            return None
        return entry

    async def _download(self, url: str) -> str:
        target = self.cache_dir / cache_filename(url)
        try:
            response = await self._client.get(url, follow_redirects=True)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise CacheDownloadError(f"Download failed: {exc}") from exc

        try:
            await asyncio.to_thread(self._write, target, response.content)
        except OSError as exc:
            raise CacheDownloadError(f"Cannot write {target}: {exc}") from exc

        logger.debug(
            "Downloaded image",
            extra={"url": url, "path": str(target), "bytes": len(response.content)},
        )
        return str(target)

    @staticmethod
    def _write(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    async def _record(self, url: str, local_path: str) -> None:
        now = self._clock()
        stmt = insert(CacheEntry).values(source_url=url, local_path=local_path, last_modified_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CacheEntry.source_url],
            set_={"local_path": local_path, "last_modified_at": now},
        )
        try:
            async with self._db.session() as db:
                async with db.begin():
                    await db.execute(stmt)
        except (SQLAlchemyError, StorageUnavailable) as exc:
            raise CacheDownloadError(f"Cache index update failed: {exc}") from exc

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.last_modified_at > self.retention

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def sweep(self) -> int:
        """Delete entries older than the retention window. Returns how many were evicted."""
        cutoff = self._clock() - self.retention
        async with self._db.session() as db:
            result = await db.execute(select(CacheEntry).where(CacheEntry.last_modified_at < cutoff))
            expired = list(result.scalars().all())
            if not expired:
                return 0

            for entry in expired:
                try:
                    await asyncio.to_thread(Path(entry.local_path).unlink, missing_ok=True)
                except OSError as exc:
                    logger.warning(
                        "Could not delete cached file",
                        extra={"path": entry.local_path, "error": str(exc)},
                    )

            # Rows refreshed by a concurrent resolve since the select are left alone
            result = await db.execute(
                delete(CacheEntry).where(
                    CacheEntry.source_url.in_([entry.source_url for entry in expired]),
                    CacheEntry.last_modified_at < cutoff,
                )
            )
            await db.commit()
            evicted = result.rowcount

        IMAGE_CACHE_EVICTIONS.inc(evicted)
        logger.info("Image cache swept", extra={"evicted": evicted})
        return evicted

    async def run_periodic_sweep(self, interval: float) -> None:
        """Sweep now and then every ``interval`` seconds until cancelled."""
        while True:
            try:
                await self.sweep()
            except (SQLAlchemyError, StorageUnavailable) as exc:
                logger.error("Image cache sweep failed", extra={"error": str(exc)})
            await asyncio.sleep(interval)
