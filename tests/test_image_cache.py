"""
Filesystem image cache.

Covers:
  - a hit avoids a second download and returns the same path
  - download / write failures and malformed URLs fall back to the remote URL
  - expired entries are swept, young or concurrently refreshed ones kept
  - expired or vanished files are downloaded again
  - file naming from the trailing URL segment
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from little_lemon.exceptions import CacheDownloadError
from little_lemon.models.cache_entry import CacheEntry
from little_lemon.services.image_cache import ImageCache, cache_filename

from conftest import IMAGE_BASE_URL

PASTA_URL = f"{IMAGE_BASE_URL}/pasta.jpg"
FISH_URL = f"{IMAGE_BASE_URL}/grilledFish.jpg"


class TestResolve:
    async def test_miss_downloads_into_cache_dir(self, image_cache, remote):
        path = await image_cache.resolve(PASTA_URL)

        assert Path(path) == image_cache.cache_dir / "pasta.jpg"
        assert Path(path).read_bytes().startswith(b"\xff\xd8")
        assert remote.image_requests == 1

    async def test_hit_avoids_redownload(self, image_cache, remote):
        first = await image_cache.resolve(PASTA_URL)
        second = await image_cache.resolve(PASTA_URL)

        assert first == second
        assert remote.image_requests == 1

    async def test_different_urls_are_independent(self, image_cache, remote):
        pasta = await image_cache.resolve(PASTA_URL)
        fish = await image_cache.resolve(FISH_URL)

        assert pasta != fish
        assert remote.image_requests == 2

    async def test_http_error_falls_back_to_url(self, image_cache, remote):
        remote.image_status = 404
        assert await image_cache.resolve(PASTA_URL) == PASTA_URL
        assert not (image_cache.cache_dir / "pasta.jpg").exists()

    async def test_transport_error_falls_back_to_url(self, image_cache, remote):
        remote.image_error = httpx.ConnectError("no route to host")
        assert await image_cache.resolve(PASTA_URL) == PASTA_URL

    async def test_malformed_url_falls_back_to_url(self, image_cache, remote):
        url = "https://[::1/x.jpg"
        assert await image_cache.resolve(url) == url
        assert remote.image_requests == 0

    async def test_url_rejected_by_client_falls_back_to_url(self, image_cache, remote):
        remote.image_error = httpx.InvalidURL("bad host")
        assert await image_cache.resolve(PASTA_URL) == PASTA_URL

    async def test_failed_download_is_retried_on_next_resolve(self, image_cache, remote):
        remote.image_status = 503
        assert await image_cache.resolve(PASTA_URL) == PASTA_URL

        remote.image_status = 200
        path = await image_cache.resolve(PASTA_URL)
        assert path != PASTA_URL
        assert remote.image_requests == 2

    async def test_unwritable_cache_dir_falls_back_to_url(self, db, http_client, tmp_path, clock):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("occupied")
        cache = ImageCache(db, http_client, blocker / "images", clock=clock)
        await cache.initialize()

        assert await cache.resolve(PASTA_URL) == PASTA_URL

    async def test_missing_index_table_falls_back_to_url(self, db, http_client, tmp_path):
        cache = ImageCache(db, http_client, tmp_path / "images")
        assert await cache.resolve(PASTA_URL) == PASTA_URL

    async def test_vanished_file_is_downloaded_again(self, image_cache, remote):
        path = await image_cache.resolve(PASTA_URL)
        Path(path).unlink()

        again = await image_cache.resolve(PASTA_URL)

        assert again == path
        assert Path(again).exists()
        assert remote.image_requests == 2

    async def test_expired_entry_is_downloaded_again(self, image_cache, remote, clock):
        await image_cache.resolve(PASTA_URL)
        clock.advance(days=8)

        await image_cache.resolve(PASTA_URL)
        assert remote.image_requests == 2


class TestSweep:
    async def test_old_entries_are_removed(self, image_cache, clock):
        path = await image_cache.resolve(PASTA_URL)
        clock.advance(days=7, seconds=1)

        assert await image_cache.sweep() == 1
        assert not Path(path).exists()

    async def test_young_entries_are_kept(self, image_cache, remote, clock):
        path = await image_cache.resolve(PASTA_URL)
        clock.advance(days=6)

        assert await image_cache.sweep() == 0
        assert Path(path).exists()
        assert await image_cache.resolve(PASTA_URL) == path
        assert remote.image_requests == 1

    async def test_sweep_only_evicts_expired_entries(self, image_cache, clock):
        old = await image_cache.resolve(PASTA_URL)
        clock.advance(days=5)
        young = await image_cache.resolve(FISH_URL)
        clock.advance(days=3)

        assert await image_cache.sweep() == 1
        assert not Path(old).exists()
        assert Path(young).exists()

    async def test_sweep_is_repeatable(self, image_cache, clock):
        await image_cache.resolve(PASTA_URL)
        clock.advance(days=10)

        assert await image_cache.sweep() == 1
        assert await image_cache.sweep() == 0

    async def test_sweep_tolerates_already_deleted_files(self, image_cache, clock):
        path = await image_cache.resolve(PASTA_URL)
        Path(path).unlink()
        clock.advance(days=30)

        assert await image_cache.sweep() == 1

    async def test_entry_refreshed_during_sweep_is_kept(self, db, image_cache, remote, clock, monkeypatch):
        await image_cache.resolve(PASTA_URL)
        clock.advance(days=8)

        real_to_thread = asyncio.to_thread
        refreshing = []

        async def refresh_before_unlink(func, /, *args, **kwargs):
            # Re-download the same URL while the sweep is between select and delete
            if not refreshing:
                refreshing.append(True)
                await image_cache.resolve(PASTA_URL)
            return await real_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, "to_thread", refresh_before_unlink)

        assert await image_cache.sweep() == 0
        assert remote.image_requests == 2
        async with db.session() as session:
            entry = await session.get(CacheEntry, PASTA_URL)
        assert entry is not None
        assert entry.last_modified_at == clock()

    async def test_swept_url_is_downloaded_again(self, image_cache, remote, clock):
        await image_cache.resolve(PASTA_URL)
        clock.advance(days=8)
        await image_cache.sweep()

        await image_cache.resolve(PASTA_URL)
        assert remote.image_requests == 2


class TestFilename:
    def test_trailing_segment(self):
        assert cache_filename("https://host/a/b/greekSalad.jpg") == "greekSalad.jpg"

    def test_query_string_is_dropped(self):
        assert cache_filename("https://github.com/x/blob/main/images/pasta.jpg?raw=true") == "pasta.jpg"

    def test_url_without_path_is_rejected(self):
        with pytest.raises(CacheDownloadError):
            cache_filename("https://host/")

    def test_malformed_url_is_rejected(self):
        with pytest.raises(CacheDownloadError, match="Malformed"):
            cache_filename("https://[::1/x.jpg")
