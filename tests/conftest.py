from __future__ import annotations

from datetime import datetime, timedelta

import httpx
import pytest

from little_lemon.database import Database
from little_lemon.services.image_cache import ImageCache
from little_lemon.services.menu_fetcher import MenuFetcher
from little_lemon.services.menu_store import MenuStore
from little_lemon.services.profile_store import ProfileStore
from little_lemon.services.sync import SyncOrchestrator

MENU_URL = "https://menu.example.org/capstone.json"
IMAGE_BASE_URL = "https://images.example.org/images"

SAMPLE_MENU = [
    {
        "name": "Greek Salad",
        "description": "The famous greek salad of crispy lettuce, peppers, olives, our Chicago.",
        "price": 12.99,
        "category": "Starters",
    },
    {
        "name": "Bruschetta",
        "description": "Our Bruschetta is made from grilled bread that has been smeared with garlic.",
        "price": 7.99,
        "category": "Starters",
    },
    {
        "name": "Grilled Fish",
        "description": "Barbequed catch of the day, with red onion, crisp capers, chive creme fraiche.",
        "price": 20,
        "category": "Mains",
    },
    {
        "name": "Pasta",
        "description": "Penne with fried aubergines, cherry tomatoes, tomato sauce, fresh chilli.",
        "price": 18.99,
        "category": "Mains",
    },
    {
        "name": "Lemon Dessert",
        "description": "Light and fluffy traditional homemade Italian Lemon and ricotta cake.",
        "price": 6.99,
        "category": "Desserts",
    },
]


class FakeRemote:
    """Stands in for the menu endpoint and the image host."""

    def __init__(self, menu: list[dict] | None = None) -> None:
        self.menu = list(SAMPLE_MENU if menu is None else menu)
        self.menu_status = 200
        self.menu_body: bytes | None = None
        self.image_status = 200
        self.image_error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == MENU_URL:
            if self.menu_status != 200:
                return httpx.Response(self.menu_status)
            if self.menu_body is not None:
                return httpx.Response(200, content=self.menu_body)
            return httpx.Response(200, json={"menu": self.menu})

        if self.image_error is not None:
            raise self.image_error
        if self.image_status != 200:
            return httpx.Response(self.image_status)
        return httpx.Response(200, content=b"\xff\xd8jpeg:" + request.url.path.encode())

    @property
    def menu_requests(self) -> int:
        return sum(1 for r in self.requests if str(r.url) == MENU_URL)

    @property
    def image_requests(self) -> int:
        return sum(1 for r in self.requests if str(r.url) != MENU_URL)


class FakeClock:
    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'little_lemon.db'}")
    database.open()
    yield database
    await database.close()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
async def http_client(remote):
    async with httpx.AsyncClient(transport=httpx.MockTransport(remote.handler)) as client:
        yield client


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def image_cache(db, http_client, tmp_path, clock) -> ImageCache:
    cache = ImageCache(db, http_client, tmp_path / "cache" / "images", clock=clock)
    await cache.initialize()
    return cache


@pytest.fixture
def menu_store(db, image_cache) -> MenuStore:
    return MenuStore(db, image_cache)


@pytest.fixture
def fetcher(http_client) -> MenuFetcher:
    return MenuFetcher(http_client, MENU_URL, IMAGE_BASE_URL)


@pytest.fixture
def orchestrator(menu_store, fetcher, image_cache) -> SyncOrchestrator:
    return SyncOrchestrator(menu_store, fetcher, image_cache)


@pytest.fixture
async def profile_store(db) -> ProfileStore:
    store = ProfileStore(db)
    await store.initialize()
    return store
