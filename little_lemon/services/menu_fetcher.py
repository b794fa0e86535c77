import logging
import time
from collections.abc import Sequence

import httpx
from pydantic import ValidationError

from little_lemon.exceptions import FetchError
from little_lemon.metrics import MENU_FETCH_DURATION
from little_lemon.schemas.menu_item import MenuDocument, MenuItemCreate, RawMenuItem

logger = logging.getLogger(__name__)

# Dish name -> image file stem on the remote image host
IMAGE_NAMES = {
    "Greek Salad": "greekSalad",
    "Bruschetta": "bruschetta",
    "Grilled Fish": "grilledFish",
    "Pasta": "pasta",
    "Lemon Dessert": "lemonDessert",
}


class MenuFetcher:
    def __init__(self, client: httpx.AsyncClient, menu_url: str, image_base_url: str) -> None:
        self._client = client
        self.menu_url = menu_url
        self.image_base_url = image_base_url.rstrip("/")

    async def fetch_menu(self) -> list[RawMenuItem]:
        """Single GET of the menu document. Raises FetchError on any failure."""
        start = time.perf_counter()
        try:
            response = await self._client.get(self.menu_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Menu endpoint returned an error status",
                extra={"url": self.menu_url, "status_code": exc.response.status_code},
            )
            raise FetchError(f"Menu endpoint returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("Menu endpoint unreachable", extra={"url": self.menu_url, "error": str(exc)})
            raise FetchError(f"Menu endpoint unreachable: {exc}") from exc
        finally:
            MENU_FETCH_DURATION.observe(time.perf_counter() - start)

        try:
            document = MenuDocument.model_validate_json(response.content)
        except ValidationError as exc:
            logger.error(
                "Malformed menu document",
                extra={"url": self.menu_url, "error_count": exc.error_count()},
            )
            raise FetchError("Malformed menu document") from exc

        logger.info("Fetched remote menu", extra={"item_count": len(document.menu)})
        return document.menu

    def image_url(self, name: str) -> str | None:
        stem = IMAGE_NAMES.get(name)
        if stem is None:
            return None
        return f"{self.image_base_url}/{stem}.jpg"

    def transform(self, raw_items: Sequence[RawMenuItem]) -> list[MenuItemCreate]:
        """Number items from 1 in source order and attach image URLs. Raises FetchError on unusable entries."""
        try:
            items = [
                MenuItemCreate(
                    id=index,
                    name=raw.name,
                    description=raw.description,
                    price=raw.price,
                    category=raw.category,
                    image=self.image_url(raw.name),
                )
                for index, raw in enumerate(raw_items, start=1)
            ]
        except ValidationError as exc:
            logger.error("Menu item could not be transformed", extra={"error_count": exc.error_count()})
            raise FetchError("Malformed menu item") from exc

        unmapped = [item.name for item in items if item.image is None]
        if unmapped:
            logger.warning("No image mapping for menu items", extra={"names": unmapped})
        return items
