"""
Local menu snapshot backed by the ``menu`` table.

The store holds at most one snapshot: ``replace_all`` deletes every row and
inserts the new items inside one transaction, so readers never see a mix of
old and new rows and a failed write leaves the previous snapshot in place.
Image URLs are stored as-is and resolved through the image cache when rows
are read back.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Select

from little_lemon.database import Base, Database
from little_lemon.exceptions import QueryError, StorageUnavailable
from little_lemon.models.menu_item import MenuItem
from little_lemon.schemas.menu_item import ImageRef, MenuItemCreate, MenuItemResponse

logger = logging.getLogger(__name__)


class ImageResolver(Protocol):
    async def resolve(self, url: str) -> str: ...


class MenuStore:
    def __init__(self, db: Database, image_resolver: ImageResolver | None = None) -> None:
        self._db = db
        self._image_resolver = image_resolver
        self._init_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Create the menu table if it does not exist.

        Concurrent callers share the same pending task, so the table is
        created at most once per store. A failed attempt is forgotten so the
        next call starts over.
        """
        if self._init_task is None:
            self._init_task = asyncio.create_task(self._create_schema())
        task = self._init_task
        try:
            await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

    async def _create_schema(self) -> None:
        try:
            async with self._db.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, tables=[MenuItem.__table__])
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Failed to create menu table", extra={"error": str(exc)})
            raise StorageUnavailable(f"Cannot open menu table: {exc}") from exc
        logger.info("Menu table ready")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def replace_all(self, items: Iterable[MenuItemCreate]) -> int:
        """Swap the stored snapshot for ``items``; ids are reassigned by the database."""
        rows = [
            MenuItem(
                name=item.name,
                description=item.description,
                price=float(item.price),
                category=item.category,
                image=item.image,
            )
            for item in items
        ]
        try:
            async with self._db.session() as db:
                async with db.begin():
                    await db.execute(delete(MenuItem))
                    db.add_all(rows)
        except SQLAlchemyError as exc:
            logger.error("Failed to save menu items", extra={"error": str(exc)})
            raise QueryError(f"Failed to save menu items: {exc}") from exc

        logger.info("Menu snapshot replaced", extra={"item_count": len(rows)})
        return len(rows)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def is_populated(self) -> bool:
        try:
            async with self._db.session() as db:
                count = await db.scalar(select(func.count()).select_from(MenuItem))
        except SQLAlchemyError as exc:
            raise QueryError(f"Failed to check menu items: {exc}") from exc
        return bool(count)

    async def read_all(self) -> list[MenuItemResponse]:
        return await self._fetch(select(MenuItem), "read")

    async def read_by_categories(self, categories: Sequence[str]) -> list[MenuItemResponse]:
        stmt = select(MenuItem)
        if categories:
            stmt = stmt.where(MenuItem.category.in_(list(categories)))
        return await self._fetch(stmt, "filter")

    async def search(self, text: str, categories: Sequence[str] = ()) -> list[MenuItemResponse]:
        # Case-insensitive; % and _ in the query match literally
        stmt = select(MenuItem).where(MenuItem.name.icontains(text, autoescape=True))
        if categories:
            stmt = stmt.where(MenuItem.category.in_(list(categories)))
        return await self._fetch(stmt, "search")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch(self, stmt: Select, operation: str) -> list[MenuItemResponse]:
        try:
            async with self._db.session() as db:
                result = await db.execute(stmt.order_by(MenuItem.id))
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error(
                "Menu query failed",
                extra={"operation": operation, "error": str(exc)},
            )
            raise QueryError(f"Failed to {operation} menu items: {exc}") from exc

        return [await self._to_response(row) for row in rows]

    async def _to_response(self, row: MenuItem) -> MenuItemResponse:
        image = None
        if row.image:
            uri = row.image
            if self._image_resolver is not None:
                uri = await self._image_resolver.resolve(row.image)
            image = ImageRef(uri=uri)
        return MenuItemResponse(
            id=row.id,
            name=row.name,
            description=row.description,
            price=row.price,
            category=row.category,
            image=image,
        )
