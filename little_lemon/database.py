import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from little_lemon.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """
    Owned handle on the local SQLite database.

    Callers open it once, share it between the stores that need it and close
    it on shutdown. Nothing here is process-global, so tests can create as
    many isolated instances as they like.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StorageUnavailable("Database is not open")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def open(self) -> None:
        if self._engine is not None:
            return

        url = make_url(self.url)
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            try:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageUnavailable(f"Cannot create database directory: {exc}") from exc

        self._engine = create_async_engine(self.url, echo=self.echo)
        # expire_on_commit=False keeps rows readable after the session closes
        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.info("Database opened", extra={"database_url": self.url})

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise StorageUnavailable("Database is not open")
        return self._sessionmaker()

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database closed", extra={"database_url": self.url})
