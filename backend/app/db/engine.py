from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    uninitialized = "uninitialized"
    connected = "connected"
    failed = "failed"


class LazyEngine:
    """Async engine created on first use.

    A failed connection probe disposes the engine and leaves the holder in
    ``failed``; the next access moves it back to ``uninitialized`` and tries
    again. Nothing reconnects in the background.
    """

    def __init__(self, url: str | URL, **engine_kwargs: Any) -> None:
        self.url = make_url(url)
        if self.url.get_backend_name() == "sqlite":
            engine_kwargs.pop("pool_size", None)
            engine_kwargs.pop("pool_recycle", None)
        self._engine_kwargs = engine_kwargs
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None
        self._state = ConnectionState.uninitialized
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def get(self) -> AsyncEngine:
        if self._state is ConnectionState.connected and self._engine is not None:
            return self._engine
        async with self._lock:
            if self._state is ConnectionState.failed:
                logger.info("Retrying database connection to %s", self.url.render_as_string(hide_password=True))
                self._state = ConnectionState.uninitialized
            if self._state is ConnectionState.uninitialized:
                await self._connect()
            if self._engine is None:
                raise StorageUnavailable("Database is unavailable")
            return self._engine

    async def _connect(self) -> None:
        engine = create_async_engine(self.url, future=True, echo=False, **self._engine_kwargs)
        try:
            async with engine.connect() as conn:
                await conn.execute(sa.text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            await engine.dispose()
            self._state = ConnectionState.failed
            logger.error("Database connection failed: %s", exc)
            raise StorageUnavailable("Database is unavailable") from exc
        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)
        self._state = ConnectionState.connected

    async def session(self) -> AsyncSession:
        await self.get()
        if self._sessionmaker is None:
            raise StorageUnavailable("Database is unavailable")
        return self._sessionmaker()

    async def mark_failed(self) -> None:
        """Drop the current engine after a connection-level error so the next call reconnects."""
        engine, self._engine, self._sessionmaker = self._engine, None, None
        self._state = ConnectionState.failed
        if engine is not None:
            await engine.dispose()

    async def dispose(self) -> None:
        engine, self._engine, self._sessionmaker = self._engine, None, None
        self._state = ConnectionState.uninitialized
        if engine is not None:
            await engine.dispose()
