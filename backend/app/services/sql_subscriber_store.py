from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, StorageUnavailable
from app.db.base import Base
from app.db.engine import LazyEngine
from app.models.subscriber import Subscriber
from app.services.subscriber_store import SubscriberRecord

logger = logging.getLogger(__name__)


class SqlSubscriberStore:
    """Subscriber registry backed by the ``subscribers`` table.

    Uniqueness is enforced by the table's unique constraint, so two
    concurrent inserts for one address cannot both succeed.
    """

    def __init__(self, engine: LazyEngine, *, create_tables: bool = False) -> None:
        self.engine = engine
        self.create_tables = create_tables

    async def open(self) -> None:
        if not self.create_tables:
            return
        try:
            await self.init_schema()
        except StorageUnavailable:
            # The first request retries the connection.
            logger.warning("Subscriber table could not be created at startup")

    async def init_schema(self) -> None:
        engine = await self.engine.get()
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, tables=[Subscriber.__table__])
        except SQLAlchemyError as exc:
            await self._fail(exc)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        session = await self.engine.session()
        try:
            yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            await self._fail(exc)
        finally:
            await session.close()

    async def _fail(self, exc: SQLAlchemyError) -> None:
        if isinstance(exc, (OperationalError, InterfaceError)):
            await self.engine.mark_failed()
        logger.error("Subscriber table operation failed: %s", exc)
        raise StorageUnavailable("Subscriber storage is unavailable") from exc

    async def exists(self, email: str) -> bool:
        async with self._session() as session:
            found = await session.scalar(sa.select(Subscriber.id).where(Subscriber.email == email).limit(1))
        return found is not None

    async def add(self, email: str) -> str:
        subscriber = Subscriber(email=email, created_at=datetime.now(timezone.utc))
        try:
            async with self._session() as session:
                session.add(subscriber)
                await session.commit()
        except IntegrityError as exc:
            raise ConflictError("Email already subscribed", code="already-subscribed") from exc
        return str(subscriber.id)

    async def remove(self, email: str) -> bool:
        async with self._session() as session:
            result = await session.execute(sa.delete(Subscriber).where(Subscriber.email == email))
            await session.commit()
        return (result.rowcount or 0) > 0

    async def list(self) -> list[SubscriberRecord]:
        async with self._session() as session:
            rows = await session.execute(
                sa.select(Subscriber.email, Subscriber.created_at).order_by(
                    Subscriber.created_at.desc(), Subscriber.id.desc()
                )
            )
            return [SubscriberRecord(email=email, created_at=created_at) for email, created_at in rows.all()]
