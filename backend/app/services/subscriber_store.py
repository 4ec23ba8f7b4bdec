from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from app.core.config import Settings


@dataclass(frozen=True)
class SubscriberRecord:
    email: str
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SubscriberStore(Protocol):
    """Persistence contract for the mailing-list registry.

    Emails passed in are already normalized. Every method raises
    ``StorageUnavailable`` when the backing medium cannot be used.
    """

    async def open(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def exists(self, email: str) -> bool:
        ...

    async def add(self, email: str) -> str:
        """Insert a record and return its id; raises ``ConflictError`` on duplicates."""
        ...

    async def remove(self, email: str) -> bool:
        ...

    async def list(self) -> list[SubscriberRecord]:
        """All records, newest first."""
        ...


def build_subscriber_store(settings: Settings) -> SubscriberStore:
    if settings.subscriber_backend == "file":
        from app.services.file_subscriber_store import FileSubscriberStore

        return FileSubscriberStore(settings.subscribers_path)

    from app.db.engine import LazyEngine
    from app.services.sql_subscriber_store import SqlSubscriberStore

    engine = LazyEngine(
        settings.sqlalchemy_url(),
        pool_size=settings.db_pool_size,
        pool_recycle=settings.db_pool_recycle_seconds,
    )
    return SqlSubscriberStore(engine, create_tables=settings.db_create_tables)
