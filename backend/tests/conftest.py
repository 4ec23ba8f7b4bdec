import asyncio
import os
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Keep pytest output high-signal by disabling outbound Sentry capture in tests.
os.environ["SENTRY_DSN"] = ""

from app.core import metrics
from app.core.config import Settings
from app.core.errors import NotificationFailure
from app.db.engine import LazyEngine
from app.main import get_application
from app.services.email import OutboundEmail
from app.services.file_subscriber_store import FileSubscriberStore
from app.services.sql_subscriber_store import SqlSubscriberStore

ADMIN_KEY = "test-admin-key"


class RecordingSender:
    def __init__(self) -> None:
        self.sent: list[OutboundEmail] = []
        self.fail = False

    async def send(self, message: OutboundEmail) -> bool:
        if self.fail:
            raise NotificationFailure("Email could not be sent")
        self.sent.append(message)
        return True


@pytest.fixture(autouse=True)
def _reset_metrics() -> Generator[None, None, None]:
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        ADMIN_KEY=ADMIN_KEY,
        CLIENT_URL="https://lgstech.example",
        subscriber_backend="file",
        subscribers_file=str(tmp_path / "subscribers.json"),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'subscribers.db'}",
        smtp_host="smtp.test.local",
    )


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def file_store(tmp_path: Path) -> FileSubscriberStore:
    return FileSubscriberStore(tmp_path / "data" / "subscribers.json")


@pytest.fixture
def sql_store(tmp_path: Path) -> Generator[SqlSubscriberStore, None, None]:
    store = SqlSubscriberStore(LazyEngine(f"sqlite+aiosqlite:///{tmp_path / 'subscribers.db'}"), create_tables=True)
    asyncio.run(_init_sql(store))
    yield store


async def _init_sql(store: SqlSubscriberStore) -> None:
    await store.init_schema()
    await store.close()


@pytest.fixture(params=["file", "database"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "file":
        return request.getfixturevalue("file_store")
    return request.getfixturevalue("sql_store")


def make_client(settings: Settings, sender: RecordingSender, store=None) -> TestClient:
    app = get_application(settings, store=store, sender=sender, configure_logs=False)
    return TestClient(app)


@pytest.fixture(params=["file", "database"])
def client(request: pytest.FixtureRequest, settings: Settings, sender: RecordingSender) -> Generator[TestClient, None, None]:
    backend_settings = settings.model_copy(update={"subscriber_backend": request.param})
    with make_client(backend_settings, sender) as test_client:
        yield test_client
