"""Concurrent writers against the JSON subscriber file.

One store instance serializes its own read-modify-write cycles. Separate
instances (separate worker processes in production) share nothing but the
file, so their cycles can interleave and lose updates.
"""

import asyncio
import json
from pathlib import Path

from app.core.config import Settings
from app.core.errors import ConflictError
from app.services.file_subscriber_store import FileSubscriberStore
from app.services.subscriptions import SubscriptionService

from tests.conftest import RecordingSender


def test_concurrent_subscribes_on_one_store_keep_a_single_entry(tmp_path: Path, settings: Settings) -> None:
    store = FileSubscriberStore(tmp_path / "subscribers.json")
    service = SubscriptionService(store, RecordingSender(), settings)

    async def scenario():
        return await asyncio.gather(
            *(service.subscribe("race@example.com") for _ in range(5)),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())
    successes = [r for r in results if isinstance(r, str)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 4
    data = json.loads(store.path.read_text(encoding="utf-8"))
    assert data["subscribers"] == ["race@example.com"]


def test_concurrent_distinct_adds_on_one_store_are_all_kept(tmp_path: Path) -> None:
    store = FileSubscriberStore(tmp_path / "subscribers.json")
    emails = [f"user{i}@example.com" for i in range(10)]

    async def scenario():
        await asyncio.gather(*(store.add(email) for email in emails))
        return await store.list()

    records = asyncio.run(scenario())
    assert sorted(r.email for r in records) == sorted(emails)


def test_separate_store_instances_can_lose_an_update(tmp_path: Path) -> None:
    path = tmp_path / "subscribers.json"
    worker_a = FileSubscriberStore(path)
    worker_b = FileSubscriberStore(path)

    async def scenario():
        await worker_a.open()
        # worker_a has read the document when worker_b commits its own change.
        snapshot = await worker_a._read()
        await worker_b.add("b@example.com")
        snapshot.append("a@example.com")
        await worker_a._write(snapshot)
        return await worker_a.list()

    records = asyncio.run(scenario())
    assert [r.email for r in records] == ["a@example.com"]
    assert json.loads(path.read_text(encoding="utf-8")) == {"subscribers": ["a@example.com"]}
