from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

import anyio

from app.core.errors import ConflictError, StorageUnavailable
from app.core.logging_config import mask_email
from app.services.subscriber_store import SubscriberRecord

logger = logging.getLogger(__name__)

DOCUMENT_KEY = "subscribers"


def _read_document(path: Path) -> list[str]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except UnicodeDecodeError as exc:
        raise StorageUnavailable(f"Subscriber file {path} is not valid UTF-8") from exc
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise StorageUnavailable(f"Subscriber file {path} is not valid JSON") from exc
    entries = data.get(DOCUMENT_KEY) if isinstance(data, dict) else None
    if not isinstance(entries, list) or not all(isinstance(item, str) for item in entries):
        raise StorageUnavailable(f"Subscriber file {path} has no '{DOCUMENT_KEY}' array of strings")
    return entries


def _write_document(path: Path, emails: list[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps({DOCUMENT_KEY: emails}, ensure_ascii=False, indent=2)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FileSubscriberStore:
    """Subscriber registry kept as one JSON document, rewritten whole on every change.

    The read-modify-write cycle is serialized per store instance only. Another
    process (or another instance) writing the same file can still interleave
    with it and lose an update or duplicate an address.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _read(self) -> list[str]:
        try:
            return await anyio.to_thread.run_sync(_read_document, self.path)
        except OSError as exc:
            raise StorageUnavailable(f"Subscriber file {self.path} cannot be read") from exc

    async def _write(self, emails: list[str]) -> None:
        try:
            await anyio.to_thread.run_sync(_write_document, self.path, emails)
        except OSError as exc:
            raise StorageUnavailable(f"Subscriber file {self.path} cannot be written") from exc

    async def open(self) -> None:
        async with self._lock:
            if await anyio.to_thread.run_sync(self.path.exists):
                await self._read()
                return
            await self._write([])
            logger.info("Created subscriber file %s", self.path)

    async def close(self) -> None:
        return None

    async def exists(self, email: str) -> bool:
        return email in await self._read()

    async def add(self, email: str) -> str:
        async with self._lock:
            emails = await self._read()
            if email in emails:
                raise ConflictError("Email already subscribed", code="already-subscribed")
            emails.append(email)
            await self._write(emails)
        logger.info("Subscriber %s appended to %s", mask_email(email), self.path.name)
        return email

    async def remove(self, email: str) -> bool:
        async with self._lock:
            emails = await self._read()
            remaining = [item for item in emails if item != email]
            if len(remaining) == len(emails):
                return False
            await self._write(remaining)
        return True

    async def list(self) -> list[SubscriberRecord]:
        seen: set[str] = set()
        records: list[SubscriberRecord] = []
        for email in reversed(await self._read()):
            if email in seen:
                continue
            seen.add(email)
            records.append(SubscriberRecord(email=email))
        return records
