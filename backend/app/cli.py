import argparse
import asyncio
import json
import re
from pathlib import Path
from typing import Any, Dict

from app.core.config import Settings, get_settings
from app.core.errors import ConflictError
from app.services.file_subscriber_store import DOCUMENT_KEY
from app.services.sql_subscriber_store import SqlSubscriberStore
from app.services.subscriber_store import SubscriberStore, build_subscriber_store
from app.services.subscriptions import EMAIL_RE, normalize_email

SAFE_JSON_FILENAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*\.json$")


def _normalize_json_filename(raw_path: str) -> str:
    raw = (raw_path or "").strip()
    if not raw:
        raise SystemExit("Path is required")
    if Path(raw).name != raw:
        raise SystemExit("Only JSON file names are allowed (no directories)")
    if not SAFE_JSON_FILENAME_RE.fullmatch(raw):
        raise SystemExit("Invalid JSON file name")
    return raw


def _resolve_json_path(raw_path: str, *, must_exist: bool) -> Path:
    raw = _normalize_json_filename(raw_path)
    resolved = (Path.cwd().resolve() / raw).resolve(strict=False)
    if must_exist and not resolved.is_file():
        raise SystemExit(f"Input file not found: {resolved}")
    if not must_exist and resolved.is_dir():
        raise SystemExit(f"Output path points to a directory: {resolved}")
    return resolved


async def init_db(store: SubscriberStore) -> None:
    try:
        if isinstance(store, SqlSubscriberStore):
            await store.init_schema()
        else:
            await store.open()
    finally:
        await store.close()


async def list_subscribers(store: SubscriberStore) -> list[Dict[str, Any]]:
    try:
        return [record.to_dict() for record in await store.list()]
    finally:
        await store.close()


async def export_subscribers(store: SubscriberStore, output: Path) -> int:
    try:
        records = await store.list()
    finally:
        await store.close()
    # Oldest first, matching the on-disk order of the file backend.
    emails = [record.email for record in reversed(records)]
    output.write_text(json.dumps({DOCUMENT_KEY: emails}, ensure_ascii=False, indent=2), encoding="utf-8")
    return len(emails)


def _load_import_payload(input_path: Path) -> list[str]:
    payload = json.loads(input_path.read_text(encoding="utf-8"))
    entries = payload.get(DOCUMENT_KEY) if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        raise SystemExit(f"Expected a '{DOCUMENT_KEY}' array in {input_path}")
    return [normalize_email(item.get("email") if isinstance(item, dict) else item) for item in entries]


async def import_subscribers(store: SubscriberStore, emails: list[str]) -> Dict[str, int]:
    counts = {"imported": 0, "skipped": 0, "invalid": 0}
    try:
        await store.open()
        for email in emails:
            if not email or not EMAIL_RE.match(email):
                counts["invalid"] += 1
                continue
            if await store.exists(email):
                counts["skipped"] += 1
                continue
            try:
                await store.add(email)
            except ConflictError:
                counts["skipped"] += 1
                continue
            counts["imported"] += 1
    finally:
        await store.close()
    return counts


def _serve(settings: Settings, host: str) -> None:
    import uvicorn

    uvicorn.run("app.main:app", host=host, port=settings.port)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Contact form and mailing-list backend")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default="0.0.0.0")

    subparsers.add_parser("init-db", help="Create the subscriber table or file")
    subparsers.add_parser("list-subscribers", help="Print subscribers as JSON, newest first")

    export_cmd = subparsers.add_parser("export-subscribers", help="Export subscribers to a JSON file")
    export_cmd.add_argument("output", help="JSON file name in the current directory")

    import_cmd = subparsers.add_parser("import-subscribers", help="Import subscribers from a JSON file")
    import_cmd.add_argument("input", help="JSON file name in the current directory")
    return parser


def _run_cli_command(args: argparse.Namespace, settings: Settings) -> bool:
    if args.command == "serve":
        _serve(settings, args.host)
        return True

    if args.command == "init-db":
        asyncio.run(init_db(build_subscriber_store(settings)))
        print(f"Subscriber storage ready ({settings.subscriber_backend})")
        return True

    if args.command == "list-subscribers":
        rows = asyncio.run(list_subscribers(build_subscriber_store(settings)))
        print(json.dumps({DOCUMENT_KEY: rows}, indent=2))
        return True

    if args.command == "export-subscribers":
        output_path = _resolve_json_path(args.output, must_exist=False)
        count = asyncio.run(export_subscribers(build_subscriber_store(settings), output_path))
        print(f"Exported {count} subscribers to {output_path}")
        return True

    if args.command == "import-subscribers":
        input_path = _resolve_json_path(args.input, must_exist=True)
        emails = _load_import_payload(input_path)
        counts = asyncio.run(import_subscribers(build_subscriber_store(settings), emails))
        print(json.dumps(counts))
        return True

    return False


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not _run_cli_command(args, get_settings()):
        parser.print_help()


if __name__ == "__main__":
    main()
