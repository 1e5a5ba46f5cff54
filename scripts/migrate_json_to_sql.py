#!/usr/bin/env python3
"""
One-off migration: JSON registry (data/registry.json) -> SQL database.

Usage:
  python scripts/migrate_json_to_sql.py [--file data/registry.json] [--database-url postgresql://...]
"""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
import sys

# Make the relay package importable when run directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from relay.core.config import get_settings
from relay.repositories.json_storage import db_defaults
from relay.repositories.sql_repository import SQLHookStore


def _load_json(path: Path, log_limit: int) -> dict:
    if not path.exists():
        raise SystemExit(f"File not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return db_defaults(data, log_limit)


async def migrate(path: Path, database_url: str, schema: str | None, log_limit: int) -> tuple[int, int]:
    db = _load_json(path, log_limit)
    store = SQLHookStore(database_url, log_limit=log_limit, schema=schema)
    await store.init()
    imported = skipped = 0
    try:
        for slug, hook in sorted(db["hooks"].items()):
            if await store.import_hook(hook):
                imported += 1
            else:
                skipped += 1
                print(f"  skipped (slug already present): {slug}")
    finally:
        await store.close()
    return imported, skipped


def main() -> None:
    settings = get_settings()
    ap = argparse.ArgumentParser(description="Copy the JSON hook registry into a SQL database")
    ap.add_argument("--file", default=settings.data_file, help="Registry JSON file")
    ap.add_argument("--database-url", default=settings.database_url, help="Target database URL")
    ap.add_argument("--schema", default=settings.database_schema or None, help="Target schema")
    args = ap.parse_args()

    if not (args.database_url or "").strip():
        raise SystemExit("DATABASE_URL (or --database-url) is required")

    imported, skipped = asyncio.run(
        migrate(Path(args.file), args.database_url, args.schema, settings.log_limit)
    )
    print("OK: registry migrated")
    print(f"  Imported: {imported}")
    print(f"  Skipped: {skipped}")


if __name__ == "__main__":
    main()
