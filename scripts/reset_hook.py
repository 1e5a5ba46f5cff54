#!/usr/bin/env python3
"""
Reset (or delete) a hook in the configured store: clears its logs and counters.

Usage:
  python scripts/reset_hook.py --slug email1 [--delete]
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Make the relay package importable when run directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from relay.core.config import get_settings
from relay.domain.slugs import normalize_slug
from relay.repositories.base import HookNotFoundError
from relay.repositories.factory import store_from_settings


async def run(slug: str, delete: bool) -> None:
    store = store_from_settings(get_settings())
    await store.init()
    try:
        if delete:
            if not await store.delete_hook(slug):
                raise SystemExit(f"Slug '{slug}' not found")
            print("OK: hook deleted")
        else:
            try:
                hook = await store.clear_logs(slug)
            except HookNotFoundError:
                raise SystemExit(f"Slug '{slug}' not found") from None
            print("OK: hook reset")
            print(f"  Created: {hook['createdAt']}")
        print(f"  Slug: {slug}")
    finally:
        await store.close()


def main() -> None:
    ap = argparse.ArgumentParser(description="Reset or delete a webhook slug")
    ap.add_argument("--slug", required=True, help="Slug to reset (e.g. email1)")
    ap.add_argument("--delete", action="store_true", help="Delete the hook instead of resetting it")
    args = ap.parse_args()

    slug = normalize_slug(args.slug)
    if not slug:
        raise SystemExit("Invalid slug")
    asyncio.run(run(slug, args.delete))


if __name__ == "__main__":
    try:
        main()
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
