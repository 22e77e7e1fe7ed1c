#!/usr/bin/env python3
"""Expired session token sweep for the Transaction Tracker backend.

Deletes token records whose expiry has passed. Safe to run while the API is
serving traffic: an expired token is already rejected by its signature check,
so removing its record only reclaims storage.

Usage (e.g. from cron):
    python scripts/cleanup_expired_tokens.py
    python scripts/cleanup_expired_tokens.py --database-url postgresql+asyncpg://...
    python scripts/cleanup_expired_tokens.py --dry-run
"""

import argparse
import asyncio
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


async def _run(database_url: str, dry_run: bool) -> int:
    from app.core import settings
    from app.models.base import utc_now
    from app.services.session_errors import SessionStoreError
    from app.services.session_manager import SessionManager
    from app.services.token_codec import TokenConfig
    from app.services.token_store import TokenRecordStore

    engine = create_async_engine(database_url)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_maker() as db:
            store = TokenRecordStore(db)
            if dry_run:
                count = await store.count_expired_before(utc_now())
                print(f"{count} expired token records would be deleted")
                return 0
            manager = SessionManager(TokenConfig.from_settings(settings), store)
            removed = await manager.cleanup_expired_tokens()
            print(f"Deleted {removed} expired token records")
            return 0
    except SessionStoreError as e:
        print(f"ERROR: token cleanup failed: {e}", file=sys.stderr)
        return 1
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Delete expired session token records")
    parser.add_argument(
        "--database-url",
        help="Async SQLAlchemy URL (default: DATABASE_URL from the environment)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report how many records would be deleted without deleting them",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: INFO)",
    )
    return parser


def main() -> int:
    args = build_parser().parse_args()

    from app.core import settings, setup_logging

    setup_logging(level=args.log_level, format_type="dev")
    database_url = args.database_url or settings.database_url
    return asyncio.run(_run(database_url, args.dry_run))


if __name__ == "__main__":
    sys.exit(main())
