"""Persistence for token records, addressed by token hash or owner."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import FlushError

from app.core.logging import session_event
from app.models.token_record import TokenRecord
from app.models.user import User
from app.services.session_errors import (
    InvalidUserError,
    StoreUnavailableError,
    TokenConflictError,
)

logger = logging.getLogger(__name__)


class TokenRecordStore:
    """CRUD over the token_records table.

    Every mutating call commits its own transaction, so a returned call means
    the change is durable. Database failures surface as StoreUnavailableError,
    duplicate hashes as TokenConflictError and records pointing at a user
    that no longer exists as InvalidUserError.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _operation(self, action: str) -> AsyncIterator[None]:
        """Translate SQLAlchemy failures into store errors, rolling back first."""
        try:
            yield
        except (IntegrityError, FlushError) as e:
            await self._rollback(action)
            raise TokenConflictError(f"Token record conflict during {action}") from e
        except (SQLAlchemyError, OSError) as e:
            await self._rollback(action)
            raise StoreUnavailableError(f"Token store failed during {action}: {e}") from e

    async def _rollback(self, action: str) -> None:
        try:
            await self.session.rollback()
        except (SQLAlchemyError, OSError) as e:
            logger.warning(
                f"Rollback after failed {action} also failed: {e}",
                extra=session_event("store_rollback_failed", action=action),
            )

    async def put(self, record: TokenRecord) -> TokenRecord:
        """Insert a new record.

        Raises TokenConflictError if the hash already exists and
        InvalidUserError if the owning user row is gone.
        """
        try:
            async with self._operation("put"):
                self.session.add(record)
                await self.session.commit()
        except TokenConflictError as e:
            # The integrity failure may be the user_id foreign key, not the hash
            if not await self._hash_exists(record.token_hash) and not await self._user_exists(
                record.user_id
            ):
                raise InvalidUserError(f"User {record.user_id} no longer exists") from e
            raise
        return record

    async def _hash_exists(self, token_hash: str) -> bool:
        async with self._operation("put"):
            result = await self.session.execute(
                select(TokenRecord.token_hash).where(TokenRecord.token_hash == token_hash)
            )
            return result.first() is not None

    async def _user_exists(self, user_id: UUID) -> bool:
        async with self._operation("put"):
            result = await self.session.execute(select(User.id).where(User.id == user_id))
            return result.first() is not None

    async def find_by_hash(self, token_hash: str) -> TokenRecord | None:
        async with self._operation("find_by_hash"):
            result = await self.session.execute(
                select(TokenRecord).where(TokenRecord.token_hash == token_hash)
            )
            return result.scalar_one_or_none()

    async def touch(
        self,
        token_hash: str,
        now: datetime,
        stale_before: datetime | None = None,
    ) -> bool:
        """Set last_used_at to ``now``.

        With ``stale_before`` the write only happens when last_used_at is
        NULL or older than that instant. Returns True if a row was updated.
        """
        stmt = (
            update(TokenRecord)
            .where(TokenRecord.token_hash == token_hash)
            .values(last_used_at=now)
            .execution_options(synchronize_session="fetch")
        )
        if stale_before is not None:
            stmt = stmt.where(
                or_(
                    TokenRecord.last_used_at.is_(None),
                    TokenRecord.last_used_at < stale_before,
                )
            )
        async with self._operation("touch"):
            result: CursorResult[Any] = await self.session.execute(stmt)  # type: ignore[assignment]
            await self.session.commit()
        return result.rowcount > 0

    async def delete_by_hash(self, token_hash: str) -> int:
        """Remove a record. Missing hashes are not an error; returns rows removed."""
        async with self._operation("delete_by_hash"):
            result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
                delete(TokenRecord)
                .where(TokenRecord.token_hash == token_hash)
                .execution_options(synchronize_session="fetch")
            )
            await self.session.commit()
        return result.rowcount

    async def list_by_user(self, user_id: UUID) -> list[TokenRecord]:
        """All records owned by a user, newest first."""
        async with self._operation("list_by_user"):
            result = await self.session.execute(
                select(TokenRecord)
                .where(TokenRecord.user_id == user_id)
                .order_by(TokenRecord.issued_at.desc())
            )
            return list(result.scalars().all())

    async def count_expired_before(self, cutoff: datetime) -> int:
        async with self._operation("count_expired_before"):
            result = await self.session.execute(
                select(func.count())
                .select_from(TokenRecord)
                .where(TokenRecord.expires_at < cutoff)
            )
            return result.scalar() or 0

    async def delete_expired_before(self, cutoff: datetime) -> int:
        """Bulk-remove records whose expires_at is strictly before ``cutoff``."""
        async with self._operation("delete_expired_before"):
            result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
                delete(TokenRecord)
                .where(TokenRecord.expires_at < cutoff)
                .execution_options(synchronize_session="fetch")
            )
            await self.session.commit()
        return result.rowcount
