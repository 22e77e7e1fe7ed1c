"""Session manager - issues, validates and revokes bearer tokens.

Signature checks are stateless (ClaimsCodec); revocation is stateful: a token
is only accepted while its hash is present in the token record store. The
manager holds no mutable state of its own, so one instance per request is
the intended usage.
"""

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import NamedTuple
from uuid import UUID

from app.core.logging import session_event
from app.models.base import as_utc, utc_now
from app.models.token_record import TokenRecord
from app.models.user import User
from app.services.device_info import DeviceInfo
from app.services.session_errors import (
    InvalidUserError,
    SessionStoreError,
    TokenConflictError,
    TokenRevokedError,
)
from app.services.token_codec import (
    SUBJECT_PREFIX,
    Claims,
    ClaimsCodec,
    TokenConfig,
    hash_token,
)
from app.services.token_store import TokenRecordStore

logger = logging.getLogger(__name__)


class TokenIdentity(NamedTuple):
    """Lookup keys recovered from a token without verifying it."""

    token_id: str
    token_hash: str


def new_token_id() -> str:
    """Random 128-bit token identifier."""
    return secrets.token_hex(16)


class SessionManager:
    """Entry point for every session operation."""

    def __init__(
        self,
        config: TokenConfig,
        store: TokenRecordStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.codec = ClaimsCodec(config, clock=clock)
        self.store = store
        self._clock = clock

    async def generate_token(self, user: User | None, device_info: DeviceInfo | None = None) -> str:
        """Sign a new token for ``user`` and persist its record.

        The token is returned only after the record has been committed.
        """
        if user is None or user.id is None:
            raise InvalidUserError("Cannot issue a token without a persisted user")

        # JWT timestamps have whole-second precision; keep the record in step
        now = self._clock().replace(microsecond=0)
        claims = Claims(
            user_id=user.id,
            username=user.username,
            email=user.email,
            token_id=new_token_id(),
            issuer=self.config.issuer,
            subject=SUBJECT_PREFIX + str(user.id),
            issued_at=now,
            expires_at=now + self.config.ttl,
        )
        token = self.codec.sign(claims)
        token_hash = hash_token(token)
        device = device_info or DeviceInfo()

        try:
            await self.store.put(
                TokenRecord(
                    token_hash=token_hash,
                    user_id=user.id,
                    device_info=device.to_dict(),
                    issued_at=claims.issued_at,
                    expires_at=claims.expires_at,
                    last_used_at=None,
                )
            )
        except InvalidUserError:
            logger.warning(
                "User vanished before its token could be recorded",
                extra=session_event("token_issue_rejected", user_id=user.id),
            )
            raise
        except TokenConflictError:
            logger.error(
                "Token hash collision; refusing to issue token",
                extra=session_event(
                    "token_hash_collision", user_id=user.id, token_hash=token_hash
                ),
            )
            raise

        logger.info(
            f"Issued token ({device.browser} on {device.os})",
            extra=session_event(
                "token_issued",
                user_id=user.id,
                token_hash=token_hash,
                expires_at=claims.expires_at.isoformat(),
            ),
        )
        return token

    async def validate_token(self, token: str) -> Claims:
        """Return the claims of a valid, unrevoked token.

        Signature, format and expiry failures are raised before the store is
        consulted. A cryptographically valid token without a record raises
        TokenRevokedError.
        """
        claims = self.codec.verify(token)
        token_hash = hash_token(token)

        record = await self.store.find_by_hash(token_hash)
        if record is None:
            logger.info(
                "Rejected token without a record",
                extra=session_event(
                    "token_rejected", user_id=claims.user_id, token_hash=token_hash
                ),
            )
            raise TokenRevokedError("Token has been revoked")

        await self._touch(record)
        return claims

    async def _touch(self, record: TokenRecord) -> None:
        """Best-effort last_used_at update, throttled by config.touch_interval."""
        now = self._clock()
        stale_before: datetime | None = None
        if self.config.touch_interval > timedelta(0):
            stale_before = now - self.config.touch_interval
            if record.last_used_at is not None and as_utc(record.last_used_at) >= stale_before:
                return
        try:
            await self.store.touch(record.token_hash, now, stale_before=stale_before)
        except SessionStoreError as e:
            logger.warning(
                f"Could not update last_used_at: {e}",
                extra=session_event("token_touch_failed", token_hash=record.token_hash),
            )

    async def revoke_token(self, token: str) -> bool:
        """Delete the record for ``token``. Idempotent; the signature is not checked.

        Returns True if a record was removed.
        """
        token_hash = hash_token(token)
        removed = await self.store.delete_by_hash(token_hash) > 0
        if removed:
            logger.info(
                "Revoked token", extra=session_event("token_revoked", token_hash=token_hash)
            )
        else:
            logger.debug(
                "Revocation of unknown token ignored",
                extra=session_event("token_revoke_noop", token_hash=token_hash),
            )
        return removed

    async def revoke_user_session(self, user_id: UUID, token_hash: str) -> bool:
        """Revoke one of ``user_id``'s sessions by record hash.

        Returns False when no such session exists for that user.
        """
        record = await self.store.find_by_hash(token_hash)
        if record is None or record.user_id != user_id:
            return False
        removed = await self.store.delete_by_hash(token_hash) > 0
        if removed:
            logger.info(
                "User revoked one of their sessions",
                extra=session_event("session_revoked", user_id=user_id, token_hash=token_hash),
            )
        return removed

    def extract_token_id(self, token: str) -> TokenIdentity:
        """Recover token_id and token_hash without verifying the signature."""
        claims = self.codec.parse_unverified(token)
        return TokenIdentity(token_id=claims.token_id, token_hash=hash_token(token))

    async def get_active_tokens(self, user_id: UUID) -> list[TokenRecord]:
        return await self.store.list_by_user(user_id)

    async def cleanup_expired_tokens(self) -> int:
        """Delete every record whose expiry is before now; returns the count."""
        removed = await self.store.delete_expired_before(self._clock())
        if removed > 0:
            logger.info(
                f"Removed {removed} expired token records",
                extra=session_event("expired_tokens_swept", count=removed),
            )
        return removed
