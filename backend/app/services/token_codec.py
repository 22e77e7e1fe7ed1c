"""Session token claims and their signed JWT encoding."""

import hashlib
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.utils import base64url_decode, base64url_encode

from app.core.config import Settings
from app.services.session_errors import (
    InvalidSignatureError,
    MalformedTokenError,
    TokenExpiredError,
)

DEFAULT_ISSUER = "transaction-tracker"
SUBJECT_PREFIX = "user:"

# Registered claims plus the identity fields carried by every session token
REQUIRED_CLAIMS = ["iss", "sub", "iat", "exp", "jti", "user_id", "username", "email"]


@dataclass(frozen=True)
class TokenConfig:
    """Immutable session configuration injected into the codec and manager."""

    secret_key: str = field(repr=False)
    ttl: timedelta = timedelta(hours=24)
    issuer: str = DEFAULT_ISSUER
    algorithm: str = "HS256"
    # Minimum age of last_used_at before a validation rewrites it
    touch_interval: timedelta = timedelta(seconds=60)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(
            secret_key=settings.effective_jwt_secret_key,
            ttl=timedelta(hours=settings.jwt_expiration_hours),
            issuer=settings.jwt_issuer,
            algorithm=settings.jwt_algorithm,
            touch_interval=timedelta(seconds=settings.token_touch_interval_seconds),
        )


@dataclass(frozen=True)
class Claims:
    """Identity and timing embedded in a session token."""

    user_id: uuid.UUID
    username: str
    email: str
    token_id: str
    issuer: str
    subject: str
    issued_at: datetime
    expires_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "iss": self.issuer,
            "sub": self.subject,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
            "jti": self.token_id,
            "user_id": str(self.user_id),
            "username": self.username,
            "email": self.email,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Claims":
        """Build claims from a decoded payload, rejecting anything off-shape."""
        try:
            for key in ("iss", "sub", "jti", "user_id", "username", "email"):
                if not isinstance(payload[key], str):
                    raise TypeError(f"claim '{key}' must be a string")
            user_id = uuid.UUID(payload["user_id"])
            claims = cls(
                user_id=user_id,
                username=payload["username"],
                email=payload["email"],
                token_id=payload["jti"],
                issuer=payload["iss"],
                subject=payload["sub"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise MalformedTokenError(f"Malformed token claims: {e}") from e

        if claims.subject != SUBJECT_PREFIX + str(user_id):
            raise MalformedTokenError("Token subject does not match user_id")
        return claims


def _wall_clock() -> datetime:
    return datetime.now(UTC)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a signed token string."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class ClaimsCodec:
    """Signs claims into JWTs and verifies them with a single shared secret.

    Expiry is checked against ``clock``, the same clock the session manager
    issues tokens and sweeps records with.
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] | None = None):
        self.config = config
        self._clock = clock or _wall_clock

    def sign(self, claims: Claims) -> str:
        token = jwt.encode(
            claims.to_payload(),
            self.config.secret_key,
            algorithm=self.config.algorithm,
        )
        return str(token)

    def verify(self, token: str) -> Claims:
        """Verify signature, algorithm, issuer and expiry, then return claims.

        Raises:
            InvalidSignatureError: signature mismatch or disallowed algorithm.
            MalformedTokenError: token or claims cannot be parsed.
            TokenExpiredError: token is past its expiry.
        """
        _check_signature_encoding(token)
        try:
            payload = jwt.decode(
                token,
                self.config.secret_key,
                # Only the configured algorithm; rejects "none" and algorithm swaps
                algorithms=[self.config.algorithm],
                issuer=self.config.issuer,
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise InvalidSignatureError(f"Invalid token signature: {e}") from e
        except jwt.PyJWTError as e:
            raise MalformedTokenError(f"Malformed token: {e}") from e

        claims = Claims.from_payload(payload)
        if claims.expires_at <= self._clock():
            raise TokenExpiredError("Token has expired")
        return claims

    def parse_unverified(self, token: str) -> Claims:
        """Decode claims without checking signature or expiry."""
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            raise MalformedTokenError(f"failed to parse token: {e}") from e
        return Claims.from_payload(payload)


def _check_signature_encoding(token: str) -> None:
    """Reject signatures that decode to valid bytes but are not canonical base64url.

    base64 decoding ignores the unused low bits of the final character, so
    without this check some single-character edits would still verify.
    """
    segments = token.split(".")
    if len(segments) != 3:
        return  # structural errors are reported by jwt.decode
    signature = segments[2]
    try:
        raw = base64url_decode(signature.encode("ascii"))
    except ValueError:
        return
    if base64url_encode(raw).decode("ascii") != signature:
        raise InvalidSignatureError("Invalid token signature: non-canonical encoding")
