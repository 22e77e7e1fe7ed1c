"""Authentication API endpoints and request dependencies."""

import logging
import time
from collections import defaultdict
from functools import lru_cache
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import get_db, settings
from app.core.logging import session_event
from app.core.request_utils import get_client_ip
from app.models.base import as_utc
from app.models.user import User
from app.schemas.auth import (
    DeviceInfoResponse,
    LoginRequest,
    MessageResponse,
    SessionListResponse,
    SessionResponse,
    SignupRequest,
    TokenResponse,
    UserResponse,
)
from app.services.auth import (
    AuthService,
    InvalidCredentialsError,
    UserExistsError,
    UserInactiveError,
)
from app.services.device_info import DeviceInfo
from app.services.session_errors import (
    AuthorizationError,
    InvalidUserError,
    SessionStoreError,
)
from app.services.session_manager import SessionManager
from app.services.token_codec import Claims, TokenConfig, hash_token
from app.services.token_store import TokenRecordStore

logger = logging.getLogger(__name__)

# Rate limiting for failed login attempts
_login_attempts: dict[str, list[float]] = defaultdict(list)
_LOGIN_WINDOW = 60  # 1-minute window
_LOGIN_MAX_ATTEMPTS = 5  # Max failed attempts per window

BEARER_PREFIX = "Bearer "


def _check_login_rate_limit(client_ip: str) -> None:
    """Check if a client IP has exceeded the login attempt rate limit."""
    now = time.monotonic()
    attempts = _login_attempts[client_ip]
    _login_attempts[client_ip] = [t for t in attempts if now - t < _LOGIN_WINDOW]
    if len(_login_attempts[client_ip]) >= _LOGIN_MAX_ATTEMPTS:
        logger.warning(
            "Login rate limit exceeded for %s",
            client_ip,
            extra=session_event("login_rate_limited", client_ip=client_ip),
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )


def _record_login_attempt(client_ip: str) -> None:
    """Record a failed login attempt for rate limiting."""
    _login_attempts[client_ip].append(time.monotonic())


def _unauthorized(reason: str) -> NoReturn:
    """Reject with a uniform 401; the specific reason is only logged."""
    logger.info(
        f"Rejected bearer token: {reason}",
        extra=session_event("bearer_rejected", reason=reason),
    )
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _server_error(error: Exception) -> NoReturn:
    logger.error(
        f"Session store failure: {error}",
        exc_info=error,
        extra=session_event("session_store_failure"),
    )
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


router = APIRouter(prefix="/auth", tags=["auth"])


@lru_cache
def get_token_config() -> TokenConfig:
    """Session configuration derived from process settings."""
    return TokenConfig.from_settings(settings)


def get_session_manager(
    db: AsyncSession = Depends(get_db),
    config: TokenConfig = Depends(get_token_config),
) -> SessionManager:
    """Dependency to get a request-scoped session manager."""
    return SessionManager(config, TokenRecordStore(db))


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    """Dependency to get auth service."""
    return AuthService(db)


def get_bearer_token(request: Request) -> str:
    """Extract the raw token from an ``Authorization: Bearer`` header."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(BEARER_PREFIX):
        _unauthorized("missing or non-bearer authorization header")
    token = auth_header[len(BEARER_PREFIX) :].strip()
    if not token:
        _unauthorized("empty bearer token")
    return token


async def get_current_claims(
    token: str = Depends(get_bearer_token),
    manager: SessionManager = Depends(get_session_manager),
) -> Claims:
    """Dependency returning the claims of a valid, unrevoked token."""
    try:
        return await manager.validate_token(token)
    except AuthorizationError as e:
        _unauthorized(f"{type(e).__name__}: {e}")
    except SessionStoreError as e:
        _server_error(e)


async def get_current_user(
    claims: Claims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Dependency to get the active user behind the current token."""
    user = await auth_service.get_user_by_id(claims.user_id)
    if user is None:
        _unauthorized(f"user {claims.user_id} no longer exists")
    if not user.is_active:
        _unauthorized(f"user {claims.user_id} is deactivated")
    return user


async def _issue_token(manager: SessionManager, user: User, request: Request) -> TokenResponse:
    try:
        token = await manager.generate_token(user, DeviceInfo.from_request(request))
    except (InvalidUserError, SessionStoreError) as e:
        _server_error(e)
    return TokenResponse(
        access_token=token,
        expires_in=int(manager.config.ttl.total_seconds()),
    )


@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    payload: SignupRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    manager: SessionManager = Depends(get_session_manager),
) -> TokenResponse:
    """Register a new account and start a session for the calling device."""
    try:
        user = await auth_service.create_user(
            username=payload.username,
            email=payload.email,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    except UserExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    return await _issue_token(manager, user, request)


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    manager: SessionManager = Depends(get_session_manager),
) -> TokenResponse:
    """Authenticate and start a new session.

    Each login creates an independent session; existing sessions on other
    devices stay valid. Rate limited to 5 failed attempts per minute per IP.
    """
    client_ip = get_client_ip(request) or "unknown"
    _check_login_rate_limit(client_ip)

    try:
        user = await auth_service.authenticate(payload.login, payload.password)
    except (InvalidCredentialsError, UserInactiveError) as e:
        _record_login_attempt(client_ip)
        logger.info(
            f"Failed login for '{payload.login}' from {client_ip}: {e}",
            extra=session_event("login_failed", client_ip=client_ip),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        ) from e

    response = await _issue_token(manager, user, request)
    logger.info(
        f"User logged in: {user.username}",
        extra=session_event("login_succeeded", user_id=user.id),
    )
    return response


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str = Depends(get_bearer_token),
    manager: SessionManager = Depends(get_session_manager),
) -> MessageResponse:
    """Revoke the presented token.

    Succeeds for already expired, revoked or unknown tokens so that logout
    is idempotent.
    """
    try:
        await manager.revoke_token(token)
    except SessionStoreError as e:
        _server_error(e)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Get the current user's information."""
    return UserResponse.model_validate(current_user)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    token: str = Depends(get_bearer_token),
    current_user: User = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionListResponse:
    """List the current user's active sessions across devices."""
    try:
        records = await manager.get_active_tokens(current_user.id)
    except SessionStoreError as e:
        _server_error(e)

    current_hash = hash_token(token)
    sessions = [
        SessionResponse(
            token_hash=record.token_hash,
            device_info=DeviceInfoResponse(**DeviceInfo.from_dict(record.device_info).to_dict()),
            issued_at=as_utc(record.issued_at),
            expires_at=as_utc(record.expires_at),
            last_used_at=as_utc(record.last_used_at) if record.last_used_at else None,
            current=record.token_hash == current_hash,
        )
        for record in records
    ]
    return SessionListResponse(sessions=sessions, total=len(sessions))


@router.delete("/sessions/{token_hash}", response_model=MessageResponse)
async def revoke_session(
    token_hash: str,
    current_user: User = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> MessageResponse:
    """Revoke one of the current user's sessions, e.g. a lost device."""
    try:
        removed = await manager.revoke_user_session(current_user.id, token_hash)
    except SessionStoreError as e:
        _server_error(e)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return MessageResponse(message="Session revoked")
