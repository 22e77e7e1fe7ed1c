# Transaction Tracker Pydantic Schemas
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

__all__ = [
    "DeviceInfoResponse",
    "LoginRequest",
    "MessageResponse",
    "SessionListResponse",
    "SessionResponse",
    "SignupRequest",
    "TokenResponse",
    "UserResponse",
]
