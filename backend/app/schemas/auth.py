"""Pydantic schemas for authentication API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    """Request for account registration."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=100,
        pattern=r"^[a-zA-Z][a-zA-Z0-9_.-]*$",
        description="Username (3-100 chars, must start with a letter)",
    )
    email: EmailStr
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (minimum 8 characters)",
    )
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)


class LoginRequest(BaseModel):
    """Request for login by username or email."""

    login: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Response with a session token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds")


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class UserResponse(BaseModel):
    """Response with user information."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    first_name: str | None
    last_name: str | None
    is_active: bool
    created_at: datetime


class DeviceInfoResponse(BaseModel):
    """Device metadata recorded at token issuance."""

    user_agent: str = ""
    ip_address: str | None = None
    browser: str
    os: str


class SessionResponse(BaseModel):
    """One active session of the current user."""

    token_hash: str
    device_info: DeviceInfoResponse
    issued_at: datetime
    expires_at: datetime
    last_used_at: datetime | None
    current: bool = Field(description="True for the session making this request")


class SessionListResponse(BaseModel):
    """Active sessions of the current user."""

    sessions: list[SessionResponse]
    total: int
