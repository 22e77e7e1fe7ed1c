"""Credential store - user accounts and Argon2 password verification."""

import logging
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Verified against when the user does not exist, so both paths cost one hash
_DUMMY_HASH = ph.hash("dummy-password-for-timing")


class AuthError(Exception):
    """Base authentication error."""

    pass


class InvalidCredentialsError(AuthError):
    """Invalid username/email or password."""

    pass


class UserInactiveError(AuthError):
    """User account is deactivated."""

    pass


class UserExistsError(AuthError):
    """Username or email is already registered."""

    pass


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except VerifyMismatchError:
        return False
    except (VerificationError, InvalidHashError) as e:
        logger.warning(f"Password hash could not be verified: {e}")
        return False


class AuthService:
    """Service for user account operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> User | None:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Register a new user; raises UserExistsError on duplicate username or email."""
        email = email.lower()
        result = await self.session.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        if result.first() is not None:
            raise UserExistsError("Username or email is already registered")

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as e:
            # A concurrent signup claimed the username or email after the check above
            await self.session.rollback()
            raise UserExistsError("Username or email is already registered") from e
        await self.session.refresh(user)

        logger.info(f"Created user: {username}")
        return user

    async def authenticate(self, login: str, password: str) -> User:
        """Authenticate by username or email and return the user.

        Raises InvalidCredentialsError for both "user not found" and
        "wrong password" to prevent user enumeration.
        """
        if "@" in login:
            user = await self.get_user_by_email(login)
        else:
            user = await self.get_user_by_username(login)

        if user is None:
            verify_password(password, _DUMMY_HASH)
            raise InvalidCredentialsError("Invalid username or password")

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid username or password")

        if not user.is_active:
            raise UserInactiveError("User account is deactivated")

        return user
