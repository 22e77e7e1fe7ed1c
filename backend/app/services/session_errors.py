"""Exceptions raised by the session subsystem."""


class SessionError(Exception):
    """Base session error."""

    pass


class InvalidUserError(SessionError):
    """A token was requested for a missing user."""

    pass


class AuthorizationError(SessionError):
    """The presented token does not authorize the request.

    Callers must not reveal which subclass was raised to the client.
    """

    pass


class MalformedTokenError(AuthorizationError):
    """Token cannot be parsed into the expected structure."""

    pass


class InvalidSignatureError(AuthorizationError):
    """Token signature does not verify under the configured key and algorithm."""

    pass


class TokenExpiredError(AuthorizationError):
    """Token is past its expiry time."""

    pass


class TokenRevokedError(AuthorizationError):
    """Token verifies but its issuance record no longer exists."""

    pass


class SessionStoreError(SessionError):
    """Server-side fault in the token record store."""

    pass


class TokenConflictError(SessionStoreError):
    """A token record with the same hash already exists (integrity violation)."""

    pass


class StoreUnavailableError(SessionStoreError):
    """The token record store could not be reached or failed mid-operation."""

    pass
