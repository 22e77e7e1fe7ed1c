"""Middleware module for the Transaction Tracker backend."""

from app.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "SecurityHeadersMiddleware",
]
