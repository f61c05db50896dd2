"""Exceptions raised by extrabase.

Every failure surfaces as a ``FirebaseError``. Callers branch on the two
families instead of matching messages:

- ``AuthError``: no token could be obtained, so the request was never sent.
- ``TransportError``: the HTTP call failed before a response arrived.

Non-2xx statuses are not errors. They come back as ordinary responses.
"""

from __future__ import annotations


class FirebaseError(Exception):
    """Base exception for all extrabase errors."""

    def __init__(self, message: str, inner: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.inner = inner


class AuthError(FirebaseError):
    """Raised when an access token cannot be obtained."""


class InvalidCredentialsError(AuthError):
    """Raised when the service account key is missing, unreadable or malformed."""

    def __init__(self, path: str, reason: str, inner: BaseException | None = None) -> None:
        self.path = path
        super().__init__(f"Invalid service account file {path}: {reason}", inner)


class TokenExchangeError(AuthError):
    """Raised when the identity service refuses or fails the token request."""


class TransportError(FirebaseError):
    """Raised when the HTTP request fails (DNS, TLS, connect, timeout)."""
