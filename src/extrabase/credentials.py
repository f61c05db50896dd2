"""Access tokens for the Realtime Database REST API.

Defines the TokenSource protocol and implementations:
- StaticTokenSource: a token the caller already resolved
- ServiceAccountTokenSource: exchanges a service account key for tokens
  through google-auth and caches them until shortly before expiry
"""

from __future__ import annotations

import asyncio
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC
from pathlib import Path
from typing import Any

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from loguru import logger

from extrabase.exceptions import InvalidCredentialsError, TokenExchangeError

DEFAULT_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/firebase.database",
)
DEFAULT_REFRESH_BUFFER = 60


@dataclass(frozen=True)
class Token:
    """Bearer token for Realtime Database access.

    Attributes:
        access_token: The OAuth2 access token sent with every request.
        scopes: Scopes the token was requested with.
        expires_at: Unix timestamp when the token expires, or None if unknown.
    """

    access_token: str
    scopes: tuple[str, ...] = ()
    expires_at: float | None = None

    def is_valid(self, buffer_seconds: int = DEFAULT_REFRESH_BUFFER) -> bool:
        """Check if token is still valid with a safety buffer."""
        if not self.access_token:
            return False
        if self.expires_at is None:
            return True
        return time.time() < self.expires_at - buffer_seconds

    def expires_in_seconds(self) -> int | None:
        """Return seconds until token expires, None if no expiry is known."""
        if self.expires_at is None:
            return None
        return max(0, int(self.expires_at - time.time()))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "access_token": self.access_token,
            "scopes": list(self.scopes),
            "expires_at": self.expires_at,
            "token_type": "Bearer",
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        """Create Token from dictionary."""
        return cls(
            access_token=data["access_token"],
            scopes=tuple(data.get("scopes", ())),
            expires_at=data.get("expires_at"),
        )


class TokenSource(ABC):
    """Abstract source of access tokens.

    The database client awaits ``get_token`` before every request, so
    implementations are expected to be cheap when a valid token is at hand.
    """

    @abstractmethod
    async def get_token(self, force_refresh: bool = False) -> Token:
        """Return a currently valid token.

        Raises:
            AuthError: If no token can be obtained.
        """
        ...


class StaticTokenSource(TokenSource):
    """Token source for a token resolved elsewhere. Never refreshes."""

    def __init__(self, access_token: str) -> None:
        self._token = Token(access_token=access_token)

    async def get_token(self, force_refresh: bool = False) -> Token:
        return self._token


class ServiceAccountTokenSource(TokenSource):
    """Token source backed by a service account key file.

    The key file is read once, here in the constructor. Tokens are fetched
    from the Google identity service on first use and reused until they come
    within ``refresh_buffer_seconds`` of expiry.

    A single instance can be shared by many tasks: concurrent callers wait on
    one refresh instead of each starting their own.

    Args:
        credential_path: Path to the service account JSON key.
        scopes: OAuth2 scopes to request.
        refresh_buffer_seconds: Refresh this many seconds before expiry.

    Raises:
        InvalidCredentialsError: If the key file is missing or malformed.

    Example:
        source = ServiceAccountTokenSource("/path/to/key.json")
        token = await source.get_token()
    """

    def __init__(
        self,
        credential_path: str | Path,
        scopes: tuple[str, ...] | list[str] = DEFAULT_SCOPES,
        refresh_buffer_seconds: int = DEFAULT_REFRESH_BUFFER,
    ) -> None:
        self._path = Path(credential_path)
        self._scopes = tuple(scopes)
        self._refresh_buffer = refresh_buffer_seconds
        self._credentials = _load_credentials(self._path, self._scopes)
        self._token: Token | None = None
        self._lock = asyncio.Lock()
        self._inflight: asyncio.Future[Token] | None = None

    @property
    def credential_path(self) -> Path:
        return self._path

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._scopes

    @property
    def service_account_email(self) -> str:
        return str(getattr(self._credentials, "service_account_email", ""))

    async def get_token(self, force_refresh: bool = False) -> Token:
        """Return a cached token, refreshing it when close to expiry.

        Raises:
            TokenExchangeError: If the identity service rejects the request
                or cannot be reached.
        """
        cached = self._token
        if not force_refresh and cached and cached.is_valid(self._refresh_buffer):
            return cached

        async with self._lock:
            # Another task may have refreshed while we waited
            cached = self._token
            if not force_refresh and cached and cached.is_valid(self._refresh_buffer):
                return cached

            # A refresh keeps running when the task that started it is
            # cancelled; later callers join it instead of starting another.
            if self._inflight is None or self._inflight.done():
                self._inflight = asyncio.ensure_future(self._refresh_and_store())
                self._inflight.add_done_callback(_consume_exception)
            return await asyncio.shield(self._inflight)

    async def _refresh_and_store(self) -> Token:
        token = await asyncio.to_thread(self._refresh)
        self._token = token
        return token

    def _refresh(self) -> Token:
        """Exchange the key for a new access token. Blocking."""
        logger.debug(
            "Requesting access token for {}", self.service_account_email or self._path
        )
        try:
            self._credentials.refresh(Request())
        except google.auth.exceptions.GoogleAuthError as e:
            raise TokenExchangeError(f"Token exchange failed: {e}", e) from e

        if not self._credentials.token:
            raise TokenExchangeError("Identity service returned no access token")

        expiry = self._credentials.expiry
        token = Token(
            access_token=self._credentials.token,
            scopes=self._scopes,
            # google-auth reports expiry as a naive UTC datetime
            expires_at=expiry.replace(tzinfo=UTC).timestamp() if expiry else None,
        )
        logger.info(
            "Obtained access token for {} (expires in {} seconds)",
            self.service_account_email or self._path,
            token.expires_in_seconds(),
        )
        return token


async def resolve(
    credential_path: str | Path,
    scopes: tuple[str, ...] | list[str] = DEFAULT_SCOPES,
) -> Token:
    """Exchange a service account key file for a single access token.

    Raises:
        InvalidCredentialsError: If the key file is missing or malformed.
        TokenExchangeError: If the identity service rejects the request.
    """
    source = ServiceAccountTokenSource(credential_path, scopes)
    return await source.get_token()


def _load_credentials(
    path: Path, scopes: tuple[str, ...]
) -> service_account.Credentials:
    if not path.is_file():
        raise InvalidCredentialsError(str(path), "file not found")
    try:
        info = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        raise InvalidCredentialsError(str(path), str(e), e) from e

    if not isinstance(info, dict):
        raise InvalidCredentialsError(str(path), "not a JSON object")

    try:
        return service_account.Credentials.from_service_account_info(
            info, scopes=list(scopes)
        )
    except (ValueError, google.auth.exceptions.GoogleAuthError) as e:
        raise InvalidCredentialsError(str(path), str(e), e) from e


def _consume_exception(future: asyncio.Future[Token]) -> None:
    # Marks a failed refresh as retrieved when every waiter was cancelled
    if not future.cancelled():
        future.exception()
