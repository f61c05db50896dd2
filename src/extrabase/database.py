"""Async client for the Firebase Realtime Database REST API.

Every operation maps to one HTTP request:

    get     GET     read the value at a path
    put     PUT     replace the value at a path
    post    POST    create a child with a generated key
    update  PATCH   merge top-level fields into the value at a path
    delete  DELETE  remove the value at a path

Responses are returned as-is. A 404 or 401 from the store is a response,
not an exception; only failures to obtain a token or to complete the HTTP
exchange raise.
"""

from __future__ import annotations

import json
import ssl
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

import certifi
import httpx
from loguru import logger

from extrabase.credentials import (
    DEFAULT_SCOPES,
    ServiceAccountTokenSource,
    StaticTokenSource,
    TokenSource,
)
from extrabase.exceptions import TransportError

if TYPE_CHECKING:
    from extrabase.config import Settings

DEFAULT_HOST = "firebaseio.com"
DEFAULT_TIMEOUT = 60


class Database:
    """Authenticated access to one Realtime Database.

    The token source is awaited before every request. A StaticTokenSource
    hands back the same token forever; a ServiceAccountTokenSource only goes
    to the network when its cached token is about to expire.

    One instance owns one connection pool and is meant to be shared by all
    tasks in the process.

    Args:
        project_id: Database name, the first label of the database host.
        token_source: Where access tokens come from.
        host: Database host suffix.
        timeout: Request timeout in seconds.
        connection_close: Send ``Connection: close`` on every request.
        transport: Optional httpx transport, mainly for tests.

    Example:
        async with Database.from_service_account("my-db", "key.json") as db:
            response = await db.get("users/tom")
            print(response.json())
    """

    def __init__(
        self,
        project_id: str,
        token_source: TokenSource,
        *,
        host: str = DEFAULT_HOST,
        timeout: float = DEFAULT_TIMEOUT,
        connection_close: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._project_id = project_id
        self._token_source = token_source
        self._host = host
        self._connection_close = connection_close

        headers = {"Accept": "application/json"}
        if connection_close:
            headers["Connection"] = "close"

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=ssl_context,
            headers=headers,
            transport=transport,
        )

    @classmethod
    def from_token(cls, project_id: str, access_token: str, **kwargs: Any) -> Database:
        """Create a client that uses a fixed access token for its lifetime."""
        return cls(project_id, StaticTokenSource(access_token), **kwargs)

    @classmethod
    def from_service_account(
        cls,
        project_id: str,
        credential_path: str | Path,
        *,
        scopes: tuple[str, ...] | list[str] = DEFAULT_SCOPES,
        **kwargs: Any,
    ) -> Database:
        """Create a client that resolves tokens from a service account key.

        Raises:
            InvalidCredentialsError: If the key file is missing or malformed.
        """
        return cls(
            project_id, ServiceAccountTokenSource(credential_path, scopes), **kwargs
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> Database:
        """Create a client from application settings.

        A configured access token wins over a credentials file.

        Raises:
            ValueError: If project_id or both token and credentials are missing.
            InvalidCredentialsError: If the key file is missing or malformed.
        """
        if not settings.project_id:
            raise ValueError(
                "No project configured. Set EXTRABASE_PROJECT_ID or pass --project."
            )
        options: dict[str, Any] = {
            "host": settings.host,
            "timeout": settings.timeout,
            "connection_close": settings.connection_close,
        }
        options.update(kwargs)
        if settings.access_token:
            return cls.from_token(settings.project_id, settings.access_token, **options)
        if settings.credentials_path:
            return cls.from_service_account(
                settings.project_id, settings.credentials_path, **options
            )
        raise ValueError(
            "No authentication configured. Set EXTRABASE_ACCESS_TOKEN, "
            "EXTRABASE_CREDENTIALS_PATH or GOOGLE_APPLICATION_CREDENTIALS."
        )

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def host(self) -> str:
        return self._host

    @property
    def connection_close(self) -> bool:
        return self._connection_close

    def url_for(self, path: str, access_token: str) -> str:
        """Build the REST URL for a database path.

        The path is used verbatim: a leading slash is not stripped and
        yields ``//`` after the host.
        """
        return (
            f"https://{self._project_id}.{self._host}/{path}.json"
            f"?access_token={access_token}"
        )

    async def get(self, path: str) -> httpx.Response:
        """Read the value at path. Missing paths return 200 with ``null``."""
        return await self._request("GET", path)

    async def put(self, path: str, body: Any) -> httpx.Response:
        """Replace the value at path with body."""
        return await self._request("PUT", path, body)

    async def post(self, path: str, body: Any) -> httpx.Response:
        """Append body as a new child of path.

        The response body holds the generated key as ``{"name": key}``.
        """
        return await self._request("POST", path, body)

    async def update(self, path: str, body: Any) -> httpx.Response:
        """Merge the top-level fields of body into the value at path."""
        return await self._request("PATCH", path, body)

    async def delete(self, path: str) -> httpx.Response:
        """Remove the value at path."""
        return await self._request("DELETE", path)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- HTTP helpers --

    async def _request(
        self, method: str, path: str, body: Any = None
    ) -> httpx.Response:
        if path.startswith("/"):
            logger.warning("Path {!r} has a leading slash; URL will contain '//'", path)

        # AuthError propagates; the request is never sent without a token
        token = await self._token_source.get_token()

        url = self.url_for(path, token.access_token)
        kwargs: dict[str, Any] = {}
        if method not in ("GET", "DELETE"):
            # Serialize explicitly so that a None body is sent as `null`
            kwargs["content"] = json.dumps(body)
            kwargs["headers"] = {"Content-Type": "application/json"}
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise TransportError(f"Network error: {e}", e) from e

        logger.debug("{} {} -> {}", method, path, response.status_code)
        return response


def create_database(project_id: str, access_token: str, **kwargs: Any) -> Database:
    """Create a client bound to an already resolved access token."""
    return Database.from_token(project_id, access_token, **kwargs)
