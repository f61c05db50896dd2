"""Shared test fixtures for extrabase."""

from __future__ import annotations

import itertools
import json
import threading
from collections.abc import AsyncIterator, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest import mock

import httpx
import pytest
import pytest_asyncio
from google.oauth2 import service_account

from extrabase.config import get_settings
from extrabase.database import Database

PROJECT_ID = "wave-mainframe-default-rtdb"
ACCESS_TOKEN = "ya29.test-token"


def _json_response(status: int, value: Any) -> httpx.Response:
    # httpx treats json=None as "no body"; the store sends a literal null
    return httpx.Response(
        status,
        content=json.dumps(value).encode(),
        headers={"Content-Type": "application/json"},
    )


class FakeRealtimeDatabase:
    """In-memory stand-in for the Realtime Database REST API.

    Serves requests through httpx.MockTransport and records every request
    it receives. Only requests carrying one of ``valid_tokens`` are served;
    anything else gets the store's 401 response.
    """

    def __init__(self, valid_tokens: set[str] | None = None) -> None:
        self.root: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []
        self.valid_tokens = valid_tokens
        self._keys = itertools.count(1)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        token = request.url.params.get("access_token")
        if self.valid_tokens is not None and token not in self.valid_tokens:
            return _json_response(401, {"error": "Permission denied"})

        path = request.url.path
        if not path.endswith(".json"):
            return _json_response(400, {"error": "Invalid path"})
        parts = [p for p in path[: -len(".json")].split("/") if p]

        if request.method == "GET":
            return _json_response(200, self.read(parts))

        if request.method == "DELETE":
            self.write(parts, None)
            return _json_response(200, None)

        body = json.loads(request.content)
        if request.method == "PUT":
            self.write(parts, body)
            return _json_response(200, body)
        if request.method == "PATCH":
            if not isinstance(body, dict):
                return _json_response(400, {"error": "Invalid data"})
            current = self.read(parts)
            merged = dict(current) if isinstance(current, dict) else {}
            merged.update(body)
            self.write(parts, merged)
            return _json_response(200, body)
        if request.method == "POST":
            key = f"-Nkey{next(self._keys):04d}"
            self.write([*parts, key], body)
            return _json_response(200, {"name": key})

        return _json_response(405, {"error": "Method not allowed"})

    def read(self, parts: list[str]) -> Any:
        node: Any = self.root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def write(self, parts: list[str], value: Any) -> None:
        if not parts:
            self.root = value if isinstance(value, dict) else {}
            return
        node = self.root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value


class FakeCredentials:
    """Mimics google.oauth2.service_account.Credentials refresh behaviour."""

    service_account_email = "firebase-adminsdk@wave-mainframe.iam.gserviceaccount.com"

    def __init__(
        self, lifetime_seconds: int = 3600, error: Exception | None = None
    ) -> None:
        self.lifetime_seconds = lifetime_seconds
        self.error = error
        self.token: str | None = None
        self.expiry: datetime | None = None
        self.refresh_count = 0
        # When set, refresh blocks until the event fires
        self.gate: threading.Event | None = None
        self.started = threading.Event()

    def refresh(self, request: Any) -> None:
        self.refresh_count += 1
        self.started.set()
        if self.gate is not None and not self.gate.wait(timeout=5):
            raise TimeoutError("refresh gate was never released")
        if self.error is not None:
            raise self.error
        self.token = f"ya29.sa-token-{self.refresh_count}"
        # google-auth uses naive UTC datetimes
        self.expiry = datetime.now(UTC).replace(tzinfo=None) + timedelta(
            seconds=self.lifetime_seconds
        )


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store() -> FakeRealtimeDatabase:
    return FakeRealtimeDatabase()


@pytest_asyncio.fixture
async def db(store: FakeRealtimeDatabase) -> AsyncIterator[Database]:
    async with Database.from_token(
        PROJECT_ID, ACCESS_TOKEN, transport=store.transport()
    ) as database:
        yield database


@pytest.fixture
def key_file(tmp_path: Path) -> Path:
    """A file standing in for a service account key.

    It is a JSON object but not a usable key; tests using it patch the
    google-auth loader.
    """
    path = tmp_path / "service-account.json"
    path.write_text(json.dumps({"type": "service_account"}))
    return path


@pytest.fixture
def fake_credentials() -> Iterator[FakeCredentials]:
    credentials = FakeCredentials()
    with mock.patch.object(
        service_account.Credentials,
        "from_service_account_info",
        return_value=credentials,
    ):
        yield credentials
