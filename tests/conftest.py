"""
KV Pages - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- An in-memory backend and a PageStore on top of it
- A TestClient wired to an app using that backend
- Sample file payloads (PNG, PDF)
- A helper to drive coroutines from plain (sync) tests
"""

import asyncio
from typing import Any, Coroutine

import pytest
from fastapi.testclient import TestClient

from kvpages.auth import _create_session_cookie
from kvpages.backends import MemoryBackend
from kvpages.config import SESSION_COOKIE_NAME
from kvpages.main import create_app
from kvpages.store import PageStore

# PNG signature followed by every byte value, so encoding bugs show up
SAMPLE_PNG = b"\x89PNG\r\n\x1a\n" + bytes(range(256))

SAMPLE_PDF = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> MemoryBackend:
    """Provide an empty in-memory key-value backend."""
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> PageStore:
    """Provide a PageStore on top of the in-memory backend."""
    return PageStore(backend)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(backend: MemoryBackend) -> TestClient:
    """TestClient for an app backed by the in-memory backend (no password set)."""
    return TestClient(create_app(backend))


@pytest.fixture
def locked_client(backend: MemoryBackend, monkeypatch) -> TestClient:
    """TestClient with the page list protected by the password 'secret'."""
    monkeypatch.setattr("kvpages.auth.ADMIN_PASSWORD", "secret")
    return TestClient(create_app(backend))


@pytest.fixture
def logged_in_client(locked_client: TestClient) -> TestClient:
    """The locked client carrying a valid session cookie."""
    locked_client.cookies.set(SESSION_COOKIE_NAME, _create_session_cookie())
    return locked_client
