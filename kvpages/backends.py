"""
KV Pages - Key-value backends

Every backend exposes the same four async primitives: get, put, delete and
list, with last-writer-wins semantics per key and no cross-key
transactions.  Three implementations are provided:

- ``MemoryBackend``      a dict, for tests and throwaway local runs
- ``SQLiteBackend``      a single ``kv`` table driven through aiosqlite
- ``CloudflareKVBackend`` the Workers KV REST API over httpx

``build_backend()`` picks one from the ``KV_BACKEND`` setting.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator
from urllib.parse import quote

import aiosqlite
import httpx
from loguru import logger

from kvpages import config
from kvpages.errors import StorageError


class KVBackend(ABC):
    """Interface shared by all key-value backends."""

    name = "abstract"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under *key*, or None if absent."""

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Store *value* under *key*, overwriting unconditionally."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*.  Missing keys are not an error."""

    @abstractmethod
    async def list_keys(self) -> list[str]:
        """Return every key in the namespace (unordered)."""

    async def close(self) -> None:
        """Release any held resources."""


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------
class MemoryBackend(KVBackend):
    name = "memory"

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self) -> list[str]:
        return list(self._data)


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


class SQLiteBackend(KVBackend):
    """Key-value pairs in a single SQLite table.

    The schema is created synchronously on construction (like any startup
    migration); reads and writes go through aiosqlite so request handlers
    never block the event loop.
    """

    name = "sqlite"

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                conn.executescript(SCHEMA_SQL)
                conn.commit()
            logger.success("✅ KV database initialized at {}", self.db_path)
        except sqlite3.Error as e:
            logger.critical("❌ Failed to initialize KV database: {}", e)
            raise StorageError(f"Cannot initialize {self.db_path}: {e}") from e

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            db = await aiosqlite.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield db
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            await db.close()

    async def get(self, key: str) -> str | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def put(self, key: str, value: str) -> None:
        async with self._connect() as db:
            await db.execute(
                """
                INSERT INTO kv (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE
                SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            await db.commit()

    async def delete(self, key: str) -> None:
        async with self._connect() as db:
            await db.execute("DELETE FROM kv WHERE key = ?", (key,))
            await db.commit()

    async def list_keys(self) -> list[str]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT key FROM kv")
            rows = await cursor.fetchall()
            return [row[0] for row in rows]


# ---------------------------------------------------------------------------
# Cloudflare Workers KV
# ---------------------------------------------------------------------------
class CloudflareKVBackend(KVBackend):
    """Workers KV namespace accessed through the Cloudflare REST API.

    One pooled :class:`httpx.AsyncClient` is kept for the lifetime of the
    backend; call :meth:`close` on shutdown.  Pass *transport* to swap the
    network layer out (tests use :class:`httpx.MockTransport`).
    """

    name = "cloudflare"

    def __init__(
        self,
        account_id: str,
        namespace_id: str,
        api_token: str,
        *,
        base_url: str = config.CF_API_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not (account_id and namespace_id and api_token):
            raise StorageError(
                "Cloudflare KV is not configured. Set CF_ACCOUNT_ID, "
                "CF_KV_NAMESPACE_ID, and CF_API_TOKEN."
            )
        self._namespace_url = (
            f"{base_url.rstrip('/')}/accounts/{account_id}"
            f"/storage/kv/namespaces/{namespace_id}"
        )
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {api_token}"},
            timeout=timeout,
            transport=transport,
        )

    def _value_url(self, key: str) -> str:
        return f"{self._namespace_url}/values/{quote(key, safe='')}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("❌ Cloudflare KV {} failed: {}", method, e)
            raise StorageError(f"Cloudflare KV {method} failed: {e}") from e

    @staticmethod
    def _check(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        logger.error(
            "❌ Cloudflare KV {} failed ({}): {}",
            action,
            response.status_code,
            response.text[:200],
        )
        raise StorageError(f"Cloudflare KV {action} failed: HTTP {response.status_code}")

    async def get(self, key: str) -> str | None:
        response = await self._request("GET", self._value_url(key))
        if response.status_code == 404:
            return None
        self._check(response, "get")
        return response.text

    async def put(self, key: str, value: str) -> None:
        response = await self._request(
            "PUT",
            self._value_url(key),
            content=value.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )
        self._check(response, "put")

    async def delete(self, key: str) -> None:
        response = await self._request("DELETE", self._value_url(key))
        if response.status_code == 404:
            return
        self._check(response, "delete")

    async def list_keys(self) -> list[str]:
        keys: list[str] = []
        cursor = ""
        while True:
            params = {"limit": 1000}
            if cursor:
                params["cursor"] = cursor
            response = await self._request(
                "GET", f"{self._namespace_url}/keys", params=params
            )
            self._check(response, "list")
            try:
                body = response.json()
            except ValueError as e:
                raise StorageError(f"Cloudflare KV list returned invalid JSON: {e}") from e

            keys.extend(item["name"] for item in body.get("result", []))
            cursor = (body.get("result_info") or {}).get("cursor") or ""
            if not cursor:
                return keys

    async def close(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------
def build_backend(kind: str | None = None) -> KVBackend:
    """Create the backend named by *kind* (defaults to ``KV_BACKEND``)."""
    kind = (kind or config.KV_BACKEND).lower()
    if kind == "memory":
        return MemoryBackend()
    if kind == "sqlite":
        return SQLiteBackend(config.KV_SQLITE_PATH)
    if kind == "cloudflare":
        return CloudflareKVBackend(
            config.CF_ACCOUNT_ID,
            config.CF_KV_NAMESPACE_ID,
            config.CF_API_TOKEN,
        )
    raise ValueError(f"Unknown KV_BACKEND: {kind!r} (expected memory, sqlite or cloudflare)")
