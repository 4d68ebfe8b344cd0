"""
KV Pages - Page Store

Thin layer between the HTTP routes and a key-value backend.  It decides
which content variant a write produces, decodes reads back into a variant,
and implements rename as write-new-then-delete-old.

Rename is NOT atomic: if the delete fails after the write succeeded, both
keys hold the value until someone deletes one of them.  Concurrent readers
of the old key may see the value or a 404 during the window.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from kvpages.backends import KVBackend
from kvpages.content import (
    Content,
    FileContent,
    FileRecord,
    classify_text,
    decode_value,
    encode_value,
)
from kvpages.errors import PageNotFound


@dataclass(frozen=True)
class Upload:
    """A file attached to a save."""

    file_name: str
    mime_type: str | None
    data: bytes


@dataclass(frozen=True)
class PageView:
    """A page as read back from storage."""

    key: str
    raw: str
    content: Content


class PageStore:
    def __init__(self, backend: KVBackend):
        self.backend = backend

    async def get(self, key: str) -> PageView:
        """Load and decode *key*.

        Raises :class:`PageNotFound` if the key is absent or holds an empty
        string.
        """
        raw = await self.backend.get(key)
        if not raw:
            raise PageNotFound(key)
        return PageView(key=key, raw=raw, content=decode_value(raw))

    async def raw(self, key: str) -> str | None:
        """Return the stored string for *key* without decoding it."""
        return await self.backend.get(key)

    async def put(self, key: str, text: str = "", upload: Upload | None = None) -> Content:
        """Write a page and return the variant that was stored.

        A non-empty upload wins over *text*; otherwise *text* is stored
        verbatim.
        """
        if upload is not None and upload.data:
            content: Content = FileContent(
                FileRecord.from_bytes(upload.file_name, upload.mime_type, upload.data)
            )
        else:
            content = classify_text(text)

        await self.backend.put(key, encode_value(content))
        logger.info("💾 Saved page '{}' ({})", key, type(content).__name__)
        return content

    async def delete(self, key: str) -> None:
        await self.backend.delete(key)
        logger.info("🗑️ Deleted page '{}'", key)

    async def rename(self, old_key: str, new_key: str) -> None:
        raw = await self.backend.get(old_key)
        if not raw:
            raise PageNotFound(old_key)
        if old_key == new_key:
            return

        await self.backend.put(new_key, raw)
        try:
            await self.backend.delete(old_key)
        except Exception:
            logger.error(
                "❌ Rename '{}' -> '{}' wrote the new key but could not delete the old one",
                old_key,
                new_key,
            )
            raise
        logger.info("📦 Renamed page '{}' -> '{}'", old_key, new_key)

    async def list(self) -> list[str]:
        return await self.backend.list_keys()
