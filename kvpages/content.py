"""
KV Pages - Page content model

A stored value is one of three things:

- ``TextContent``   plain text, shown escaped inside ``<pre>``
- ``MarkupContent`` HTML, served as-is
- ``FileContent``   an uploaded file, kept as a JSON envelope::

      {"fileName": "...", "mimeType": "...", "content": "data:<mime>;base64,<b64>"}

The variant is picked once when a page is written and returned to the
caller.  The persisted form is still the plain string / JSON envelope, so a
read decodes it with the same rules the writer used:

1. JSON object with a non-empty ``fileName``  -> file
2. anything matching the markup heuristic     -> markup
3. everything else                            -> text
"""

from __future__ import annotations

import base64
import binascii
import json
import mimetypes
import re
from dataclasses import dataclass
from typing import Any, Union

# Substrings that make a value "look like" an HTML document or fragment.
MARKUP_PATTERN = re.compile(r"<html|<!DOCTYPE|<body|<div|<script|<style", re.IGNORECASE)

DEFAULT_MIME_TYPE = "application/octet-stream"

_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    "\n": "&#10;",
    "\r": "&#13;",
    "\t": "&#9;",
}
_ESCAPE_RE = re.compile("[&<>\n\r\t]")


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class FileRecord:
    """An uploaded file stored inline as a base64 data URI."""

    file_name: str
    mime_type: str
    content: str

    @classmethod
    def from_bytes(cls, file_name: str, mime_type: str | None, data: bytes) -> FileRecord:
        mime = mime_type or mimetypes.guess_type(file_name)[0] or DEFAULT_MIME_TYPE
        b64 = base64.b64encode(data).decode("ascii")
        return cls(file_name=file_name, mime_type=mime, content=f"data:{mime};base64,{b64}")

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def payload(self) -> bytes:
        """Decode the binary payload of the data URI (empty if malformed)."""
        _, sep, b64 = self.content.partition("base64,")
        if not sep:
            return b""
        try:
            return base64.b64decode(b64)
        except (binascii.Error, ValueError):
            return b""

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "mimeType": self.mime_type,
            "content": self.content,
        }


@dataclass(frozen=True)
class TextContent:
    body: str


@dataclass(frozen=True)
class MarkupContent:
    body: str


@dataclass(frozen=True)
class FileContent:
    record: FileRecord


Content = Union[TextContent, MarkupContent, FileContent]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------
def looks_like_markup(text: str) -> bool:
    """Substring heuristic, not a parser: ``"a <div b"`` counts as markup."""
    return MARKUP_PATTERN.search(text) is not None


def classify_text(text: str) -> Content:
    """Pick the variant for a non-file value."""
    if looks_like_markup(text):
        return MarkupContent(text)
    return TextContent(text)


def _parse_file_record(raw: str) -> FileRecord | None:
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None

    if not isinstance(parsed, dict) or not parsed.get("fileName"):
        return None

    return FileRecord(
        file_name=str(parsed["fileName"]),
        mime_type=str(parsed.get("mimeType") or DEFAULT_MIME_TYPE),
        content=str(parsed.get("content") or ""),
    )


def decode_value(raw: str) -> Content:
    """Turn a stored string back into its content variant.

    A text page that happens to be a JSON object with ``fileName`` decodes as
    a file.  That ambiguity comes with the storage format.
    """
    record = _parse_file_record(raw)
    if record is not None:
        return FileContent(record)
    return classify_text(raw)


def encode_value(content: Content) -> str:
    """Serialize a content variant into the string that goes into storage."""
    if isinstance(content, FileContent):
        return json.dumps(content.record.to_dict())
    return content.body


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------
def escape_text(text: str) -> str:
    """Escape text for display inside ``<pre>`` or ``<textarea>``.

    Line breaks and tabs become numeric entities so they survive any
    whitespace handling between here and the browser.
    """
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], text)
