"""
KV Pages - A tiny wiki/CMS on top of a key-value store.

Pages are single values stored under a string key: plain text, raw HTML,
or a JSON file envelope.  The FastAPI app renders whichever representation
a value holds, and a small sync poller mirrors remote file listings to disk.
"""

__version__ = "1.0.0"
