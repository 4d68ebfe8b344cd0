"""
KV Pages - Errors

Known failure conditions.  The app maps each one to a status code; anything
else becomes a bare 500.
"""


class KVPagesError(Exception):
    """Base class for all KV Pages errors."""

    status_code = 500


class PageNotFound(KVPagesError):
    """The requested page key holds no value."""

    status_code = 404

    def __init__(self, key: str):
        super().__init__(f"Page not found: {key}")
        self.key = key


class InvalidPageName(KVPagesError):
    """A required page name was missing or blank."""

    status_code = 400


class NotAuthenticated(KVPagesError):
    """The request carries no valid session."""

    status_code = 401


class StorageError(KVPagesError):
    """The key-value backend failed or answered with a non-OK status."""

    status_code = 500
