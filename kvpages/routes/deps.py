from fastapi import Request

from kvpages.store import PageStore


def get_store(request: Request) -> PageStore:
    """Provide the app-wide PageStore as a dependency."""
    return request.app.state.store
