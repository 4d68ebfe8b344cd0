"""
KV Pages - JSON API Routes

- ``GET /``          liveness payload
- ``GET /api/health`` health check with version and backend name
- ``GET /api/list``   page keys as ``[{"name": ...}]`` (the listing format
  the sync poller reads), behind the cookie gate
"""

import time

from fastapi import APIRouter, Depends

from kvpages.auth import require_session
from kvpages.config import APP_VERSION
from kvpages.keys import sort_keys
from kvpages.routes.deps import get_store
from kvpages.store import PageStore

router = APIRouter(tags=["API"])

# Track startup time for health check
_START_TIME = time.time()


@router.get("/")
async def status():
    return {"status": "success", "message": "Hello, I am working"}


@router.get("/api/health")
async def health(store: PageStore = Depends(get_store)):
    return {
        "status": "ok",
        "version": APP_VERSION,
        "backend": store.backend.name,
        "uptime_seconds": round(time.time() - _START_TIME, 1),
    }


@router.get("/api/list", dependencies=[Depends(require_session)])
async def list_pages(store: PageStore = Depends(get_store)):
    keys = sort_keys(await store.list())
    return [{"name": key} for key in keys]
