"""
KV Pages - Main Application

FastAPI application that serves:
- HTML page views, edit/delete/rename flows and the gated page list
- A small JSON API (status, health, page listing)
- An optional background sync poller mirroring a remote file listing

The app is stateless apart from the key-value backend it is given.
"""

import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates
from loguru import logger

from kvpages.auth import render_login_page
from kvpages.backends import KVBackend, build_backend
from kvpages.config import (
    ADMIN_PASSWORD,
    APP_ENV,
    APP_HOST,
    APP_PORT,
    APP_VERSION,
    DEBUG,
    LOG_LEVEL,
    SYNC_INTERVAL,
    SYNC_LIST_PATH,
    SYNC_LOCAL_DIR,
    SYNC_SOURCE_URL,
    TEMPLATES_DIR,
)
from kvpages.errors import InvalidPageName, NotAuthenticated, PageNotFound
from kvpages.routes.api import router as api_router
from kvpages.routes.pages import router as pages_router
from kvpages.store import PageStore
from kvpages.sync import SyncPoller

# ---------------------------------------------------------------------------
# Logging setup (stdout only)
# ---------------------------------------------------------------------------
logger.remove()

logger.add(
    sys.stdout,
    level="DEBUG" if DEBUG else LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    On startup:
        1. Report configuration
        2. Start the sync poller (if SYNC_SOURCE_URL is set)

    On shutdown:
        3. Stop the sync poller
        4. Close the key-value backend
    """
    logger.info("🚀 Starting KV Pages v{}", APP_VERSION)
    logger.info(
        "📋 Environment: {} | Debug: {} | Backend: {}",
        APP_ENV,
        DEBUG,
        app.state.store.backend.name,
    )

    if ADMIN_PASSWORD:
        logger.info("🔒 Page list is password protected")
    else:
        logger.warning("🔓 Page list is OPEN (no ADMIN_PASSWORD set)")

    poller: SyncPoller | None = None
    if SYNC_SOURCE_URL:
        poller = SyncPoller(
            SYNC_SOURCE_URL,
            SYNC_LOCAL_DIR,
            interval=SYNC_INTERVAL,
            list_path=SYNC_LIST_PATH,
        )
        poller.start()

    logger.success("✅ Application ready — listening on {}:{}", APP_HOST, APP_PORT)

    yield

    logger.info("🛑 Shutting down KV Pages …")
    if poller is not None:
        await poller.stop()
    await app.state.store.backend.close()
    logger.info("👋 Shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(backend: KVBackend | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    *backend* defaults to the one selected by ``KV_BACKEND``.
    """

    app = FastAPI(
        title="KV Pages",
        description="A tiny wiki/CMS on top of a key-value store.",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
    )

    app.state.store = PageStore(backend or build_backend())
    app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------
    @app.exception_handler(PageNotFound)
    async def page_not_found(request: Request, exc: PageNotFound):
        return PlainTextResponse("Page not found", status_code=exc.status_code)

    @app.exception_handler(InvalidPageName)
    async def invalid_page_name(request: Request, exc: InvalidPageName):
        return PlainTextResponse(str(exc), status_code=exc.status_code)

    @app.exception_handler(NotAuthenticated)
    async def not_authenticated(request: Request, exc: NotAuthenticated):
        if request.url.path.startswith("/api/"):
            return JSONResponse(
                status_code=401,
                content={"detail": "Authentication required"},
            )
        return render_login_page(status_code=401)

    # ------------------------------------------------------------------
    # Request logging middleware (also the last-resort 500 handler)
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request with timing; turn uncaught errors into a bare 500."""
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            duration = round(time.time() - start, 3)
            logger.opt(exception=exc).error(
                "❌ {method} {path} — unhandled error after {duration}s: {exc}",
                method=request.method,
                path=request.url.path,
                duration=duration,
                exc=exc,
            )
            return PlainTextResponse("Internal Server Error", status_code=500)

        duration = round(time.time() - start, 3)
        status = response.status_code
        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            "📤 {method} {path} — {status} [{duration}s]",
            method=request.method,
            path=request.url.path,
            status=status,
            duration=duration,
        )
        return response

    # ------------------------------------------------------------------
    # Register routers
    # ------------------------------------------------------------------
    app.include_router(api_router)  # /, /api/*  JSON endpoints
    app.include_router(pages_router)  # /*        HTML pages (must be last)

    return app


# ---------------------------------------------------------------------------
# Direct execution (development)
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "kvpages.main:create_app",
        factory=True,
        host=APP_HOST,
        port=APP_PORT,
        reload=DEBUG,
        log_level="debug" if DEBUG else "info",
    )
