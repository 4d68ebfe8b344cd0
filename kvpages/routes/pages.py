"""
KV Pages - Page Routes

Browser-facing views.  Path layout:

    /l                 page list (password gated) / login form submission
    /logout            end the session
    /new, /create      new-page form and submission (password gated)
    /{key}             view a page
    /{key}/e           edit form / save
    /{key}/d           delete confirmation / delete
    /{key}/r/{new}     rename

Route segments arrive decoded; ``storage_key`` re-encodes them before they
reach the store, and links are always built from storage keys.
"""

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from loguru import logger
from markupsafe import Markup

from kvpages.auth import (
    auth_required,
    clear_session_cookie,
    render_login_page,
    require_session,
    set_session_cookie,
    verify_password,
)
from kvpages.config import MAX_UPLOAD_BYTES, MAX_UPLOAD_MB
from kvpages.content import FileContent, FileRecord, MarkupContent, escape_text
from kvpages.errors import InvalidPageName
from kvpages.keys import display_name, sort_keys, storage_key
from kvpages.routes.deps import get_store
from kvpages.store import PageStore, Upload

router = APIRouter(tags=["Pages"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _render(request: Request, template: str, context: dict, status_code: int = 200):
    return request.app.state.templates.TemplateResponse(
        request, template, context, status_code=status_code
    )


async def _read_upload(file: Optional[UploadFile]) -> Optional[Upload]:
    """Read an optional multipart file field; empty fields count as absent."""
    if file is None or not file.filename:
        return None

    data = await file.read()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large (max {MAX_UPLOAD_MB} MB)",
        )
    if not data:
        return None
    return Upload(file_name=file.filename, mime_type=file.content_type, data=data)


def _download_response(record: FileRecord) -> Response:
    quoted = quote(record.file_name, safe="")
    return Response(
        content=record.payload,
        media_type=record.mime_type,
        headers={
            "Content-Disposition": (
                f"attachment; filename=\"{quoted}\"; filename*=UTF-8''{quoted}"
            )
        },
    )


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=302)


def _new_page_key(name: str) -> str:
    """Validate a user-chosen page name and return its storage key.

    Route segments are matched after percent-decoding, so a name containing
    "/" would be stored but never reachable again.
    """
    name = name.strip()
    if not name:
        raise InvalidPageName("Page name is required")
    if "/" in name:
        raise InvalidPageName("Page name must not contain /")
    return storage_key(name)


# ---------------------------------------------------------------------------
# Page list & login
# ---------------------------------------------------------------------------
@router.get("/l", response_class=HTMLResponse)
async def list_page(request: Request, store: PageStore = Depends(get_store)):
    if auth_required(request):
        return render_login_page()

    keys = sort_keys(await store.list())
    pages = [{"key": key, "title": display_name(key)} for key in keys]
    return _render(request, "list.html", {"page_title": "Pages", "pages": pages})


@router.post("/l")
async def login(password: str = Form("")):
    if verify_password(password):
        logger.info("🔓 Admin logged in")
        response = _redirect("/l")
        set_session_cookie(response)
        return response

    logger.warning("🔒 Failed login attempt")
    return render_login_page(error="Wrong password, please try again", status_code=401)


@router.get("/logout")
async def logout():
    response = _redirect("/l")
    clear_session_cookie(response)
    return response


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
@router.get("/new", response_class=HTMLResponse)
async def new_page_form(request: Request):
    if auth_required(request):
        return render_login_page()

    context = {
        "page_title": "New page",
        "heading": "Create a new page",
        "action": "/create",
        "ask_name": True,
        "body": "",
    }
    return _render(request, "edit.html", context)


@router.post("/create", dependencies=[Depends(require_session)])
async def create_page(
    name: str = Form(""),
    content: str = Form(""),
    file: Optional[UploadFile] = File(None),
    store: PageStore = Depends(get_store),
):
    key = _new_page_key(name)
    await store.put(key, content, await _read_upload(file))
    return _redirect(f"/{key}")


# ---------------------------------------------------------------------------
# View
# ---------------------------------------------------------------------------
@router.get("/{name}")
async def view_page(request: Request, name: str, store: PageStore = Depends(get_store)):
    key = storage_key(name)
    page = await store.get(key)
    content = page.content

    if isinstance(content, FileContent):
        record = content.record
        if record.is_image:
            context = {
                "page_title": record.file_name,
                "key": key,
                "file_name": record.file_name,
                "data_uri": record.content,
            }
            return _render(request, "image_preview.html", context)
        return _download_response(record)

    if isinstance(content, MarkupContent):
        return HTMLResponse(content.body)

    context = {
        "page_title": display_name(key),
        "key": key,
        "body": Markup(escape_text(content.body)),
    }
    return _render(request, "page_text.html", context)


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------
@router.get("/{name}/e", response_class=HTMLResponse)
async def edit_form(request: Request, name: str, store: PageStore = Depends(get_store)):
    key = storage_key(name)
    raw = await store.raw(key) or ""
    context = {
        "page_title": "Edit page",
        "heading": f'Edit "{display_name(key)}"',
        "action": f"/{key}/e",
        "ask_name": False,
        "body": Markup(escape_text(raw)),
    }
    return _render(request, "edit.html", context)


@router.post("/{name}/e")
async def save_page(
    name: str,
    content: str = Form(""),
    file: Optional[UploadFile] = File(None),
    store: PageStore = Depends(get_store),
):
    key = storage_key(name)
    await store.put(key, content, await _read_upload(file))
    return _redirect(f"/{key}")


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------
@router.get("/{name}/d", response_class=HTMLResponse)
async def confirm_delete(request: Request, name: str):
    key = storage_key(name)
    context = {
        "page_title": "Confirm deletion",
        "key": key,
        "title": display_name(key),
    }
    return _render(request, "confirm_delete.html", context)


@router.post("/{name}/d")
async def delete_page(name: str, store: PageStore = Depends(get_store)):
    await store.delete(storage_key(name))
    return _redirect("/l")


# ---------------------------------------------------------------------------
# Rename
# ---------------------------------------------------------------------------
@router.api_route("/{name}/r/{new_name}", methods=["GET", "POST"])
async def rename_page(name: str, new_name: str, store: PageStore = Depends(get_store)):
    new_key = _new_page_key(new_name)
    await store.rename(storage_key(name), new_key)
    return _redirect(f"/{new_key}")
