"""
KV Pages - Session Auth

The page list and page creation sit behind one shared password
(ADMIN_PASSWORD).  A correct password earns a signed session cookie:

    {"sid": "<random hex>", "ts": <issued at>}|<hmac-sha256 hex>

The server re-verifies signature and age on every request, so the cookie
cannot be forged or replayed past SESSION_MAX_AGE.

Usage:
    - ``verify_password`` on login form submission, then ``set_session_cookie``.
    - ``auth_required(request)`` to decide whether to show the login form.
    - ``require_session`` as a FastAPI dependency on protected routes.
"""

import hashlib
import hmac
import json
import secrets
import time
from html import escape
from typing import Any

from fastapi import Request, Response
from fastapi.responses import HTMLResponse

from kvpages.config import (
    ADMIN_PASSWORD,
    SECRET_KEY,
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE,
)
from kvpages.errors import NotAuthenticated

# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def _sign(payload: str) -> str:
    """Create an HMAC-SHA256 signature for a payload string."""
    return hmac.new(
        SECRET_KEY.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def _create_session_cookie() -> str:
    """Create a signed session cookie value for a fresh session."""
    data = json.dumps(
        {
            "sid": secrets.token_hex(16),
            "ts": int(time.time()),
        }
    )
    sig = _sign(data)
    return f"{data}|{sig}"


def _parse_session_cookie(cookie_value: str) -> dict[str, Any] | None:
    """Parse and verify a session cookie.  Returns the session dict or None."""
    if not cookie_value or "|" not in cookie_value:
        return None

    data_part, sig_part = cookie_value.rsplit("|", 1)
    if not hmac.compare_digest(sig_part.encode("utf-8"), _sign(data_part).encode("utf-8")):
        return None

    try:
        session = json.loads(data_part)
    except json.JSONDecodeError:
        return None
    if not isinstance(session, dict):
        return None

    created = session.get("ts", 0)
    if not isinstance(created, (int, float)) or time.time() - created > SESSION_MAX_AGE:
        return None

    return session


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_session(request: Request) -> dict[str, Any] | None:
    """Return the verified session for this request, or None."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME, "")
    return _parse_session_cookie(cookie)


def is_authenticated(request: Request) -> bool:
    """Check whether the current request has a valid session."""
    return get_session(request) is not None


def set_session_cookie(response: Response) -> None:
    """Start a new session by setting a signed cookie on the response."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=_create_session_cookie(),
        max_age=SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    """Remove the session cookie."""
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
    )


def auth_required(request: Request) -> bool:
    """
    Return True if this request must log in before reaching a gated page.

    If ADMIN_PASSWORD is empty, the gate is disabled entirely.
    """
    if not ADMIN_PASSWORD:
        return False
    return not is_authenticated(request)


def verify_password(password: str) -> bool:
    """Compare a submitted password against ADMIN_PASSWORD."""
    if not ADMIN_PASSWORD:
        return False
    return hmac.compare_digest(password.encode("utf-8"), ADMIN_PASSWORD.encode("utf-8"))


def require_session(request: Request) -> None:
    """FastAPI dependency: raise NotAuthenticated unless the gate is open."""
    if auth_required(request):
        raise NotAuthenticated("Authentication required")


# ---------------------------------------------------------------------------
# Login page HTML
# ---------------------------------------------------------------------------

LOGIN_PAGE_HTML = """\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Password required</title>
    <style>
        body {
            font-family: Arial, sans-serif;
            background-color: #f7f7f7;
            display: flex;
            align-items: center;
            justify-content: center;
            height: 100vh;
            margin: 0;
        }
        .login-box {
            background: white;
            padding: 30px;
            border-radius: 8px;
            box-shadow: 0 2px 10px rgba(0,0,0,0.1);
            text-align: center;
            width: 100%%;
            max-width: 400px;
        }
        input[type="password"] {
            width: 100%%;
            padding: 10px;
            margin-top: 10px;
            margin-bottom: 20px;
            border: 1px solid #ccc;
            border-radius: 5px;
            box-sizing: border-box;
        }
        button {
            padding: 10px 20px;
            background-color: #5cb85c;
            color: white;
            border: none;
            border-radius: 5px;
            cursor: pointer;
        }
        button:hover { background-color: #4cae4c; }
        .error { color: red; margin-bottom: 10px; }
    </style>
</head>
<body>
    <div class="login-box">
        <h2>Enter the access password</h2>
        %(error_html)s
        <form method="POST" action="/l">
            <input type="password" name="password" placeholder="Password" required autofocus />
            <br />
            <button type="submit">Submit</button>
        </form>
    </div>
</body>
</html>
"""


def render_login_page(error: str = "", status_code: int = 200) -> HTMLResponse:
    """Render the login page with an optional error message."""
    error_html = ""
    if error:
        error_html = f'<div class="error">{escape(error)}</div>'

    html = LOGIN_PAGE_HTML % {"error_html": error_html}
    return HTMLResponse(content=html, status_code=status_code)
