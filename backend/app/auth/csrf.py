"""Double-submit cookie CSRF protection for mutating API requests."""
from __future__ import annotations

import hmac
import secrets

from starlette.requests import Request
from starlette.responses import Response

CSRF_TOKEN_COOKIE = "csrf-token"
CSRF_SECRET_COOKIE = "__Host-csrf"
CSRF_HEADER = "x-csrf-token"

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def generate_csrf_token() -> str:
    return secrets.token_hex(32)


def validate_csrf(request: Request, *, exempt_prefixes: tuple = ()) -> bool:
    """Return whether the request passes the double-submit check."""

    if request.method.upper() in SAFE_METHODS:
        return True
    if any(request.url.path.startswith(prefix) for prefix in exempt_prefixes):
        return True

    cookie_token = request.cookies.get(CSRF_SECRET_COOKIE)
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token:
        return False
    return hmac.compare_digest(cookie_token, header_token)


def issue_csrf_cookies(response: Response, *, secure: bool) -> str:
    """Attach a fresh token as an httpOnly cookie plus a script-readable copy."""

    token = generate_csrf_token()
    response.set_cookie(
        CSRF_SECRET_COOKIE,
        token,
        httponly=True,
        secure=secure,
        samesite="strict",
        path="/",
    )
    response.set_cookie(
        CSRF_TOKEN_COOKIE,
        token,
        httponly=False,
        secure=secure,
        samesite="strict",
        path="/",
    )
    return token
