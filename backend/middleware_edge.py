from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.types import ASGIApp

from .app.auth.csrf import CSRF_TOKEN_COOKIE, issue_csrf_cookies, validate_csrf
from .app.auth.identity import IdentityResolver, get_identity_resolver
from .app.entitlements.access import (
    WEBHOOK_PATH,
    RouteClass,
    classify_route,
    has_access,
    is_static_asset,
    needs_snapshot,
    resolve_redirect,
)
from .app.organizations.service import OrganizationRepository

LOGGER = logging.getLogger("edge")

CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        "script-src 'self' 'unsafe-inline' 'unsafe-eval' https://js.stripe.com https://checkout.stripe.com",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: https: blob:",
        "font-src 'self' data:",
        "connect-src 'self' https://api.stripe.com https://checkout.stripe.com",
        "frame-src https://js.stripe.com https://hooks.stripe.com https://checkout.stripe.com",
        "object-src 'none'",
        "base-uri 'self'",
        "form-action 'self'",
        "frame-ancestors 'none'",
        "upgrade-insecure-requests",
    ]
) + ";"

SECURITY_HEADERS: Dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), interest-cohort=()",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}


def _apply_security_headers(response: Response) -> Response:
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


class EdgeAuthorizationMiddleware(BaseHTTPMiddleware):
    """Per-request gate: static bypass, CSRF, session, classification, redirect.

    Page requests that fail a check are redirected. API requests get JSON
    errors instead and are otherwise left to their handlers, which apply
    tenant and billing checks themselves.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        repository_factory: Callable[[], OrganizationRepository],
        resolver_factory: Callable[[], IdentityResolver] = get_identity_resolver,
        cookie_secure: bool = False,
    ) -> None:
        super().__init__(app)
        self._repository_factory = repository_factory
        self._resolver_factory = resolver_factory
        self._cookie_secure = cookie_secure

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if is_static_asset(path):
            return _apply_security_headers(await call_next(request))

        response = await self._authorize(request, call_next)
        return self._finalize(request, response)

    async def _authorize(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        is_api = path.startswith("/api/")

        if is_api and not validate_csrf(request, exempt_prefixes=(WEBHOOK_PATH,)):
            LOGGER.warning("Rejected %s %s: invalid CSRF token", request.method, path)
            return JSONResponse({"error": "Invalid CSRF token"}, status_code=403)

        identity = self._resolver_factory().resolve_request(request)
        route = classify_route(path)

        if is_api:
            if identity is None and route not in (RouteClass.PUBLIC, RouteClass.AUTH_PAGE):
                return JSONResponse({"error": "Unauthorized"}, status_code=401)
            return await call_next(request)

        organization = None
        if identity is not None and needs_snapshot(path):
            organization = await self._repository_factory().get_for_user(identity.user_id)

        target = resolve_redirect(
            authenticated=identity is not None,
            has_organization=organization is not None,
            has_access=has_access(organization),
            pathname=path,
        )
        if target is not None:
            LOGGER.debug("Redirecting %s to %s", path, target)
            return RedirectResponse(target, status_code=307)
        return await call_next(request)

    def _finalize(self, request: Request, response: Response) -> Response:
        _apply_security_headers(response)
        if not request.cookies.get(CSRF_TOKEN_COOKIE):
            issue_csrf_cookies(response, secure=self._cookie_secure)
        return response


def install_edge_middleware(
    app,
    *,
    repository_factory: Callable[[], OrganizationRepository],
    resolver_factory: Optional[Callable[[], IdentityResolver]] = None,
    cookie_secure: bool = False,
) -> None:
    app.add_middleware(
        EdgeAuthorizationMiddleware,
        repository_factory=repository_factory,
        resolver_factory=resolver_factory or get_identity_resolver,
        cookie_secure=cookie_secure,
    )
