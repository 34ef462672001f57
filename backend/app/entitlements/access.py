"""Access decisions derived from an organization's entitlement snapshot.

``has_access`` reads ``is_active`` and nothing else. Grace periods and trial
eligibility are settled by the billing reconciler when it writes that flag, so
the edge middleware and API guards can share this module without diverging.
"""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlencode

if TYPE_CHECKING:
    from ..organizations.models import Organization

LOGIN_PATH = "/auth/login"
DASHBOARD_PATH = "/dashboard"
ONBOARDING_PATH = "/onboarding"
SUBSCRIPTION_SETUP_PATH = "/subscription-setup"
WEBHOOK_PATH = "/api/stripe/webhooks"

PUBLIC_ROUTES = (
    "/",
    "/auth/login",
    "/auth/signup",
    "/auth/confirm",
    "/auth/callback",
    WEBHOOK_PATH,
    "/api/auth/check-email",
    "/api/health",
)
AUTH_PAGES = ("/auth/login", "/auth/signup")
AUTH_ONLY_ROUTES = (
    ONBOARDING_PATH,
    SUBSCRIPTION_SETUP_PATH,
    "/billing/success",
    "/billing/canceled",
    "/api/organization",
    "/api/organizations",
    "/api/stripe",
)
BILLING_REQUIRED_ROUTES = (DASHBOARD_PATH, "/billing", "/customers", "/appointments", "/api/dashboard")
STATIC_PREFIXES = ("/_next", "/static", "/favicon")


class RouteClass(str, Enum):
    STATIC = "static"
    PUBLIC = "public"
    AUTH_PAGE = "auth_page"
    AUTH_ONLY = "auth_only"
    TENANT_REQUIRED = "tenant_required"
    BILLING_REQUIRED = "billing_required"


def has_access(snapshot: Optional[Organization]) -> bool:
    """Return whether the organization may use billing-gated features."""

    return snapshot is not None and snapshot.is_active is True


def _matches(pathname: str, route: str) -> bool:
    if route == "/":
        return pathname == "/"
    return pathname == route or pathname.startswith(f"{route}/")


def is_static_asset(pathname: str) -> bool:
    if pathname.startswith(STATIC_PREFIXES):
        return True
    last_segment = pathname.rsplit("/", 1)[-1]
    return "." in last_segment


def classify_route(pathname: str) -> RouteClass:
    """Bucket a request path by the checks it needs before it is served."""

    if is_static_asset(pathname):
        return RouteClass.STATIC
    if any(_matches(pathname, route) for route in AUTH_PAGES):
        return RouteClass.AUTH_PAGE
    if any(_matches(pathname, route) for route in PUBLIC_ROUTES):
        return RouteClass.PUBLIC
    if any(_matches(pathname, route) for route in AUTH_ONLY_ROUTES):
        return RouteClass.AUTH_ONLY
    if any(_matches(pathname, route) for route in BILLING_REQUIRED_ROUTES):
        return RouteClass.BILLING_REQUIRED
    return RouteClass.TENANT_REQUIRED


def _login_redirect(pathname: str) -> str:
    return f"{LOGIN_PATH}?{urlencode({'redirect': pathname}, safe='/')}"


def resolve_redirect(
    *,
    authenticated: bool,
    has_organization: bool,
    has_access: bool,
    pathname: str,
) -> Optional[str]:
    """Return where the request must be sent instead, or ``None`` to serve it."""

    route = classify_route(pathname)
    if route in (RouteClass.STATIC, RouteClass.PUBLIC):
        return None
    if route == RouteClass.AUTH_PAGE:
        return DASHBOARD_PATH if authenticated else None
    if not authenticated:
        return _login_redirect(pathname)
    if route == RouteClass.AUTH_ONLY:
        if _matches(pathname, SUBSCRIPTION_SETUP_PATH) and has_organization and has_access:
            return DASHBOARD_PATH
        return None
    if not has_organization:
        return ONBOARDING_PATH
    if route == RouteClass.BILLING_REQUIRED and not has_access:
        return SUBSCRIPTION_SETUP_PATH
    return None


def needs_snapshot(pathname: str) -> bool:
    """Whether deciding on ``pathname`` requires the caller's organization."""

    route = classify_route(pathname)
    if route in (RouteClass.TENANT_REQUIRED, RouteClass.BILLING_REQUIRED):
        return True
    return route == RouteClass.AUTH_ONLY and _matches(pathname, SUBSCRIPTION_SETUP_PATH)
