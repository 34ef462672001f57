"""Tests for access decisions and redirect targets."""
from __future__ import annotations

import pytest

from backend.app.entitlements.access import (
    RouteClass,
    classify_route,
    has_access,
    needs_snapshot,
    resolve_redirect,
)
from backend.app.entitlements.models import SubscriptionStatus
from backend.tests.fakes import make_organization


@pytest.mark.parametrize("status", [None, *SubscriptionStatus])
@pytest.mark.parametrize("is_active", [True, False])
def test_access_reads_only_the_active_flag(status, is_active):
    snapshot = make_organization(
        subscription_status=status,
        is_active=is_active,
        external_subscription_id="sub_1",
    )

    assert has_access(snapshot) is is_active


def test_missing_snapshot_has_no_access():
    assert has_access(None) is False


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/_next/static/chunk.js", RouteClass.STATIC),
        ("/favicon.ico", RouteClass.STATIC),
        ("/images/logo.svg", RouteClass.STATIC),
        ("/", RouteClass.PUBLIC),
        ("/auth/callback", RouteClass.PUBLIC),
        ("/api/stripe/webhooks", RouteClass.PUBLIC),
        ("/api/auth/check-email", RouteClass.PUBLIC),
        ("/auth/login", RouteClass.AUTH_PAGE),
        ("/auth/signup", RouteClass.AUTH_PAGE),
        ("/onboarding", RouteClass.AUTH_ONLY),
        ("/subscription-setup", RouteClass.AUTH_ONLY),
        ("/billing/success", RouteClass.AUTH_ONLY),
        ("/api/organization", RouteClass.AUTH_ONLY),
        ("/api/organizations", RouteClass.AUTH_ONLY),
        ("/api/stripe/create-checkout", RouteClass.AUTH_ONLY),
        ("/dashboard", RouteClass.BILLING_REQUIRED),
        ("/dashboard/jobs", RouteClass.BILLING_REQUIRED),
        ("/billing", RouteClass.BILLING_REQUIRED),
        ("/settings", RouteClass.TENANT_REQUIRED),
        ("/dashboards", RouteClass.TENANT_REQUIRED),
    ],
)
def test_classify_route(path, expected):
    assert classify_route(path) == expected


def test_unauthenticated_user_is_sent_to_login_with_return_path():
    target = resolve_redirect(authenticated=False, has_organization=False, has_access=False, pathname="/dashboard")

    assert target == "/auth/login?redirect=/dashboard"


def test_user_without_organization_is_sent_to_onboarding():
    target = resolve_redirect(authenticated=True, has_organization=False, has_access=False, pathname="/dashboard")

    assert target == "/onboarding"


def test_inactive_organization_is_sent_to_subscription_setup():
    target = resolve_redirect(authenticated=True, has_organization=True, has_access=False, pathname="/billing")

    assert target == "/subscription-setup"


def test_inactive_organization_may_use_tenant_pages():
    assert resolve_redirect(authenticated=True, has_organization=True, has_access=False, pathname="/settings") is None


def test_signed_in_user_skips_auth_pages():
    assert resolve_redirect(authenticated=True, has_organization=False, has_access=False, pathname="/auth/login") == "/dashboard"
    assert resolve_redirect(authenticated=False, has_organization=False, has_access=False, pathname="/auth/login") is None


def test_subscription_setup_redirects_when_access_exists():
    assert (
        resolve_redirect(authenticated=True, has_organization=True, has_access=True, pathname="/subscription-setup")
        == "/dashboard"
    )
    assert (
        resolve_redirect(authenticated=True, has_organization=True, has_access=False, pathname="/subscription-setup")
        is None
    )


def test_onboarding_is_served_without_organization():
    assert resolve_redirect(authenticated=True, has_organization=False, has_access=False, pathname="/onboarding") is None


def test_active_organization_is_served():
    assert resolve_redirect(authenticated=True, has_organization=True, has_access=True, pathname="/dashboard") is None


def test_public_and_static_paths_are_never_redirected():
    for path in ("/", "/api/stripe/webhooks", "/_next/static/app.js"):
        assert resolve_redirect(authenticated=False, has_organization=False, has_access=False, pathname=path) is None


def test_snapshot_needed_only_for_tenant_gated_paths():
    assert needs_snapshot("/dashboard") is True
    assert needs_snapshot("/settings") is True
    assert needs_snapshot("/subscription-setup") is True
    assert needs_snapshot("/onboarding") is False
    assert needs_snapshot("/auth/login") is False
    assert needs_snapshot("/") is False
