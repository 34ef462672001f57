"""Tests for subscription gating helpers."""
from __future__ import annotations

import pytest
from fastapi import HTTPException

from backend.app.entitlements.models import SubscriptionStatus
from backend.app.feature_gates import FeatureGateError, require_access, require_organization
from backend.tests.fakes import make_organization


def test_require_access_returns_active_organization():
    organization = make_organization(subscription_status=SubscriptionStatus.PAST_DUE, is_active=True)

    assert require_access(organization) is organization


def test_require_access_rejects_inactive_organization():
    organization = make_organization(subscription_status=SubscriptionStatus.CANCELED, is_active=False)

    with pytest.raises(FeatureGateError) as excinfo:
        require_access(organization)

    error = excinfo.value
    assert error.status_code == 402
    assert error.payload == {
        "error": "subscription_required",
        "message": "An active subscription is required.",
        "redirect": "/subscription-setup",
        "subscriptionStatus": "canceled",
    }


def test_require_organization_rejects_missing_snapshot():
    with pytest.raises(FeatureGateError) as excinfo:
        require_organization(None)

    assert excinfo.value.status_code == 403
    assert excinfo.value.code == "organization_required"


def test_feature_gate_error_converts_to_http_exception():
    error = FeatureGateError(code="subscription_required", message="Subscribe first")

    http_error = error.to_http_exception()

    assert isinstance(http_error, HTTPException)
    assert http_error.status_code == 402
    assert http_error.detail == {"error": "subscription_required", "message": "Subscribe first"}
