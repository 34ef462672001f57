"""Tests for the SQL rendered by the organization repository."""
from __future__ import annotations

import pytest

from backend.app.entitlements.models import SubscriptionStatus
from backend.app.organizations.models import BILLING_FIELDS
from backend.app.organizations.repository import build_update


def test_update_maps_fields_to_columns():
    sql, params = build_update(
        "org-1",
        {"subscription_status": SubscriptionStatus.PAST_DUE, "external_subscription_id": "sub_1"},
    )

    assert sql == (
        "UPDATE organizations SET subscription_status = $2, stripe_subscription_id = $3, "
        "updated_at = NOW() WHERE id = $1 RETURNING *"
    )
    assert params == ["org-1", "past_due", "sub_1"]


def test_update_with_expected_values_adds_guard_conditions():
    sql, params = build_update(
        "org-1",
        {"is_active": False},
        expected={"subscription_status": SubscriptionStatus.ACTIVE, "external_subscription_id": None},
    )

    assert "WHERE id = $1 AND subscription_status IS NOT DISTINCT FROM $3 " in sql
    assert "AND stripe_subscription_id IS NOT DISTINCT FROM $4 RETURNING *" in sql
    assert params == ["org-1", False, "active", None]


def test_update_rejects_unknown_fields():
    with pytest.raises(ValueError):
        build_update("org-1", {"id": "org-2"})

    with pytest.raises(ValueError):
        build_update("org-1", {"is_active": True}, expected={"password": "x"})


def test_update_requires_fields():
    with pytest.raises(ValueError):
        build_update("org-1", {})


@pytest.mark.parametrize("field", ["name", "subdomain", "external_customer_id"])
def test_update_only_writes_entitlement_columns(field):
    with pytest.raises(ValueError):
        build_update("org-1", {field: "value"})


def test_every_entitlement_field_has_a_column():
    for field in BILLING_FIELDS:
        sql, _ = build_update("org-1", {field: None})

        assert sql.startswith("UPDATE organizations SET ")
