"""Typed representation of an organization and its billing entitlement."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements.models import SubscriptionStatus


# Columns only the event reconciler may change after tenant creation.
BILLING_FIELDS = frozenset(
    {
        "external_subscription_id",
        "subscription_status",
        "is_active",
        "cancel_at_period_end",
        "trial_ends_at",
        "current_period_end",
        "subscription_plan",
    }
)


class Organization(BaseModel):
    """Tenant record doubling as the entitlement snapshot used for access decisions."""

    id: str
    name: str
    subdomain: str
    external_customer_id: Optional[str] = Field(
        default=None,
        description="Payment processor customer reference, written once by customer provisioning.",
    )
    external_subscription_id: Optional[str] = Field(
        default=None,
        description="Payment processor subscription reference maintained by the reconciler.",
    )
    subscription_status: Optional[SubscriptionStatus] = None
    is_active: bool = Field(
        default=False,
        description="The single field every access decision reads.",
    )
    cancel_at_period_end: bool = False
    trial_ends_at: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    subscription_plan: Optional[str] = Field(
        default=None,
        description="Billing interval label. Informational only.",
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SubdomainTaken(ValueError):
    """Raised when another organization already owns the requested subdomain."""


class OrganizationAlreadyExists(ValueError):
    """Raised when the user is already linked to an organization."""
