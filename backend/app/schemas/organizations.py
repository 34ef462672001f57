"""API schemas for organization endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements.models import SubscriptionStatus
from ..organizations.models import Organization


class OrganizationResponse(BaseModel):
    """Entitlement snapshot of the caller's organization."""

    id: str
    name: str
    subdomain: str
    external_customer_id: Optional[str] = Field(alias="externalCustomerId", default=None)
    external_subscription_id: Optional[str] = Field(alias="externalSubscriptionId", default=None)
    subscription_status: Optional[SubscriptionStatus] = Field(alias="subscriptionStatus", default=None)
    subscription_plan: Optional[str] = Field(alias="subscriptionPlan", default=None)
    is_active: bool = Field(alias="isActive", default=False)
    cancel_at_period_end: bool = Field(alias="cancelAtPeriodEnd", default=False)
    trial_ends_at: Optional[datetime] = Field(alias="trialEndsAt", default=None)
    current_period_end: Optional[datetime] = Field(alias="currentPeriodEnd", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_organization(cls, organization: Organization) -> "OrganizationResponse":
        return cls(
            id=organization.id,
            name=organization.name,
            subdomain=organization.subdomain,
            external_customer_id=organization.external_customer_id,
            external_subscription_id=organization.external_subscription_id,
            subscription_status=organization.subscription_status,
            subscription_plan=organization.subscription_plan,
            is_active=organization.is_active,
            cancel_at_period_end=organization.cancel_at_period_end,
            trial_ends_at=organization.trial_ends_at,
            current_period_end=organization.current_period_end,
        )


class OrganizationEnvelope(BaseModel):
    organization: OrganizationResponse


class OrganizationCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    subdomain: str = Field(min_length=3, max_length=63)
    owner_name: Optional[str] = Field(alias="ownerName", default=None, max_length=200)

    model_config = ConfigDict(populate_by_name=True)
