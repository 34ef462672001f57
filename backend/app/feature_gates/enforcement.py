"""Guards for API handlers that require an active subscription."""
from __future__ import annotations

from typing import Optional

from fastapi import status

from ..entitlements.access import SUBSCRIPTION_SETUP_PATH, has_access
from ..organizations.models import Organization
from .exceptions import FeatureGateError


def require_organization(snapshot: Optional[Organization]) -> Organization:
    if snapshot is None:
        raise FeatureGateError(
            code="organization_required",
            message="Create an organization to continue.",
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"redirect": "/onboarding"},
        )
    return snapshot


def require_access(snapshot: Optional[Organization]) -> Organization:
    """Return ``snapshot`` when it grants access, raise :class:`FeatureGateError` otherwise.

    The decision is delegated to :func:`has_access` so page guards and the edge
    middleware agree on who is let through.
    """

    organization = require_organization(snapshot)
    if not has_access(organization):
        raise FeatureGateError(
            code="subscription_required",
            message="An active subscription is required.",
            detail={
                "redirect": SUBSCRIPTION_SETUP_PATH,
                "subscriptionStatus": (
                    organization.subscription_status.value if organization.subscription_status else None
                ),
            },
        )
    return organization
