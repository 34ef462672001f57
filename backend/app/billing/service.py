"""Core service issuing hosted checkout and billing portal sessions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from ..auth.identity import Identity
from ..entitlements.models import SubscriptionStatus
from ..organizations.models import Organization
from ..organizations.service import OrganizationRepository
from .catalog import ProductCatalog, ProductSource, find_price, trial_days_for_price
from .exceptions import (
    BillingAccountMissing,
    InvalidPlan,
    SubscriptionAlreadyActive,
    TenantNotFound,
)
from .models import CheckoutSession, PortalSession
from .provisioning import CustomerCreator, CustomerProvisioner

logger = logging.getLogger("billing.service")


class PaymentProvider(CustomerCreator, ProductSource, Protocol):
    """External payment processor integration."""

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        trial_period_days: Optional[int],
        metadata: Dict[str, str],
        subscription_metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a hosted subscription checkout session."""

    async def create_billing_portal_session(self, *, customer_id: str, return_url: str) -> PortalSession:
        """Create a provider managed billing portal session."""


@dataclass
class BillingService:
    """Resolves the caller's organization and hands off to the processor."""

    organizations: OrganizationRepository
    provider: PaymentProvider
    provisioner: CustomerProvisioner
    catalog: ProductCatalog
    success_url: str
    cancel_url: str
    portal_return_url: str
    default_trial_days: int = 14

    async def _organization_for(self, identity: Identity) -> Organization:
        organization = await self.organizations.get_for_user(identity.user_id)
        if organization is None:
            raise TenantNotFound()
        return organization

    async def create_checkout_session(self, identity: Identity, price_id: str) -> CheckoutSession:
        if not price_id or not price_id.strip():
            raise InvalidPlan(message="Price ID is required")
        price_id = price_id.strip()

        organization = await self._organization_for(identity)
        if organization.subscription_status == SubscriptionStatus.ACTIVE:
            raise SubscriptionAlreadyActive()

        products = await self.catalog.list_products()
        price = find_price(products, price_id)
        if price is None or not price.active or not price.is_recurring:
            raise InvalidPlan(detail={"priceId": price_id})

        customer_id = await self.provisioner.ensure_customer(organization)
        trial_days = trial_days_for_price(products, price_id, self.default_trial_days)

        session = await self.provider.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            trial_period_days=trial_days or None,
            metadata={"organizationId": organization.id, "userId": identity.user_id},
            subscription_metadata={"organizationId": organization.id},
            success_url=self.success_url,
            cancel_url=self.cancel_url,
        )
        logger.info(
            "Created checkout session %s for organization %s",
            session.session_id,
            organization.id,
            extra={"organization_id": organization.id, "customer_id": customer_id},
        )
        return session

    async def create_portal_session(self, identity: Identity) -> PortalSession:
        organization = await self._organization_for(identity)
        if not organization.external_customer_id:
            raise BillingAccountMissing()

        session = await self.provider.create_billing_portal_session(
            customer_id=organization.external_customer_id,
            return_url=self.portal_return_url,
        )
        logger.info(
            "Created billing portal session for organization %s",
            organization.id,
            extra={"organization_id": organization.id, "customer_id": organization.external_customer_id},
        )
        return session


__all__ = ["BillingService", "PaymentProvider"]
