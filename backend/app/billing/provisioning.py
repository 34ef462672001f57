"""Ensure every organization is linked to exactly one processor customer."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from ..organizations.models import Organization
from ..organizations.service import OrganizationRepository
from .exceptions import CustomerProvisioningFailed, IdempotencyConflict, PaymentProviderError

logger = logging.getLogger("billing.provisioning")


class CustomerCreator(Protocol):
    async def create_customer(
        self,
        *,
        name: str,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> str:
        """Create a processor customer and return its id."""


def customer_idempotency_key(organization_id: str) -> str:
    return f"customer_{organization_id}"


@dataclass
class CustomerProvisioner:
    """Links organizations to processor customers.

    Every parameter of the create call is derived from the organization, so
    concurrent callers for one tenant send identical requests under one
    idempotency key and the processor replays a single customer to all of
    them. While the first request is still in flight the processor answers
    the others with an idempotency conflict; those callers wait
    ``retry_delay`` seconds, look for the stored id and otherwise replay the
    request, up to ``max_attempts`` times.
    """

    repository: OrganizationRepository
    provider: CustomerCreator
    max_attempts: int = 5
    retry_delay: float = 0.25

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def ensure_customer(self, organization: Organization) -> str:
        """Return the organization's processor customer id, creating it on first use."""

        if organization.external_customer_id:
            return organization.external_customer_id

        key = customer_idempotency_key(organization.id)
        context = {"organization_id": organization.id}

        for attempt in range(1, self.max_attempts + 1):
            try:
                customer_id = await self.provider.create_customer(
                    name=organization.name,
                    metadata={"organizationId": organization.id},
                    idempotency_key=key,
                )
            except IdempotencyConflict:
                logger.warning(
                    "Idempotency conflict creating customer for organization %s (attempt %s of %s)",
                    organization.id,
                    attempt,
                    self.max_attempts,
                    extra=context,
                )
                await asyncio.sleep(self.retry_delay)
                stored = await self._stored_customer_id(organization.id)
                if stored:
                    return stored
                continue
            except PaymentProviderError as exc:
                logger.error(
                    "Customer creation failed for organization %s: %s",
                    organization.id,
                    exc.message,
                    extra=context,
                )
                raise CustomerProvisioningFailed() from exc
            return await self._persist(organization.id, customer_id)

        logger.error(
            "Gave up creating customer for organization %s after %s attempts",
            organization.id,
            self.max_attempts,
            extra=context,
        )
        raise CustomerProvisioningFailed(detail={"attempts": self.max_attempts})

    async def _persist(self, organization_id: str, customer_id: str) -> str:
        context = {"organization_id": organization_id, "customer_id": customer_id}
        stored = await self.repository.set_customer_id_if_absent(organization_id, customer_id)
        if stored is not None and stored.external_customer_id:
            logger.info("Linked customer %s to organization %s", customer_id, organization_id, extra=context)
            return stored.external_customer_id

        current = await self._stored_customer_id(organization_id)
        if current is None:
            logger.error("Organization %s disappeared while linking customer", organization_id, extra=context)
            raise CustomerProvisioningFailed()
        if current != customer_id:
            logger.warning(
                "Organization %s already has customer %s, discarding %s",
                organization_id,
                current,
                customer_id,
                extra=context,
            )
        return current

    async def _stored_customer_id(self, organization_id: str) -> Optional[str]:
        current = await self.repository.get(organization_id)
        return current.external_customer_id if current is not None else None


__all__ = ["CustomerCreator", "CustomerProvisioner", "customer_idempotency_key"]
