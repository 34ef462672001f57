"""Service layer orchestrating organization lookups and tenant provisioning."""
from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Tuple

from ..auth.identity import Identity
from .models import Organization, OrganizationAlreadyExists, SubdomainTaken

logger = logging.getLogger("organizations")

_SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$")
FALLBACK_SUBDOMAIN = "tint-shop"
MAX_SUGGESTION_ATTEMPTS = 100
RESERVED_SUBDOMAINS = frozenset(
    {
        "admin",
        "api",
        "app",
        "auth",
        "billing",
        "blog",
        "dashboard",
        "help",
        "mail",
        "static",
        "status",
        "support",
        "www",
    }
)


class OrganizationRepository(Protocol):
    """Reads of the organization row plus the writes business logic may perform."""

    async def get(self, organization_id: str) -> Optional[Organization]:
        ...

    async def get_by_customer_id(self, customer_id: str) -> Optional[Organization]:
        ...

    async def get_by_subscription_id(self, subscription_id: str) -> Optional[Organization]:
        ...

    async def get_for_user(self, user_id: str) -> Optional[Organization]:
        ...

    async def set_customer_id_if_absent(self, organization_id: str, customer_id: str) -> Optional[Organization]:
        ...

    async def is_subdomain_available(self, subdomain: str) -> bool:
        ...

    async def create(
        self,
        *,
        name: str,
        subdomain: str,
        owner_user_id: str,
        owner_email: str,
        owner_name: Optional[str] = None,
    ) -> Organization:
        ...


class EntitlementStore(OrganizationRepository, Protocol):
    """Repository as seen by webhook ingress, the one writer of entitlement fields."""

    async def update(
        self,
        organization_id: str,
        fields: Mapping[str, Any],
        *,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Organization]:
        """Write entitlement fields, only while ``expected`` still matches; ``None`` on a miss."""


def normalize_subdomain(value: str) -> str:
    """Lower-case and validate a requested subdomain."""

    candidate = value.strip().lower()
    if not _SUBDOMAIN_PATTERN.match(candidate):
        raise ValueError("Subdomain must be 3-63 characters of letters, digits or hyphens")
    if candidate in RESERVED_SUBDOMAINS:
        raise ValueError("Subdomain is reserved and cannot be used")
    return candidate


def slugify(name: str) -> str:
    """Derive a subdomain candidate from an organization name."""

    decomposed = unicodedata.normalize("NFD", name.strip().lower())
    slug = "".join(char for char in decomposed if not unicodedata.combining(char))
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    if len(slug) < 3:
        return FALLBACK_SUBDOMAIN
    if len(slug) > 30:
        slug = slug[:30].rstrip("-")
    return slug


@dataclass
class OrganizationService:
    """Reads the caller's organization and provisions new tenants."""

    repository: OrganizationRepository

    async def get_for_identity(self, identity: Identity) -> Optional[Organization]:
        return await self.repository.get_for_user(identity.user_id)

    async def create_for_identity(
        self,
        identity: Identity,
        *,
        name: str,
        subdomain: str,
        owner_name: Optional[str] = None,
    ) -> Organization:
        """Create a tenant owned by ``identity`` with no billing state yet."""

        if not name.strip():
            raise ValueError("Organization name is required")
        normalized = normalize_subdomain(subdomain)

        existing = await self.repository.get_for_user(identity.user_id)
        if existing is not None:
            raise OrganizationAlreadyExists(identity.user_id)
        if not await self.repository.is_subdomain_available(normalized):
            raise SubdomainTaken(normalized)

        organization = await self.repository.create(
            name=name.strip(),
            subdomain=normalized,
            owner_user_id=identity.user_id,
            owner_email=identity.email or "",
            owner_name=owner_name,
        )
        logger.info(
            "Created organization %s for user %s",
            organization.id,
            identity.user_id,
            extra={"organization_id": organization.id, "subdomain": normalized},
        )
        return organization

    async def suggest_subdomain(self, name: str) -> Tuple[str, bool]:
        """Return the first free subdomain derived from ``name`` and whether a suffix was needed."""

        if not name or not name.strip():
            raise ValueError("Organization name is required")
        base = slugify(name)
        candidate = base
        for attempt in range(1, MAX_SUGGESTION_ATTEMPTS + 1):
            if attempt > 1:
                candidate = f"{base}-{attempt}"
            if candidate in RESERVED_SUBDOMAINS:
                continue
            if await self.repository.is_subdomain_available(candidate):
                return candidate, candidate != base
        raise SubdomainTaken(base)
