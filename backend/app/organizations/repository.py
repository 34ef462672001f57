"""Persistence layer for organizations and their billing entitlement fields."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import asyncpg

from ..entitlements.models import SubscriptionStatus
from .models import BILLING_FIELDS, Organization, OrganizationAlreadyExists, SubdomainTaken

# Entitlement attribute -> column name. Only these columns go through `update`;
# identity columns are written by `create` and `set_customer_id_if_absent`.
_COLUMNS: Dict[str, str] = {
    "external_subscription_id": "stripe_subscription_id",
    "subscription_status": "subscription_status",
    "is_active": "is_active",
    "cancel_at_period_end": "cancel_at_period_end",
    "trial_ends_at": "trial_ends_at",
    "current_period_end": "current_period_end",
    "subscription_plan": "subscription_plan",
}


def _row_to_organization(row: Mapping[str, Any]) -> Organization:
    return Organization(
        id=str(row["id"]),
        name=row["name"],
        subdomain=row["subdomain"],
        external_customer_id=row.get("stripe_customer_id"),
        external_subscription_id=row.get("stripe_subscription_id"),
        subscription_status=SubscriptionStatus.parse(row.get("subscription_status")),
        is_active=bool(row.get("is_active")),
        cancel_at_period_end=bool(row.get("cancel_at_period_end")),
        trial_ends_at=row.get("trial_ends_at"),
        current_period_end=row.get("current_period_end"),
        subscription_plan=row.get("subscription_plan"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def build_update(
    organization_id: str,
    fields: Mapping[str, Any],
    expected: Optional[Mapping[str, Any]] = None,
) -> Tuple[str, List[Any]]:
    """Render a single-row ``UPDATE`` of entitlement columns with an optional compare-and-swap guard."""

    if not fields:
        raise ValueError("fields must not be empty")

    rejected = (set(fields) | set(expected or {})) - BILLING_FIELDS
    if rejected:
        raise ValueError(f"Only entitlement fields can be updated, got: {sorted(rejected)}")

    params: List[Any] = [organization_id]
    assignments = []
    for name, value in fields.items():
        params.append(_db_value(value))
        assignments.append(f"{_COLUMNS[name]} = ${len(params)}")

    conditions = ["id = $1"]
    for name, value in (expected or {}).items():
        params.append(_db_value(value))
        conditions.append(f"{_COLUMNS[name]} IS NOT DISTINCT FROM ${len(params)}")

    sql = (
        "UPDATE organizations SET "
        + ", ".join(assignments)
        + ", updated_at = NOW() WHERE "
        + " AND ".join(conditions)
        + " RETURNING *"
    )
    return sql, params


class PostgresOrganizationRepository:
    """Concrete repository reading and writing the ``organizations`` table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def _fetch_one(self, sql: str, *args: Any) -> Optional[Organization]:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(sql, *args)
        return _row_to_organization(row) if row else None

    async def get(self, organization_id: str) -> Optional[Organization]:
        return await self._fetch_one(
            "SELECT * FROM organizations WHERE id = $1 LIMIT 1",
            organization_id,
        )

    async def get_by_customer_id(self, customer_id: str) -> Optional[Organization]:
        return await self._fetch_one(
            "SELECT * FROM organizations WHERE stripe_customer_id = $1 LIMIT 1",
            customer_id,
        )

    async def get_by_subscription_id(self, subscription_id: str) -> Optional[Organization]:
        return await self._fetch_one(
            "SELECT * FROM organizations WHERE stripe_subscription_id = $1 LIMIT 1",
            subscription_id,
        )

    async def get_for_user(self, user_id: str) -> Optional[Organization]:
        return await self._fetch_one(
            """
            SELECT org.*
            FROM users AS u
            JOIN organizations AS org ON org.id = u.organization_id
            WHERE u.id = $1
            LIMIT 1
            """,
            user_id,
        )

    async def update(
        self,
        organization_id: str,
        fields: Mapping[str, Any],
        *,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Organization]:
        sql, params = build_update(organization_id, fields, expected)
        return await self._fetch_one(sql, *params)

    async def set_customer_id_if_absent(self, organization_id: str, customer_id: str) -> Optional[Organization]:
        return await self._fetch_one(
            """
            UPDATE organizations
            SET stripe_customer_id = $2, updated_at = NOW()
            WHERE id = $1 AND stripe_customer_id IS NULL
            RETURNING *
            """,
            organization_id,
            customer_id,
        )

    async def is_subdomain_available(self, subdomain: str) -> bool:
        async with self._pool.acquire() as connection:
            taken = await connection.fetchval(
                "SELECT EXISTS (SELECT 1 FROM organizations WHERE subdomain = $1)",
                subdomain,
            )
        return not taken

    async def create(
        self,
        *,
        name: str,
        subdomain: str,
        owner_user_id: str,
        owner_email: str,
        owner_name: Optional[str] = None,
    ) -> Organization:
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                try:
                    row = await connection.fetchrow(
                        """
                        INSERT INTO organizations (name, subdomain, is_active, cancel_at_period_end)
                        VALUES ($1, $2, FALSE, FALSE)
                        RETURNING *
                        """,
                        name,
                        subdomain,
                    )
                except asyncpg.UniqueViolationError as exc:
                    raise SubdomainTaken(subdomain) from exc
                try:
                    await connection.execute(
                        """
                        INSERT INTO users (id, organization_id, email, full_name, role, is_active)
                        VALUES ($1, $2, $3, $4, 'owner', TRUE)
                        """,
                        owner_user_id,
                        row["id"],
                        owner_email,
                        owner_name,
                    )
                except asyncpg.UniqueViolationError as exc:
                    raise OrganizationAlreadyExists(owner_user_id) from exc
        return _row_to_organization(row)


__all__ = ["PostgresOrganizationRepository", "build_update"]
