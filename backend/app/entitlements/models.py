"""Domain models shared by the entitlement and billing packages."""
from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Optional


class SubscriptionStatus(str, Enum):
    """Subscription states reported by the payment processor."""

    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    UNPAID = "unpaid"
    PAUSED = "paused"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SubscriptionStatus"]:
        """Return the enum member for ``value`` or ``None`` for empty values."""

        if value is None or value == "":
            return None
        return cls(value)


# Past-due tenants keep access while the processor retries the payment.
ACCESS_GRANTING_STATUSES: FrozenSet[SubscriptionStatus] = frozenset(
    {
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.TRIALING,
        SubscriptionStatus.PAST_DUE,
    }
)


class BillingInterval(str, Enum):
    """Informational billing interval label stored on the organization."""

    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def from_recurring_interval(cls, interval: Optional[str]) -> "BillingInterval":
        if interval == "year":
            return cls.YEARLY
        return cls.MONTHLY
