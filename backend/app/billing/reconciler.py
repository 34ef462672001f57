"""Pure translation of processor billing events into organization deltas.

Every handler receives the event and the organization snapshot read at apply
time and returns a :class:`ReconcileOutcome`. Handlers never touch storage.
Writing a delta only when a tracked field differs from the snapshot turns
redelivered and redundant events into no-ops.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Type, get_args

from ..entitlements.models import ACCESS_GRANTING_STATUSES, BillingInterval, SubscriptionStatus
from ..organizations.models import Organization
from .models import (
    BillingEvent,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    ReconcileOutcome,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnrecognizedEvent,
)

# Fields compared against the snapshot before a subscription change is written.
SUBSCRIPTION_GUARD_FIELDS = (
    "subscription_status",
    "external_subscription_id",
    "is_active",
    "cancel_at_period_end",
)


def grants_access(status: Optional[SubscriptionStatus], subscription_id: Optional[str]) -> bool:
    """Return whether a status/subscription pair entitles the tenant to access."""

    if status not in ACCESS_GRANTING_STATUSES:
        return False
    if status == SubscriptionStatus.TRIALING and not subscription_id:
        return False
    return True


def resolve_period_end(event: SubscriptionChanged) -> Optional[datetime]:
    """Pick the period end, preferring root level over line item over trial end."""

    if event.current_period_end is not None:
        return event.current_period_end
    if event.item_period_end is not None:
        return event.item_period_end
    if event.status == SubscriptionStatus.TRIALING:
        return event.trial_end
    return None


def _differs(snapshot: Organization, fields: Mapping[str, Any]) -> bool:
    return any(getattr(snapshot, name) != fields[name] for name in SUBSCRIPTION_GUARD_FIELDS)


def _on_subscription_changed(event: SubscriptionChanged, snapshot: Organization) -> ReconcileOutcome:
    fields: Dict[str, Any] = {
        "subscription_status": event.status,
        "external_subscription_id": event.subscription_id,
        "is_active": grants_access(event.status, event.subscription_id),
        "cancel_at_period_end": event.cancel_at_period_end,
    }
    if not _differs(snapshot, fields):
        return ReconcileOutcome.unchanged()

    fields.update(
        {
            "current_period_end": resolve_period_end(event),
            "trial_ends_at": event.trial_end,
            "subscription_plan": BillingInterval.from_recurring_interval(event.recurring_interval).value,
        }
    )
    return ReconcileOutcome(changed=True, next_fields=fields)


def _on_subscription_deleted(event: SubscriptionDeleted, snapshot: Organization) -> ReconcileOutcome:
    if snapshot.subscription_status == SubscriptionStatus.CANCELED:
        return ReconcileOutcome.unchanged()
    return ReconcileOutcome(
        changed=True,
        next_fields={
            "subscription_status": SubscriptionStatus.CANCELED,
            "is_active": False,
            "current_period_end": None,
            "cancel_at_period_end": False,
        },
    )


def _on_payment_succeeded(event: InvoicePaymentSucceeded, snapshot: Organization) -> ReconcileOutcome:
    if not event.subscription_id:
        return ReconcileOutcome.unchanged()
    if snapshot.subscription_status == SubscriptionStatus.ACTIVE and snapshot.is_active:
        return ReconcileOutcome.unchanged()
    return ReconcileOutcome(
        changed=True,
        next_fields={"subscription_status": SubscriptionStatus.ACTIVE, "is_active": True},
    )


def _on_payment_failed(event: InvoicePaymentFailed, snapshot: Organization) -> ReconcileOutcome:
    if not event.subscription_id:
        return ReconcileOutcome.unchanged()
    if snapshot.subscription_status == SubscriptionStatus.PAST_DUE:
        return ReconcileOutcome.unchanged()
    # is_active is left alone: past-due tenants keep access during payment retries.
    return ReconcileOutcome(
        changed=True,
        next_fields={"subscription_status": SubscriptionStatus.PAST_DUE},
    )


def _on_unrecognized(event: UnrecognizedEvent, snapshot: Organization) -> ReconcileOutcome:
    return ReconcileOutcome.unchanged()


_HANDLERS: Dict[Type[Any], Callable[[Any, Organization], ReconcileOutcome]] = {
    SubscriptionChanged: _on_subscription_changed,
    SubscriptionDeleted: _on_subscription_deleted,
    InvoicePaymentSucceeded: _on_payment_succeeded,
    InvoicePaymentFailed: _on_payment_failed,
    UnrecognizedEvent: _on_unrecognized,
}

_missing = set(get_args(BillingEvent)) - set(_HANDLERS)
if _missing:  # pragma: no cover - import-time exhaustiveness check
    raise RuntimeError(f"No reconciler handler for {sorted(cls.__name__ for cls in _missing)}")


def reconcile(event: BillingEvent, snapshot: Organization) -> ReconcileOutcome:
    """Compute the organization delta ``event`` implies against ``snapshot``."""

    handler = _HANDLERS[type(event)]
    return handler(event, snapshot)


__all__ = [
    "SUBSCRIPTION_GUARD_FIELDS",
    "grants_access",
    "reconcile",
    "resolve_period_end",
]
