"""Subscription states and the access decisions derived from them."""

from .access import RouteClass, classify_route, has_access, needs_snapshot, resolve_redirect
from .cache import Cache, TTLCache
from .models import ACCESS_GRANTING_STATUSES, BillingInterval, SubscriptionStatus

__all__ = [
    "ACCESS_GRANTING_STATUSES",
    "BillingInterval",
    "Cache",
    "RouteClass",
    "SubscriptionStatus",
    "TTLCache",
    "classify_route",
    "has_access",
    "needs_snapshot",
    "resolve_redirect",
]
