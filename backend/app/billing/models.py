"""Domain models for the billing system."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..entitlements.models import SubscriptionStatus
from .exceptions import MalformedEvent


class BillingEventType(str, Enum):
    """Processor webhook event types that the application reacts to."""

    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class SubscriptionChanged(BaseModel):
    """A subscription was created or updated at the processor."""

    kind: Literal["subscription_changed"] = "subscription_changed"
    event_type: BillingEventType
    customer_id: str
    status: SubscriptionStatus
    subscription_id: Optional[str] = None
    cancel_at_period_end: bool = False
    current_period_end: Optional[datetime] = None
    item_period_end: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    recurring_interval: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class SubscriptionDeleted(BaseModel):
    """A subscription ended at the processor."""

    kind: Literal["subscription_deleted"] = "subscription_deleted"
    subscription_id: str
    customer_id: str

    model_config = ConfigDict(frozen=True)


class InvoicePaymentSucceeded(BaseModel):
    kind: Literal["invoice_payment_succeeded"] = "invoice_payment_succeeded"
    invoice_id: str
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class InvoicePaymentFailed(BaseModel):
    kind: Literal["invoice_payment_failed"] = "invoice_payment_failed"
    invoice_id: str
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class UnrecognizedEvent(BaseModel):
    """Any event type the reconciler does not act on."""

    kind: Literal["unrecognized"] = "unrecognized"
    event_type: str

    model_config = ConfigDict(frozen=True)


BillingEvent = Union[
    SubscriptionChanged,
    SubscriptionDeleted,
    InvoicePaymentSucceeded,
    InvoicePaymentFailed,
    UnrecognizedEvent,
]


class ReconcileOutcome(BaseModel):
    """Delta computed by the reconciler for a single event."""

    changed: bool
    next_fields: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def unchanged(cls) -> "ReconcileOutcome":
        return cls(changed=False)


class WebhookAction(str, Enum):
    APPLIED = "applied"
    NOOP = "noop"
    IGNORED = "ignored"


class WebhookResult(BaseModel):
    """Outcome of processing one verified webhook delivery."""

    event_id: str
    event_type: str
    action: WebhookAction
    organization_id: Optional[str] = None
    fields: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class CheckoutSession(BaseModel):
    session_id: str
    url: str

    model_config = ConfigDict(frozen=True)


class PortalSession(BaseModel):
    url: str

    model_config = ConfigDict(frozen=True)


class ProductPrice(BaseModel):
    """Active price attached to a processor product."""

    id: str
    product_id: str
    unit_amount: Optional[int] = None
    currency: str = "usd"
    interval: Optional[Literal["day", "week", "month", "year"]] = None
    interval_count: Optional[int] = None
    trial_period_days: Optional[int] = None
    type: Literal["one_time", "recurring"] = "recurring"
    active: bool = True

    model_config = ConfigDict(frozen=True)

    @property
    def is_recurring(self) -> bool:
        return self.type == "recurring" and self.interval is not None


class Product(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    prices: List[ProductPrice] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


def _timestamp(value: object) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    raise MalformedEvent(message=f"Unsupported timestamp value {value!r}")


def _reference(value: object) -> Optional[str]:
    """Return an object id whether the processor sent it expanded or as a string."""

    if value is None or value == "":
        return None
    if isinstance(value, Mapping):
        value = value.get("id")
    return str(value) if value else None


def _first_item(data: Mapping[str, Any]) -> Mapping[str, Any]:
    items = data.get("items")
    if isinstance(items, Mapping):
        entries = items.get("data") or []
        if entries and isinstance(entries[0], Mapping):
            return entries[0]
    return {}


def _invoice_subscription(data: Mapping[str, Any]) -> Optional[str]:
    direct = _reference(data.get("subscription"))
    if direct:
        return direct
    parent = data.get("parent")
    if isinstance(parent, Mapping):
        details = parent.get("subscription_details")
        if isinstance(details, Mapping):
            return _reference(details.get("subscription"))
    return None


def parse_event(event_type: str, data: Mapping[str, Any]) -> BillingEvent:
    """Map a processor event's ``data.object`` onto the matching event variant."""

    try:
        known = BillingEventType(event_type)
    except ValueError:
        return UnrecognizedEvent(event_type=event_type)

    try:
        if known in (BillingEventType.SUBSCRIPTION_CREATED, BillingEventType.SUBSCRIPTION_UPDATED):
            item = _first_item(data)
            price = item.get("price") if isinstance(item.get("price"), Mapping) else {}
            recurring = price.get("recurring") if isinstance(price.get("recurring"), Mapping) else {}
            return SubscriptionChanged(
                event_type=known,
                subscription_id=data.get("id"),
                customer_id=_reference(data.get("customer")),
                status=data.get("status"),
                cancel_at_period_end=bool(data.get("cancel_at_period_end", False)),
                current_period_end=_timestamp(data.get("current_period_end")),
                item_period_end=_timestamp(item.get("current_period_end")),
                trial_end=_timestamp(data.get("trial_end")),
                recurring_interval=recurring.get("interval"),
            )
        if known == BillingEventType.SUBSCRIPTION_DELETED:
            return SubscriptionDeleted(
                subscription_id=data.get("id"),
                customer_id=_reference(data.get("customer")),
            )
        if known == BillingEventType.INVOICE_PAYMENT_SUCCEEDED:
            return InvoicePaymentSucceeded(
                invoice_id=data.get("id"),
                subscription_id=_invoice_subscription(data),
                customer_id=_reference(data.get("customer")),
            )
        return InvoicePaymentFailed(
            invoice_id=data.get("id"),
            subscription_id=_invoice_subscription(data),
            customer_id=_reference(data.get("customer")),
        )
    except ValidationError as exc:
        raise MalformedEvent(
            message=f"Malformed {event_type} payload",
            detail={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc
