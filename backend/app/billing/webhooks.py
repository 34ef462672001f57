"""Webhook ingress: verify, locate the tenant, reconcile, apply, acknowledge."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

import stripe

from ..organizations.models import Organization
from ..organizations.service import EntitlementStore
from .exceptions import (
    EntitlementWriteFailed,
    MalformedEvent,
    SignatureVerificationFailed,
    TenantNotFound,
    WebhookNotConfigured,
)
from .models import (
    BillingEvent,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnrecognizedEvent,
    WebhookAction,
    WebhookResult,
    parse_event,
)
from .reconciler import SUBSCRIPTION_GUARD_FIELDS, reconcile

logger = logging.getLogger("billing.webhooks")


@dataclass(frozen=True)
class VerifiedEvent:
    """Envelope of a delivery whose signature has been checked."""

    id: str
    type: str
    data_object: Mapping[str, Any] = field(default_factory=dict)


class EventVerifier(Protocol):
    def verify(self, payload: bytes, signature: Optional[str]) -> VerifiedEvent:
        ...


class StripeEventVerifier:
    """Checks the ``Stripe-Signature`` header against the endpoint secret."""

    tolerance = 300

    def __init__(self, webhook_secret: str) -> None:
        self._secret = webhook_secret

    def verify(self, payload: bytes, signature: Optional[str]) -> VerifiedEvent:
        if not self._secret:
            raise WebhookNotConfigured()
        if not signature:
            raise SignatureVerificationFailed(message="Missing signature")
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(body, signature, self._secret, self.tolerance)
        except stripe.SignatureVerificationError as exc:
            raise SignatureVerificationFailed() from exc
        except UnicodeDecodeError as exc:
            raise MalformedEvent(message="Invalid payload") from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise MalformedEvent(message="Invalid payload") from exc
        if not isinstance(event, dict):
            raise MalformedEvent(message="Invalid payload")

        data = event.get("data") or {}
        data_object = data.get("object") if isinstance(data, dict) else None
        if not isinstance(data_object, dict):
            raise MalformedEvent(message="Event has no data object")
        return VerifiedEvent(id=str(event.get("id", "")), type=str(event.get("type", "")), data_object=data_object)


def _guard_values(snapshot: Organization) -> Dict[str, Any]:
    return {name: getattr(snapshot, name) for name in SUBSCRIPTION_GUARD_FIELDS}


@dataclass
class WebhookProcessor:
    """Turns verified processor events into entitlement writes.

    The snapshot used for the decision is re-checked at write time: the update
    only lands while the guard fields still hold the values that were read.
    On a miss the row is read again and the event reconciled against the
    fresher state, up to ``max_attempts`` times.
    """

    repository: EntitlementStore
    verifier: EventVerifier
    max_attempts: int = 3

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def process(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        try:
            envelope = self.verifier.verify(payload, signature)
        except SignatureVerificationFailed as exc:
            logger.error("Webhook signature verification failed: %s", exc.message)
            raise
        except WebhookNotConfigured:
            logger.error("Webhook secret is not configured")
            raise

        try:
            event = parse_event(envelope.type, envelope.data_object)
        except MalformedEvent:
            logger.error(
                "Malformed %s payload for event %s",
                envelope.type,
                envelope.id,
                extra={"event_id": envelope.id, "event_type": envelope.type},
            )
            raise
        return await self.handle(envelope, event)

    async def handle(self, envelope: VerifiedEvent, event: BillingEvent) -> WebhookResult:
        context = {"event_id": envelope.id, "event_type": envelope.type}

        if isinstance(event, UnrecognizedEvent):
            logger.info("Unhandled event type %s", envelope.type, extra={**context, "action": "ignored"})
            return self._result(envelope, WebhookAction.IGNORED)

        if isinstance(event, (InvoicePaymentSucceeded, InvoicePaymentFailed)) and not event.subscription_id:
            logger.info(
                "Invoice %s has no subscription reference",
                event.invoice_id,
                extra={**context, "action": "ignored"},
            )
            return self._result(envelope, WebhookAction.IGNORED)

        snapshot = await self._locate(event, context)

        for attempt in range(1, self.max_attempts + 1):
            outcome = reconcile(event, snapshot)
            if not outcome.changed:
                logger.info(
                    "No entitlement change for organization %s",
                    snapshot.id,
                    extra={**context, "organization_id": snapshot.id, "action": "noop"},
                )
                return self._result(envelope, WebhookAction.NOOP, snapshot.id)

            try:
                updated = await self.repository.update(
                    snapshot.id,
                    outcome.next_fields,
                    expected=_guard_values(snapshot),
                )
            except Exception as exc:
                logger.exception(
                    "Entitlement update failed for organization %s",
                    snapshot.id,
                    extra={**context, "organization_id": snapshot.id},
                )
                raise EntitlementWriteFailed() from exc

            if updated is not None:
                fields = sorted(outcome.next_fields)
                logger.info(
                    "Applied %s to organization %s",
                    envelope.type,
                    snapshot.id,
                    extra={**context, "organization_id": snapshot.id, "action": "applied", "fields": fields},
                )
                return self._result(envelope, WebhookAction.APPLIED, snapshot.id, fields)

            logger.warning(
                "Organization %s changed concurrently, retrying (attempt %s of %s)",
                snapshot.id,
                attempt,
                self.max_attempts,
                extra={**context, "organization_id": snapshot.id},
            )
            refreshed = await self.repository.get(snapshot.id)
            if refreshed is None:
                logger.error("Organization %s disappeared during update", snapshot.id, extra=context)
                raise TenantNotFound()
            snapshot = refreshed

        logger.error(
            "Gave up applying %s to organization %s after %s attempts",
            envelope.type,
            snapshot.id,
            self.max_attempts,
            extra={**context, "organization_id": snapshot.id},
        )
        raise EntitlementWriteFailed(detail={"attempts": self.max_attempts})

    async def _locate(self, event: BillingEvent, context: Mapping[str, Any]) -> Organization:
        snapshot: Optional[Organization]
        if isinstance(event, (SubscriptionChanged, SubscriptionDeleted)):
            reference = {"customer_id": event.customer_id}
            snapshot = await self.repository.get_by_customer_id(event.customer_id)
        else:
            reference = {"subscription_id": event.subscription_id}
            snapshot = await self.repository.get_by_subscription_id(event.subscription_id)

        if snapshot is None:
            logger.error("Organization not found for %s", reference, extra={**context, **reference})
            raise TenantNotFound()
        return snapshot

    @staticmethod
    def _result(
        envelope: VerifiedEvent,
        action: WebhookAction,
        organization_id: Optional[str] = None,
        fields: Optional[list] = None,
    ) -> WebhookResult:
        return WebhookResult(
            event_id=envelope.id,
            event_type=envelope.type,
            action=action,
            organization_id=organization_id,
            fields=fields or [],
        )


__all__ = ["EventVerifier", "StripeEventVerifier", "VerifiedEvent", "WebhookProcessor"]
