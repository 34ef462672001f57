"""Errors raised by the billing subsystem."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


@dataclass
class BillingError(Exception):
    """Base error carrying the HTTP status callers should surface."""

    message: str
    code: str = "billing_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.detail:
            body.update(self.detail)
        return body

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=self.payload)


@dataclass
class WebhookNotConfigured(BillingError):
    message: str = "Webhook not configured"
    code: str = "webhook_not_configured"


@dataclass
class SignatureVerificationFailed(BillingError):
    message: str = "Invalid signature"
    code: str = "invalid_signature"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class MalformedEvent(BillingError):
    message: str = "Malformed event payload"
    code: str = "malformed_event"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class TenantNotFound(BillingError):
    message: str = "Organization not found"
    code: str = "organization_not_found"
    status_code: int = status.HTTP_404_NOT_FOUND


@dataclass
class EntitlementWriteFailed(BillingError):
    message: str = "Database update failed"
    code: str = "entitlement_write_failed"


@dataclass
class SubscriptionAlreadyActive(BillingError):
    message: str = "Organization already has an active subscription"
    code: str = "subscription_active"
    status_code: int = status.HTTP_409_CONFLICT


@dataclass
class BillingAccountMissing(BillingError):
    message: str = "No billing account found"
    code: str = "billing_account_missing"
    status_code: int = status.HTTP_404_NOT_FOUND


@dataclass
class CustomerProvisioningFailed(BillingError):
    message: str = "Failed to create customer"
    code: str = "customer_provisioning_failed"


@dataclass
class InvalidPlan(BillingError):
    message: str = "Invalid plan specified"
    code: str = "invalid_plan"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class PaymentProviderError(BillingError):
    message: str = "Payment provider request failed"
    code: str = "payment_provider_error"
    status_code: int = status.HTTP_502_BAD_GATEWAY


@dataclass
class IdempotencyConflict(Exception):
    """The processor already saw the idempotency key with different parameters."""

    idempotency_key: str
    reason: str = field(default="idempotency key reused")

    def __post_init__(self) -> None:
        super().__init__(f"{self.reason}: {self.idempotency_key}")
