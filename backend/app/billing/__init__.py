"""Billing domain: event reconciliation, webhook ingress and hosted sessions."""

from .catalog import ProductCatalog, ProductSource, find_price, trial_days_for_price
from .exceptions import (
    BillingAccountMissing,
    BillingError,
    CustomerProvisioningFailed,
    EntitlementWriteFailed,
    IdempotencyConflict,
    InvalidPlan,
    MalformedEvent,
    PaymentProviderError,
    SignatureVerificationFailed,
    SubscriptionAlreadyActive,
    TenantNotFound,
    WebhookNotConfigured,
)
from .models import (
    BillingEvent,
    BillingEventType,
    CheckoutSession,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    PortalSession,
    Product,
    ProductPrice,
    ReconcileOutcome,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnrecognizedEvent,
    WebhookAction,
    WebhookResult,
    parse_event,
)
from .provisioning import CustomerCreator, CustomerProvisioner, customer_idempotency_key
from .reconciler import grants_access, reconcile, resolve_period_end
from .service import BillingService, PaymentProvider
from .webhooks import EventVerifier, StripeEventVerifier, VerifiedEvent, WebhookProcessor

__all__ = [
    "BillingAccountMissing",
    "BillingError",
    "BillingEvent",
    "BillingEventType",
    "BillingService",
    "CheckoutSession",
    "CustomerCreator",
    "CustomerProvisioner",
    "CustomerProvisioningFailed",
    "EntitlementWriteFailed",
    "EventVerifier",
    "IdempotencyConflict",
    "InvalidPlan",
    "InvoicePaymentFailed",
    "InvoicePaymentSucceeded",
    "MalformedEvent",
    "PaymentProvider",
    "PaymentProviderError",
    "PortalSession",
    "Product",
    "ProductCatalog",
    "ProductPrice",
    "ProductSource",
    "ReconcileOutcome",
    "SignatureVerificationFailed",
    "StripeEventVerifier",
    "SubscriptionAlreadyActive",
    "SubscriptionChanged",
    "SubscriptionDeleted",
    "TenantNotFound",
    "UnrecognizedEvent",
    "VerifiedEvent",
    "WebhookAction",
    "WebhookNotConfigured",
    "WebhookProcessor",
    "WebhookResult",
    "customer_idempotency_key",
    "find_price",
    "grants_access",
    "parse_event",
    "reconcile",
    "resolve_period_end",
    "trial_days_for_price",
]
