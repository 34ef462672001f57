"""Application wiring for the billing and organization services."""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from ...app_context import get_pool
from ...config import AppConfig, load_config
from ..billing import (
    BillingService,
    CustomerProvisioner,
    ProductCatalog,
    StripeEventVerifier,
    WebhookProcessor,
)
from ..billing.stripe_provider import StripePaymentProvider
from ..entitlements.cache import TTLCache
from ..organizations.repository import PostgresOrganizationRepository
from ..organizations.service import OrganizationService


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_organization_repository() -> PostgresOrganizationRepository:
    return PostgresOrganizationRepository(get_pool())


@lru_cache(maxsize=1)
def get_payment_provider() -> StripePaymentProvider:
    return StripePaymentProvider(get_config().stripe_secret_key)


@lru_cache(maxsize=1)
def get_product_catalog() -> ProductCatalog:
    ttl = timedelta(seconds=get_config().product_cache_ttl_seconds)
    return ProductCatalog(provider=get_payment_provider(), cache=TTLCache(ttl))


@lru_cache(maxsize=1)
def get_billing_service() -> BillingService:
    config = get_config()
    repository = get_organization_repository()
    provider = get_payment_provider()
    return BillingService(
        organizations=repository,
        provider=provider,
        provisioner=CustomerProvisioner(repository=repository, provider=provider),
        catalog=get_product_catalog(),
        success_url=config.checkout_success_url,
        cancel_url=config.checkout_cancel_url,
        portal_return_url=config.portal_return_url,
        default_trial_days=config.default_trial_days,
    )


@lru_cache(maxsize=1)
def get_webhook_processor() -> WebhookProcessor:
    return WebhookProcessor(
        repository=get_organization_repository(),
        verifier=StripeEventVerifier(get_config().stripe_webhook_secret),
    )


@lru_cache(maxsize=1)
def get_organization_service() -> OrganizationService:
    return OrganizationService(repository=get_organization_repository())


def reset_services() -> None:
    """Drop cached service instances, e.g. after the pool is replaced."""

    for factory in (
        get_config,
        get_organization_repository,
        get_payment_provider,
        get_product_catalog,
        get_billing_service,
        get_webhook_processor,
        get_organization_service,
    ):
        factory.cache_clear()


__all__ = [
    "get_billing_service",
    "get_config",
    "get_organization_repository",
    "get_organization_service",
    "get_payment_provider",
    "get_product_catalog",
    "get_webhook_processor",
    "reset_services",
]
