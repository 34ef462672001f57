"""Unit tests for checkout and billing portal session issuance."""
from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from backend.app.auth import Identity
from backend.app.billing import (
    BillingAccountMissing,
    BillingService,
    CustomerProvisioner,
    InvalidPlan,
    ProductCatalog,
    SubscriptionAlreadyActive,
    TenantNotFound,
)
from backend.app.entitlements.cache import TTLCache
from backend.app.entitlements.models import SubscriptionStatus
from backend.tests.fakes import make_organization

OWNER = Identity(user_id="user-1", email="owner@sunset.test")


def _service(repository, provider, *, default_trial_days: int = 14) -> BillingService:
    return BillingService(
        organizations=repository,
        provider=provider,
        provisioner=CustomerProvisioner(repository=repository, provider=provider),
        catalog=ProductCatalog(provider=provider, cache=TTLCache(timedelta(minutes=5))),
        success_url="https://app.test/billing/success?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="https://app.test/billing/canceled",
        portal_return_url="https://app.test/billing",
        default_trial_days=default_trial_days,
    )


def test_checkout_provisions_customer_and_passes_tenant_metadata(repository, provider):
    repository.add(make_organization(), user_id=OWNER.user_id)
    service = _service(repository, provider)

    session = asyncio.run(service.create_checkout_session(OWNER, "price_monthly"))

    assert session.session_id == "cs_test_1"
    assert session.url.startswith("https://checkout.stripe.com/")
    assert repository.organizations["org-1"].external_customer_id == "cus_1"

    call = provider.checkout_calls[0]
    assert call["customer_id"] == "cus_1"
    assert call["price_id"] == "price_monthly"
    assert call["trial_period_days"] == 14
    assert call["metadata"] == {"organizationId": "org-1", "userId": "user-1"}
    assert call["subscription_metadata"] == {"organizationId": "org-1"}
    assert call["success_url"].endswith("session_id={CHECKOUT_SESSION_ID}")
    assert provider.customer_calls[0]["metadata"] == {"organizationId": "org-1"}
    assert repository.writes == []


def test_checkout_uses_price_trial_period(repository, provider):
    repository.add(make_organization(external_customer_id="cus_existing"), user_id=OWNER.user_id)
    service = _service(repository, provider)

    asyncio.run(service.create_checkout_session(OWNER, "price_yearly"))

    assert provider.checkout_calls[0]["trial_period_days"] == 30
    assert provider.customer_calls == []


def test_checkout_without_default_trial_omits_trial(repository, provider):
    repository.add(make_organization(external_customer_id="cus_existing"), user_id=OWNER.user_id)
    service = _service(repository, provider, default_trial_days=0)

    asyncio.run(service.create_checkout_session(OWNER, "price_monthly"))

    assert provider.checkout_calls[0]["trial_period_days"] is None


def test_checkout_rejects_active_subscription(repository, provider):
    repository.add(
        make_organization(subscription_status=SubscriptionStatus.ACTIVE, is_active=True),
        user_id=OWNER.user_id,
    )
    service = _service(repository, provider)

    with pytest.raises(SubscriptionAlreadyActive) as excinfo:
        asyncio.run(service.create_checkout_session(OWNER, "price_monthly"))

    assert excinfo.value.status_code == 409
    assert provider.checkout_calls == []


def test_checkout_allows_canceled_tenant_to_resubscribe(repository, provider):
    repository.add(
        make_organization(
            external_customer_id="cus_existing",
            subscription_status=SubscriptionStatus.CANCELED,
        ),
        user_id=OWNER.user_id,
    )
    service = _service(repository, provider)

    session = asyncio.run(service.create_checkout_session(OWNER, "price_monthly"))

    assert session.session_id == "cs_test_1"


@pytest.mark.parametrize("price_id", ["", "price_unknown", "price_setup_fee"])
def test_checkout_rejects_invalid_price(repository, provider, price_id):
    repository.add(make_organization(), user_id=OWNER.user_id)
    service = _service(repository, provider)

    with pytest.raises(InvalidPlan) as excinfo:
        asyncio.run(service.create_checkout_session(OWNER, price_id))

    assert excinfo.value.status_code == 400
    assert provider.customer_calls == []


def test_checkout_requires_organization(repository, provider):
    service = _service(repository, provider)

    with pytest.raises(TenantNotFound):
        asyncio.run(service.create_checkout_session(OWNER, "price_monthly"))


def test_portal_requires_billing_account(repository, provider):
    repository.add(make_organization(), user_id=OWNER.user_id)
    service = _service(repository, provider)

    with pytest.raises(BillingAccountMissing) as excinfo:
        asyncio.run(service.create_portal_session(OWNER))

    assert excinfo.value.status_code == 404
    assert provider.portal_calls == []


def test_portal_session_returns_to_billing_page(repository, provider):
    repository.add(make_organization(external_customer_id="cus_7"), user_id=OWNER.user_id)
    service = _service(repository, provider)

    session = asyncio.run(service.create_portal_session(OWNER))

    assert session.url == "https://billing.stripe.com/p/session/cus_7"
    assert provider.portal_calls == [{"customer_id": "cus_7", "return_url": "https://app.test/billing"}]


def test_checkout_leaves_entitlement_fields_to_webhooks(repository, provider):
    repository.add(make_organization(subscription_status=SubscriptionStatus.CANCELED), user_id=OWNER.user_id)
    service = _service(repository, provider)

    asyncio.run(service.create_checkout_session(OWNER, "price_monthly"))

    organization = repository.organizations["org-1"]
    assert repository.writes == []
    assert organization.subscription_status == SubscriptionStatus.CANCELED
    assert organization.is_active is False
