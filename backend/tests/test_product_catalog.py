"""Tests for the TTL cache and the cached product catalog."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from backend.app.billing import PaymentProviderError, ProductCatalog, trial_days_for_price
from backend.app.entitlements.cache import TTLCache
from backend.tests.fakes import FakePaymentProvider


class ManualClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


def test_cache_reports_freshness():
    clock = ManualClock()
    cache = TTLCache(timedelta(seconds=60), clock=clock)

    assert cache.get("products") == (None, False)

    cache.set("products", ["a"])
    assert cache.get("products") == (["a"], True)

    clock.advance(seconds=60)
    assert cache.get("products") == (["a"], False)


def test_cache_invalidate_removes_entry():
    cache = TTLCache(timedelta(seconds=60))
    cache.set("products", ["a"])

    cache.invalidate("products")
    cache.invalidate("missing")

    assert cache.get("products") == (None, False)


def test_negative_ttl_is_rejected():
    with pytest.raises(ValueError):
        TTLCache(timedelta(seconds=-1))


def test_catalog_serves_fresh_entries_from_cache():
    clock = ManualClock()
    provider = FakePaymentProvider()
    catalog = ProductCatalog(provider=provider, cache=TTLCache(timedelta(minutes=5), clock=clock))

    first = asyncio.run(catalog.list_products())
    clock.advance(minutes=4)
    second = asyncio.run(catalog.list_products())

    assert first == second
    assert provider.product_calls == 1


def test_catalog_refreshes_after_ttl():
    clock = ManualClock()
    provider = FakePaymentProvider()
    catalog = ProductCatalog(provider=provider, cache=TTLCache(timedelta(minutes=5), clock=clock))

    asyncio.run(catalog.list_products())
    clock.advance(minutes=5)
    asyncio.run(catalog.list_products())

    assert provider.product_calls == 2


def test_catalog_serves_stale_entries_when_refresh_fails():
    clock = ManualClock()
    provider = FakePaymentProvider()
    catalog = ProductCatalog(provider=provider, cache=TTLCache(timedelta(minutes=5), clock=clock))

    cached = asyncio.run(catalog.list_products())
    clock.advance(hours=1)
    provider.products_error = PaymentProviderError()

    assert asyncio.run(catalog.list_products()) == cached


def test_catalog_raises_when_nothing_is_cached():
    provider = FakePaymentProvider()
    provider.products_error = PaymentProviderError()
    catalog = ProductCatalog(provider=provider, cache=TTLCache(timedelta(minutes=5)))

    with pytest.raises(PaymentProviderError):
        asyncio.run(catalog.list_products())


def test_trial_days_fall_back_to_default():
    products = FakePaymentProvider().products

    assert trial_days_for_price(products, "price_yearly", 14) == 30
    assert trial_days_for_price(products, "price_monthly", 14) == 14
    assert trial_days_for_price(products, "price_unknown", 7) == 7
