"""Active processor products and prices, cached for a configurable TTL."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from ..entitlements.cache import Cache
from .exceptions import PaymentProviderError
from .models import Product, ProductPrice

logger = logging.getLogger("billing.products")

PRODUCTS_CACHE_KEY = "products:active"


class ProductSource(Protocol):
    async def list_active_products(self) -> List[Product]:
        """Return active products with their active prices attached."""


def find_price(products: Sequence[Product], price_id: str) -> Optional[ProductPrice]:
    for product in products:
        for price in product.prices:
            if price.id == price_id:
                return price
    return None


def trial_days_for_price(products: Sequence[Product], price_id: str, default: int) -> int:
    price = find_price(products, price_id)
    if price is None or price.trial_period_days is None:
        return default
    return price.trial_period_days


@dataclass
class ProductCatalog:
    provider: ProductSource
    cache: Cache[List[Product]]

    async def list_products(self) -> List[Product]:
        cached, fresh = self.cache.get(PRODUCTS_CACHE_KEY)
        if cached is not None and fresh:
            return cached

        try:
            products = await self.provider.list_active_products()
        except PaymentProviderError:
            if cached is None:
                raise
            logger.warning("Product refresh failed, serving %s cached products", len(cached))
            return cached

        self.cache.set(PRODUCTS_CACHE_KEY, products)
        logger.debug("Cached %s active products", len(products))
        return products


__all__ = ["ProductCatalog", "ProductSource", "find_price", "trial_days_for_price"]
