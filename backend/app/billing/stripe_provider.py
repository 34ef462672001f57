"""Stripe-backed :class:`PaymentProvider`."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from .exceptions import IdempotencyConflict, PaymentProviderError
from .models import CheckoutSession, PortalSession, Product, ProductPrice

logger = logging.getLogger("billing.stripe")


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a Stripe object or plain mapping, ``default`` when absent."""

    if obj is None:
        return default
    try:
        value = obj[name]
    except KeyError:
        return default
    return default if value is None else value


def _price_from_stripe(price: Any) -> ProductPrice:
    recurring = _field(price, "recurring")
    product = _field(price, "product")
    if not isinstance(product, str):
        product = _field(product, "id")
    return ProductPrice(
        id=price["id"],
        product_id=str(product),
        unit_amount=_field(price, "unit_amount"),
        currency=_field(price, "currency", "usd"),
        interval=_field(recurring, "interval"),
        interval_count=_field(recurring, "interval_count"),
        trial_period_days=_field(recurring, "trial_period_days"),
        type=_field(price, "type", "recurring"),
        active=bool(_field(price, "active", True)),
    )


class StripePaymentProvider:
    """Calls the Stripe SDK from a worker thread so the event loop never blocks."""

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("api_key must be provided")
        self._api_key = api_key

    async def _call(self, operation: str, func: Any, **params: Any) -> Any:
        try:
            return await run_in_threadpool(func, api_key=self._api_key, **params)
        except stripe.IdempotencyError:
            raise
        except stripe.StripeError as exc:
            logger.error("Stripe %s failed: %s", operation, exc.user_message or str(exc))
            raise PaymentProviderError(detail={"operation": operation}) from exc

    async def create_customer(self, *, name: str, metadata: Dict[str, str], idempotency_key: str) -> str:
        try:
            customer = await self._call(
                "customer.create",
                stripe.Customer.create,
                idempotency_key=idempotency_key,
                name=name,
                metadata=metadata,
            )
        except stripe.IdempotencyError as exc:
            raise IdempotencyConflict(idempotency_key=idempotency_key, reason=str(exc)) from exc
        return customer["id"]

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        trial_period_days: Optional[int],
        metadata: Dict[str, str],
        subscription_metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        subscription_data: Dict[str, Any] = {"metadata": subscription_metadata}
        if trial_period_days:
            subscription_data["trial_period_days"] = trial_period_days
        session = await self._call(
            "checkout.create",
            stripe.checkout.Session.create,
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            subscription_data=subscription_data,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        if not _field(session, "url"):
            raise PaymentProviderError(message="Checkout session has no redirect URL")
        return CheckoutSession(session_id=session["id"], url=session["url"])

    async def create_billing_portal_session(self, *, customer_id: str, return_url: str) -> PortalSession:
        session = await self._call(
            "billing_portal.create",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        return PortalSession(url=session["url"])

    async def list_active_products(self) -> List[Product]:
        products = await self._call("product.list", stripe.Product.list, active=True, limit=100)
        prices = await self._call("price.list", stripe.Price.list, active=True, limit=100)

        by_product: Dict[str, List[ProductPrice]] = {}
        for price in _field(prices, "data", []):
            parsed = _price_from_stripe(price)
            by_product.setdefault(parsed.product_id, []).append(parsed)

        return [
            Product(
                id=product["id"],
                name=_field(product, "name", ""),
                description=_field(product, "description"),
                prices=by_product.get(product["id"], []),
            )
            for product in _field(products, "data", [])
        ]


__all__ = ["StripePaymentProvider"]
