"""API schemas for billing endpoints."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..billing import CheckoutSession, Product, ProductPrice


class CheckoutSessionRequest(BaseModel):
    price_id: str = Field(alias="priceId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    url: str

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_checkout(cls, session: CheckoutSession) -> "CheckoutSessionResponse":
        return cls(session_id=session.session_id, url=session.url)


class PortalSessionResponse(BaseModel):
    url: str


class WebhookAcknowledgement(BaseModel):
    received: bool = True


class PriceResponse(BaseModel):
    id: str
    unit_amount: Optional[int] = Field(alias="unitAmount", default=None)
    currency: str
    interval: Optional[str] = None
    interval_count: Optional[int] = Field(alias="intervalCount", default=None)
    trial_period_days: Optional[int] = Field(alias="trialPeriodDays", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_price(cls, price: ProductPrice) -> "PriceResponse":
        return cls(
            id=price.id,
            unit_amount=price.unit_amount,
            currency=price.currency,
            interval=price.interval,
            interval_count=price.interval_count,
            trial_period_days=price.trial_period_days,
        )


class ProductResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    prices: List[PriceResponse] = Field(default_factory=list)

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            prices=[PriceResponse.from_price(price) for price in product.prices if price.is_recurring],
        )


class ProductListResponse(BaseModel):
    products: List[ProductResponse]
