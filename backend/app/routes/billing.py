"""API routes exposing billing functionality."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ..auth import Identity, get_current_identity
from ..billing import BillingError, BillingService, ProductCatalog, WebhookProcessor
from ..schemas.billing import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalSessionResponse,
    ProductListResponse,
    ProductResponse,
    WebhookAcknowledgement,
)
from ..services.billing import get_billing_service, get_product_catalog, get_webhook_processor

router = APIRouter(prefix="/api/stripe", tags=["billing"])


@router.post("/webhooks", response_model=WebhookAcknowledgement)
async def receive_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    processor: WebhookProcessor = Depends(get_webhook_processor),
) -> WebhookAcknowledgement:
    payload = await request.body()
    try:
        await processor.process(payload, stripe_signature)
    except BillingError as exc:
        raise exc.to_http_exception() from exc
    return WebhookAcknowledgement(received=True)


@router.post("/create-checkout", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    *,
    identity: Identity = Depends(get_current_identity),
    service: BillingService = Depends(get_billing_service),
) -> CheckoutSessionResponse:
    try:
        session = await service.create_checkout_session(identity, payload.price_id)
    except BillingError as exc:
        raise exc.to_http_exception() from exc
    return CheckoutSessionResponse.from_checkout(session)


@router.post("/create-portal", response_model=PortalSessionResponse)
async def create_portal_session(
    *,
    identity: Identity = Depends(get_current_identity),
    service: BillingService = Depends(get_billing_service),
) -> PortalSessionResponse:
    try:
        session = await service.create_portal_session(identity)
    except BillingError as exc:
        raise exc.to_http_exception() from exc
    return PortalSessionResponse(url=session.url)


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    *,
    identity: Identity = Depends(get_current_identity),
    catalog: ProductCatalog = Depends(get_product_catalog),
) -> ProductListResponse:
    try:
        products = await catalog.list_products()
    except BillingError as exc:
        raise exc.to_http_exception() from exc
    return ProductListResponse(products=[ProductResponse.from_product(product) for product in products])
