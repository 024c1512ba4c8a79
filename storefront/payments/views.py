import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from storefront.errors import StorefrontError
from storefront.infra.providers import get_cart_store, get_gateway, get_order_store
from storefront.orders.ports import CartStore, OrderStore
from storefront.payments import reconciliation
from storefront.payments.gateway import PaymentGateway

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])


# module storefront.payments.views
@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(
    request: Request,
    gateway: PaymentGateway = Depends(get_gateway),
    orders: OrderStore = Depends(get_order_store),
    carts: CartStore = Depends(get_cart_store),
):
    """
    Webhook Stripe: payment_intent.succeeded / payment_intent.payment_failed.
    - Signature: Stripe-Signature + STRIPE_WEBHOOK_SECRET sur le body brut (400 si invalide)
    - Réponses: {"received": true, "status": "paid"|"failed"|"ignored", "event_id": ...}
    - 503/502 si la base ou Stripe échoue: Stripe relivrera l'événement
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    try:
        return reconciliation.handle_event(payload, sig_header, gateway=gateway, orders=orders, carts=carts)
    except StorefrontError as e:
        logger.warning("payments.webhook rejected status=%s detail=%s", e.status_code, e.detail)
        raise
    except Exception:
        logger.exception("Erreur webhook_stripe")
        raise HTTPException(status_code=500, detail="Erreur de traitement du webhook")
