import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from storefront.errors import ProviderError
from storefront.infra.providers import get_catalog, get_gateway, get_order_store
from storefront.orders import service as orders_service
from storefront.orders.models import PaymentMethod
from storefront.orders.ports import Catalog, OrderStore
from storefront.payments import service as payments_service
from storefront.payments.gateway import PaymentGateway
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_seller, require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


class PlaceOrderRequest(BaseModel):
    # Lignes brutes validées par orders.cart (messages d'erreur métier)
    items: List[Any] = Field(default_factory=list)
    address_id: Optional[str] = None


def _return_urls(request: Request) -> payments_service.ReturnUrls:
    return payments_service.build_return_urls(str(request.base_url))


# module storefront.orders.views
@router.post("/offline", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def place_offline_order(
    body: PlaceOrderRequest,
    user: Dict[str, Any] = Depends(require_user),
    catalog: Catalog = Depends(get_catalog),
    orders: OrderStore = Depends(get_order_store),
):
    """
    Commande payable à la livraison (visible immédiatement dans les listings).
    - Entrée JSON: {"items": [{"product_id": "...", "quantity": 2}], "address_id": "..."}
    - Erreurs: 400 panier/adresse invalide, 404 produit introuvable
    """
    order = orders_service.place_order(
        user.get("id"), body.items, body.address_id, PaymentMethod.OFFLINE, catalog=catalog, orders=orders
    )
    return {"success": True, "message": "Commande enregistrée", "order": order.to_public()}


@router.post("/online", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def place_online_order(
    request: Request,
    body: PlaceOrderRequest,
    user: Dict[str, Any] = Depends(require_user),
    catalog: Catalog = Depends(get_catalog),
    orders: OrderStore = Depends(get_order_store),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Commande payée en ligne: enregistre la commande puis ouvre la session Stripe.
    - Retour: {"success": true, "url": "<checkout>", "order_id": "..."}
    - 502 si Stripe échoue: la commande reste en attente, relançable via /{order_id}/checkout
    """
    try:
        order, url = payments_service.place_online_order(
            user.get("id"),
            body.items,
            body.address_id,
            _return_urls(request),
            catalog=catalog,
            gateway=gateway,
            orders=orders,
            customer_email=user.get("email"),
        )
    except ProviderError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "detail": e.detail, "order_id": e.order_id},
        )
    return {"success": True, "url": url, "order_id": order.id}


@router.post("/{order_id}/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def retry_checkout(
    order_id: str,
    request: Request,
    user: Dict[str, Any] = Depends(require_user),
    catalog: Catalog = Depends(get_catalog),
    orders: OrderStore = Depends(get_order_store),
    gateway: PaymentGateway = Depends(get_gateway),
):
    url = payments_service.checkout_order(
        user.get("id"),
        order_id,
        _return_urls(request),
        catalog=catalog,
        gateway=gateway,
        orders=orders,
        customer_email=user.get("email"),
    )
    return {"success": True, "url": url, "order_id": order_id}


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: str,
    user: Dict[str, Any] = Depends(require_user),
    orders: OrderStore = Depends(get_order_store),
):
    order = orders_service.cancel_order(user.get("id"), order_id, orders=orders)
    return {"success": True, "order": order.to_public()}


@router.get("/user")
def user_orders(
    user: Dict[str, Any] = Depends(require_user),
    orders: OrderStore = Depends(get_order_store),
):
    """Commandes visibles de l'utilisateur (livraison ou payées), plus récentes d'abord."""
    found = orders_service.list_owner_orders(user.get("id"), orders=orders)
    return {"success": True, "orders": [o.to_public() for o in found]}


@router.get("/seller")
def seller_orders(
    user: Dict[str, Any] = Depends(require_seller),
    orders: OrderStore = Depends(get_order_store),
):
    """Toutes les commandes visibles (rôle seller/admin)."""
    found = orders_service.list_all_orders(orders=orders)
    return {"success": True, "orders": [o.to_public() for o in found]}
