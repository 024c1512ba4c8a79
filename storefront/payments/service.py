"""
Cas d'usage 'payments': ouvre les sessions Stripe pour les commandes ONLINE.
Orchestre line_items, metadata, passerelle et stockage des commandes.
"""
from typing import Any, Dict, Mapping, NamedTuple, Optional, Tuple
import logging

from storefront.config import BASE_URL, CHECKOUT_CANCEL_PATH, CHECKOUT_SUCCESS_PATH
from storefront.errors import ProviderError, StoreError, ValidationError
from storefront.orders import service as orders_service
from storefront.orders.models import Order, PaymentMethod
from storefront.orders.ports import Catalog, OrderStore
from storefront.orders.pricing import snapshot_products
from .gateway import PaymentGateway
from .line_items import to_line_items
from .metadata import make_metadata

logger = logging.getLogger(__name__)


class ReturnUrls(NamedTuple):
    success_url: str
    cancel_url: str


def build_return_urls(origin: Optional[str] = None) -> ReturnUrls:
    """URLs de retour du checkout: BASE_URL si configurée, sinon l'origine de la requête."""
    base = (BASE_URL or origin or "").rstrip("/")
    return ReturnUrls(f"{base}{CHECKOUT_SUCCESS_PATH}", f"{base}{CHECKOUT_CANCEL_PATH}")


def open_session(
    order: Order,
    products: Optional[Mapping[str, Mapping[str, Any]]],
    return_urls: ReturnUrls,
    *,
    gateway: PaymentGateway,
    orders: OrderStore,
    customer_email: Optional[str] = None,
) -> str:
    """
    Ouvre une session de paiement pour la commande et retourne son URL.
    - ProviderError: la commande reste enregistrée, en attente, sans session.
    - L'id de session est rattaché à la commande (best-effort: la corrélation
      passe par les métadonnées de session, pas par cette colonne).
    """
    line_items = to_line_items(order, products)
    try:
        session = gateway.open_session(
            line_items=line_items,
            metadata=make_metadata(order),
            success_url=return_urls.success_url,
            cancel_url=return_urls.cancel_url,
            customer_email=customer_email,
        )
    except ProviderError as e:
        e.order_id = e.order_id or order.id
        logger.warning("payments.open_session provider failure order_id=%s", order.id)
        raise

    try:
        orders.attach_session(order.id, session["id"])
    except StoreError:
        logger.exception("payments.open_session attach_session failed order_id=%s session=%s", order.id, session["id"])
    logger.info("payments.open_session order_id=%s session=%s", order.id, session["id"])
    return session["url"]


def place_online_order(
    owner_id: str,
    cart_lines: Any,
    address_id: str,
    return_urls: ReturnUrls,
    *,
    catalog: Catalog,
    gateway: PaymentGateway,
    orders: OrderStore,
    customer_email: Optional[str] = None,
) -> Tuple[Order, str]:
    """Commande ONLINE: enregistre la commande puis ouvre la session (ordre garanti)."""
    order = orders_service.place_order(
        owner_id, cart_lines, address_id, PaymentMethod.ONLINE, catalog=catalog, orders=orders
    )
    url = open_session(
        order,
        snapshot_products(order.lines),
        return_urls,
        gateway=gateway,
        orders=orders,
        customer_email=customer_email,
    )
    return order, url


def checkout_order(
    owner_id: str,
    order_id: str,
    return_urls: ReturnUrls,
    *,
    catalog: Catalog,
    gateway: PaymentGateway,
    orders: OrderStore,
    customer_email: Optional[str] = None,
) -> str:
    """
    Relance le paiement d'une commande ONLINE en attente (session abandonnée/expirée).
    Les prix restent ceux du snapshot; le catalogue ne sert qu'aux libellés.
    """
    order = orders_service.get_owned_order(owner_id, order_id, orders=orders)
    if order.payment_method != PaymentMethod.ONLINE:
        raise ValidationError("Commande payable à la livraison")
    if order.paid:
        raise ValidationError("Commande déjà payée")
    if order.cancelled_at is not None:
        raise ValidationError("Commande annulée")
    products: Dict[str, Dict[str, Any]] = catalog.get_products([line.product_id for line in order.lines])
    return open_session(
        order, products, return_urls, gateway=gateway, orders=orders, customer_email=customer_email
    )
