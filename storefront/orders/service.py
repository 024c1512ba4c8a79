"""
Cas d'usage 'orders': transforme un panier en commande persistée.
Orchestre la validation du panier, le moteur de prix et le stockage.
"""
from datetime import datetime, timezone
from typing import Any, List
from uuid import uuid4
import logging

from storefront.errors import NotFoundError, ValidationError
from . import pricing
from .cart import normalize_cart_lines
from .models import Order, PaymentMethod, PaymentStatus
from .ports import Catalog, OrderStore

logger = logging.getLogger(__name__)


def parse_method(method: Any) -> PaymentMethod:
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(str(method or "").strip().upper())
    except ValueError:
        raise ValidationError("Mode de paiement invalide")


def place_order(
    owner_id: str,
    cart_lines: Any,
    address_id: str,
    method: Any,
    *,
    catalog: Catalog,
    orders: OrderStore,
) -> Order:
    """
    Valide et chiffre un panier puis enregistre la commande (une seule écriture).
    Ordre des contrôles:
      1) panier non vide, lignes {product_id, quantity > 0}   -> ValidationError
      2) propriétaire et adresse présents, mode OFFLINE|ONLINE -> ValidationError
      3) tous les produits existent                            -> NotFoundError
    Le panier n'est jamais modifié ici; paid=False à la création.
    """
    lines = normalize_cart_lines(cart_lines)
    if not str(owner_id or "").strip():
        raise ValidationError("Utilisateur manquant")
    if not str(address_id or "").strip():
        raise ValidationError("Adresse de livraison manquante")
    payment_method = parse_method(method)

    snapshot = catalog.get_products([line.product_id for line in lines])
    priced = pricing.price(lines, snapshot)

    order = Order(
        id=str(uuid4()),
        owner_id=str(owner_id),
        lines=priced.order_lines,
        total_amount=priced.total,
        shipping_address_id=str(address_id),
        payment_method=payment_method,
        paid=False,
        payment_status=(
            PaymentStatus.OFFLINE if payment_method == PaymentMethod.OFFLINE else PaymentStatus.PENDING
        ),
        created_at=datetime.now(timezone.utc),
    )
    orders.create(order)
    logger.info(
        "orders.place_order created order_id=%s owner_id=%s method=%s total=%s",
        order.id, order.owner_id, payment_method.value, order.total_amount,
    )
    return order


def list_owner_orders(owner_id: str, *, orders: OrderStore) -> List[Order]:
    return orders.find_by_owner(owner_id)


def list_all_orders(*, orders: OrderStore) -> List[Order]:
    return orders.find_all()


def get_owned_order(owner_id: str, order_id: str, *, orders: OrderStore) -> Order:
    """Commande du propriétaire; une commande d'un autre utilisateur est traitée comme introuvable."""
    order = orders.get(order_id)
    if order is None or order.owner_id != owner_id:
        raise NotFoundError("Commande introuvable")
    return order


def cancel_order(owner_id: str, order_id: str, *, orders: OrderStore) -> Order:
    """
    Annule une commande non payée du propriétaire.
    - Idempotent: une commande déjà annulée est renvoyée telle quelle.
    - Une commande payée ne peut pas être annulée (ValidationError).
    """
    order = get_owned_order(owner_id, order_id, orders=orders)
    if order.cancelled_at is not None:
        return order
    if order.paid:
        raise ValidationError("Commande déjà payée")
    orders.cancel(order.id)
    logger.info("orders.cancel_order cancelled order_id=%s owner_id=%s", order.id, owner_id)
    return orders.get(order.id) or order
