"""
Construction des line_items Stripe à partir d'une commande (pas de DB).
"""
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Mapping, Optional

from storefront.config import ORDER_SURCHARGE_RATE, STRIPE_CURRENCY
from storefront.orders.models import Order
from storefront.orders.pricing import CENT, to_minor_units

SURCHARGE_LABEL = "Frais de service"


def _line_item(name: str, unit_price: Decimal, quantity: int, currency: str) -> Dict[str, Any]:
    return {
        "quantity": quantity,
        "price_data": {
            "currency": currency,
            "unit_amount": to_minor_units(unit_price),
            "product_data": {"name": name},
        },
    }


def baked_unit_price(unit_price: Decimal, rate: Optional[Decimal] = None) -> Decimal:
    """Prix unitaire affiché, surcharge incluse, tronqué au centime."""
    rate = ORDER_SURCHARGE_RATE if rate is None else rate
    return (unit_price * (1 + rate)).quantize(CENT, rounding=ROUND_FLOOR)


# module storefront.payments.line_items
def to_line_items(
    order: Order,
    products: Optional[Mapping[str, Mapping[str, Any]]] = None,
    currency: str = STRIPE_CURRENCY,
) -> List[Dict[str, Any]]:
    """
    Une ligne Stripe par OrderLine, au prix snapshot de la commande.
    - La surcharge est intégrée au prix unitaire affiché quand cela reproduit
      exactement order.total_amount (ex: 10.00 x5 -> 10.20 x5 = 51.00).
    - Sinon: lignes au prix snapshot + une ligne explicite "Frais de service"
      (si surcharge > 0), pour que le total Stripe égale toujours total_amount.
    - Le nom vient du mapping produits, puis de la ligne, sinon "Article".
    """
    products = products or {}

    def _name(line) -> str:
        product = products.get(line.product_id) or line.product or {}
        return str(product.get("name") or "Article")

    subtotal = sum((line.unit_price * line.quantity for line in order.lines), Decimal("0"))
    surcharge = order.total_amount - subtotal

    baked = [baked_unit_price(line.unit_price) for line in order.lines]
    baked_total = sum((b * line.quantity for b, line in zip(baked, order.lines)), Decimal("0"))
    if baked_total == order.total_amount:
        return [
            _line_item(_name(line), b, line.quantity, currency)
            for b, line in zip(baked, order.lines)
        ]

    items = [_line_item(_name(line), line.unit_price, line.quantity, currency) for line in order.lines]
    if surcharge > 0:
        items.append(_line_item(SURCHARGE_LABEL, surcharge, 1, currency))
    return items
