"""
Moteur de prix pur (pas de Stripe, pas de DB).
- Le prix unitaire vient toujours du catalogue (sale_price), jamais du client.
- Surcharge = floor(sous-total * ORDER_SURCHARGE_RATE) en unités entières.
"""
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from storefront.config import ORDER_SURCHARGE_RATE
from storefront.errors import NotFoundError, ValidationError
from .models import CartLine, OrderLine

CENT = Decimal("0.01")


class PricedCart(NamedTuple):
    order_lines: List[OrderLine]
    subtotal: Decimal
    surcharge: Decimal
    total: Decimal


# module storefront.orders.pricing
def to_decimal(value: Any) -> Decimal:
    """Convertit str|int|float|Decimal en Decimal (float via str pour éviter 0.1000000001)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    return Decimal(value)


def quantize_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_surcharge(subtotal: Decimal, rate: Optional[Decimal] = None) -> Decimal:
    """
    Surcharge forfaitaire arrondie à l'unité inférieure.
    Exemples (taux 2%): 25 -> 0, 37 -> 0, 50 -> 1.
    """
    rate = ORDER_SURCHARGE_RATE if rate is None else rate
    return (subtotal * rate).to_integral_value(rounding=ROUND_FLOOR)


def _sale_price(product: Mapping[str, Any], product_id: str) -> Decimal:
    try:
        price = to_decimal(product.get("sale_price"))
        if not price.is_finite() or price < 0:
            raise ValueError(price)
        return quantize_cents(price)
    except (InvalidOperation, TypeError, ValueError):
        raise NotFoundError(f"Prix introuvable pour le produit: {product_id}")


def price(lines: List[CartLine], catalog_snapshot: Mapping[str, Mapping[str, Any]]) -> PricedCart:
    """
    Résout chaque ligne contre le snapshot catalogue et calcule les montants.
    - Soulève NotFoundError si un produit est absent du snapshot.
    - Soulève ValidationError si le montant dépasse la précision Decimal.
    - Retourne PricedCart(order_lines, subtotal, surcharge, total).
    """
    order_lines: List[OrderLine] = []
    subtotal = Decimal("0")
    for line in lines:
        product = catalog_snapshot.get(line.product_id)
        if not product:
            raise NotFoundError(f"Produit introuvable: {line.product_id}")
        unit_price = _sale_price(product, line.product_id)
        order_lines.append(OrderLine(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=unit_price,
            product={"name": product.get("name"), "sale_price": f"{unit_price:.2f}"},
        ))
        subtotal += unit_price * line.quantity

    try:
        subtotal = quantize_cents(subtotal)
        surcharge = compute_surcharge(subtotal)
        total = quantize_cents(subtotal + surcharge)
        return PricedCart(order_lines, subtotal, quantize_cents(surcharge), total)
    except InvalidOperation:
        raise ValidationError("Montant de commande hors limites")


def to_minor_units(amount: Decimal) -> int:
    """Montant en centimes (entier) pour le prestataire de paiement."""
    return int((quantize_cents(to_decimal(amount)) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def snapshot_products(lines: List[OrderLine]) -> Dict[str, Dict[str, Any]]:
    """Données d'affichage {product_id: product} déjà portées par les lignes."""
    return {line.product_id: dict(line.product) for line in lines if line.product}
