"""
Validation du panier brut reçu du client (pas de DB).
"""
from typing import Any, Dict, List, Mapping

from storefront.errors import ValidationError
from .models import CartLine, MAX_QUANTITY


def _parse_quantity(raw: Any) -> int:
    # bool est un int en Python: refusé explicitement
    if isinstance(raw, bool):
        raise ValidationError("Quantité invalide")
    if isinstance(raw, int):
        qty = raw
    elif isinstance(raw, str):
        digits = raw.strip().lstrip("+")
        # chiffres ASCII uniquement ("²" passe isdigit() mais pas int())
        if not (digits.isascii() and digits.isdecimal()):
            raise ValidationError("Quantité invalide")
        try:
            qty = int(digits)
        except ValueError:
            raise ValidationError("Quantité invalide")
    else:
        raise ValidationError("Quantité invalide")
    if qty <= 0 or qty > MAX_QUANTITY:
        raise ValidationError("Quantité invalide")
    return qty


# module storefront.orders.cart
def normalize_cart_lines(items: Any) -> List[CartLine]:
    """
    Normalise un panier brut [{product_id, quantity}, ...] en CartLine.
    - Soulève ValidationError si le panier est vide ou n'est pas une liste.
    - Soulève ValidationError pour une ligne sans produit ou à quantité non entière,
      <= 0 ou > MAX_QUANTITY (y compris après fusion des doublons).
    - Fusionne les doublons en conservant l'ordre de première apparition.
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("Panier vide")

    quantities: Dict[str, int] = {}
    for it in items:
        if not isinstance(it, Mapping):
            raise ValidationError("Ligne de panier invalide")
        product_id = str(it.get("product_id") or "").strip()
        if not product_id:
            raise ValidationError("Produit manquant dans le panier")
        qty = _parse_quantity(it.get("quantity"))
        quantities[product_id] = quantities.get(product_id, 0) + qty
        if quantities[product_id] > MAX_QUANTITY:
            raise ValidationError("Quantité invalide")

    return [CartLine(product_id=pid, quantity=qty) for pid, qty in quantities.items()]
