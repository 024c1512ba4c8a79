"""
Sérialisation/désérialisation des métadonnées Stripe (order_id, owner_id).
Seul mécanisme de corrélation entre une session Stripe et une commande.
"""
from typing import Any, Dict, Mapping, Optional, Tuple

from storefront.orders.models import Order


# module storefront.payments.metadata
def make_metadata(order: Order) -> Dict[str, str]:
    return {"order_id": order.id, "owner_id": order.owner_id}


def extract_order_ref(metadata: Optional[Mapping[str, Any]]) -> Tuple[Optional[str], Optional[str]]:
    """
    Extrait (order_id, owner_id) depuis les métadonnées d'une session.
    Tolérant: retourne (None, None) si les métadonnées sont absentes.
    """
    meta = metadata or {}
    order_id = str(meta.get("order_id") or "").strip() or None
    owner_id = str(meta.get("owner_id") or "").strip() or None
    return order_id, owner_id
