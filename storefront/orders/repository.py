from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from storefront.errors import StoreError
from .models import Order, PaymentMethod, PaymentStatus
from .ports import Catalog, OrderStore

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
# Jointure PostgREST sur l'adresse de livraison (FK shipping_address_id)
LISTING_SELECT = "*, address:addresses(*)"
VISIBLE_FILTER = "payment_method.eq.OFFLINE,paid.eq.true"


class SupabaseOrderStore(OrderStore):
    """
    Stockage des commandes dans la table 'orders' (client service-role).
    - Toutes les écritures portent sur une seule ligne.
    - Les listings appliquent la règle de visibilité (OFFLINE ou payée) côté base
      puis hydratent les lignes avec le catalogue (name, sale_price).
    - Toute erreur Supabase est journalisée puis convertie en StoreError.
    """

    def __init__(self, client, catalog: Optional[Catalog] = None):
        self.client = client
        self.catalog = catalog

    def _table(self):
        return self.client.table(ORDERS_TABLE)

    def create(self, order: Order) -> Order:
        try:
            res = self._table().insert(order.to_row()).execute()
        except Exception:
            logger.exception("orders.repository.create failed order_id=%s", order.id)
            raise StoreError("Enregistrement de la commande impossible")
        if not getattr(res, "data", None):
            logger.error("orders.repository.create returned no row order_id=%s", order.id)
            raise StoreError("Enregistrement de la commande impossible")
        return order

    def get(self, order_id: str) -> Optional[Order]:
        try:
            res = (
                self._table()
                .select("*")
                .eq("id", order_id)
                .limit(1)
                .execute()
            )
            rows = res.data or []
        except Exception:
            logger.exception("orders.repository.get failed order_id=%s", order_id)
            raise StoreError()
        return Order.from_row(rows[0]) if rows else None

    def set_paid(self, order_id: str, event_id: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"paid": True, "payment_status": PaymentStatus.PAID.value}
        if event_id:
            payload["last_payment_event_id"] = event_id
        try:
            (
                self._table()
                .update(payload)
                .eq("id", order_id)
                .eq("payment_method", PaymentMethod.ONLINE.value)
                .execute()
            )
        except Exception:
            logger.exception("orders.repository.set_paid failed order_id=%s", order_id)
            raise StoreError()

    def mark_payment_failed(self, order_id: str, event_id: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"payment_status": PaymentStatus.FAILED.value}
        if event_id:
            payload["last_payment_event_id"] = event_id
        try:
            # Le filtre paid=false empêche toute sortie de l'état payé
            (
                self._table()
                .update(payload)
                .eq("id", order_id)
                .eq("paid", False)
                .execute()
            )
        except Exception:
            logger.exception("orders.repository.mark_payment_failed failed order_id=%s", order_id)
            raise StoreError()

    def attach_session(self, order_id: str, session_id: str) -> None:
        try:
            (
                self._table()
                .update({"provider_session_id": session_id})
                .eq("id", order_id)
                .execute()
            )
        except Exception:
            logger.exception("orders.repository.attach_session failed order_id=%s", order_id)
            raise StoreError()

    def cancel(self, order_id: str) -> None:
        try:
            (
                self._table()
                .update({"cancelled_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", order_id)
                .eq("paid", False)
                .execute()
            )
        except Exception:
            logger.exception("orders.repository.cancel failed order_id=%s", order_id)
            raise StoreError()

    def find_by_owner(self, owner_id: str) -> List[Order]:
        return self._find_visible(owner_id=owner_id)

    def find_all(self) -> List[Order]:
        return self._find_visible()

    def _find_visible(self, owner_id: Optional[str] = None) -> List[Order]:
        try:
            query = self._table().select(LISTING_SELECT).or_(VISIBLE_FILTER)
            if owner_id:
                query = query.eq("owner_id", owner_id)
            res = query.order("created_at", desc=True).execute()
            rows = res.data or []
        except Exception:
            logger.exception("orders.repository.find failed owner_id=%s", owner_id)
            raise StoreError()
        return self._with_products([Order.from_row(r) for r in rows])

    def _with_products(self, orders: List[Order]) -> List[Order]:
        """Hydrate chaque ligne avec {name, sale_price} du catalogue (affichage)."""
        if not self.catalog or not orders:
            return orders
        ids = {line.product_id for o in orders for line in o.lines}
        products = self.catalog.get_products(sorted(ids))
        hydrated: List[Order] = []
        for o in orders:
            lines = [
                line.model_copy(update={"product": _display(products.get(line.product_id))})
                for line in o.lines
            ]
            hydrated.append(o.model_copy(update={"lines": lines}))
        return hydrated


def _display(product: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not product:
        return None
    return {"name": product.get("name"), "sale_price": product.get("sale_price")}
