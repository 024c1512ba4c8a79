from typing import Any, Dict, Iterable
import logging

from storefront.errors import StoreError
from storefront.orders.ports import Catalog

logger = logging.getLogger(__name__)


class SupabaseCatalog(Catalog):
    """Lecture des produits (table 'products') pour le prix et l'affichage."""

    def __init__(self, client):
        self.client = client

    def get_products(self, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = [str(i) for i in ids if i]
        if not ids:
            return {}
        try:
            res = (
                self.client.table("products")
                .select("id, name, sale_price")
                .in_("id", ids)
                .execute()
            )
            rows = res.data or []
        except Exception:
            logger.exception("catalog.repository.get_products failed ids=%s", ids)
            raise StoreError("Catalogue indisponible")
        return {str(r.get("id")): r for r in rows if r.get("id")}
