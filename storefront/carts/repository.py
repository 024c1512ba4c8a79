import logging

from storefront.errors import StoreError
from storefront.orders.ports import CartStore

logger = logging.getLogger(__name__)


class SupabaseCartStore(CartStore):
    """Panier stocké dans users.cart_items ({product_id: quantity})."""

    def __init__(self, client):
        self.client = client

    def clear(self, owner_id: str) -> None:
        try:
            (
                self.client.table("users")
                .update({"cart_items": {}})
                .eq("id", owner_id)
                .execute()
            )
        except Exception:
            logger.exception("carts.repository.clear failed owner_id=%s", owner_id)
            raise StoreError("Vidage du panier impossible")
