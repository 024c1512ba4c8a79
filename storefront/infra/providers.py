"""
Dépendances FastAPI construisant les collaborateurs par requête.
Les tests les remplacent via app.dependency_overrides (implémentations en mémoire).
"""
from fastapi import Depends

from storefront.carts.repository import SupabaseCartStore
from storefront.catalog.repository import SupabaseCatalog
from storefront.infra.supabase_client import get_service_supabase
from storefront.orders.ports import CartStore, Catalog, OrderStore
from storefront.orders.repository import SupabaseOrderStore
from storefront.payments.gateway import PaymentGateway, StripeGateway


def get_catalog() -> Catalog:
    return SupabaseCatalog(get_service_supabase())


def get_order_store(catalog: Catalog = Depends(get_catalog)) -> OrderStore:
    return SupabaseOrderStore(get_service_supabase(), catalog=catalog)


def get_cart_store() -> CartStore:
    return SupabaseCartStore(get_service_supabase())


def get_gateway() -> PaymentGateway:
    return StripeGateway()
