import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient

# Désactive FastAPILimiter (Redis) avant l'import de l'application
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from storefront.app import app as fastapi_app
from storefront.errors import ProviderError
from storefront.infra.providers import get_cart_store, get_catalog, get_gateway, get_order_store
from storefront.orders.models import Order, PaymentMethod, PaymentStatus
from storefront.orders.ports import CartStore, Catalog, OrderStore
from storefront.payments.gateway import StripeGateway
from storefront.utils.security import require_user

WEBHOOK_SECRET = "whsec_test_secret"

PRODUCTS: Dict[str, Dict[str, Any]] = {
    "prod-a": {"id": "prod-a", "name": "Tomates", "sale_price": "10.00"},
    "prod-b": {"id": "prod-b", "name": "Oignons", "sale_price": "5.00"},
    "prod-c": {"id": "prod-c", "name": "Panier bio", "sale_price": "50.00"},
    "prod-d": {"id": "prod-d", "name": "Miel", "sale_price": "37.00"},
}

TEST_USER: Dict[str, Any] = {
    "id": "test-user",
    "email": "test@example.com",
    "role": "user",
    "token": "fake-token",
}


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


# --- Collaborateurs en mémoire -------------------------------------------

class InMemoryCatalog(Catalog):
    def __init__(self, products: Dict[str, Dict[str, Any]]):
        self.products = {k: dict(v) for k, v in products.items()}
        self.calls: List[List[str]] = []

    def get_products(self, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = list(ids)
        self.calls.append(ids)
        return {i: dict(self.products[i]) for i in ids if i in self.products}


class InMemoryCartStore(CartStore):
    def __init__(self):
        self.carts: Dict[str, Dict[str, int]] = {}
        self.clear_calls: List[str] = []

    def clear(self, owner_id: str) -> None:
        self.clear_calls.append(owner_id)
        self.carts[owner_id] = {}


class InMemoryOrderStore(OrderStore):
    def __init__(self):
        self.rows: Dict[str, Order] = {}
        self.writes: List[str] = []

    def _update(self, order_id: str, **changes) -> None:
        self.rows[order_id] = self.rows[order_id].model_copy(update=changes)

    def create(self, order: Order) -> Order:
        self.writes.append(f"create:{order.id}")
        self.rows[order.id] = order
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self.rows.get(order_id)

    def set_paid(self, order_id: str, event_id: Optional[str] = None) -> None:
        self.writes.append(f"set_paid:{order_id}")
        order = self.rows.get(order_id)
        if order and order.payment_method == PaymentMethod.ONLINE:
            self._update(order_id, paid=True, payment_status=PaymentStatus.PAID, last_payment_event_id=event_id)

    def mark_payment_failed(self, order_id: str, event_id: Optional[str] = None) -> None:
        self.writes.append(f"mark_payment_failed:{order_id}")
        order = self.rows.get(order_id)
        if order and not order.paid:
            self._update(order_id, payment_status=PaymentStatus.FAILED, last_payment_event_id=event_id)

    def attach_session(self, order_id: str, session_id: str) -> None:
        self.writes.append(f"attach_session:{order_id}")
        if order_id in self.rows:
            self._update(order_id, provider_session_id=session_id)

    def cancel(self, order_id: str) -> None:
        self.writes.append(f"cancel:{order_id}")
        order = self.rows.get(order_id)
        if order and not order.paid:
            self._update(order_id, cancelled_at=datetime.now(timezone.utc))

    def find_by_owner(self, owner_id: str) -> List[Order]:
        return [o for o in self.find_all() if o.owner_id == owner_id]

    def find_all(self) -> List[Order]:
        visible = [o for o in self.rows.values() if o.is_visible]
        return sorted(visible, key=lambda o: o.created_at, reverse=True)


class FakeGateway(StripeGateway):
    """Passerelle Stripe simulée: sessions en mémoire, vérification de signature réelle."""

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET):
        super().__init__(webhook_secret=webhook_secret)
        self.sessions: List[Dict[str, Any]] = []
        self.metadata_by_payment: Dict[str, Dict[str, Any]] = {}
        self.fail_open = False

    def open_session(self, *, line_items, metadata, success_url, cancel_url, customer_email=None):
        if self.fail_open:
            raise ProviderError("Stripe indisponible", order_id=metadata.get("order_id"))
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append({
            "id": session_id,
            "line_items": line_items,
            "metadata": dict(metadata),
            "success_url": success_url,
            "cancel_url": cancel_url,
            "customer_email": customer_email,
        })
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    def link_payment(self, payment_reference: str, order: Order) -> None:
        self.metadata_by_payment[payment_reference] = {"order_id": order.id, "owner_id": order.owner_id}

    def find_session_metadata(self, payment_reference: str):
        return self.metadata_by_payment.get(payment_reference)


# --- Webhooks signés -------------------------------------------------------

def make_event(event_type: str, payment_reference: str = "pi_test_1", event_id: str = "evt_test_1") -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": payment_reference, "object": "payment_intent"}},
    })


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """En-tête Stripe-Signature: t=<ts>,v1=<hmac_sha256(secret, "<ts>.<payload>")>."""
    ts = int(timestamp if timestamp is not None else time.time())
    signature = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


@pytest.fixture
def products() -> Dict[str, Dict[str, Any]]:
    return {k: dict(v) for k, v in PRODUCTS.items()}


@pytest.fixture
def catalog(products) -> InMemoryCatalog:
    return InMemoryCatalog(products)


@pytest.fixture
def carts() -> InMemoryCartStore:
    return InMemoryCartStore()


@pytest.fixture
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def signer():
    return sign


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def client(app, catalog, order_store, carts, gateway) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_order_store] = lambda: order_store
    app.dependency_overrides[get_cart_store] = lambda: carts
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[require_user] = lambda: dict(TEST_USER)
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
