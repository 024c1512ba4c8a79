import pytest

from storefront.errors import NotFoundError, ProviderError, StoreError, ValidationError
from storefront.orders.models import PaymentStatus
from storefront.payments import service
from storefront.payments.service import ReturnUrls, build_return_urls

URLS = ReturnUrls("https://shop.test/loader?next=my-orders", "https://shop.test/cart")
CART = [{"product_id": "prod-c", "quantity": 1}]


def _place(catalog, gateway, order_store, **kw):
    return service.place_online_order(
        "u1", CART, "addr-1", URLS, catalog=catalog, gateway=gateway, orders=order_store, **kw
    )


def test_place_online_order_opens_session(catalog, gateway, order_store):
    order, url = _place(catalog, gateway, order_store, customer_email="client@example.com")

    assert url == "https://checkout.stripe.test/cs_test_1"
    session = gateway.sessions[0]
    assert session["metadata"] == {"order_id": order.id, "owner_id": "u1"}
    assert session["success_url"] == URLS.success_url
    assert session["cancel_url"] == URLS.cancel_url
    assert session["customer_email"] == "client@example.com"
    assert session["line_items"][0]["price_data"]["unit_amount"] == 5100
    assert session["line_items"][0]["price_data"]["product_data"]["name"] == "Panier bio"
    # Écriture de la commande avant l'ouverture de session
    assert order_store.writes == [f"create:{order.id}", f"attach_session:{order.id}"]
    assert order_store.get(order.id).provider_session_id == "cs_test_1"


def test_provider_failure_keeps_pending_order(catalog, gateway, order_store):
    gateway.fail_open = True

    with pytest.raises(ProviderError) as exc:
        _place(catalog, gateway, order_store)

    stored = order_store.get(exc.value.order_id)
    assert stored is not None
    assert stored.paid is False
    assert stored.payment_status == PaymentStatus.PENDING
    assert stored.provider_session_id is None


def test_attach_session_failure_still_returns_url(catalog, gateway, order_store, monkeypatch):
    def _boom(order_id, session_id):
        raise StoreError()
    monkeypatch.setattr(order_store, "attach_session", _boom)

    order, url = _place(catalog, gateway, order_store)
    assert url.endswith("cs_test_1")


def test_checkout_order_retry(catalog, gateway, order_store):
    gateway.fail_open = True
    with pytest.raises(ProviderError) as exc:
        _place(catalog, gateway, order_store)
    gateway.fail_open = False

    url = service.checkout_order(
        "u1", exc.value.order_id, URLS, catalog=catalog, gateway=gateway, orders=order_store
    )
    assert url == "https://checkout.stripe.test/cs_test_1"
    assert gateway.sessions[0]["metadata"]["order_id"] == exc.value.order_id


def test_checkout_order_rejects_paid_offline_and_foreign(catalog, gateway, order_store):
    from storefront.orders.service import place_order

    order, _ = _place(catalog, gateway, order_store)
    order_store.set_paid(order.id, "evt_1")
    with pytest.raises(ValidationError):
        service.checkout_order("u1", order.id, URLS, catalog=catalog, gateway=gateway, orders=order_store)

    offline = place_order("u1", CART, "addr-1", "OFFLINE", catalog=catalog, orders=order_store)
    with pytest.raises(ValidationError):
        service.checkout_order("u1", offline.id, URLS, catalog=catalog, gateway=gateway, orders=order_store)

    with pytest.raises(NotFoundError):
        service.checkout_order("intrus", offline.id, URLS, catalog=catalog, gateway=gateway, orders=order_store)


def test_build_return_urls_from_origin(monkeypatch):
    monkeypatch.setattr(service, "BASE_URL", "")
    urls = build_return_urls("http://testserver/")
    assert urls.success_url == "http://testserver/loader?next=my-orders"
    assert urls.cancel_url == "http://testserver/cart"


def test_build_return_urls_prefers_base_url(monkeypatch):
    monkeypatch.setattr(service, "BASE_URL", "https://boutique.example")
    assert build_return_urls("http://internal:8000/").success_url.startswith("https://boutique.example/")
