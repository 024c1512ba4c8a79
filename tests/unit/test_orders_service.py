from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.errors import NotFoundError, ValidationError
from storefront.orders import service
from storefront.orders.models import PaymentMethod, PaymentStatus

CART = [{"product_id": "prod-a", "quantity": 2}, {"product_id": "prod-b", "quantity": 1}]


def test_place_offline_order(catalog, order_store):
    order = service.place_order("u1", CART, "addr-1", "OFFLINE", catalog=catalog, orders=order_store)

    assert order.total_amount == Decimal("25.00")
    assert order.payment_method == PaymentMethod.OFFLINE
    assert order.payment_status == PaymentStatus.OFFLINE
    assert order.paid is False
    assert order_store.writes == [f"create:{order.id}"]
    assert order_store.get(order.id) == order


def test_place_online_order_is_pending_and_hidden(catalog, order_store):
    order = service.place_order("u1", CART, "addr-1", PaymentMethod.ONLINE, catalog=catalog, orders=order_store)

    assert order.payment_status == PaymentStatus.PENDING
    assert service.list_owner_orders("u1", orders=order_store) == []
    assert service.list_all_orders(orders=order_store) == []


def test_place_order_unknown_product_writes_nothing(catalog, order_store):
    with pytest.raises(NotFoundError):
        service.place_order(
            "u1", [{"product_id": "ghost", "quantity": 1}], "addr-1", "OFFLINE", catalog=catalog, orders=order_store
        )
    assert order_store.writes == []


@pytest.mark.parametrize("owner,cart,address,method", [
    ("u1", [], "addr-1", "OFFLINE"),
    ("u1", [{"product_id": "prod-a", "quantity": 0}], "addr-1", "OFFLINE"),
    ("", CART, "addr-1", "OFFLINE"),
    ("u1", CART, None, "OFFLINE"),
    ("u1", CART, "addr-1", "CRYPTO"),
])
def test_place_order_validation_errors(catalog, order_store, owner, cart, address, method):
    with pytest.raises(ValidationError):
        service.place_order(owner, cart, address, method, catalog=catalog, orders=order_store)
    assert order_store.writes == []
    # Validation avant toute lecture catalogue
    assert catalog.calls == []


def test_cart_validated_before_method(catalog, order_store):
    with pytest.raises(ValidationError) as exc:
        service.place_order("u1", [], "addr-1", "CRYPTO", catalog=catalog, orders=order_store)
    assert exc.value.detail == "Panier vide"


def test_listing_order_is_newest_first(catalog, order_store):
    first = service.place_order("u1", CART, "addr-1", "OFFLINE", catalog=catalog, orders=order_store)
    second = service.place_order("u1", CART, "addr-1", "OFFLINE", catalog=catalog, orders=order_store)
    now = datetime.now(timezone.utc)
    order_store.rows[first.id] = first.model_copy(update={"created_at": now - timedelta(hours=1)})
    order_store.rows[second.id] = second.model_copy(update={"created_at": now})

    listed = service.list_owner_orders("u1", orders=order_store)
    assert [o.id for o in listed] == [second.id, first.id]
    assert service.list_owner_orders("someone-else", orders=order_store) == []


def test_cancel_order(catalog, order_store):
    order = service.place_order("u1", CART, "addr-1", "ONLINE", catalog=catalog, orders=order_store)

    cancelled = service.cancel_order("u1", order.id, orders=order_store)
    assert cancelled.cancelled_at is not None
    # Idempotent
    again = service.cancel_order("u1", order.id, orders=order_store)
    assert again.cancelled_at == cancelled.cancelled_at
    assert order_store.writes.count(f"cancel:{order.id}") == 1


def test_cancel_order_of_other_owner_is_not_found(catalog, order_store):
    order = service.place_order("u1", CART, "addr-1", "ONLINE", catalog=catalog, orders=order_store)
    with pytest.raises(NotFoundError):
        service.cancel_order("intrus", order.id, orders=order_store)


def test_cancel_paid_order_rejected(catalog, order_store):
    order = service.place_order("u1", CART, "addr-1", "ONLINE", catalog=catalog, orders=order_store)
    order_store.set_paid(order.id, "evt_1")
    with pytest.raises(ValidationError):
        service.cancel_order("u1", order.id, orders=order_store)
