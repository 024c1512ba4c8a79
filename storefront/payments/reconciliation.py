"""
Réconciliation des webhooks Stripe avec les commandes.

Machine d'état d'une commande ONLINE:
    pending --payment_intent.succeeded-->      paid   (terminal)
    pending --payment_intent.payment_failed--> failed (commande conservée, non payée)
    failed  --payment_intent.succeeded-->      paid
Aucune transition ne sort de 'paid'.

Stripe livre "au moins une fois" et sans ordre garanti: chaque transition est
idempotente (paid=True posé sans condition, vidage de panier sans effet sur un
panier vide), donc rejouer un événement équivaut à l'appliquer une fois.
La commande est retrouvée via les métadonnées de la session Checkout liée au
PaymentIntent, jamais via les métadonnées du corps de l'événement.
"""
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional
import logging

from storefront.orders.models import PaymentMethod
from storefront.orders.ports import CartStore, OrderStore
from .gateway import PaymentGateway
from .metadata import extract_order_ref

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    OTHER = "OTHER"


EVENT_KINDS = {
    "payment_intent.succeeded": EventKind.PAYMENT_SUCCEEDED,
    "payment_intent.payment_failed": EventKind.PAYMENT_FAILED,
}


class ReconciliationEvent(NamedTuple):
    provider_event_id: Optional[str]
    kind: EventKind
    payment_reference: Optional[str]
    event_type: str


def classify_event(event: Dict[str, Any]) -> ReconciliationEvent:
    event_type = str(event.get("type") or "")
    data = event.get("data")
    data_obj = (data.get("object") if isinstance(data, dict) else None) or {}
    reference = data_obj.get("id") if isinstance(data_obj, dict) else None
    return ReconciliationEvent(
        provider_event_id=event.get("id"),
        kind=EVENT_KINDS.get(event_type, EventKind.OTHER),
        payment_reference=reference,
        event_type=event_type,
    )


def _ack(status: str, event: Optional[ReconciliationEvent] = None, order_id: Optional[str] = None) -> Dict[str, Any]:
    ack: Dict[str, Any] = {"received": True, "status": status}
    if event is not None:
        ack["event_id"] = event.provider_event_id
    if order_id:
        ack["order_id"] = order_id
    return ack


def handle_event(
    raw_payload: bytes,
    signature_header: Optional[str],
    *,
    gateway: PaymentGateway,
    orders: OrderStore,
    carts: CartStore,
) -> Dict[str, Any]:
    """
    Traite un webhook brut et retourne l'accusé de réception.
    - AuthenticityError (signature) propagée: aucun changement d'état.
    - Types non gérés, sessions ou commandes inconnues: acquittés ("ignored").
    - StoreError / ProviderError propagées: Stripe relivrera l'événement.
    Statuts: "paid", "failed", "ignored".
    """
    event = classify_event(gateway.verify_event(raw_payload, signature_header))

    if event.kind == EventKind.OTHER:
        logger.warning("payments.webhook unhandled event type=%s id=%s", event.event_type, event.provider_event_id)
        return _ack("ignored", event)

    if not event.payment_reference:
        logger.warning("payments.webhook missing payment reference id=%s", event.provider_event_id)
        return _ack("ignored", event)

    order_id, meta_owner_id = extract_order_ref(gateway.find_session_metadata(event.payment_reference))
    if not order_id:
        logger.warning(
            "payments.webhook no session for payment=%s id=%s", event.payment_reference, event.provider_event_id
        )
        return _ack("ignored", event)

    order = orders.get(order_id)
    if order is None:
        logger.warning("payments.webhook unknown order order_id=%s id=%s", order_id, event.provider_event_id)
        return _ack("ignored", event, order_id)
    if order.payment_method != PaymentMethod.ONLINE:
        logger.warning("payments.webhook offline order order_id=%s id=%s", order_id, event.provider_event_id)
        return _ack("ignored", event, order_id)
    if meta_owner_id and meta_owner_id != order.owner_id:
        # La commande stockée fait foi pour le propriétaire
        logger.warning(
            "payments.webhook owner mismatch order_id=%s meta_owner=%s owner=%s",
            order_id, meta_owner_id, order.owner_id,
        )

    if event.kind == EventKind.PAYMENT_SUCCEEDED:
        if order.cancelled_at is not None:
            # Paiement encaissé via une session encore ouverte: à rembourser par un opérateur
            logger.warning(
                "payments.webhook payment on cancelled order order_id=%s owner_id=%s cancelled_at=%s id=%s",
                order.id, order.owner_id, order.cancelled_at.isoformat(), event.provider_event_id,
            )
        orders.set_paid(order.id, event.provider_event_id)
        carts.clear(order.owner_id)
        logger.info(
            "payments.webhook paid order_id=%s owner_id=%s id=%s already_paid=%s",
            order.id, order.owner_id, event.provider_event_id, order.paid,
        )
        return _ack("paid", event, order.id)

    if order.paid:
        logger.info("payments.webhook failure after payment ignored order_id=%s id=%s", order.id, event.provider_event_id)
        return _ack("ignored", event, order.id)
    orders.mark_payment_failed(order.id, event.provider_event_id)
    logger.info("payments.webhook payment failed order_id=%s id=%s", order.id, event.provider_event_id)
    return _ack("failed", event, order.id)
