"""
Module 'payments' (feature-first): point d'entrée public.
Réunit line_items, metadata Stripe, client Stripe, passerelle, services et réconciliation.
"""

from .line_items import to_line_items, baked_unit_price
from .metadata import make_metadata, extract_order_ref
from .stripe_client import require_stripe, create_session, list_sessions_for_payment, verify_signature
from .gateway import PaymentGateway, StripeGateway
from .service import ReturnUrls, build_return_urls, open_session, place_online_order, checkout_order
from .reconciliation import EventKind, ReconciliationEvent, classify_event, handle_event

__all__ = [
    # line items
    "to_line_items",
    "baked_unit_price",
    # metadata
    "make_metadata",
    "extract_order_ref",
    # stripe
    "require_stripe",
    "create_session",
    "list_sessions_for_payment",
    "verify_signature",
    # gateway
    "PaymentGateway",
    "StripeGateway",
    # services
    "ReturnUrls",
    "build_return_urls",
    "open_session",
    "place_online_order",
    "checkout_order",
    # reconciliation
    "EventKind",
    "ReconciliationEvent",
    "classify_event",
    "handle_event",
]
