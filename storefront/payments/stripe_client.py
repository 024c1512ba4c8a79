"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
"""
import json
import stripe
from typing import Any, Dict, List, Optional, Union

from storefront.config import STRIPE_SECRET_KEY


# module storefront.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if STRIPE_SECRET_KEY:
        stripe.api_key = STRIPE_SECRET_KEY
    return stripe


def create_session(
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    customer_email: Optional[str] = None,
    mode: str = "payment",
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    Retour: {"id": "cs_test_...", "url": "https://checkout.stripe.com/..."}
    """
    require_stripe()
    params: Dict[str, Any] = dict(
        line_items=line_items,
        mode=mode,
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
        payment_method_types=["card"],
    )
    if customer_email:
        params["customer_email"] = customer_email
    session = stripe.checkout.Session.create(**params)
    return {"id": getattr(session, "id", None), "url": getattr(session, "url", None)}


def list_sessions_for_payment(payment_intent_id: str) -> List[Any]:
    """Sessions Checkout rattachées à un PaymentIntent (au plus une en pratique)."""
    require_stripe()
    result = stripe.checkout.Session.list(payment_intent=payment_intent_id, limit=1)
    return list(getattr(result, "data", None) or [])


def verify_signature(payload: Union[bytes, str], sig_header: str, secret: str) -> Dict[str, Any]:
    """
    Vérifie l'en-tête Stripe-Signature (HMAC-SHA256 + tolérance horaire) puis
    décode l'événement en dict Python.
    Soulève stripe.SignatureVerificationError ou ValueError (payload non JSON).
    """
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    stripe.WebhookSignature.verify_header(text, sig_header, secret, stripe.Webhook.DEFAULT_TOLERANCE)
    return json.loads(text)
