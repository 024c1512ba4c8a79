"""
Passerelle de paiement: contrat abstrait + implémentation Stripe.
- open_session: ouvre une session hébergée, retourne {"id", "url"}
- verify_event: authentifie un webhook brut, retourne l'événement (dict)
- find_session_metadata: métadonnées de la session liée à une référence de paiement
Les erreurs SDK sont converties en ProviderError / AuthenticityError.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging

import stripe

from storefront.config import STRIPE_WEBHOOK_SECRET
from storefront.errors import AuthenticityError, ProviderError
from . import stripe_client

logger = logging.getLogger(__name__)


class PaymentGateway(ABC):
    @abstractmethod
    def open_session(
        self,
        *,
        line_items: List[Dict[str, Any]],
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> Dict[str, Any]: ...

    @abstractmethod
    def verify_event(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]: ...

    @abstractmethod
    def find_session_metadata(self, payment_reference: str) -> Optional[Dict[str, Any]]: ...


class StripeGateway(PaymentGateway):
    def __init__(self, webhook_secret: Optional[str] = None):
        self.webhook_secret = STRIPE_WEBHOOK_SECRET if webhook_secret is None else webhook_secret

    def open_session(
        self,
        *,
        line_items: List[Dict[str, Any]],
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            session = stripe_client.create_session(
                line_items=line_items,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                customer_email=customer_email,
            )
        except stripe.StripeError as e:
            logger.exception("payments.gateway.open_session failed order_id=%s", metadata.get("order_id"))
            raise ProviderError(
                getattr(e, "user_message", None) or "Création de la session de paiement impossible",
                order_id=metadata.get("order_id"),
            )
        if not session.get("id") or not session.get("url"):
            raise ProviderError("Session de paiement invalide", order_id=metadata.get("order_id"))
        return session

    def verify_event(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        # Pas de secret configuré => rejet, jamais de contournement
        if not self.webhook_secret:
            raise AuthenticityError("Secret webhook non configuré")
        if not signature_header:
            raise AuthenticityError("Signature manquante")
        try:
            event = stripe_client.verify_signature(payload, signature_header, self.webhook_secret)
        except stripe.SignatureVerificationError:
            raise AuthenticityError("Signature invalide")
        except (UnicodeDecodeError, ValueError):
            raise AuthenticityError("Payload webhook invalide")
        if not isinstance(event, dict):
            raise AuthenticityError("Payload webhook invalide")
        return event

    def find_session_metadata(self, payment_reference: str) -> Optional[Dict[str, Any]]:
        try:
            sessions = stripe_client.list_sessions_for_payment(payment_reference)
        except stripe.StripeError:
            logger.exception("payments.gateway.find_session_metadata failed payment=%s", payment_reference)
            raise ProviderError("Recherche de session impossible")
        if not sessions:
            return None
        session = sessions[0]
        if isinstance(session, dict):
            meta = session.get("metadata")
        else:
            meta = getattr(session, "metadata", None)
        if not meta:
            return None
        to_dict = getattr(meta, "to_dict", None)
        return dict(to_dict()) if callable(to_dict) else dict(meta)
