"""
Taxonomie des erreurs métier de la boutique.

Chaque erreur porte un code HTTP et un message destiné au client; le handler
enregistré dans storefront.app_setup.exceptions les convertit en JSON
{"success": false, "detail": ...} sans trace d'exécution.
"""
from typing import Optional


class StorefrontError(Exception):
    status_code = 400
    default_detail = "Requête invalide"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(StorefrontError):
    """Panier, adresse, quantité ou mode de paiement invalide (aucun effet de bord)."""
    status_code = 400
    default_detail = "Données de commande invalides"


class NotFoundError(StorefrontError):
    """Produit ou commande introuvable (aucun effet de bord)."""
    status_code = 404
    default_detail = "Ressource introuvable"


class AuthenticityError(StorefrontError):
    """Signature de webhook absente ou invalide: rejet sans changement d'état."""
    status_code = 400
    default_detail = "Webhook invalide"


class ProviderError(StorefrontError):
    """Échec d'appel au prestataire de paiement; la commande reste enregistrée sans session."""
    status_code = 502
    default_detail = "Prestataire de paiement indisponible"

    def __init__(self, detail: Optional[str] = None, order_id: Optional[str] = None):
        super().__init__(detail)
        self.order_id = order_id


class StoreError(StorefrontError):
    """Échec de lecture/écriture en base (réessayable)."""
    status_code = 503
    default_detail = "Stockage indisponible"
