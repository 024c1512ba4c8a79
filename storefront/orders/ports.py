"""
Contrats des collaborateurs externes (catalogue, panier, stockage des commandes).
Les implémentations Supabase vivent dans catalog/, carts/ et orders/repository.py;
les tests utilisent des implémentations en mémoire.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from .models import Order


class Catalog(ABC):
    @abstractmethod
    def get_products(self, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """Retourne {id: {id, name, sale_price}} pour les produits existants."""


class CartStore(ABC):
    @abstractmethod
    def clear(self, owner_id: str) -> None:
        """Vide le panier du propriétaire (sans effet s'il est déjà vide)."""


class OrderStore(ABC):
    @abstractmethod
    def create(self, order: Order) -> Order: ...

    @abstractmethod
    def get(self, order_id: str) -> Optional[Order]: ...

    @abstractmethod
    def set_paid(self, order_id: str, event_id: Optional[str] = None) -> None:
        """Passe paid=True sans condition (idempotent); réservé aux commandes ONLINE."""

    @abstractmethod
    def mark_payment_failed(self, order_id: str, event_id: Optional[str] = None) -> None:
        """payment_status='failed' uniquement si la commande n'est pas payée."""

    @abstractmethod
    def attach_session(self, order_id: str, session_id: str) -> None: ...

    @abstractmethod
    def cancel(self, order_id: str) -> None:
        """Renseigne cancelled_at si la commande n'est pas payée."""

    @abstractmethod
    def find_by_owner(self, owner_id: str) -> List[Order]:
        """Commandes visibles du propriétaire, created_at décroissant."""

    @abstractmethod
    def find_all(self) -> List[Order]:
        """Toutes les commandes visibles, created_at décroissant."""
