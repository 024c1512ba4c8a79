# module storefront.orders.models
"""Modèles des commandes (pydantic).
- CartLine: ligne de panier éphémère, jamais persistée par ce module.
- OrderLine: ligne figée au moment de la commande (prix snapshot).
- Order: commande persistée dans la table 'orders'; la forme de ligne (to_row)
  est le contrat durable lu par les écrans de listing.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Borne par ligne: garde les montants dans la précision Decimal par défaut (28 chiffres)
MAX_QUANTITY = 10_000


class PaymentMethod(str, Enum):
    OFFLINE = "OFFLINE"  # paiement à la livraison
    ONLINE = "ONLINE"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    OFFLINE = "offline"


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int = Field(gt=0, le=MAX_QUANTITY)


class OrderLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    # Données d'affichage résolues au listing ({name, sale_price}), jamais persistées
    product: Optional[Dict[str, Any]] = None


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    lines: List[OrderLine] = Field(min_length=1)
    total_amount: Decimal = Field(ge=0)
    shipping_address_id: str
    payment_method: PaymentMethod
    paid: bool = False
    payment_status: PaymentStatus = PaymentStatus.PENDING
    provider_session_id: Optional[str] = None
    last_payment_event_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    shipping_address: Optional[Dict[str, Any]] = None

    @property
    def is_visible(self) -> bool:
        """Règle de visibilité des listings: paiement à la livraison OU payée."""
        return self.payment_method == PaymentMethod.OFFLINE or self.paid

    def to_row(self) -> Dict[str, Any]:
        """Ligne Supabase (montants en chaînes à 2 décimales, dates ISO)."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "lines": [
                {
                    "product_id": line.product_id,
                    "quantity": line.quantity,
                    "unit_price": f"{line.unit_price:.2f}",
                }
                for line in self.lines
            ],
            "total_amount": f"{self.total_amount:.2f}",
            "shipping_address_id": self.shipping_address_id,
            "payment_method": self.payment_method.value,
            "paid": self.paid,
            "payment_status": self.payment_status.value,
            "provider_session_id": self.provider_session_id,
            "last_payment_event_id": self.last_payment_event_id,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        # La jointure 'address:addresses(*)' arrive sous la clé 'address'
        data = dict(row)
        address = data.pop("address", None)
        if address and not data.get("shipping_address"):
            data["shipping_address"] = address
        return cls.model_validate(data)

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
