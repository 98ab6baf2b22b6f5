"""
Payment types: gateway objects as order logic sees them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    """A gateway's handle for one charge attempt."""

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    receipt_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def order_id(self) -> str | None:
        return self.metadata.get("orderId")

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> PaymentIntent:
        return cls(
            id=data["id"],
            status=data.get("status", ""),
            amount_cents=int(data.get("amount", 0)),
            currency=data.get("currency", ""),
            client_secret=data.get("client_secret"),
            receipt_email=data.get("receipt_email"),
            metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
        )


@dataclass(frozen=True, slots=True)
class Refund:
    id: str
    status: str
    amount_cents: int
    payment_intent_id: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Refund:
        return cls(
            id=data["id"],
            status=data.get("status", ""),
            amount_cents=int(data.get("amount", 0)),
            payment_intent_id=data.get("payment_intent"),
        )


@dataclass(frozen=True, slots=True)
class WebhookEvent:
    id: str
    type: str
    obj: dict[str, Any]

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> WebhookEvent:
        return cls(
            id=data["id"],
            type=data["type"],
            obj=(data.get("data") or {}).get("object") or {},
        )


@dataclass(frozen=True, slots=True)
class PaymentMethodInfo:
    id: str
    name: str
    description: str
    icon: str


PAYMENT_METHODS: tuple[PaymentMethodInfo, ...] = (
    PaymentMethodInfo("card", "Credit/Debit Card", "Pay with Visa, Mastercard, American Express, or Discover", "credit-card"),
    PaymentMethodInfo("paypal", "PayPal", "Pay with your PayPal account", "paypal"),
)


__all__ = (
    "PaymentIntent",
    "Refund",
    "WebhookEvent",
    "PaymentMethodInfo",
    "PAYMENT_METHODS",
)
