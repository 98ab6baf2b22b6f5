"""
Payment gateway adapter.

Connection details:
    - Base URL: https://api.stripe.com (ORDERFLOW_STRIPE_API_BASE)
    - Auth: Bearer secret key
    - Bodies: form-encoded, nested keys as metadata[orderId]

Endpoints:
    - POST /v1/payment_intents          create a charge attempt
    - GET  /v1/payment_intents/{id}     read its status
    - POST /v1/refunds                  refund against a payment intent

Every call is a LazyCoroResult: transport and HTTP failures are turned
into PAYMENT_PROCESSOR errors, nothing is raised to the caller.

    async with StripeGateway(secret_key="sk_test_...") as gateway:
        match await gateway.create_payment_intent(1999, "usd", {"orderId": "o1"}):
            case Ok(intent): intent.client_secret
            case Error(e): e.kind is ErrorKind.PAYMENT_PROCESSOR
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from combinators import lift as L
from kungfu import LazyCoroResult

from orderflow.config import Settings
from orderflow.errors import OrderError, OrderErrors
from orderflow.payments._types import PaymentIntent, Refund

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: dict[str, str]
    ) -> LazyCoroResult[PaymentIntent, OrderError]:
        ...

    def retrieve_payment_intent(self, payment_intent_id: str) -> LazyCoroResult[PaymentIntent, OrderError]:
        ...

    def create_refund(
        self, payment_intent_id: str, amount_cents: int, reason: str | None
    ) -> LazyCoroResult[Refund, OrderError]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class GatewayError(Exception):
    """Raised inside the adapter; surfaced to callers as PAYMENT_PROCESSOR."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


def _to_order_error(exc: Exception) -> OrderError:
    if isinstance(exc, GatewayError):
        return OrderErrors.payment_processor(exc.message)
    logger.exception("Unexpected gateway failure", exc_info=exc)
    return OrderErrors.payment_processor("Payment processor request failed")


def _form(prefix: str, values: dict[str, str]) -> dict[str, str]:
    return {f"{prefix}[{key}]": value for key, value in values.items()}


# ═══════════════════════════════════════════════════════════════════════════════
# Stripe
# ═══════════════════════════════════════════════════════════════════════════════


class StripeGateway:
    """
    Async Stripe REST client.

    Pass client= to share a connection pool or to plug in a mock transport;
    otherwise one is created on __aenter__ (or lazily on first call).
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.stripe.com",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not secret_key:
            logger.warning("StripeGateway created without a secret key")
        self._secret_key = secret_key
        self._base_url = base_url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings) -> StripeGateway:
        return cls(
            secret_key=settings.STRIPE_SECRET_KEY,
            base_url=settings.STRIPE_API_BASE,
            timeout=settings.STRIPE_TIMEOUT,
        )

    async def __aenter__(self) -> StripeGateway:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Authorization": f"Bearer {self._secret_key}"},
                timeout=self._timeout,
            )
        return self._client

    async def _request(self, method: str, path: str, data: dict[str, str] | None = None) -> dict[str, Any]:
        client = self._ensure_client()
        try:
            response = await client.request(method, path, data=data)
        except httpx.ConnectError as e:
            logger.error("Gateway connection error: %s", e)
            raise GatewayError("CONNECTION_ERROR", "Could not connect to payment processor") from e
        except httpx.TimeoutException as e:
            logger.error("Gateway timeout: %s", e)
            raise GatewayError("TIMEOUT", "Payment processor request timed out") from e

        if response.status_code == 401:
            raise GatewayError("AUTH_ERROR", "Invalid payment processor credentials")

        if response.status_code >= 400:
            message = "Payment processor rejected the request"
            try:
                message = response.json().get("error", {}).get("message") or message
            except ValueError:
                pass
            logger.error("Gateway %s %s failed with %d: %s", method, path, response.status_code, message)
            raise GatewayError(f"HTTP_{response.status_code}", message)

        return response.json()

    # ─── operations ───────────────────────────────────────────────────────────

    async def _create_payment_intent(self, amount_cents: int, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        logger.info("Creating payment intent: amount=%d %s, metadata=%s", amount_cents, currency, metadata)
        data = {
            "amount": str(amount_cents),
            "currency": currency,
            "automatic_payment_methods[enabled]": "true",
            **_form("metadata", metadata),
        }
        intent = PaymentIntent.from_json(await self._request("POST", "/v1/payment_intents", data))
        logger.info("Payment intent created: %s", intent.id)
        return intent

    async def _retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntent:
        intent = PaymentIntent.from_json(await self._request("GET", f"/v1/payment_intents/{payment_intent_id}"))
        logger.info("Payment intent %s status: %s", intent.id, intent.status)
        return intent

    async def _create_refund(self, payment_intent_id: str, amount_cents: int, reason: str | None) -> Refund:
        logger.info("Creating refund: intent=%s amount=%d", payment_intent_id, amount_cents)
        data = {
            "payment_intent": payment_intent_id,
            "amount": str(amount_cents),
            "reason": "requested_by_customer",
        }
        if reason:
            data["metadata[refundReason]"] = reason
        refund = Refund.from_json(await self._request("POST", "/v1/refunds", data))
        logger.info("Refund %s created (%s)", refund.id, refund.status)
        return refund

    def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: dict[str, str]
    ) -> LazyCoroResult[PaymentIntent, OrderError]:
        return L.catching_async(
            lambda: self._create_payment_intent(amount_cents, currency, metadata),
            on_error=_to_order_error,
        )

    def retrieve_payment_intent(self, payment_intent_id: str) -> LazyCoroResult[PaymentIntent, OrderError]:
        return L.catching_async(
            lambda: self._retrieve_payment_intent(payment_intent_id),
            on_error=_to_order_error,
        )

    def create_refund(
        self, payment_intent_id: str, amount_cents: int, reason: str | None
    ) -> LazyCoroResult[Refund, OrderError]:
        return L.catching_async(
            lambda: self._create_refund(payment_intent_id, amount_cents, reason),
            on_error=_to_order_error,
        )


__all__ = ("PaymentGateway", "GatewayError", "StripeGateway")
