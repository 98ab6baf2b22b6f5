"""
Payments: gateway adapter, signed webhooks and payment flows.

    from orderflow import payments as P

    async with P.StripeGateway.from_settings(settings) as gateway:
        payments = P.PaymentService(order_service, gateway, currency="usd")
        created = await payments.create_payment_intent(order_id, actor)

    webhooks = P.WebhookHandler(order_service, events_store, secret=settings.STRIPE_WEBHOOK_SECRET)
    ack = await webhooks.handle(raw_body, request.headers.get("Stripe-Signature"))
"""

from orderflow.payments._types import (
    PaymentIntent,
    Refund,
    WebhookEvent,
    PaymentMethodInfo,
    PAYMENT_METHODS,
)
from orderflow.payments._gateway import PaymentGateway, GatewayError, StripeGateway
from orderflow.payments._signature import compute_signature, sign_payload, verify_signature
from orderflow.payments._service import IntentCreated, PaymentService
from orderflow.payments._webhooks import (
    WebhookAck,
    WebhookHandler,
    PAYMENT_SUCCEEDED,
    PAYMENT_FAILED,
    CHARGE_REFUNDED,
)

__all__ = (
    "PaymentIntent",
    "Refund",
    "WebhookEvent",
    "PaymentMethodInfo",
    "PAYMENT_METHODS",
    "PaymentGateway",
    "GatewayError",
    "StripeGateway",
    "compute_signature",
    "sign_payload",
    "verify_signature",
    "IntentCreated",
    "PaymentService",
    "WebhookAck",
    "WebhookHandler",
    "PAYMENT_SUCCEEDED",
    "PAYMENT_FAILED",
    "CHARGE_REFUNDED",
)
