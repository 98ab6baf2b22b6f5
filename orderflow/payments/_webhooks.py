"""
Webhook handling: signed, deduplicated gateway events.

    verify signature ──► parse ──► run_once(event id) ──► dispatch by type

A redelivered event id returns the stored outcome without dispatching
again. Failed dispatches are forgotten so the gateway's retry can run.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta

from kungfu import Result, Ok, Error

from orderflow import idempotency as I
from orderflow._types import Clock, utcnow
from orderflow.errors import ErrorKind, OrderError, OrderErrors, FieldError
from orderflow.orders import OrderService, PaymentResult
from orderflow.payments._signature import verify_signature
from orderflow.payments._types import PaymentIntent, WebhookEvent

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"


@dataclass(frozen=True, slots=True)
class WebhookAck:
    event_id: str
    event_type: str
    outcome: str
    duplicate: bool = False


class WebhookHandler:
    def __init__(
        self,
        orders: OrderService,
        events: I.Store[str],
        secret: str,
        tolerance_seconds: int = 300,
        dedup_ttl: timedelta = timedelta(hours=72),
        claim_lease: timedelta = timedelta(minutes=5),
        clock: Clock = utcnow,
    ) -> None:
        self._orders = orders
        self._events = events
        self._secret = secret
        self._tolerance = tolerance_seconds
        self._policy = (
            I.Policy()
            .with_ttl(delta=dedup_ttl)
            .with_pending_ttl(seconds=claim_lease.total_seconds())
            .with_on_pending(I.FAIL)
        )
        self._clock = clock

    async def handle(self, payload: bytes, signature: str | None) -> Result[WebhookAck, OrderError]:
        match verify_signature(payload, signature, self._secret, self._tolerance, self._clock().timestamp()):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        try:
            event = WebhookEvent.from_json(json.loads(payload))
        except (ValueError, KeyError, TypeError, AttributeError):
            return Error(OrderErrors.validation(FieldError("body", "Malformed event payload")))

        result = await I.run_once(self._events, f"webhook:{event.id}", lambda: self._dispatch(event), self._policy)

        match result:
            case Ok(done):
                if done.from_cache:
                    logger.info("Webhook event %s already processed", event.id)
                return Ok(WebhookAck(event.id, event.type, done.value, duplicate=done.from_cache))
            case Error(err):
                if err.kind == I.IdempotencyErrorKind.EXECUTION and isinstance(err.original_error, OrderError):
                    return Error(err.original_error)
                logger.error("Webhook event %s not processed: %s", event.id, err.message)
                return Error(OrderErrors.internal("Event could not be processed, retry later"))

    async def _dispatch(self, event: WebhookEvent) -> Result[str, OrderError]:
        if event.type == PAYMENT_SUCCEEDED:
            return await self._payment_succeeded(PaymentIntent.from_json(event.obj))
        if event.type == PAYMENT_FAILED:
            logger.warning("Payment failed: %s", event.obj.get("id"))
            return Ok("logged")
        if event.type == CHARGE_REFUNDED:
            logger.info("Refund processed: %s", event.obj.get("id"))
            return Ok("logged")
        logger.info("Unhandled event type %s", event.type)
        return Ok("ignored")

    async def _payment_succeeded(self, intent: PaymentIntent) -> Result[str, OrderError]:
        if intent.order_id is None:
            logger.info("PaymentIntent %s succeeded without an order reference", intent.id)
            return Ok("ignored")

        payment = PaymentResult(
            id=intent.id,
            status=intent.status,
            update_time=self._clock(),
            email_address=intent.receipt_email,
        )
        match await self._orders.process_payment(intent.order_id, payment):
            case Error(e) if e.kind == ErrorKind.NOT_FOUND:
                logger.warning("PaymentIntent %s references unknown order %s", intent.id, intent.order_id)
                return Ok("ignored")
            case Error(e):
                return Error(e)
            case Ok(_):
                return Ok("payment_recorded")


__all__ = ("WebhookAck", "WebhookHandler", "PAYMENT_SUCCEEDED", "PAYMENT_FAILED", "CHARGE_REFUNDED")
