"""
Webhook signatures.

Header format:

    Stripe-Signature: t=<unix seconds>,v1=<hex hmac-sha256>[,v1=...]

where the signed message is "<t>.<raw body>" keyed with the shared
webhook secret. Several v1 entries may be present during secret rotation;
any match is accepted.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from kungfu import Result, Ok, Error

from orderflow.errors import OrderError, OrderErrors

logger = logging.getLogger(__name__)

SCHEME = "v1"


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    message = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), msg=message, digestmod=hashlib.sha256).hexdigest()


def sign_payload(payload: bytes, secret: str, timestamp: int) -> str:
    """Header value for payload; used by tests and local tooling."""
    return f"t={timestamp},{SCHEME}={compute_signature(payload, secret, timestamp)}"


def _parse(header: str) -> tuple[int | None, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                return None, []
        elif key == SCHEME and value:
            signatures.append(value)
    return timestamp, signatures


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance: int,
    now: float,
) -> Result[int, OrderError]:
    """
    Ok(timestamp) if some v1 signature matches and the timestamp is within
    tolerance seconds of now (tolerance 0 disables the age check).
    """
    if not secret:
        logger.error("Webhook received but no webhook secret is configured")
        return Error(OrderErrors.unauthorized("Webhook signing secret is not configured"))

    if not header:
        logger.warning("Webhook rejected: missing signature header")
        return Error(OrderErrors.unauthorized("Missing signature header"))

    timestamp, signatures = _parse(header)
    if timestamp is None or not signatures:
        logger.warning("Webhook rejected: malformed signature header")
        return Error(OrderErrors.unauthorized("Malformed signature header"))

    expected = compute_signature(payload, secret, timestamp)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        logger.warning("Webhook rejected: signature mismatch")
        return Error(OrderErrors.unauthorized("Invalid signature"))

    if tolerance > 0 and abs(now - timestamp) > tolerance:
        logger.warning("Webhook rejected: timestamp %d outside tolerance", timestamp)
        return Error(OrderErrors.unauthorized("Signature timestamp outside tolerance"))

    return Ok(timestamp)


__all__ = ("compute_signature", "sign_payload", "verify_signature")
