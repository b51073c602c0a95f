"""Stripe-format webhook signatures.

The header is ``t=<timestamp>,v1=<hex digest>``, where the digest is an
HMAC-SHA256 of ``"{timestamp}.{body}"`` under the endpoint's signing secret.
Verification always goes through the stripe SDK; ``signature_header`` builds
headers for payloads posted in tests and local development.
"""

import hashlib
import hmac
import time

import stripe

from marketplace.errors import WebhookSignatureError


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def signature_header(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},v1={compute_signature(payload, secret, timestamp)}"


def verify_signature(payload: bytes, header: str, secret: str, tolerance_seconds: int) -> None:
    """Raise ``WebhookSignatureError`` unless ``header`` signs ``payload`` recently enough."""
    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            header,
            secret,
            tolerance=tolerance_seconds,
        )
    except stripe.SignatureVerificationError as exc:
        raise WebhookSignatureError() from exc
    except UnicodeDecodeError as exc:
        raise WebhookSignatureError("Webhook payload is not valid UTF-8") from exc
