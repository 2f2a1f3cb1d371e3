# services/shiprocket/webhook.py

import hashlib
import hmac
import json
import logging
from typing import Any, Optional, Union

Payload = Union[str, bytes, dict, list]


def serialize_payload(payload: Payload) -> bytes:
    """Raw bodies are signed as received; parsed bodies as compact JSON."""
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_signature(payload: Payload, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), serialize_payload(payload), hashlib.sha256).hexdigest()


def verify_webhook_signature(payload: Any, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Checks the X-Shiprocket-Signature header against an HMAC-SHA256 of the payload.

    Fails closed: anything other than an exact constant-time match is False.
    """
    if not secret:
        logging.error("Webhook secret not configured")
        return False
    if not signature:
        logging.error("No webhook signature provided")
        return False

    try:
        expected = compute_signature(payload, secret).encode("utf-8")
        received = signature.encode("utf-8")
        if len(expected) != len(received):
            logging.error("Webhook signature length mismatch")
            return False
        is_valid = hmac.compare_digest(expected, received)
    except Exception as e:
        logging.error(f"Error verifying webhook signature: {e}")
        return False

    if not is_valid:
        logging.error("Invalid webhook signature")
    return is_valid
