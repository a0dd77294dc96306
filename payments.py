"""Simulated Razorpay order flow and payment signature checks."""

import hashlib
import hmac
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict


def create_order(user_id: str, amount: float, currency: str = "INR") -> Dict[str, Any]:
    """
    Build an order the way Razorpay would return it. Amount is converted to
    the smallest currency unit (paise/cents).
    """
    now_ms = int(time.time() * 1000)
    return {
        "id": f"order_{now_ms}",
        "amount": to_minor_units(amount),
        "currency": currency,
        "receipt": f"receipt_{user_id}_{now_ms}",
        "status": "created",
        "created_at": now_ms,
    }


def to_minor_units(amount: float) -> int:
    """Paise/cents, rounding halves up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sign(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    return hmac.compare_digest(sign(order_id, payment_id, secret).encode(), signature.encode())
