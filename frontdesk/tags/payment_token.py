"""
Payment tokens recorded on orders when staff take payment.

Manual payments are written as:
    MANUAL|<METHOD>|by=<actor>|currency=<code>|ts=<epoch-ms>

Tokens from card processors and anything else are opaque; they only
contribute a method bucket to the folio breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from frontdesk.tags.codec import parse_segments
from frontdesk.utils.datetime import utc_now

MANUAL_MARKER = "MANUAL"
STRIPE_LABEL = "STRIPE"
OTHER_LABEL = "OTHER"


class PaymentMethod(str, Enum):
    CARD = "CARD"
    CASH = "CASH"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True)
class PaymentToken:
    method: str
    by: Optional[str] = None
    currency: Optional[str] = None
    ts: Optional[int] = None


def parse_payment_token(token: Optional[str]) -> Optional[PaymentToken]:
    """Decode a MANUAL token; any other format returns None."""
    if not token or not isinstance(token, str):
        return None
    parts = token.split("|")
    if len(parts) < 2 or parts[0] != MANUAL_MARKER:
        return None
    kv = parse_segments(parts[2:])
    try:
        ts = int(kv["ts"]) if "ts" in kv else None
    except ValueError:
        ts = None
    return PaymentToken(
        method=parts[1] or MANUAL_MARKER,
        by=kv.get("by"),
        currency=kv.get("currency"),
        ts=ts,
    )


def payment_method_from_token(token: Optional[str]) -> str:
    """
    Bucket a payment token by method.

    Example:
        >>> payment_method_from_token("MANUAL|CASH|by=a@b.c|currency=USD|ts=1")
        'CASH'
        >>> payment_method_from_token("pi_3N_stripe_abc")
        'STRIPE'
        >>> payment_method_from_token("voucher-42")
        'OTHER'
    """
    parsed = parse_payment_token(token)
    if parsed is not None:
        return parsed.method
    if token and "stripe" in token.lower():
        return STRIPE_LABEL
    return OTHER_LABEL


def build_payment_token(
    method: PaymentMethod | str,
    actor_email: str,
    currency: str,
    at: Optional[datetime] = None,
) -> str:
    method_value = method.value if isinstance(method, PaymentMethod) else str(method).upper()
    ts = int((at or utc_now()).timestamp() * 1000)
    return f"{MANUAL_MARKER}|{method_value}|by={actor_email}|currency={currency}|ts={ts}"
