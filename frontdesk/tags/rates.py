"""Per-room nightly rate override, stored as ``RATE:OVERRIDE=<amount>``."""

from __future__ import annotations

import math
from typing import Iterable, Optional

from frontdesk.tags.codec import apply_entries, decode_entries

PREFIX = "RATE:"
OVERRIDE = "OVERRIDE"


def _money(n: float) -> float:
    return round(n * 100) / 100


def _format(n: float) -> str:
    # 350.0 -> "350", 99.5 -> "99.5"
    v = _money(n)
    return str(int(v)) if v.is_integer() else str(v)


def parse_rate_override(special_requests: Optional[Iterable[str]]) -> Optional[float]:
    """Return the override rate, or None when absent, negative or not a number."""
    pairs, _ = decode_entries(special_requests, PREFIX)
    raw = pairs.get(OVERRIDE)
    if raw is None:
        return None
    try:
        n = float(raw)
    except ValueError:
        return None
    if not math.isfinite(n) or n < 0:
        return None
    return _money(n)


def apply_rate_patch(special_requests: Optional[Iterable[str]], override: Optional[float]) -> list[str]:
    """Set (or with None, remove) the override; every other tag is kept."""
    if override is not None and (not math.isfinite(override) or override < 0):
        raise ValueError(f"invalid nightly rate override: {override!r}")
    value = None if override is None else _format(override)
    return apply_entries(special_requests, PREFIX, {OVERRIDE: value})


def effective_nightly_rate(base_rate: float, override: Optional[float]) -> float:
    return override if override is not None else base_rate
