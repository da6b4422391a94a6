"""
Per-hotel settings stored in the hotel's free-text description.

The preferred layout is a JSON block between markers, kept alongside any
prose the description already holds:

    Seaside hotel, 40 rooms.

    [[HOTEL_SETTINGS_JSON]]
    {"version": 1, "settings": {"baseNightlyRate": 120, ...}, "tags": {...}}
    [[/HOTEL_SETTINGS_JSON]]

Older descriptions used ``KEY=VALUE`` or ``KEY: VALUE`` lines
(``BASE_NIGHTLY_RATE=120``, ``CURRENCY: EUR``); those are still read and
the JSON block wins on conflicts. Parsing never raises.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Mapping, Optional

import structlog

from frontdesk.config import DEFAULT_CURRENCY

logger = structlog.get_logger(__name__)

BLOCK_START = "[[HOTEL_SETTINGS_JSON]]"
BLOCK_END = "[[/HOTEL_SETTINGS_JSON]]"

_MARKER_PAIRS = (
    (BLOCK_START, BLOCK_END),
    ("[[HOTEL_SETTINGS]]", "[[/HOTEL_SETTINGS]]"),
    ("<<<HOTEL_SETTINGS>>>", "<<<END_HOTEL_SETTINGS>>>"),
    ("<!-- HOTEL_SETTINGS_START -->", "<!-- HOTEL_SETTINGS_END -->"),
)

HOURS_BREAKFAST = "HOURS_BREAKFAST"
HOURS_RESTAURANT = "HOURS_RESTAURANT"
HOURS_ROOM_SERVICE = "HOURS_ROOM_SERVICE"

_LEGACY_LINE = re.compile(r"^\s*(?:[#@]\s*)?([A-Z][A-Z0-9_]{2,})\s*(?:=|:)\s*(.*?)\s*$")

# JSON block keys are camelCase to stay readable by existing dashboards
_JSON_KEYS = {
    "base_nightly_rate": "baseNightlyRate",
    "currency": "currency",
    "auto_post_room_charges": "autoPostRoomCharges",
    "checkout_requires_paid_folio": "checkoutRequiresPaidFolio",
    "check_in_time": "checkInTime",
    "check_out_time": "checkOutTime",
}


@dataclass(frozen=True)
class OpeningHours:
    breakfast: str = ""
    restaurant: str = ""
    room_service: str = ""


@dataclass(frozen=True)
class HotelSettings:
    base_nightly_rate: float = 0.0
    currency: str = DEFAULT_CURRENCY
    auto_post_room_charges: bool = False
    checkout_requires_paid_folio: bool = True
    check_in_time: str = ""
    check_out_time: str = ""
    opening_hours: OpeningHours = field(default_factory=OpeningHours)

    @property
    def missing_charges_block_checkout(self) -> bool:
        # Hotels that auto-post charges expect every night to be billed at checkout
        return self.auto_post_room_charges


@dataclass(frozen=True)
class ParsedHotelSettings:
    base_text: str
    settings: HotelSettings
    tags: dict[str, str]


def _safe_number(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float, str)):
        return None
    try:
        n = float(v)
    except ValueError:
        return None
    return n if math.isfinite(n) else None


def _safe_bool(v: Any) -> Optional[bool]:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return v != 0
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("true", "1", "yes", "y", "on"):
            return True
        if s in ("false", "0", "no", "n", "off"):
            return False
    return None


def _normalize_currency(v: Any, fallback: str) -> str:
    cleaned = re.sub(r"[^A-Z]", "", str(v or "").strip().upper())
    return cleaned if 3 <= len(cleaned) <= 5 else fallback


def _extract_block(text: str) -> Optional[tuple[int, int, str]]:
    for start_marker, end_marker in _MARKER_PAIRS:
        s = text.find(start_marker)
        if s == -1:
            continue
        e = text.find(end_marker, s + len(start_marker))
        if e == -1:
            continue
        return s, e + len(end_marker), text[s + len(start_marker) : e].strip()
    return None


def _legacy_tags(text: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for line in text.splitlines():
        m = _LEGACY_LINE.match(line)
        if m and m.group(2):
            out[m.group(1)] = m.group(2)
    return out


def _merge(base: HotelSettings, values: Mapping[str, Any]) -> HotelSettings:
    """Overlay the valid entries of ``values`` (snake_case keys) onto ``base``."""
    changes: dict[str, Any] = {}

    rate = _safe_number(values.get("base_nightly_rate"))
    if rate is not None:
        changes["base_nightly_rate"] = max(0.0, rate)

    if values.get("currency"):
        changes["currency"] = _normalize_currency(values["currency"], base.currency)

    for key in ("auto_post_room_charges", "checkout_requires_paid_folio"):
        flag = _safe_bool(values.get(key))
        if flag is not None:
            changes[key] = flag

    for key in ("check_in_time", "check_out_time"):
        value = values.get(key)
        if isinstance(value, str) and value.strip():
            changes[key] = value.strip()

    return replace(base, **changes)


def _hours_from_tags(tags: Mapping[str, str]) -> OpeningHours:
    return OpeningHours(
        breakfast=tags.get(HOURS_BREAKFAST, ""),
        restaurant=tags.get(HOURS_RESTAURANT, ""),
        room_service=tags.get(HOURS_ROOM_SERVICE, ""),
    )


def parse_hotel_settings(description: Optional[str]) -> ParsedHotelSettings:
    """
    Decode settings from a hotel description.

    Returns defaults (rate 0 = unset, USD, no auto-post, paid folio
    required) for descriptions without any settings.
    """
    text = description if isinstance(description, str) else ""

    block = _extract_block(text)
    base_text = (text[: block[0]] + text[block[1] :]).strip() if block else text.strip()

    raw: Any = None
    if block:
        try:
            raw = json.loads(block[2]) if block[2] else None
        except json.JSONDecodeError:
            logger.warning("hotel_settings_block_unreadable")
            raw = None

    json_settings: dict[str, Any] = {}
    json_tags: dict[str, str] = {}
    if isinstance(raw, dict):
        if isinstance(raw.get("settings"), dict):
            json_settings = raw["settings"]
        if isinstance(raw.get("tags"), dict):
            for k, v in raw["tags"].items():
                if str(k).strip() and isinstance(v, str) and v.strip():
                    json_tags[str(k).strip()] = v.strip()

    tags = {**_legacy_tags(base_text), **json_tags}

    from_tags = {
        "base_nightly_rate": tags.get("BASE_NIGHTLY_RATE") or tags.get("BASE_RATE") or tags.get("BASE_NIGHTLY"),
        "currency": tags.get("CURRENCY") or tags.get("HOTEL_CURRENCY"),
        "auto_post_room_charges": tags.get("AUTO_POST_ROOM_CHARGES")
        or tags.get("AUTOPOST_ROOM_CHARGES")
        or tags.get("AUTO_POST_CHARGES"),
        "checkout_requires_paid_folio": tags.get("CHECKOUT_REQUIRES_PAID_FOLIO")
        or tags.get("REQUIRES_PAID_FOLIO"),
        "check_in_time": tags.get("CHECKIN_TIME"),
        "check_out_time": tags.get("CHECKOUT_TIME"),
    }
    from_json = {snake: json_settings.get(camel) for snake, camel in _JSON_KEYS.items()}

    settings = _merge(_merge(HotelSettings(), from_tags), from_json)
    settings = replace(settings, opening_hours=_hours_from_tags(tags))

    return ParsedHotelSettings(base_text=base_text, settings=settings, tags=tags)


def serialize_hotel_settings(
    description: Optional[str],
    settings_patch: Optional[Mapping[str, Any]] = None,
    tags_patch: Optional[Mapping[str, Optional[str]]] = None,
) -> str:
    """
    Write settings back into a description, keeping its prose.

    Args:
        description: Current description (may be None or plain prose)
        settings_patch: snake_case HotelSettings fields to change
        tags_patch: Tag values to set; None or blank deletes the tag

    Returns:
        The description with a single canonical JSON settings block.
    """
    parsed = parse_hotel_settings(description)
    settings = _merge(parsed.settings, settings_patch or {})

    tags = dict(parsed.tags)
    for key, value in (tags_patch or {}).items():
        key = str(key).strip()
        if not key:
            continue
        if value is None or not str(value).strip():
            tags.pop(key, None)
        else:
            tags[key] = str(value).strip()

    payload = {
        "version": 1,
        "settings": {camel: asdict(settings)[snake] for snake, camel in _JSON_KEYS.items()},
        "tags": tags,
    }
    block = f"{BLOCK_START}\n{json.dumps(payload, indent=2)}\n{BLOCK_END}"
    return f"{parsed.base_text}\n\n{block}" if parsed.base_text else block
