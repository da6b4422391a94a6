"""
Room-charge linkage metadata carried in an order's note.

Current layout:
    FD:ROOM_CHARGE|res=<reservation id>|date=<YYYY-MM-DD>|hotel=<id>|roomId=<id>|room=<number>|rate=<n>|currency=<code>

Older notes used ``reservationId``/``dateKey``/``hotelId`` keys, and the
first generation used ``FOLIO:TYPE=ROOM_CHARGE;RES=..;DATE=..;RATE=..``.
All three decode to the same RoomChargeMeta.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Optional

from frontdesk.tags.codec import decode, encode

ROOM_CHARGE_MARKER = "FD:ROOM_CHARGE"
LEGACY_FOLIO_MARKER = "FOLIO:TYPE=ROOM_CHARGE"

# Stable order number for the charge of one night
ROOM_CHARGE_ORDER_PREFIX = "FDROOM-"


@dataclass(frozen=True)
class RoomChargeMeta:
    reservation_id: str
    date_key: Optional[str] = None
    hotel_id: Optional[str] = None
    room_id: Optional[str] = None
    room_number: Optional[int] = None
    rate: Optional[float] = None
    currency: Optional[str] = None


def _first(kv: dict[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = kv.get(key)
        if value:
            return value
    return None


def _int_or_none(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _float_or_none(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def _parse_legacy_folio(note: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for token in note.split(";"):
        token = token.strip()
        if token.startswith("FOLIO:"):
            token = token[len("FOLIO:") :]
        idx = token.find("=")
        if idx > 0:
            out[token[:idx].strip().upper()] = token[idx + 1 :].strip()
    return out


def is_room_charge_note(note: Optional[str]) -> bool:
    return bool(note) and isinstance(note, str) and (
        note.startswith(ROOM_CHARGE_MARKER) or LEGACY_FOLIO_MARKER in note
    )


def parse_room_charge_note(note: Optional[str]) -> Optional[RoomChargeMeta]:
    """
    Decode room-charge metadata from an order note.

    Returns None for notes in any other format, and for room-charge notes
    without a reservation id.
    """
    if not note or not isinstance(note, str):
        return None

    if note.startswith(ROOM_CHARGE_MARKER):
        kv = decode(note, ROOM_CHARGE_MARKER) or {}
        reservation_id = _first(kv, "res", "reservationId")
        if not reservation_id:
            return None
        return RoomChargeMeta(
            reservation_id=reservation_id,
            date_key=_first(kv, "date", "dateKey"),
            hotel_id=_first(kv, "hotel", "hotelId"),
            room_id=_first(kv, "roomId"),
            room_number=_int_or_none(_first(kv, "room")),
            rate=_float_or_none(_first(kv, "rate")),
            currency=_first(kv, "currency"),
        )

    if LEGACY_FOLIO_MARKER in note:
        kv = _parse_legacy_folio(note)
        if not kv.get("RES"):
            return None
        return RoomChargeMeta(
            reservation_id=kv["RES"],
            date_key=kv.get("DATE") or None,
            rate=_float_or_none(kv.get("RATE")),
        )

    return None


def build_room_charge_note(meta: RoomChargeMeta) -> str:
    """Encode metadata in the current layout."""
    return encode(
        {
            "res": meta.reservation_id,
            "date": meta.date_key,
            "hotel": meta.hotel_id,
            "roomId": meta.room_id,
            "room": meta.room_number,
            "rate": meta.rate,
            "currency": meta.currency,
        },
        None,
        ROOM_CHARGE_MARKER,
    )


def room_charge_order_number(reservation_id: str, taken: AbstractSet[str] = frozenset()) -> str:
    """
    Order number for the charge of one night.

    The first charge is ``FDROOM-<id>``. When that number is already
    taken, e.g. by a voided charge, the next free ``FDROOM-<id>-<n>``
    is used, so retries racing on the same re-post collide on the number.
    """
    base = f"{ROOM_CHARGE_ORDER_PREFIX}{reservation_id}"
    number, attempt = base, 1
    while number in taken:
        attempt += 1
        number = f"{base}-{attempt}"
    return number
