"""Classify orders and link them to the stays they belong to."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import AbstractSet, Iterable, Optional

from frontdesk.schemas.readmodel import Order
from frontdesk.schemas.views import OrderKind, Stay
from frontdesk.tags.room_charge import is_room_charge_note, parse_room_charge_note
from frontdesk.utils.datetime import to_date_key, utc_now

# Order numbers from before room charges carried a note.
# Any order numbered like this classifies as a room charge, including
# room-service orders that happened to use the same prefix; linkage only
# trusts it when the suffix is a real reservation id.
LEGACY_ROOM_CHARGE_PREFIX = "ROOM-"


def classify_order(order: Order) -> OrderKind:
    """
    Classify an order; the first matching rule wins.

    1. Note carries the room-charge marker -> ROOM_CHARGE
    2. Order number starts with ``ROOM-`` -> ROOM_CHARGE
    3. Order has a room reference -> ROOM_SERVICE
    4. Order has a delivery address -> DELIVERY
    5. Otherwise OTHER
    """
    if is_room_charge_note(order.note):
        return OrderKind.ROOM_CHARGE
    if order.order_number.upper().startswith(LEGACY_ROOM_CHARGE_PREFIX):
        return OrderKind.ROOM_CHARGE
    if (order.room_id or "").strip():
        return OrderKind.ROOM_SERVICE
    if (order.delivery_address or "").strip():
        return OrderKind.DELIVERY
    return OrderKind.OTHER


def is_paid(order: Order) -> bool:
    """An explicit paid flag wins; otherwise any non-blank payment token means paid."""
    if order.paid is not None:
        return order.paid
    return bool((order.payment_token or "").strip())


def room_charge_reservation_id(order: Order, known_reservation_ids: AbstractSet[str]) -> Optional[str]:
    """
    The night reservation a room charge bills, or None if it is not one.

    Note metadata is trusted as is. The ``ROOM-<id>`` order-number fallback
    (prefix matched in any case, as in classify_order) only counts when
    ``<id>`` is a known reservation id, so older room-service orders
    numbered ``ROOM-<random>`` stay on the folio as service lines.
    """
    meta = parse_room_charge_note(order.note)
    if meta is not None:
        return meta.reservation_id

    if not order.order_number.upper().startswith(LEGACY_ROOM_CHARGE_PREFIX):
        return None
    candidate = order.order_number[len(LEGACY_ROOM_CHARGE_PREFIX) :]
    return candidate if candidate in known_reservation_ids else None


def _composite_key(room_id: str, email: str, date_key: str) -> str:
    return f"{room_id}|{email.strip().lower()}|{date_key}"


@dataclass(frozen=True)
class OrderLookups:
    stay_by_reservation_id: dict[str, Stay] = field(default_factory=dict)
    stay_by_room_email_date: dict[str, Stay] = field(default_factory=dict)
    known_reservation_ids: frozenset[str] = frozenset()


def build_lookups(stays: Iterable[Stay], extra_reservation_ids: Iterable[str] = ()) -> OrderLookups:
    """
    Index stays for order linkage.

    Args:
        stays: Output of group_into_stays
        extra_reservation_ids: Reservation ids that exist but are not part
            of ``stays`` (e.g. nights filtered out by the caller)
    """
    by_reservation: dict[str, Stay] = {}
    by_composite: dict[str, Stay] = {}

    for stay in stays:
        for reservation_id in stay.reservation_ids:
            by_reservation[reservation_id] = stay
        for date_key in stay.night_ids:
            by_composite.setdefault(_composite_key(stay.room_id, stay.user_email, date_key), stay)

    return OrderLookups(
        stay_by_reservation_id=by_reservation,
        stay_by_room_email_date=by_composite,
        known_reservation_ids=frozenset(by_reservation) | frozenset(extra_reservation_ids),
    )


def link_to_stay(order: Order, lookups: OrderLookups) -> Optional[Stay]:
    """
    Resolve the stay an order belongs to, or None when it is unlinked.

    Room-charge metadata resolves directly through the reservation id and
    ignores the order's own room and date. Other orders need a room, a
    guest email and a readable order date.
    """
    reservation_id = room_charge_reservation_id(order, lookups.known_reservation_ids)
    if reservation_id:
        return lookups.stay_by_reservation_id.get(reservation_id)

    if not order.room_id or not order.user_email:
        return None
    date_key = to_date_key(order.order_date)
    if not date_key:
        return None
    return lookups.stay_by_room_email_date.get(_composite_key(order.room_id, order.user_email, date_key))


def make_order_number(prefix: str = "FD", now: Optional[datetime] = None) -> str:
    """
    Unique order number: prefix, timestamp to the millisecond, 4 random hex chars.

    Example:
        >>> make_order_number("WALKIN")  # doctest: +SKIP
        'WALKIN240501143012045A3F9'
    """
    now = now or utc_now()
    stamp = now.strftime("%y%m%d%H%M%S") + f"{now.microsecond // 1000:03d}"
    return f"{prefix}{stamp}{secrets.token_hex(2).upper()}"
