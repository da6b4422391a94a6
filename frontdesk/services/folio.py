"""
Folio reconciliation.

A folio is the billing view of one stay: nightly room charges linked to
the stay's active nights, plus room-service lines from the same room.
It is derived from the room's orders on every read.
"""

from __future__ import annotations

from collections import defaultdict
from typing import AbstractSet, Iterable, Optional

import structlog

from frontdesk.metrics import derivation_duration
from frontdesk.schemas.readmodel import Order
from frontdesk.schemas.views import Folio, FolioLine, OrderKind, PaymentBreakdown, Stay
from frontdesk.services.orders import classify_order, is_paid, room_charge_reservation_id
from frontdesk.services.room_charges import nightly_rate_for
from frontdesk.tags.hotel_settings import HotelSettings
from frontdesk.tags.payment_token import payment_method_from_token
from frontdesk.tags.room_charge import parse_room_charge_note
from frontdesk.utils.datetime import to_date_key

logger = structlog.get_logger(__name__)


def _money(n: float) -> float:
    return round(n, 2)


def _line(order: Order, kind: OrderKind, date_key: Optional[str], reservation_id: Optional[str]) -> FolioLine:
    paid = is_paid(order)
    return FolioLine(
        order_id=order.id,
        order_number=order.order_number,
        kind=kind,
        amount=order.total,
        paid=paid,
        method=payment_method_from_token(order.payment_token) if paid else None,
        date_key=date_key,
        reservation_id=reservation_id,
    )


def payments_by_method(lines: Iterable[FolioLine]) -> tuple[PaymentBreakdown, ...]:
    """Group paid lines by payment method, largest amount first."""
    amounts: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for line in lines:
        if not line.paid:
            continue
        method = line.method or payment_method_from_token(None)
        amounts[method] += line.amount
        counts[method] += 1
    rows = [PaymentBreakdown(method=m, amount=_money(amounts[m]), count=counts[m]) for m in amounts]
    return tuple(sorted(rows, key=lambda r: (-r.amount, r.method)))


def missing_nights(stay: Stay, room_charges: Iterable[FolioLine]) -> tuple[str, ...]:
    """Active night reservation ids that have no room charge yet, in night order."""
    charged = {line.reservation_id for line in room_charges}
    return tuple(rid for rid in stay.active_reservation_ids if rid not in charged)


def build_folio(
    stay: Stay,
    orders: Iterable[Order],
    known_reservation_ids: Optional[AbstractSet[str]] = None,
    settings: Optional[HotelSettings] = None,
) -> Folio:
    """
    Build the folio of ``stay`` from its room's orders.

    Args:
        stay: The stay being billed
        orders: Orders for the stay's room (others are ignored)
        known_reservation_ids: Every reservation id in the system; enables
            the ``ROOM-<id>`` fallback for nights outside this stay.
            Defaults to this stay's own ids.
        settings: Hotel settings for currency and nightly rate

    Returns:
        Folio with room-charge lines, service lines and totals. Cancelled
        orders never appear. Paid service lines dated outside
        [start date, checkout date) are left out; unpaid ones always stay.
    """
    settings = settings or HotelSettings()
    known = known_reservation_ids if known_reservation_ids is not None else set(stay.reservation_ids)
    active = set(stay.active_reservation_ids)
    date_by_reservation = {rid: dk for dk, rid in stay.night_ids.items()}

    with derivation_duration.labels(view="folio").time():
        room_charges: list[FolioLine] = []
        service_lines: list[FolioLine] = []

        for order in orders:
            if order.is_cancelled:
                continue

            reservation_id = room_charge_reservation_id(order, known)
            if reservation_id:
                # Room charges for another stay's nights belong to that stay
                if reservation_id not in active:
                    continue
                meta = parse_room_charge_note(order.note)
                date_key = (meta.date_key if meta else None) or date_by_reservation.get(reservation_id)
                room_charges.append(_line(order, OrderKind.ROOM_CHARGE, date_key, reservation_id))
                continue

            if order.room_id and order.room_id != stay.room_id:
                continue

            date_key = to_date_key(order.order_date)
            if is_paid(order) and not (date_key and stay.start_date <= date_key < stay.checkout_date):
                continue

            kind = classify_order(order)
            if kind == OrderKind.ROOM_CHARGE:
                # ROOM-<random> numbers from before charges were tagged are room service
                kind = OrderKind.ROOM_SERVICE
            service_lines.append(_line(order, kind, date_key, None))

        room_charges.sort(key=lambda line: (line.date_key or "", line.order_number))

        room_total = _money(sum(line.amount for line in room_charges))
        menu_total = _money(sum(line.amount for line in service_lines))
        all_lines = room_charges + service_lines
        paid_total = _money(sum(line.amount for line in all_lines if line.paid))
        balance_due = _money(sum(line.amount for line in all_lines if not line.paid))

        rate = nightly_rate_for(settings, stay.special_requests)
        expected = _money(rate * len(stay.active_reservation_ids)) if rate > 0 else None

        folio = Folio(
            stay_id=stay.stay_id,
            currency=settings.currency,
            room_charges=tuple(room_charges),
            service_lines=tuple(service_lines),
            room_total=room_total,
            menu_total=menu_total,
            grand_total=_money(room_total + menu_total),
            paid_total=paid_total,
            balance_due=balance_due,
            paid_count=sum(1 for line in all_lines if line.paid),
            unpaid_count=sum(1 for line in all_lines if not line.paid),
            payments_by_method=payments_by_method(all_lines),
            missing_night_ids=missing_nights(stay, room_charges),
            nightly_rate=rate if rate > 0 else None,
            expected_room_total=expected,
            room_total_delta=_money(expected - room_total) if expected is not None else 0.0,
        )

    return folio
