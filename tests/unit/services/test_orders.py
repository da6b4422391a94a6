"""
Unit tests for order classification and stay linkage.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable

import pytest

from frontdesk.schemas.readmodel import NightReservation, Order, Room
from frontdesk.schemas.views import OrderKind
from frontdesk.services.orders import (
    build_lookups,
    classify_order,
    is_paid,
    link_to_stay,
    make_order_number,
    room_charge_reservation_id,
)
from frontdesk.services.stays import group_into_stays
from frontdesk.tags.room_charge import RoomChargeMeta, build_room_charge_note

OrderFactory = Callable[..., Order]


def _charge_note(reservation_id: str, date_key: str = "2024-05-02") -> str:
    return build_room_charge_note(
        RoomChargeMeta(reservation_id=reservation_id, date_key=date_key, room_id="room-101", rate=100.0)
    )


@pytest.fixture
def stays(night_factory: Callable[..., NightReservation], room_factory: Callable[..., Room]):
    r102 = room_factory(id="room-102", number=102)
    return group_into_stays(
        [
            night_factory("n1", "2024-05-01"),
            night_factory("n2", "2024-05-02"),
            night_factory("n3", "2024-05-03"),
            night_factory("m1", "2024-05-01", room=r102, email="guest.b@example.com"),
        ]
    )


@pytest.mark.unit
class TestClassifyOrder:
    def test_room_charge_note_wins_over_everything(self, order_factory: OrderFactory) -> None:
        order = order_factory("o1", 100, note=_charge_note("n1"), delivery_address="Main St 1")
        assert classify_order(order) == OrderKind.ROOM_CHARGE

    def test_legacy_folio_note(self, order_factory: OrderFactory) -> None:
        order = order_factory("o1", 100, note="FOLIO:TYPE=ROOM_CHARGE;FOLIO:RES=n1;FOLIO:DATE=2024-05-01")
        assert classify_order(order) == OrderKind.ROOM_CHARGE

    def test_room_prefix_is_room_charge(self, order_factory: OrderFactory) -> None:
        order = order_factory("o1", 12, order_number="ROOM-a1b2")
        assert classify_order(order) == OrderKind.ROOM_CHARGE

    def test_room_reference_is_room_service(self, order_factory: OrderFactory) -> None:
        assert classify_order(order_factory("o1", 12)) == OrderKind.ROOM_SERVICE

    def test_delivery_and_other(self, order_factory: OrderFactory) -> None:
        delivery = order_factory("o1", 12, room_id=None, delivery_address="Main St 1")
        other = order_factory("o2", 12, room_id="  ")
        assert classify_order(delivery) == OrderKind.DELIVERY
        assert classify_order(other) == OrderKind.OTHER


@pytest.mark.unit
@pytest.mark.parametrize(
    ("paid", "token", "expected"),
    [
        (True, None, True),
        (False, "MANUAL|CASH|by=a@b.c|currency=EUR|ts=1", False),
        (None, "MANUAL|CASH|by=a@b.c|currency=EUR|ts=1", True),
        (None, "   ", False),
        (None, None, False),
    ],
)
def test_is_paid(order_factory: OrderFactory, paid, token, expected: bool) -> None:
    assert is_paid(order_factory("o1", 10, paid=paid, payment_token=token)) is expected


@pytest.mark.unit
def test_room_charge_reservation_id_trusts_note_and_checks_legacy_number(order_factory: OrderFactory) -> None:
    known = {"n1", "n2"}

    assert room_charge_reservation_id(order_factory("o1", 1, note=_charge_note("elsewhere")), known) == "elsewhere"
    assert room_charge_reservation_id(order_factory("o2", 1, order_number="ROOM-n2"), known) == "n2"
    assert room_charge_reservation_id(order_factory("o3", 1, order_number="ROOM-x9f3"), known) is None
    assert room_charge_reservation_id(order_factory("o4", 1), known) is None


@pytest.mark.unit
def test_lowercase_room_prefix_classifies_and_links_alike(order_factory: OrderFactory) -> None:
    order = order_factory("o5", 1, order_number="room-n1")

    assert classify_order(order) == OrderKind.ROOM_CHARGE
    assert room_charge_reservation_id(order, {"n1"}) == "n1"


@pytest.mark.unit
def test_note_links_by_reservation_regardless_of_room_and_date(stays, order_factory: OrderFactory) -> None:
    lookups = build_lookups(stays)
    order = order_factory(
        "o1",
        100,
        room_id="room-999",
        note=_charge_note("n2"),
        order_date="2023-01-01T10:00:00+00:00",
        user_email=None,
    )

    stay = link_to_stay(order, lookups)

    assert stay is not None
    assert "n2" in stay.reservation_ids


@pytest.mark.unit
def test_legacy_room_number_links_when_id_is_known(stays, order_factory: OrderFactory) -> None:
    lookups = build_lookups(stays)

    linked = link_to_stay(order_factory("o1", 100, order_number="ROOM-m1"), lookups)
    assert linked is not None and linked.room_id == "room-102"


@pytest.mark.unit
def test_service_order_links_by_room_email_and_date(stays, order_factory: OrderFactory) -> None:
    lookups = build_lookups(stays)
    order = order_factory(
        "o1", 18.5, user_email="GUEST.A@example.com", order_date="2024-05-03T20:15:00+00:00"
    )

    stay = link_to_stay(order, lookups)

    assert stay is not None
    assert stay.start_date == "2024-05-01"


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"order_date": "2024-05-04T09:00:00+00:00"},
        {"order_date": None},
        {"order_date": "2024-05-02T09:00:00+00:00", "user_email": None},
        {"order_date": "2024-05-02T09:00:00+00:00", "user_email": "someone@example.com"},
        {"order_date": "2024-05-02T09:00:00+00:00", "room_id": None},
        {"order_number": "ROOM-unknown", "order_date": None},
    ],
)
def test_unlinked_orders(stays, order_factory: OrderFactory, overrides: dict) -> None:
    lookups = build_lookups(stays)
    assert link_to_stay(order_factory("o1", 10, **overrides), lookups) is None


@pytest.mark.unit
def test_extra_reservation_ids_are_known(stays) -> None:
    lookups = build_lookups(stays, extra_reservation_ids=["old-night"])
    assert "old-night" in lookups.known_reservation_ids
    assert "n1" in lookups.known_reservation_ids


@pytest.mark.unit
def test_make_order_number() -> None:
    at = datetime(2024, 5, 1, 14, 30, 12, 45000, tzinfo=timezone.utc)

    number = make_order_number("WALKIN", now=at)

    assert re.fullmatch(r"WALKIN240501143012045[0-9A-F]{4}", number)
    assert make_order_number(now=at).startswith("FD240501")
