"""
Unit tests for room-charge metadata in order notes.
"""

from __future__ import annotations

import pytest

from frontdesk.tags.room_charge import (
    RoomChargeMeta,
    build_room_charge_note,
    is_room_charge_note,
    parse_room_charge_note,
    room_charge_order_number,
)


@pytest.mark.unit
def test_build_uses_current_layout() -> None:
    note = build_room_charge_note(
        RoomChargeMeta(
            reservation_id="n2",
            date_key="2024-05-02",
            hotel_id="hotel-1",
            room_id="room-101",
            room_number=101,
            rate=100.0,
            currency="EUR",
        )
    )
    assert note == (
        "FD:ROOM_CHARGE|res=n2|date=2024-05-02|hotel=hotel-1|roomId=room-101|room=101|rate=100.0|currency=EUR"
    )


@pytest.mark.unit
def test_parse_current_layout() -> None:
    meta = parse_room_charge_note("FD:ROOM_CHARGE|res=n2|date=2024-05-02|hotel=h|roomId=r|room=101")
    assert meta == RoomChargeMeta(
        reservation_id="n2", date_key="2024-05-02", hotel_id="h", room_id="r", room_number=101
    )


@pytest.mark.unit
def test_parse_long_key_layout() -> None:
    meta = parse_room_charge_note("FD:ROOM_CHARGE|reservationId=n3|dateKey=2024-05-03|hotelId=h")
    assert meta is not None
    assert (meta.reservation_id, meta.date_key, meta.hotel_id) == ("n3", "2024-05-03", "h")


@pytest.mark.unit
def test_parse_legacy_folio_layout() -> None:
    meta = parse_room_charge_note("FOLIO:TYPE=ROOM_CHARGE;RES=n4;DATE=2024-05-04;RATE=90")
    assert meta == RoomChargeMeta(reservation_id="n4", date_key="2024-05-04", rate=90.0)


@pytest.mark.unit
@pytest.mark.parametrize(
    "note",
    [None, "", "Extra towels please", "FD:ROOM_CHARGE|date=2024-05-01", "MANUAL|CASH|by=x"],
)
def test_parse_returns_none_without_reservation(note: str | None) -> None:
    assert parse_room_charge_note(note) is None


@pytest.mark.unit
def test_is_room_charge_note() -> None:
    assert is_room_charge_note("FD:ROOM_CHARGE|res=n1")
    assert is_room_charge_note("FOLIO:TYPE=ROOM_CHARGE;RES=n1")
    assert not is_room_charge_note("Room service: club sandwich")
    assert not is_room_charge_note(None)


@pytest.mark.unit
def test_order_number_is_stable_per_night() -> None:
    assert room_charge_order_number("n1") == "FDROOM-n1"


@pytest.mark.unit
def test_order_number_moves_past_taken_numbers() -> None:
    assert room_charge_order_number("n1", {"FDROOM-n1"}) == "FDROOM-n1-2"
    assert room_charge_order_number("n1", {"FDROOM-n1", "FDROOM-n1-2", "FDROOM-n2"}) == "FDROOM-n1-3"
    assert room_charge_order_number("n1", {"FDROOM-n2"}) == "FDROOM-n1"
