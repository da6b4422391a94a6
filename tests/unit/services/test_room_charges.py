"""
Unit tests for idempotent nightly room-charge posting.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Callable
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from frontdesk.exceptions import RateNotConfigured, RoomChargePostingError
from frontdesk.gateway import CreateOrder, InMemoryRoomChargeGuard
from frontdesk.schemas.readmodel import NightReservation, Order
from frontdesk.schemas.views import Stay
from frontdesk.services.folio import build_folio
from frontdesk.services.room_charges import ensure_nightly_charges, nightly_rate_for
from frontdesk.services.stays import group_into_stays
from frontdesk.tags.hotel_settings import HotelSettings
from frontdesk.tags.room_charge import parse_room_charge_note


@pytest.fixture
def stay(night_factory: Callable[..., NightReservation]) -> Stay:
    return group_into_stays(
        [
            night_factory("n1", "2024-05-01"),
            night_factory("n2", "2024-05-02"),
            night_factory("n3", "2024-05-03"),
        ]
    )[0]


@pytest.mark.unit
def test_posts_every_active_night_once(fake_gateway, stay: Stay) -> None:
    first = ensure_nightly_charges(fake_gateway, stay, 100, "EUR")
    second = ensure_nightly_charges(fake_gateway, stay, 100, "EUR")

    assert (first.created, first.skipped) == (3, 0)
    assert len(first.created_order_ids) == 3
    assert (second.created, second.skipped) == (0, 3)
    assert len(fake_gateway.of_type(CreateOrder)) == 3


@pytest.mark.unit
def test_charge_order_carries_note_and_number(fake_gateway, stay: Stay) -> None:
    ensure_nightly_charges(fake_gateway, stay, 99.5, "EUR", target_nights=["n2"])

    (intent,) = fake_gateway.of_type(CreateOrder)
    assert intent.order_number == "FDROOM-n2"
    assert intent.amount == 99.5
    assert intent.user_email == stay.user_email
    meta = parse_room_charge_note(intent.note)
    assert meta is not None
    assert (meta.reservation_id, meta.date_key, meta.room_id, meta.room_number) == (
        "n2",
        "2024-05-02",
        "room-101",
        101,
    )
    assert (meta.rate, meta.currency) == (99.5, "EUR")


@pytest.mark.unit
@pytest.mark.parametrize("rate", [0, -10, math.nan, math.inf, None, "100", True])
def test_unusable_rate_creates_nothing(fake_gateway, stay: Stay, rate) -> None:
    with pytest.raises(RateNotConfigured):
        ensure_nightly_charges(fake_gateway, stay, rate, "EUR")
    assert fake_gateway.issued == []


@pytest.mark.unit
def test_existing_legacy_charges_count_as_posted(fake_gateway, stay: Stay, order_factory: Callable[..., Order]) -> None:
    fake_gateway.orders.append(order_factory("old", 100, order_number="ROOM-n1"))
    fake_gateway.orders.append(order_factory("void", 100, order_number="FDROOM-n2", status="CANCELLED"))

    result = ensure_nightly_charges(fake_gateway, stay, 100, "EUR")

    assert (result.created, result.skipped) == (2, 1)
    # FDROOM-n2 is taken by the voided order
    assert [i.order_number for i in fake_gateway.of_type(CreateOrder)] == ["FDROOM-n2-2", "FDROOM-n3"]


@pytest.mark.unit
def test_targets_outside_active_nights_are_ignored(
    fake_gateway, night_factory: Callable[..., NightReservation]
) -> None:
    stay = group_into_stays(
        [night_factory("n1", "2024-05-01"), night_factory("n2", "2024-05-02", status="CANCELLED")]
    )[0]

    result = ensure_nightly_charges(fake_gateway, stay, 100, "EUR", target_nights=["n2", "n1", "n1", "zzz"])

    assert (result.created, result.skipped) == (1, 0)
    assert [i.order_number for i in fake_gateway.of_type(CreateOrder)] == ["FDROOM-n1"]


@pytest.mark.unit
def test_partial_failure_reports_progress(fake_gateway, stay: Stay) -> None:
    fake_gateway.fail_on[CreateOrder] = 2

    with pytest.raises(RoomChargePostingError) as exc_info:
        ensure_nightly_charges(fake_gateway, stay, 100, "EUR")

    err = exc_info.value
    assert (err.night, err.created, err.skipped) == ("n2", 1, 0)
    assert err.step == "create_room_charge"
    assert isinstance(err.cause, RuntimeError)

    # The retry picks up where the failure stopped
    fake_gateway.fail_on.clear()
    retry = ensure_nightly_charges(fake_gateway, stay, 100, "EUR")
    assert (retry.created, retry.skipped) == (2, 1)


@pytest.mark.unit
def test_store_conflict_counts_as_skip(fake_gateway, stay: Stay) -> None:
    class RacingGateway(type(fake_gateway)):
        def fetch_room_orders(self, room_id):
            # Another desk posted between our read and our write
            return []

    racing = RacingGateway()
    ensure_nightly_charges(racing, stay, 100, "EUR", target_nights=["n1"])

    result = ensure_nightly_charges(racing, stay, 100, "EUR")

    assert (result.created, result.skipped) == (2, 1)


@pytest.mark.unit
def test_guard_claims_and_releases(fake_gateway, stay: Stay) -> None:
    guard = InMemoryRoomChargeGuard()
    assert guard.claim("room-101", "n1", "2024-05-01", "FDROOM-n1", "someone@example.com")

    fake_gateway.fail_on[CreateOrder] = 1
    with pytest.raises(RoomChargePostingError):
        ensure_nightly_charges(fake_gateway, stay, 100, "EUR", guard=guard, actor_email="desk@example.com")

    # n1 was held by someone else, n2 failed and was released, n3 never ran
    assert fake_gateway.of_type(CreateOrder) == []
    assert guard.claim("room-101", "n2", "2024-05-02", "FDROOM-n2", "desk@example.com")
    assert not guard.claim("room-101", "n1", "2024-05-01", "FDROOM-n1", "desk@example.com")


@pytest.mark.unit
def test_guard_holds_nights_claimed_by_another_poster(fake_gateway, stay: Stay) -> None:
    guard = InMemoryRoomChargeGuard()
    guard.claim("room-101", "n3", "2024-05-03", "FDROOM-n3", "other@example.com")

    result = ensure_nightly_charges(fake_gateway, stay, 100, "EUR", guard=guard)

    assert (result.created, result.skipped, result.held) == (2, 0, 1)


@pytest.mark.unit
def test_nightly_rate_for_prefers_room_override() -> None:
    settings = HotelSettings(base_nightly_rate=120.0)

    assert nightly_rate_for(settings, ["RATE:OVERRIDE=95.5"]) == 95.5
    assert nightly_rate_for(settings, ["HK:STATUS=CLEAN"]) == 120.0
    assert nightly_rate_for(settings, None) == 120.0


@pytest.mark.unit
def test_voided_charge_is_posted_again(fake_gateway, stay: Stay) -> None:
    guard = InMemoryRoomChargeGuard()
    first = ensure_nightly_charges(fake_gateway, stay, 100, "EUR", target_nights=["n1"], guard=guard)

    # Staff void the charge
    (posted,) = fake_gateway.orders
    fake_gateway.orders[0] = posted.model_copy(update={"status": "CANCELLED"})

    second = ensure_nightly_charges(fake_gateway, stay, 100, "EUR", target_nights=["n1"], guard=guard)
    third = ensure_nightly_charges(fake_gateway, stay, 100, "EUR", target_nights=["n1"], guard=guard)

    assert (first.created, second.created, second.held) == (1, 1, 0)
    assert (third.created, third.skipped) == (0, 1)
    assert [i.order_number for i in fake_gateway.of_type(CreateOrder)] == ["FDROOM-n1", "FDROOM-n1-2"]
    folio = build_folio(stay, fake_gateway.orders)
    assert "n1" not in folio.missing_night_ids


@pytest.mark.unit
def test_abandoned_claim_is_taken_over_once_stale(fake_gateway, stay: Stay) -> None:
    now = [datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)]
    guard = InMemoryRoomChargeGuard(stale_after=timedelta(minutes=15), clock=lambda: now[0])
    # A poster claimed n1 and died before creating the order
    guard.claim("room-101", "n1", "2024-05-01", "FDROOM-n1", "gone@example.com")

    fresh = ensure_nightly_charges(fake_gateway, stay, 100, "EUR", target_nights=["n1"], guard=guard)
    now[0] += timedelta(minutes=16)
    stale = ensure_nightly_charges(fake_gateway, stay, 100, "EUR", target_nights=["n1"], guard=guard)

    assert (fresh.created, fresh.held) == (0, 1)
    assert (stale.created, stale.held) == (1, 0)
    assert [i.order_number for i in fake_gateway.of_type(CreateOrder)] == ["FDROOM-n1"]


@pytest.mark.unit
def test_order_read_failure_is_a_posting_error(fake_gateway, stay: Stay) -> None:
    class UnreachableGateway(type(fake_gateway)):
        def fetch_room_orders(self, room_id):
            raise RuntimeError("orders read failed")

    with pytest.raises(RoomChargePostingError) as exc_info:
        ensure_nightly_charges(UnreachableGateway(), stay, 100, "EUR")

    err = exc_info.value
    assert err.step == "read_room_orders"
    assert (err.night, err.created, err.skipped) == (None, 0, 0)
    assert isinstance(err.cause, RuntimeError)


@pytest.mark.unit
def test_claim_store_failure_is_a_posting_error(fake_gateway, stay: Stay) -> None:
    guard = Mock(spec=InMemoryRoomChargeGuard)
    guard.claim.side_effect = [True, OperationalError("INSERT", {}, Exception("connection reset"))]

    with pytest.raises(RoomChargePostingError) as exc_info:
        ensure_nightly_charges(fake_gateway, stay, 100, "EUR", guard=guard)

    err = exc_info.value
    assert (err.step, err.night, err.created) == ("claim_room_charge", "n2", 1)
    assert len(fake_gateway.of_type(CreateOrder)) == 1


@pytest.mark.unit
def test_failed_release_keeps_the_create_error(fake_gateway, stay: Stay) -> None:
    guard = Mock(spec=InMemoryRoomChargeGuard)
    guard.claim.return_value = True
    guard.release.side_effect = RuntimeError("claim store down")
    fake_gateway.fail_on[CreateOrder] = 1

    with pytest.raises(RoomChargePostingError) as exc_info:
        ensure_nightly_charges(fake_gateway, stay, 100, "EUR", guard=guard)

    assert exc_info.value.step == "create_room_charge"
    assert str(exc_info.value.cause) == "backend unavailable"
    guard.release.assert_called_once_with("room-101", "n1")
