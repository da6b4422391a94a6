"""Walk-in bookings: one night reservation per requested night."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Iterable, Optional

import structlog

from frontdesk.exceptions import Blocker, PreconditionViolation, SequenceStepFailed
from frontdesk.gateway import CreateNightReservation, FrontDeskGateway, RoomChargeGuard
from frontdesk.metrics import transitions_total
from frontdesk.schemas.readmodel import Hotel, NightReservation, ReservationStatus, Room
from frontdesk.schemas.views import Stay
from frontdesk.services.checkout import Actor, TransitionResult, check_in, evaluate_check_in
from frontdesk.services.stays import group_into_stays
from frontdesk.tags.hotel_settings import HotelSettings
from frontdesk.utils.datetime import date_key_to_local_noon, date_range, to_date_key, today_key

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BookingResult:
    reservation_ids: tuple[str, ...]
    stay: Stay
    check_in: Optional[TransitionResult] = None


def room_is_available(
    reservations: Iterable[NightReservation], room_id: str, date_keys: Iterable[str]
) -> bool:
    """True when no active night for ``room_id`` falls on any of ``date_keys``."""
    wanted = set(date_keys)
    for r in reservations:
        if r.room_id != room_id or r.status == ReservationStatus.CANCELLED:
            continue
        if to_date_key(r.reservation_time) in wanted:
            return False
    return True


def _stay_for(
    ids: Iterable[str],
    date_keys: Iterable[str],
    room: Room,
    guest_email: str,
    guests: int,
    guest_name: Optional[str],
    hotel: Optional[Hotel],
) -> Stay:
    nights = [
        NightReservation(
            id=rid,
            room_id=room.id,
            user_email=guest_email,
            guest_name=guest_name,
            reservation_time=dk,
            party_size=guests,
            room=room,
        )
        for rid, dk in zip(ids, date_keys)
    ]
    hotels = {hotel.id: hotel} if hotel else None
    return group_into_stays(nights, hotels=hotels, rooms={room.id: room})[0]


def book_stay(
    gateway: FrontDeskGateway,
    existing: Iterable[NightReservation],
    room: Room,
    guest_email: str,
    start_date: str,
    nights: int,
    actor: Actor,
    guests: int = 1,
    guest_name: Optional[str] = None,
    check_in_now: bool = False,
    override: bool = False,
    hotel: Optional[Hotel] = None,
    settings: Optional[HotelSettings] = None,
    today: Optional[str] = None,
    guard: Optional[RoomChargeGuard] = None,
    known_reservation_ids: Optional[AbstractSet[str]] = None,
) -> BookingResult:
    """
    Book a walk-in stay and optionally check it in straight away.

    Availability and, with ``check_in_now``, the check-in decision are
    evaluated before anything is created. Nights are then created one at
    a time.

    Raises:
        PreconditionViolation: INVALID_NIGHTS, ROOM_UNAVAILABLE, or a
            check-in blocker
        SequenceStepFailed: Creating a night failed; nights created before
            it remain and are listed in ``completed_steps``
    """
    if nights < 1:
        raise PreconditionViolation([Blocker.INVALID_NIGHTS])

    date_keys = date_range(start_date, nights)
    existing = list(existing)
    if not room_is_available(existing, room.id, date_keys):
        transitions_total.labels(transition="book", status="blocked").inc()
        logger.info("walk_in_room_unavailable", room_id=room.id, start_date=start_date, nights=nights)
        raise PreconditionViolation([Blocker.ROOM_UNAVAILABLE])

    today = today or today_key()
    if check_in_now:
        provisional = _stay_for(
            [f"pending-{dk}" for dk in date_keys], date_keys, room, guest_email, guests, guest_name, hotel
        )
        decision = evaluate_check_in(provisional, today, actor, override, room)
        if not decision.allowed:
            transitions_total.labels(transition="book", status="blocked").inc()
            raise PreconditionViolation(decision.blockers)

    created: list[str] = []
    for dk in date_keys:
        intent = CreateNightReservation(
            room_id=room.id,
            user_email=guest_email,
            reservation_time=date_key_to_local_noon(dk).isoformat(),
            party_size=guests,
            guest_name=guest_name,
        )
        try:
            created.append(gateway.create_night_reservation(intent))
        except Exception as e:
            transitions_total.labels(transition="book", status="failed").inc()
            logger.error("walk_in_night_failed", room_id=room.id, date_key=dk, created=len(created), error=str(e))
            raise SequenceStepFailed("create_night", dk, created, e) from e

    stay = _stay_for(created, date_keys, room, guest_email, guests, guest_name, hotel)
    transitions_total.labels(transition="book", status="allowed").inc()
    logger.info("walk_in_booked", stay_id=stay.stay_id, nights=len(created), actor=actor.email)

    result: Optional[TransitionResult] = None
    if check_in_now:
        result = check_in(
            gateway,
            stay,
            today,
            actor,
            override=override,
            room=room,
            settings=settings,
            guard=guard,
            known_reservation_ids=(known_reservation_ids or frozenset()) | frozenset(created),
        )

    return BookingResult(reservation_ids=tuple(created), stay=stay, check_in=result)
