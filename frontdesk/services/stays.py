"""Group per-night reservations into stays."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping, Optional

import structlog

from frontdesk.config import DEBUG
from frontdesk.metrics import derivation_duration
from frontdesk.schemas.readmodel import Hotel, NightReservation, ReservationStatus, Room
from frontdesk.schemas.views import Stay, StayState
from frontdesk.utils.datetime import add_days, to_date_key

logger = structlog.get_logger(__name__)

_ACTIVE_FOR_CHECK_IN = (ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED)


def _split_contiguous(sorted_keys: list[str]) -> list[list[str]]:
    runs: list[list[str]] = []
    for key in sorted_keys:
        if runs and add_days(runs[-1][-1], 1) == key:
            runs[-1].append(key)
        else:
            runs.append([key])
    return runs


def aggregate_status(nights: Iterable[NightReservation]) -> ReservationStatus:
    """
    Collapse night statuses into one stay status.

    Precedence: all cancelled -> CANCELLED, then any CONFIRMED, any
    PENDING, any COMPLETED. Otherwise the first night's own status.
    """
    statuses = [n.status for n in nights]
    if not statuses:
        return ReservationStatus.PENDING
    if all(s == ReservationStatus.CANCELLED for s in statuses):
        return ReservationStatus.CANCELLED
    for candidate in (
        ReservationStatus.CONFIRMED,
        ReservationStatus.PENDING,
        ReservationStatus.COMPLETED,
    ):
        if candidate in statuses:
            return candidate
    return statuses[0]


def is_checked_in(status: ReservationStatus, occupied: bool, nights: list[NightReservation]) -> bool:
    # The occupancy flag alone may be left over from another guest
    return (
        status in _ACTIVE_FOR_CHECK_IN
        and occupied
        and any(n.status in _ACTIVE_FOR_CHECK_IN for n in nights)
    )


def group_into_stays(
    reservations: Iterable[NightReservation],
    hotels: Optional[Mapping[str, Hotel]] = None,
    rooms: Optional[Mapping[str, Room]] = None,
) -> list[Stay]:
    """
    Group night reservations into contiguous stays.

    Nights are partitioned by (room id, lower-cased guest email). Within a
    partition the first reservation seen for a date wins; dates are then
    split into runs of consecutive calendar days, one stay per run.
    Cancelled nights still count for contiguity.

    Args:
        reservations: Night reservations from one snapshot
        hotels: Hotels by id, used for the hotel name sort key
        rooms: Live rooms by id; falls back to the room embedded in each night

    Returns:
        Stays sorted by hotel name, room number, start date.
    """
    hotels = hotels or {}
    rooms = rooms or {}

    with derivation_duration.labels(view="stays").time():
        partitions: dict[tuple[str, str], dict[str, NightReservation]] = defaultdict(dict)
        dropped = 0

        for r in reservations:
            date_key = to_date_key(r.reservation_time)
            if not r.room_id or not date_key:
                dropped += 1
                continue
            by_date = partitions[(r.room_id, r.user_email.strip().lower())]
            if date_key in by_date:
                dropped += 1
                continue
            by_date[date_key] = r

        if dropped and DEBUG:
            logger.debug("stay_grouping_dropped_rows", count=dropped)

        stays: list[Stay] = []
        for (room_id, email_key), by_date in partitions.items():
            for run in _split_contiguous(sorted(by_date)):
                nights = [by_date[k] for k in run]
                first = nights[0]

                room = rooms.get(room_id) or first.room
                hotel_id = room.hotel_id if room else ""
                status = aggregate_status(nights)
                occupied = bool(room and room.occupied)

                stays.append(
                    Stay(
                        stay_id=f"{room_id}||{email_key}::{run[0]}",
                        room_id=room_id,
                        room_number=room.number if room else 0,
                        hotel_id=hotel_id,
                        hotel_name=hotels[hotel_id].name if hotel_id in hotels else "",
                        user_email=first.user_email,
                        guest_name=first.guest_name or first.user_email,
                        guest_phone=first.guest_phone,
                        guests=max((n.party_size for n in nights), default=0),
                        nights=len(nights),
                        start_date=run[0],
                        last_night=run[-1],
                        checkout_date=add_days(run[-1], 1),
                        status=status,
                        checked_in=is_checked_in(status, occupied, nights),
                        room_occupied=occupied,
                        special_requests=room.special_requests if room else (),
                        reservations=tuple(nights),
                        reservation_ids=tuple(n.id for n in nights),
                        active_reservation_ids=tuple(
                            n.id for n in nights if n.status != ReservationStatus.CANCELLED
                        ),
                        night_ids=dict(zip(run, (n.id for n in nights))),
                    )
                )

        stays.sort(key=lambda s: (s.hotel_name, s.room_number, s.start_date, s.stay_id))

    return stays


def covers_date(stay: Stay, date_key: str) -> bool:
    """True if ``date_key`` is one of the stay's nights."""
    return stay.start_date <= date_key <= stay.last_night


def folio_id_for_date(stay: Stay, date_key: str) -> str:
    """The night reservation id for ``date_key``, else the first night's id."""
    return stay.night_ids.get(date_key, stay.reservation_ids[0])


def find_stay_by_reservation_id(stays: Iterable[Stay], reservation_id: str) -> Optional[Stay]:
    for stay in stays:
        if reservation_id in stay.reservation_ids:
            return stay
    return None


def stay_state(stay: Stay) -> StayState:
    if stay.status == ReservationStatus.CANCELLED:
        return StayState.CANCELLED
    if stay.checked_in:
        return StayState.CHECKED_IN
    if stay.status == ReservationStatus.COMPLETED:
        return StayState.CHECKED_OUT
    return StayState.NOT_ARRIVED


def derive_stay_stage(stay: Stay, today: str) -> str:
    """Front-desk label for a stay relative to the operational date."""
    if stay.status == ReservationStatus.CANCELLED:
        return "Cancelled"
    if stay.room_occupied and covers_date(stay, today):
        return "In-house"
    if stay.room_occupied and stay.checkout_date == today:
        return "Departing today"
    if stay.start_date == today and not stay.room_occupied:
        return "Arriving today"
    if stay.start_date > today:
        return "Upcoming"
    if stay.checkout_date < today:
        return "Departed"
    return "Not in-house"
