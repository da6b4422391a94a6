from typing import Optional

from fastapi import HTTPException

from frontdesk.schemas.api import SnapshotPayload
from frontdesk.schemas.readmodel import Snapshot
from frontdesk.schemas.views import Stay
from frontdesk.services.stays import find_stay_by_reservation_id, group_into_stays
from frontdesk.tags.hotel_settings import HotelSettings, parse_hotel_settings
from frontdesk.utils.datetime import parse_date_key, today_key


def operational_date_or_422(payload: SnapshotPayload) -> str:
    """The payload's date, or today when omitted; 422 when it is not YYYY-MM-DD."""
    if payload.date is None:
        return today_key()
    if parse_date_key(payload.date) is None:
        raise HTTPException(status_code=422, detail=f"Invalid date: {payload.date!r}")
    return payload.date


def derive_stays(snapshot: Snapshot) -> list[Stay]:
    return group_into_stays(
        snapshot.reservations,
        hotels=snapshot.hotels_by_id(),
        rooms=snapshot.rooms_by_id(),
    )


def stay_or_404(stays: list[Stay], reservation_id: str) -> Stay:
    stay = find_stay_by_reservation_id(stays, reservation_id)
    if stay is None:
        raise HTTPException(status_code=404, detail=f"No stay contains reservation {reservation_id}")
    return stay


def settings_for(snapshot: Snapshot, hotel_id: Optional[str]) -> HotelSettings:
    hotel = snapshot.hotels_by_id().get(hotel_id or "")
    return parse_hotel_settings(hotel.description if hotel else None).settings


def known_reservation_ids(snapshot: Snapshot) -> frozenset[str]:
    return frozenset(r.id for r in snapshot.reservations)
