"""
Derived views: stays and folios.

Neither is stored anywhere. Both are recomputed from a Snapshot on every
read and compare structurally, so deriving twice from the same input
yields equal values.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from frontdesk.schemas.readmodel import NightReservation, ReservationStatus


class OrderKind(str, Enum):
    ROOM_CHARGE = "ROOM_CHARGE"
    ROOM_SERVICE = "ROOM_SERVICE"
    DELIVERY = "DELIVERY"
    OTHER = "OTHER"


class StayState(str, Enum):
    NOT_ARRIVED = "NOT_ARRIVED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"


class View(BaseModel):
    model_config = ConfigDict(frozen=True)


class Stay(View):
    """
    A contiguous run of night reservations for one room and one guest.

    ``stay_id`` is ``<room id>||<guest email>::<first night>``.
    ``checkout_date`` is the day after ``last_night``.
    """

    stay_id: str
    room_id: str
    room_number: int
    hotel_id: str
    hotel_name: str

    user_email: str
    guest_name: str
    guest_phone: Optional[str]
    guests: int

    nights: int
    start_date: str
    last_night: str
    checkout_date: str

    status: ReservationStatus
    checked_in: bool

    room_occupied: bool
    special_requests: tuple[str, ...]

    reservations: tuple[NightReservation, ...]
    reservation_ids: tuple[str, ...]
    active_reservation_ids: tuple[str, ...]
    night_ids: dict[str, str]


class FolioLine(View):
    order_id: str
    order_number: str
    kind: OrderKind
    amount: float
    paid: bool
    method: Optional[str]
    date_key: Optional[str]
    reservation_id: Optional[str] = None


class PaymentBreakdown(View):
    method: str
    amount: float
    count: int


class Folio(View):
    """Billing view of a stay over the orders linked to it."""

    stay_id: str
    currency: str

    room_charges: tuple[FolioLine, ...]
    service_lines: tuple[FolioLine, ...]

    room_total: float
    menu_total: float
    grand_total: float
    paid_total: float
    balance_due: float
    paid_count: int
    unpaid_count: int

    payments_by_method: tuple[PaymentBreakdown, ...]
    missing_night_ids: tuple[str, ...]

    nightly_rate: Optional[float] = None
    expected_room_total: Optional[float] = None
    room_total_delta: float = 0.0

    @property
    def lines(self) -> tuple[FolioLine, ...]:
        return self.room_charges + self.service_lines
