"""
Write intents and the gateway that carries them to the backend.

The core never talks to the backend directly. Mutating operations build
intent values and hand them, one at a time, to a ``FrontDeskGateway``.
A gateway raises on failure; ``DuplicateRoomCharge`` is the one failure
the core treats as success.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Collection, Optional, Protocol, Sequence, Union

import structlog

from frontdesk.config import ROOM_CHARGE_CLAIM_STALE_SECONDS
from frontdesk.schemas.readmodel import Order, OrderStatus, ReservationStatus, Snapshot
from frontdesk.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CreateNightReservation:
    room_id: str
    user_email: str
    reservation_time: str
    party_size: int
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    status: ReservationStatus = ReservationStatus.PENDING


@dataclass(frozen=True)
class EditReservationStatus:
    reservation_id: str
    status: ReservationStatus


@dataclass(frozen=True)
class ToggleRoomOccupancy:
    room_id: str
    occupied: bool


@dataclass(frozen=True)
class PatchRoomTags:
    room_id: str
    special_requests: tuple[str, ...]


@dataclass(frozen=True)
class CreateOrder:
    room_id: str
    order_number: str
    amount: float
    currency: str
    note: str
    user_email: str
    user_name: str = ""
    status: OrderStatus = OrderStatus.COMPLETED


@dataclass(frozen=True)
class MarkOrderPaid:
    order_id: str
    payment_token: str


Intent = Union[
    CreateNightReservation,
    EditReservationStatus,
    ToggleRoomOccupancy,
    PatchRoomTags,
    CreateOrder,
    MarkOrderPaid,
]


class FrontDeskGateway(Protocol):
    """Backend access used by the mutating services."""

    def fetch_room_orders(self, room_id: str) -> Sequence[Order]:
        """Latest orders for a room, read at call time."""
        ...

    def create_night_reservation(self, intent: CreateNightReservation) -> str:
        """Create a night reservation; returns its id."""
        ...

    def edit_reservation_status(self, intent: EditReservationStatus) -> None: ...

    def toggle_room_occupancy(self, intent: ToggleRoomOccupancy) -> None: ...

    def patch_room_tags(self, intent: PatchRoomTags) -> None: ...

    def create_order(self, intent: CreateOrder) -> str:
        """Create an order; raises DuplicateRoomCharge on a uniqueness conflict."""
        ...

    def mark_order_paid(self, intent: MarkOrderPaid) -> None: ...


class DryRunGateway:
    """
    Gateway over a fixed snapshot that logs intents instead of issuing them.

    Used by the CLI and by DRY_RUN deployments to preview what a
    transition would do.
    """

    def __init__(self, snapshot: Snapshot):
        self.snapshot = snapshot
        self.issued: list[Intent] = []

    def _record(self, intent: Intent) -> None:
        self.issued.append(intent)
        logger.info("dry_run_intent", intent=type(intent).__name__, payload=repr(intent))

    def fetch_room_orders(self, room_id: str) -> Sequence[Order]:
        return self.snapshot.orders_for_room(room_id)

    def create_night_reservation(self, intent: CreateNightReservation) -> str:
        self._record(intent)
        return f"dry-run-{len(self.issued)}"

    def edit_reservation_status(self, intent: EditReservationStatus) -> None:
        self._record(intent)

    def toggle_room_occupancy(self, intent: ToggleRoomOccupancy) -> None:
        self._record(intent)

    def patch_room_tags(self, intent: PatchRoomTags) -> None:
        self._record(intent)

    def create_order(self, intent: CreateOrder) -> str:
        self._record(intent)
        return f"dry-run-{len(self.issued)}"

    def mark_order_paid(self, intent: MarkOrderPaid) -> None:
        self._record(intent)


class RoomChargeGuard(Protocol):
    """
    Serializes room-charge creation per (room, night reservation).

    ``claim`` returns False when another caller already holds or has
    completed the claim. ``take_over`` re-points a held claim at a new
    order when the held one is abandoned: its order is among
    ``voided_order_numbers``, or it never got an order and has gone stale.
    """

    def claim(
        self,
        room_id: str,
        reservation_id: str,
        date_key: Optional[str],
        order_number: str,
        claimed_by: str,
    ) -> bool: ...

    def take_over(
        self,
        room_id: str,
        reservation_id: str,
        date_key: Optional[str],
        order_number: str,
        claimed_by: str,
        voided_order_numbers: Collection[str],
    ) -> bool: ...

    def release(self, room_id: str, reservation_id: str) -> None: ...


class InMemoryRoomChargeGuard:
    """Process-local guard for single-worker deployments and tests."""

    def __init__(
        self,
        stale_after: timedelta = timedelta(seconds=ROOM_CHARGE_CLAIM_STALE_SECONDS),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.stale_after = stale_after
        self._clock = clock
        self._lock = threading.Lock()
        # (room_id, reservation_id) -> (order_number, claimed_at)
        self._claims: dict[tuple[str, str], tuple[str, datetime]] = {}

    def claim(
        self,
        room_id: str,
        reservation_id: str,
        date_key: Optional[str],
        order_number: str,
        claimed_by: str,
    ) -> bool:
        key = (room_id, reservation_id)
        with self._lock:
            if key in self._claims:
                return False
            self._claims[key] = (order_number, self._clock())
            return True

    def take_over(
        self,
        room_id: str,
        reservation_id: str,
        date_key: Optional[str],
        order_number: str,
        claimed_by: str,
        voided_order_numbers: Collection[str],
    ) -> bool:
        key = (room_id, reservation_id)
        now = self._clock()
        with self._lock:
            held = self._claims.get(key)
            if held is None:
                return False
            held_number, claimed_at = held
            if held_number not in voided_order_numbers and claimed_at >= now - self.stale_after:
                return False
            self._claims[key] = (order_number, now)
            return True

    def release(self, room_id: str, reservation_id: str) -> None:
        with self._lock:
            self._claims.pop((room_id, reservation_id), None)
