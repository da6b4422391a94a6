"""
Read model consumed by the front-desk core.

These are immutable snapshots of the external backend's records:
hotels ("areas"), rooms ("tables"), per-night reservations and orders.
Field aliases follow the backend's camelCase names so raw payloads can be
validated directly. Weakly-typed values are coerced leniently: a missing
or unparseable amount becomes 0.0 rather than an error.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


Timestamp = Union[datetime, date, str]


def safe_amount(value: Any) -> float:
    """Coerce a monetary value to a finite float; anything else is 0.0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


class ReadModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Hotel(ReadModel):
    """A hotel. ``description`` carries the encoded settings block."""

    id: str
    name: str = ""
    description: Optional[str] = None


class Room(ReadModel):
    """A room with its live occupancy flag and tag store."""

    id: str
    number: int = Field(0, alias="tableNumber")
    hotel_id: str = Field("", alias="areaId")
    occupied: bool = Field(False, alias="reserved")
    special_requests: tuple[str, ...] = Field((), alias="specialRequests")

    @field_validator("number", mode="before")
    @classmethod
    def _number(cls, v: Any) -> int:
        try:
            return int(v)
        except (TypeError, ValueError):
            return 0

    @field_validator("special_requests", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.splitlines()
        return tuple(str(item) for item in v if isinstance(item, str) and item.strip())


class NightReservation(ReadModel):
    """One guest, one room, one calendar night."""

    id: str
    room_id: str = Field(alias="tableId")
    user_email: str = Field("", alias="userEmail")
    guest_name: Optional[str] = Field(None, alias="guestName")
    guest_phone: Optional[str] = Field(None, alias="guestPhone")
    reservation_time: Optional[Timestamp] = Field(None, alias="reservationTime")
    status: ReservationStatus = ReservationStatus.PENDING
    party_size: int = Field(0, alias="numOfDiners")
    room: Optional[Room] = Field(None, alias="table")

    @model_validator(mode="before")
    @classmethod
    def _flatten_backend_shape(cls, data: Any) -> Any:
        # Backend rows nest the room under "table" and the guest under "user.profile"
        if not isinstance(data, dict):
            return data
        data = dict(data)
        table = data.get("table")
        if not data.get("tableId") and not data.get("room_id") and isinstance(table, dict):
            data["tableId"] = table.get("id")
        user = data.get("user")
        profile = user.get("profile") if isinstance(user, dict) else None
        if isinstance(profile, dict):
            data.setdefault("guestName", profile.get("name"))
            data.setdefault("guestPhone", profile.get("phone"))
        return data

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> Any:
        return str(v).strip().upper() if v is not None else ReservationStatus.PENDING

    @field_validator("party_size", mode="before")
    @classmethod
    def _party(cls, v: Any) -> int:
        try:
            return max(0, int(v))
        except (TypeError, ValueError):
            return 0


class Order(ReadModel):
    """An order record. Room charges are orders too, told apart by their note."""

    id: str
    room_id: Optional[str] = Field(None, alias="tableId")
    order_number: str = Field("", alias="orderNumber")
    note: Optional[str] = None
    total: float = 0.0
    paid: Optional[bool] = None
    payment_token: Optional[str] = Field(None, alias="paymentToken")
    status: str = OrderStatus.PENDING.value
    order_date: Optional[Timestamp] = Field(None, alias="orderDate")
    user_email: Optional[str] = Field(None, alias="userEmail")
    delivery_address: Optional[str] = Field(None, alias="deliveryAddress")

    @field_validator("total", mode="before")
    @classmethod
    def _total(cls, v: Any) -> float:
        return safe_amount(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> str:
        return str(v or OrderStatus.PENDING.value).strip().upper()

    @field_validator("order_number", mode="before")
    @classmethod
    def _order_number(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED.value


class Snapshot(ReadModel):
    """Everything a caller read from the backend for one derivation pass."""

    hotels: tuple[Hotel, ...] = ()
    rooms: tuple[Room, ...] = ()
    reservations: tuple[NightReservation, ...] = ()
    orders: tuple[Order, ...] = ()

    def rooms_by_id(self) -> dict[str, Room]:
        return {r.id: r for r in self.rooms}

    def hotels_by_id(self) -> dict[str, Hotel]:
        return {h.id: h for h in self.hotels}

    def orders_for_room(self, room_id: str) -> list[Order]:
        return [o for o in self.orders if o.room_id == room_id]
