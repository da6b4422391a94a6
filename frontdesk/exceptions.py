"""
Error taxonomy for front-desk operations.

- Foreign or malformed encoded text is never an error: decoders return None.
- PreconditionViolation: a user-actionable block naming every condition.
- SequenceStepFailed: a multi-step effect stopped part way; earlier steps
  stay applied.
- DuplicateRoomCharge: raised by gateways when the order store rejects a
  room charge on its uniqueness constraint. The poster treats it as a skip.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Sequence


class Blocker(str, Enum):
    """Named reasons a transition or posting can be refused."""

    NOT_ARRIVING_TODAY = "NOT_ARRIVING_TODAY"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"
    ROOM_OCCUPIED = "ROOM_OCCUPIED"
    ROOM_NOT_READY = "ROOM_NOT_READY"
    NOT_OPERATIONAL_TODAY = "NOT_OPERATIONAL_TODAY"
    NOT_CHECKED_IN = "NOT_CHECKED_IN"
    MISSING_NIGHTLY_CHARGES = "MISSING_NIGHTLY_CHARGES"
    BALANCE_DUE = "BALANCE_DUE"
    OVERRIDE_NOT_PERMITTED = "OVERRIDE_NOT_PERMITTED"
    STAY_CLOSED = "STAY_CLOSED"
    ROOM_UNAVAILABLE = "ROOM_UNAVAILABLE"
    INVALID_NIGHTS = "INVALID_NIGHTS"
    RATE_NOT_CONFIGURED = "RATE_NOT_CONFIGURED"


BLOCKER_MESSAGES: dict[Blocker, str] = {
    Blocker.NOT_ARRIVING_TODAY: "Stay is not arriving today.",
    Blocker.ALREADY_CHECKED_IN: "Stay is already checked in.",
    Blocker.ROOM_OCCUPIED: "Room is already occupied.",
    Blocker.ROOM_NOT_READY: "Room not ready (vacant clean). Manager/Admin override required.",
    Blocker.NOT_OPERATIONAL_TODAY: "Operational date is not today.",
    Blocker.NOT_CHECKED_IN: "Stay is not checked in.",
    Blocker.MISSING_NIGHTLY_CHARGES: "Missing nightly charges. Post them first or use a manager override.",
    Blocker.BALANCE_DUE: "Balance due. Take payment first or use a manager override.",
    Blocker.OVERRIDE_NOT_PERMITTED: "Manager/Admin role required for override.",
    Blocker.STAY_CLOSED: "Stay is already checked out or cancelled.",
    Blocker.ROOM_UNAVAILABLE: "Room is not available for that date range.",
    Blocker.INVALID_NIGHTS: "Nights must be at least 1.",
    Blocker.RATE_NOT_CONFIGURED: "Nightly rate not configured.",
}


class FrontDeskError(Exception):
    """Base class for all front-desk errors."""


class PreconditionViolation(FrontDeskError):
    """A transition or posting was refused; ``blockers`` names every reason."""

    def __init__(self, blockers: Sequence[Blocker], detail: Optional[str] = None):
        self.blockers: tuple[Blocker, ...] = tuple(blockers)
        self.detail = detail
        message = "; ".join(BLOCKER_MESSAGES[b] for b in self.blockers)
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "blockers": [b.value for b in self.blockers],
            "messages": [BLOCKER_MESSAGES[b] for b in self.blockers],
            "detail": self.detail,
        }


class RateNotConfigured(PreconditionViolation):
    """Nightly rate is missing, zero, negative or not a finite number."""

    def __init__(self, rate: Any):
        self.rate = rate
        super().__init__([Blocker.RATE_NOT_CONFIGURED], detail=f"rate={rate!r}")


class SequenceStepFailed(FrontDeskError):
    """
    A step of an ordered effect sequence failed.

    Attributes:
        step: Name of the failing step (e.g. "confirm_night")
        entity_id: Reservation, room or order id the step acted on
        completed_steps: Steps that succeeded before the failure (not rolled back)
        cause: The underlying exception
    """

    def __init__(
        self,
        step: str,
        entity_id: Optional[str],
        completed_steps: Sequence[Any] = (),
        cause: Optional[BaseException] = None,
    ):
        self.step = step
        self.entity_id = entity_id
        self.completed_steps = list(completed_steps)
        self.cause = cause
        super().__init__(f"step {step!r} failed for {entity_id!r}: {cause}")


class RoomChargePostingError(SequenceStepFailed):
    """
    Posting stopped at ``night``; ``created`` earlier nights remain posted.

    ``step`` is "read_room_orders" (``night`` is None), "claim_room_charge"
    or "create_room_charge".
    """

    def __init__(
        self,
        night: Optional[str],
        created: int,
        skipped: int,
        cause: BaseException,
        step: str = "create_room_charge",
    ):
        self.night = night
        self.created = created
        self.skipped = skipped
        super().__init__(step, night, cause=cause)


class DuplicateRoomCharge(FrontDeskError):
    """The order store already holds a room charge for this (room, night)."""
