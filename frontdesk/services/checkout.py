"""
Stay transitions: check-in, checkout and cancellation.

Each transition is evaluated first (a pure decision listing every
blocker), then applied as an ordered list of gateway calls. Steps run one
at a time and stop at the first failure; nothing already applied is
undone. Overrides are honored only for elevated roles, and only for the
blockers that policy allows to be overridden.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet, Callable, Optional, Sequence

import structlog

from frontdesk.config import ELEVATED_ROLES
from frontdesk.exceptions import (
    Blocker,
    FrontDeskError,
    PreconditionViolation,
    SequenceStepFailed,
)
from frontdesk.gateway import (
    EditReservationStatus,
    FrontDeskGateway,
    PatchRoomTags,
    RoomChargeGuard,
    ToggleRoomOccupancy,
)
from frontdesk.metrics import transitions_total
from frontdesk.schemas.readmodel import ReservationStatus, Room
from frontdesk.schemas.views import Folio, Stay, StayState
from frontdesk.services.room_charges import PostingResult, ensure_nightly_charges, nightly_rate_for
from frontdesk.services.stays import stay_state
from frontdesk.tags.hotel_settings import HotelSettings
from frontdesk.tags.housekeeping import (
    READY_STATUS,
    HousekeepingStatus,
    apply_housekeeping_patch,
    derive_room_status,
    parse_housekeeping,
)
from frontdesk.utils.datetime import today_key

logger = structlog.get_logger(__name__)

CHECK_IN = "check_in"
CHECK_OUT = "check_out"
CANCEL = "cancel"

_CLOSED_STATES = (StayState.CHECKED_OUT, StayState.CANCELLED)


@dataclass(frozen=True)
class Actor:
    """The staff member performing an operation."""

    email: str
    role: str = ""

    @property
    def is_elevated(self) -> bool:
        return self.role.strip().upper() in ELEVATED_ROLES


@dataclass(frozen=True)
class Decision:
    """
    Outcome of evaluating a transition.

    ``blockers`` are the conditions that still prevent it; ``overridden``
    are the ones an elevated override waived.
    """

    allowed: bool
    blockers: tuple[Blocker, ...] = ()
    overridden: tuple[Blocker, ...] = ()


@dataclass(frozen=True)
class TransitionResult:
    transition: str
    stay_id: str
    decision: Decision
    steps: tuple[str, ...] = ()
    posting: Optional[PostingResult] = None
    posting_error: Optional[str] = None


@dataclass
class _Step:
    name: str
    entity_id: str
    run: Callable[[], object] = field(repr=False)


def _decide(hard: Sequence[Blocker], soft: Sequence[Blocker], actor: Actor, override: bool) -> Decision:
    if override and soft and not actor.is_elevated:
        # Rejected outright, never treated as a plain request
        return Decision(allowed=False, blockers=tuple(hard) + tuple(soft) + (Blocker.OVERRIDE_NOT_PERMITTED,))
    if override and actor.is_elevated:
        return Decision(allowed=not hard, blockers=tuple(hard), overridden=tuple(soft))
    blockers = tuple(hard) + tuple(soft)
    return Decision(allowed=not blockers, blockers=blockers)


def _room_view(stay: Stay, room: Optional[Room]) -> tuple[bool, tuple[str, ...]]:
    if room is not None:
        return room.occupied, room.special_requests
    return stay.room_occupied, stay.special_requests


def _run_steps(transition: str, stay: Stay, steps: Sequence[_Step]) -> tuple[str, ...]:
    done: list[str] = []
    for step in steps:
        try:
            step.run()
        except Exception as e:
            transitions_total.labels(transition=transition, status="failed").inc()
            logger.error(
                "transition_step_failed",
                transition=transition,
                stay_id=stay.stay_id,
                step=step.name,
                entity_id=step.entity_id,
                completed=len(done),
                error=str(e),
            )
            raise SequenceStepFailed(step.name, step.entity_id, done, e) from e
        done.append(f"{step.name}:{step.entity_id}")
    return tuple(done)


def _refuse(transition: str, stay: Stay, decision: Decision) -> PreconditionViolation:
    transitions_total.labels(transition=transition, status="blocked").inc()
    logger.info(
        f"{transition}_blocked",
        stay_id=stay.stay_id,
        blockers=[b.value for b in decision.blockers],
    )
    return PreconditionViolation(decision.blockers)


# =============================================================================
# Check-in
# =============================================================================


def evaluate_check_in(
    stay: Stay,
    today: str,
    actor: Actor,
    override: bool = False,
    room: Optional[Room] = None,
) -> Decision:
    """
    Decide whether ``stay`` can check in on ``today``.

    Wrong arrival date, an occupied room and a stay that is already in or
    closed are hard blocks. Only room readiness can be overridden.
    """
    occupied, tags = _room_view(stay, room)
    state = stay_state(stay)

    hard: list[Blocker] = []
    soft: list[Blocker] = []

    if state in _CLOSED_STATES:
        hard.append(Blocker.STAY_CLOSED)
    elif state == StayState.CHECKED_IN:
        hard.append(Blocker.ALREADY_CHECKED_IN)
    if stay.start_date != today:
        hard.append(Blocker.NOT_ARRIVING_TODAY)
    if occupied:
        hard.append(Blocker.ROOM_OCCUPIED)
    elif derive_room_status(occupied, parse_housekeeping(tags).hk) != READY_STATUS:
        soft.append(Blocker.ROOM_NOT_READY)

    return _decide(hard, soft, actor, override)


def check_in(
    gateway: FrontDeskGateway,
    stay: Stay,
    today: str,
    actor: Actor,
    override: bool = False,
    room: Optional[Room] = None,
    settings: Optional[HotelSettings] = None,
    post_charges: Optional[bool] = None,
    guard: Optional[RoomChargeGuard] = None,
    known_reservation_ids: Optional[AbstractSet[str]] = None,
) -> TransitionResult:
    """
    Check a stay in: occupy the room, confirm its open nights, optionally post charges.

    Charge posting runs after the check-in steps. Any posting failure,
    including a failed order read or claim, is reported on the result as
    ``posting_error`` and does not undo the check-in.

    Raises:
        PreconditionViolation: The decision was not allowed
        SequenceStepFailed: A step failed; earlier steps remain applied
    """
    settings = settings or HotelSettings()
    decision = evaluate_check_in(stay, today, actor, override, room)
    if not decision.allowed:
        raise _refuse(CHECK_IN, stay, decision)

    steps = [
        _Step("occupy_room", stay.room_id, lambda: gateway.toggle_room_occupancy(ToggleRoomOccupancy(stay.room_id, True)))
    ]
    for night in stay.reservations:
        if night.status in (ReservationStatus.CANCELLED, ReservationStatus.COMPLETED):
            continue
        steps.append(
            _Step(
                "confirm_night",
                night.id,
                lambda rid=night.id: gateway.edit_reservation_status(
                    EditReservationStatus(rid, ReservationStatus.CONFIRMED)
                ),
            )
        )
    done = _run_steps(CHECK_IN, stay, steps)

    posting: Optional[PostingResult] = None
    posting_error: Optional[str] = None
    if settings.auto_post_room_charges if post_charges is None else post_charges:
        _, tags = _room_view(stay, room)
        try:
            posting = ensure_nightly_charges(
                gateway,
                stay,
                nightly_rate_for(settings, tags),
                settings.currency,
                guard=guard,
                actor_email=actor.email,
                known_reservation_ids=known_reservation_ids,
            )
        except FrontDeskError as e:
            posting_error = str(e)
            logger.warning("check_in_room_charges_not_posted", stay_id=stay.stay_id, error=posting_error)

    transitions_total.labels(transition=CHECK_IN, status="allowed").inc()
    logger.info(
        "stay_checked_in",
        stay_id=stay.stay_id,
        actor=actor.email,
        overridden=[b.value for b in decision.overridden],
    )
    return TransitionResult(CHECK_IN, stay.stay_id, decision, done, posting, posting_error)


# =============================================================================
# Checkout
# =============================================================================


def evaluate_checkout(
    stay: Stay,
    folio: Folio,
    settings: HotelSettings,
    operational_date: str,
    actor: Actor,
    override: bool = False,
    current_date: Optional[str] = None,
) -> Decision:
    """
    Decide whether ``stay`` can check out.

    Args:
        stay: Stay being checked out
        folio: Its folio, built from current orders
        settings: Hotel policy
        operational_date: Date the desk is operating on
        actor: Who is asking
        override: Request to waive the billing blockers
        current_date: Today's date key; defaults to the hotel's today

    The stay must be checked in and the operational date must be today.
    Missing nightly charges (when the hotel auto-posts them) and a balance
    due (when a paid folio is required) can be overridden.
    """
    current_date = current_date or today_key()
    state = stay_state(stay)

    hard: list[Blocker] = []
    soft: list[Blocker] = []

    if state in _CLOSED_STATES:
        hard.append(Blocker.STAY_CLOSED)
    elif state != StayState.CHECKED_IN:
        hard.append(Blocker.NOT_CHECKED_IN)
    if operational_date != current_date:
        hard.append(Blocker.NOT_OPERATIONAL_TODAY)

    if settings.missing_charges_block_checkout and folio.missing_night_ids:
        soft.append(Blocker.MISSING_NIGHTLY_CHARGES)
    if settings.checkout_requires_paid_folio and folio.balance_due > 0:
        soft.append(Blocker.BALANCE_DUE)

    return _decide(hard, soft, actor, override)


def check_out(
    gateway: FrontDeskGateway,
    stay: Stay,
    folio: Folio,
    settings: HotelSettings,
    operational_date: str,
    actor: Actor,
    override: bool = False,
    room: Optional[Room] = None,
    current_date: Optional[str] = None,
) -> TransitionResult:
    """
    Check a stay out.

    Steps, in order: complete every non-cancelled night, release the room,
    mark it dirty and queue it for cleaning.

    Raises:
        PreconditionViolation: The decision was not allowed
        SequenceStepFailed: A step failed; earlier steps remain applied
    """
    decision = evaluate_checkout(stay, folio, settings, operational_date, actor, override, current_date)
    if not decision.allowed:
        raise _refuse(CHECK_OUT, stay, decision)

    _, tags = _room_view(stay, room)
    dirty_tags = tuple(
        apply_housekeeping_patch(tags, {"status": HousekeepingStatus.DIRTY.value, "in_cleaning_list": True})
    )

    steps = [
        _Step(
            "complete_night",
            night.id,
            lambda rid=night.id: gateway.edit_reservation_status(
                EditReservationStatus(rid, ReservationStatus.COMPLETED)
            ),
        )
        for night in stay.reservations
        if night.status != ReservationStatus.CANCELLED
    ]
    steps.append(
        _Step("release_room", stay.room_id, lambda: gateway.toggle_room_occupancy(ToggleRoomOccupancy(stay.room_id, False)))
    )
    steps.append(
        _Step("mark_room_dirty", stay.room_id, lambda: gateway.patch_room_tags(PatchRoomTags(stay.room_id, dirty_tags)))
    )
    done = _run_steps(CHECK_OUT, stay, steps)

    transitions_total.labels(transition=CHECK_OUT, status="allowed").inc()
    logger.info(
        "stay_checked_out",
        stay_id=stay.stay_id,
        actor=actor.email,
        overridden=[b.value for b in decision.overridden],
        balance_due=folio.balance_due,
    )
    return TransitionResult(CHECK_OUT, stay.stay_id, decision, done)


# =============================================================================
# Cancellation
# =============================================================================


def cancel_stay(gateway: FrontDeskGateway, stay: Stay, actor: Actor) -> TransitionResult:
    """Cancel every night of a stay that is not cancelled yet. No housekeeping or billing effects."""
    if stay_state(stay) in _CLOSED_STATES:
        raise _refuse(CANCEL, stay, Decision(allowed=False, blockers=(Blocker.STAY_CLOSED,)))

    steps = [
        _Step(
            "cancel_night",
            night.id,
            lambda rid=night.id: gateway.edit_reservation_status(
                EditReservationStatus(rid, ReservationStatus.CANCELLED)
            ),
        )
        for night in stay.reservations
        if night.status != ReservationStatus.CANCELLED
    ]
    done = _run_steps(CANCEL, stay, steps)

    transitions_total.labels(transition=CANCEL, status="allowed").inc()
    logger.info("stay_cancelled", stay_id=stay.stay_id, actor=actor.email, nights=len(done))
    return TransitionResult(CANCEL, stay.stay_id, Decision(allowed=True), done)
