"""
Idempotent posting of nightly room charges.

The check against existing orders is advisory: two callers can both see a
night as uncharged. The authoritative guard is the (room, reservation)
uniqueness enforced by a RoomChargeGuard and/or the order store, and a
conflict from either counts as a skip. A claim left behind by a voided
charge or a dead poster is taken over rather than blocking the night.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Iterable, Optional

import structlog

from frontdesk.exceptions import DuplicateRoomCharge, RateNotConfigured, RoomChargePostingError
from frontdesk.gateway import CreateOrder, FrontDeskGateway, RoomChargeGuard
from frontdesk.metrics import room_charges_total
from frontdesk.schemas.readmodel import OrderStatus
from frontdesk.schemas.views import Stay
from frontdesk.services.orders import room_charge_reservation_id
from frontdesk.tags.hotel_settings import HotelSettings
from frontdesk.tags.rates import effective_nightly_rate, parse_rate_override
from frontdesk.tags.room_charge import RoomChargeMeta, build_room_charge_note, room_charge_order_number

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PostingResult:
    created: int = 0
    skipped: int = 0
    held: int = 0
    created_order_ids: tuple[str, ...] = field(default_factory=tuple)


def nightly_rate_for(settings: HotelSettings, special_requests: Optional[Iterable[str]]) -> float:
    """The room's RATE:OVERRIDE if set, else the hotel's base nightly rate."""
    return effective_nightly_rate(settings.base_nightly_rate, parse_rate_override(special_requests))


def _valid_rate(rate: Any) -> bool:
    if isinstance(rate, bool) or not isinstance(rate, (int, float)):
        return False
    return math.isfinite(rate) and rate > 0


def ensure_nightly_charges(
    gateway: FrontDeskGateway,
    stay: Stay,
    nightly_rate: float,
    currency: str,
    target_nights: Optional[Iterable[str]] = None,
    guard: Optional[RoomChargeGuard] = None,
    actor_email: str = "",
    known_reservation_ids: Optional[AbstractSet[str]] = None,
) -> PostingResult:
    """
    Post one room charge per target night that does not have one yet.

    Nights are handled one at a time in order. Calling this twice with
    the same input creates nothing the second time. A night whose charge
    was voided counts as uncharged and is posted again under a new order
    number.

    Args:
        gateway: Backend gateway; its orders are re-read at call time
        stay: Stay being billed
        nightly_rate: Amount of each charge; must be a positive finite number
        currency: Currency code recorded in the charge note
        target_nights: Night reservation ids to charge; defaults to all
            active nights. Ids outside the stay's active nights are ignored.
        guard: Optional per-(room, night) claim store
        actor_email: Recorded as the claimant
        known_reservation_ids: Passed to linkage for ``ROOM-<id>`` orders

    Returns:
        PostingResult with created and skipped counts, and ``held`` for
        nights another poster has claimed but not charged yet

    Raises:
        RateNotConfigured: Rate missing, zero, negative or not finite.
            Nothing is created.
        RoomChargePostingError: Reading orders, claiming or creating a
            night failed. Charges created before it remain;
            ``created``/``skipped`` report progress.
    """
    if not _valid_rate(nightly_rate):
        logger.warning("room_charge_rate_not_configured", stay_id=stay.stay_id, rate=repr(nightly_rate))
        raise RateNotConfigured(nightly_rate)

    active = stay.active_reservation_ids
    requested = list(active) if target_nights is None else list(dict.fromkeys(target_nights))
    ignored = [rid for rid in requested if rid not in active]
    if ignored:
        logger.warning("room_charge_targets_outside_stay", stay_id=stay.stay_id, reservation_ids=ignored)
    targets = [rid for rid in requested if rid in active]

    try:
        orders = list(gateway.fetch_room_orders(stay.room_id))
    except Exception as e:
        room_charges_total.labels(outcome="failed").inc()
        logger.error("room_charge_orders_read_failed", stay_id=stay.stay_id, error=str(e))
        raise RoomChargePostingError(None, 0, 0, e, step="read_room_orders") from e

    known = known_reservation_ids if known_reservation_ids is not None else set(stay.reservation_ids)
    existing = {room_charge_reservation_id(order, known) for order in orders if not order.is_cancelled}
    taken_numbers = {order.order_number for order in orders if order.order_number}
    voided_numbers = {order.order_number for order in orders if order.is_cancelled and order.order_number}
    date_by_reservation = {rid: dk for dk, rid in stay.night_ids.items()}

    created = 0
    skipped = 0
    held = 0
    created_ids: list[str] = []

    for reservation_id in targets:
        log = logger.bind(stay_id=stay.stay_id, reservation_id=reservation_id)

        if reservation_id in existing:
            skipped += 1
            room_charges_total.labels(outcome="skipped").inc()
            continue

        order_number = room_charge_order_number(reservation_id, taken_numbers)
        date_key = date_by_reservation.get(reservation_id)

        if guard is not None:
            try:
                claimed = guard.claim(stay.room_id, reservation_id, date_key, order_number, actor_email)
                reclaimed = not claimed and guard.take_over(
                    stay.room_id, reservation_id, date_key, order_number, actor_email, voided_numbers
                )
            except Exception as e:
                room_charges_total.labels(outcome="failed").inc()
                log.error("room_charge_claim_failed", created=created, skipped=skipped, error=str(e))
                raise RoomChargePostingError(reservation_id, created, skipped, e, step="claim_room_charge") from e

            if reclaimed:
                log.info("room_charge_claim_reclaimed", order_number=order_number)
                room_charges_total.labels(outcome="reclaimed").inc()
            elif not claimed:
                # Claimed by a poster whose order is not visible yet
                log.info("room_charge_claim_held")
                held += 1
                room_charges_total.labels(outcome="held").inc()
                continue

        note = build_room_charge_note(
            RoomChargeMeta(
                reservation_id=reservation_id,
                date_key=date_key,
                hotel_id=stay.hotel_id or None,
                room_id=stay.room_id,
                room_number=stay.room_number,
                rate=float(nightly_rate),
                currency=currency,
            )
        )
        intent = CreateOrder(
            room_id=stay.room_id,
            order_number=order_number,
            amount=float(nightly_rate),
            currency=currency,
            note=note,
            user_email=stay.user_email,
            user_name=stay.guest_name,
            status=OrderStatus.COMPLETED,
        )

        try:
            order_id = gateway.create_order(intent)
        except DuplicateRoomCharge:
            log.info("room_charge_already_exists")
            skipped += 1
            room_charges_total.labels(outcome="skipped").inc()
            continue
        except Exception as e:
            if guard is not None:
                _release_quietly(guard, stay.room_id, reservation_id, log)
            room_charges_total.labels(outcome="failed").inc()
            log.error("room_charge_post_failed", created=created, skipped=skipped, error=str(e))
            raise RoomChargePostingError(reservation_id, created, skipped, e) from e

        created += 1
        created_ids.append(order_id)
        taken_numbers.add(order_number)
        room_charges_total.labels(outcome="created").inc()
        log.info("room_charge_posted", order_id=order_id, date_key=date_key, amount=float(nightly_rate))

    logger.info("room_charges_ensured", stay_id=stay.stay_id, created=created, skipped=skipped, held=held)
    return PostingResult(created=created, skipped=skipped, held=held, created_order_ids=tuple(created_ids))


def _release_quietly(guard: RoomChargeGuard, room_id: str, reservation_id: str, log: Any) -> None:
    """Release a claim after a failed create; a failed release is logged, the claim goes stale."""
    try:
        guard.release(room_id, reservation_id)
    except Exception as e:
        log.error("room_charge_claim_release_failed", error=str(e))
