from datetime import datetime
from typing import Collection, Optional

import structlog
from sqlalchemy import delete, func, or_, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Engine

from frontdesk.models.room_charges import RoomChargeClaim

logger = structlog.get_logger(__name__)


def claim_room_charge(
    engine: Engine,
    room_id: str,
    reservation_id: str,
    order_number: str,
    date_key: Optional[str] = None,
    claimed_by: Optional[str] = None,
    dry_run: bool = False,
) -> bool:
    """
    Claim the right to post the room charge for one night.

    Args:
        engine: SQLAlchemy Engine
        room_id: Room the charge is posted to
        reservation_id: Night reservation being charged
        order_number: Order number the charge will carry
        date_key: The night, for reporting
        claimed_by: Staff email that triggered the posting
        dry_run: If True, skip DB writes and report the claim as acquired

    Returns:
        bool: True if this call inserted the claim, False if it already existed
    """
    if dry_run:
        logger.info("room_charge_claim_dry_run", room_id=room_id, reservation_id=reservation_id)
        return True

    stmt = (
        insert(RoomChargeClaim)
        .values(
            room_id=room_id,
            reservation_id=reservation_id,
            date_key=date_key,
            order_number=order_number,
            claimed_by=claimed_by,
        )
        .on_conflict_do_nothing(index_elements=["room_id", "reservation_id"])
    )

    with engine.begin() as conn:
        result = conn.execute(stmt)

    acquired = result.rowcount == 1
    logger.debug(
        "room_charge_claim",
        room_id=room_id,
        reservation_id=reservation_id,
        acquired=acquired,
    )
    return acquired


def release_room_charge(engine: Engine, room_id: str, reservation_id: str, dry_run: bool = False) -> None:
    """Delete a claim whose order could not be created, so a retry can post it."""
    if dry_run:
        logger.info("room_charge_release_dry_run", room_id=room_id, reservation_id=reservation_id)
        return

    with engine.begin() as conn:
        conn.execute(
            delete(RoomChargeClaim).where(
                RoomChargeClaim.room_id == room_id,
                RoomChargeClaim.reservation_id == reservation_id,
            )
        )
    logger.info("room_charge_claim_released", room_id=room_id, reservation_id=reservation_id)


def take_over_room_charge(
    engine: Engine,
    room_id: str,
    reservation_id: str,
    order_number: str,
    stale_order_numbers: Collection[str],
    stale_before: datetime,
    date_key: Optional[str] = None,
    claimed_by: Optional[str] = None,
    dry_run: bool = False,
) -> bool:
    """
    Re-point an abandoned claim at a new order.

    The claim is taken over only if its order number is one of
    ``stale_order_numbers`` (orders that were voided) or it was claimed
    before ``stale_before``. The check and the update are one statement,
    so of several posters racing on the same claim at most one wins.

    Returns:
        bool: True if this call now holds the claim
    """
    if dry_run:
        logger.info("room_charge_takeover_dry_run", room_id=room_id, reservation_id=reservation_id)
        return True

    stmt = (
        update(RoomChargeClaim)
        .where(
            RoomChargeClaim.room_id == room_id,
            RoomChargeClaim.reservation_id == reservation_id,
            or_(
                RoomChargeClaim.order_number.in_(list(stale_order_numbers)),
                RoomChargeClaim.claimed_at < stale_before,
            ),
        )
        .values(
            order_number=order_number,
            date_key=date_key,
            claimed_by=claimed_by,
            claimed_at=func.now(),
        )
    )

    with engine.begin() as conn:
        result = conn.execute(stmt)

    acquired = result.rowcount == 1
    logger.info(
        "room_charge_claim_takeover",
        room_id=room_id,
        reservation_id=reservation_id,
        order_number=order_number,
        acquired=acquired,
    )
    return acquired
