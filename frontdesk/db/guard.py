from datetime import timedelta
from typing import Collection, Optional

from sqlalchemy.engine import Engine

from frontdesk.config import DRY_RUN, ROOM_CHARGE_CLAIM_STALE_SECONDS
from frontdesk.db.writers.room_charges import claim_room_charge, release_room_charge, take_over_room_charge
from frontdesk.utils.datetime import utc_now


class SqlRoomChargeGuard:
    """RoomChargeGuard backed by the room_charge_claims primary key."""

    def __init__(
        self,
        engine: Engine,
        dry_run: bool = DRY_RUN,
        stale_after: timedelta = timedelta(seconds=ROOM_CHARGE_CLAIM_STALE_SECONDS),
    ):
        self.engine = engine
        self.dry_run = dry_run
        self.stale_after = stale_after

    def claim(
        self,
        room_id: str,
        reservation_id: str,
        date_key: Optional[str],
        order_number: str,
        claimed_by: str,
    ) -> bool:
        return claim_room_charge(
            self.engine,
            room_id,
            reservation_id,
            order_number,
            date_key=date_key,
            claimed_by=claimed_by or None,
            dry_run=self.dry_run,
        )

    def take_over(
        self,
        room_id: str,
        reservation_id: str,
        date_key: Optional[str],
        order_number: str,
        claimed_by: str,
        voided_order_numbers: Collection[str],
    ) -> bool:
        return take_over_room_charge(
            self.engine,
            room_id,
            reservation_id,
            order_number,
            stale_order_numbers=voided_order_numbers,
            stale_before=utc_now() - self.stale_after,
            date_key=date_key,
            claimed_by=claimed_by or None,
            dry_run=self.dry_run,
        )

    def release(self, room_id: str, reservation_id: str) -> None:
        release_room_charge(self.engine, room_id, reservation_id, dry_run=self.dry_run)
