# models/room_charges.py

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from frontdesk.config import SCHEMA
from frontdesk.models.base import Base


class RoomChargeClaim(Base):
    """
    One row per nightly room charge that has been (or is being) posted.

    The composite primary key is the storage-level uniqueness constraint on
    (room, night reservation): whoever inserts the row first owns the
    charge, and every later attempt for the same night is a skip.

    ``order_number`` is the order the claimant is creating. A claim whose
    order was voided, or that never got an order and is older than
    ROOM_CHARGE_CLAIM_STALE_SECONDS, can be taken over by a later poster.
    """

    __tablename__ = "room_charge_claims"
    __table_args__ = {"schema": SCHEMA}

    room_id = Column(String, primary_key=True)
    reservation_id = Column(String, primary_key=True)
    date_key = Column(String(10), nullable=True, index=True)
    order_number = Column(String, nullable=False)
    claimed_by = Column(String, nullable=True)
    claimed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
