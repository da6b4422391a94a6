from typing import Optional

from pydantic import BaseModel, Field

from frontdesk.schemas.readmodel import Snapshot
from frontdesk.schemas.views import Folio, OrderKind, Stay, StayState


class SnapshotPayload(Snapshot):
    """
    A backend snapshot posted for derivation.

    ``date`` is the operational date (``YYYY-MM-DD``); the hotel's today
    when omitted.
    """

    date: Optional[str] = Field(None, description="Operational date, YYYY-MM-DD")


class CheckoutEvaluatePayload(SnapshotPayload):
    reservation_id: str = Field(..., description="Any night reservation id of the stay")
    actor_email: str = Field(..., description="Staff member asking")
    actor_role: str = Field("", description="Staff role, e.g. ADMIN, MANAGER, STAFF")
    override: bool = Field(False, description="Request to waive overridable blockers")


class StayRow(BaseModel):
    stay: Stay
    state: StayState
    stage: str
    room_status: Optional[str] = None


class StaysResponse(BaseModel):
    date: str
    stays: list[StayRow]


class LinkedOrder(BaseModel):
    order_id: str
    order_number: str
    kind: OrderKind
    paid: bool
    stay_id: Optional[str] = None


class LinkedOrdersResponse(BaseModel):
    orders: list[LinkedOrder]
    unlinked_count: int


class FolioResponse(BaseModel):
    stay: Stay
    folio: Folio


class CheckoutDecisionResponse(BaseModel):
    stay_id: str
    allowed: bool
    blockers: list[str]
    messages: list[str]
    overridden: list[str]
