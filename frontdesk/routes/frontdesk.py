"""
Read-only front-desk views derived from a posted snapshot.

Nothing here mutates the backend: callers post what they read and get
back stays, folios, order linkage and checkout decisions.
"""

import structlog
from fastapi import APIRouter, HTTPException

from frontdesk.exceptions import BLOCKER_MESSAGES
from frontdesk.routes._snapshot_helpers import (
    derive_stays,
    known_reservation_ids,
    operational_date_or_422,
    settings_for,
    stay_or_404,
)
from frontdesk.schemas.api import (
    CheckoutDecisionResponse,
    CheckoutEvaluatePayload,
    FolioResponse,
    LinkedOrder,
    LinkedOrdersResponse,
    SnapshotPayload,
    StayRow,
    StaysResponse,
)
from frontdesk.services.checkout import Actor, evaluate_checkout
from frontdesk.services.folio import build_folio
from frontdesk.services.orders import build_lookups, classify_order, is_paid, link_to_stay
from frontdesk.services.stays import derive_stay_stage, stay_state
from frontdesk.tags.housekeeping import derive_room_status, parse_housekeeping

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/stays", response_model=StaysResponse)
def list_stays(payload: SnapshotPayload) -> StaysResponse:
    """
    Group the snapshot's night reservations into stays.

    Each row carries the stay's state, its front-desk stage for the
    operational date and the room's housekeeping status.
    """
    try:
        today = operational_date_or_422(payload)
        rooms = payload.rooms_by_id()
        rows = []
        for stay in derive_stays(payload):
            room = rooms.get(stay.room_id)
            room_status = (
                derive_room_status(room.occupied, parse_housekeeping(room.special_requests).hk).value
                if room
                else None
            )
            rows.append(
                StayRow(
                    stay=stay,
                    state=stay_state(stay),
                    stage=derive_stay_stage(stay, today),
                    room_status=room_status,
                )
            )
        return StaysResponse(date=today, stays=rows)

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("stays_derivation_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/folio/{reservation_id}", response_model=FolioResponse)
def get_folio(reservation_id: str, payload: SnapshotPayload) -> FolioResponse:
    """Folio of the stay that contains night ``reservation_id``."""
    try:
        stay = stay_or_404(derive_stays(payload), reservation_id)
        folio = build_folio(
            stay,
            payload.orders_for_room(stay.room_id),
            known_reservation_ids=known_reservation_ids(payload),
            settings=settings_for(payload, stay.hotel_id),
        )
        return FolioResponse(stay=stay, folio=folio)

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("folio_derivation_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/orders/linked", response_model=LinkedOrdersResponse)
def list_linked_orders(payload: SnapshotPayload) -> LinkedOrdersResponse:
    """Every order with its kind, paid flag and owning stay (null when unlinked)."""
    try:
        lookups = build_lookups(derive_stays(payload), known_reservation_ids(payload))
        rows = []
        for order in payload.orders:
            stay = link_to_stay(order, lookups)
            rows.append(
                LinkedOrder(
                    order_id=order.id,
                    order_number=order.order_number,
                    kind=classify_order(order),
                    paid=is_paid(order),
                    stay_id=stay.stay_id if stay else None,
                )
            )
        return LinkedOrdersResponse(
            orders=rows,
            unlinked_count=sum(1 for row in rows if row.stay_id is None),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("order_linkage_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/checkout/evaluate", response_model=CheckoutDecisionResponse)
def evaluate_checkout_route(payload: CheckoutEvaluatePayload) -> CheckoutDecisionResponse:
    """
    Evaluate checkout for the stay containing ``reservation_id``.

    Returns the decision and every blocker by name; no mutation is issued.
    """
    try:
        operational_date = operational_date_or_422(payload)
        stay = stay_or_404(derive_stays(payload), payload.reservation_id)
        settings = settings_for(payload, stay.hotel_id)
        folio = build_folio(
            stay,
            payload.orders_for_room(stay.room_id),
            known_reservation_ids=known_reservation_ids(payload),
            settings=settings,
        )
        decision = evaluate_checkout(
            stay,
            folio,
            settings,
            operational_date,
            Actor(payload.actor_email, payload.actor_role),
            override=payload.override,
        )

        logger.info(
            "checkout_evaluated",
            stay_id=stay.stay_id,
            allowed=decision.allowed,
            blockers=[b.value for b in decision.blockers],
        )
        return CheckoutDecisionResponse(
            stay_id=stay.stay_id,
            allowed=decision.allowed,
            blockers=[b.value for b in decision.blockers],
            messages=[BLOCKER_MESSAGES[b] for b in decision.blockers],
            overridden=[b.value for b in decision.overridden],
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("checkout_evaluation_failed", reservation_id=payload.reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
