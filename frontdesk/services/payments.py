"""Take payment for a folio's open lines."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from frontdesk.exceptions import SequenceStepFailed
from frontdesk.gateway import FrontDeskGateway, MarkOrderPaid
from frontdesk.metrics import transitions_total
from frontdesk.schemas.views import Folio
from frontdesk.tags.payment_token import PaymentMethod, build_payment_token

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    settled_order_ids: tuple[str, ...] = ()
    amount: float = 0.0
    payment_token: Optional[str] = None


def settle_folio(
    gateway: FrontDeskGateway,
    folio: Folio,
    method: PaymentMethod | str,
    actor_email: str,
    at: Optional[datetime] = None,
) -> SettlementResult:
    """
    Mark every unpaid folio line paid with one manual payment token.

    Lines are marked one at a time in folio order.

    Raises:
        SequenceStepFailed: Marking a line failed. Lines marked before it
            stay paid and are listed in ``completed_steps``.
    """
    unpaid = [line for line in folio.lines if not line.paid]
    if not unpaid:
        return SettlementResult()

    token = build_payment_token(method, actor_email, folio.currency, at)
    settled: list[str] = []
    amount = 0.0

    for line in unpaid:
        try:
            gateway.mark_order_paid(MarkOrderPaid(line.order_id, token))
        except Exception as e:
            transitions_total.labels(transition="settle", status="failed").inc()
            logger.error(
                "folio_settlement_failed",
                stay_id=folio.stay_id,
                order_id=line.order_id,
                settled=len(settled),
                error=str(e),
            )
            raise SequenceStepFailed("mark_order_paid", line.order_id, settled, e) from e
        settled.append(line.order_id)
        amount += line.amount

    transitions_total.labels(transition="settle", status="allowed").inc()
    logger.info("folio_settled", stay_id=folio.stay_id, orders=len(settled), amount=round(amount, 2), actor=actor_email)
    return SettlementResult(tuple(settled), round(amount, 2), token)
