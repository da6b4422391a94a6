import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json
from typing import Optional

import structlog

from frontdesk.gateway import DryRunGateway
from frontdesk.logging_config import setup_logging
from frontdesk.schemas.readmodel import Snapshot
from frontdesk.services.folio import build_folio
from frontdesk.services.room_charges import ensure_nightly_charges, nightly_rate_for
from frontdesk.services.stays import derive_stay_stage, group_into_stays
from frontdesk.tags.hotel_settings import parse_hotel_settings
from frontdesk.utils.datetime import today_key

setup_logging()
logger = structlog.get_logger(__name__)


def load_snapshot(path: str) -> Snapshot:
    """Read a JSON file holding ``hotels``, ``rooms``, ``reservations`` and ``orders``."""
    with open(path) as f:
        return Snapshot.model_validate(json.load(f))


def inspect(snapshot: Snapshot, date: Optional[str], preview_charges: bool) -> None:
    today = date or today_key()
    hotels = snapshot.hotels_by_id()
    known = frozenset(r.id for r in snapshot.reservations)
    stays = group_into_stays(snapshot.reservations, hotels=hotels, rooms=snapshot.rooms_by_id())

    print(f"{len(stays)} stay(s) on {today}")
    for stay in stays:
        hotel = hotels.get(stay.hotel_id)
        settings = parse_hotel_settings(hotel.description if hotel else None).settings
        folio = build_folio(stay, snapshot.orders_for_room(stay.room_id), known, settings)

        print(
            f"- {stay.hotel_name or '?'} room {stay.room_number} | {stay.guest_name} | "
            f"{stay.start_date} -> {stay.checkout_date} ({stay.nights} night(s)) | "
            f"{derive_stay_stage(stay, today)}"
        )
        print(
            f"    total {folio.grand_total:.2f} {folio.currency}, paid {folio.paid_total:.2f}, "
            f"due {folio.balance_due:.2f}, missing nights {len(folio.missing_night_ids)}"
        )

        if preview_charges and folio.missing_night_ids:
            rate = nightly_rate_for(settings, stay.special_requests)
            if rate <= 0:
                print("    nightly rate not configured; no charges to preview")
                continue
            gateway = DryRunGateway(snapshot)
            result = ensure_nightly_charges(gateway, stay, rate, settings.currency, known_reservation_ids=known)
            print(f"    would post {result.created} charge(s) at {rate:.2f}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Print stays and folios derived from a snapshot file")
    parser.add_argument("snapshot", help="Path to a snapshot JSON file")
    parser.add_argument("--date", help="Operational date (YYYY-MM-DD); defaults to today")
    parser.add_argument(
        "--preview-charges",
        action="store_true",
        help="Show the nightly charges that posting would create (nothing is written)",
    )
    args = parser.parse_args()

    try:
        inspect(load_snapshot(args.snapshot), args.date, args.preview_charges)
    except Exception:
        logger.exception("snapshot_inspection_failed", path=args.snapshot)
        raise


if __name__ == "__main__":
    main()
