"""
Housekeeping tags stored in a room's ``specialRequests`` list.

Convention:
    HK:STATUS=CLEAN|DIRTY|MAINTENANCE|OUT_OF_ORDER
    HK:IN_LIST=true
    HK:LAST_CLEANED_AT=<ISO>
    HK:REASON=<urlencoded>

Legacy bare tags (``HK:CLEAN``, ``HK:DIRTY``, ...) are still read.
Non-HK notes and unknown HK tags are preserved when patching.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import quote, unquote

from dateutil import parser as date_parser

from frontdesk.tags.codec import decode_entries

PREFIX = "HK:"

STATUS = "STATUS"
IN_LIST = "IN_LIST"
LAST_CLEANED_AT = "LAST_CLEANED_AT"
REASON = "REASON"

_KNOWN_KEYS = {STATUS, IN_LIST, LAST_CLEANED_AT, REASON}
_TRUTHY = {"true", "1", "yes", "y"}


class HousekeepingStatus(str, Enum):
    CLEAN = "CLEAN"
    DIRTY = "DIRTY"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_ORDER = "OUT_OF_ORDER"


class RoomStatus(str, Enum):
    OCCUPIED = "OCCUPIED"
    VACANT_CLEAN = "VACANT_CLEAN"
    VACANT_DIRTY = "VACANT_DIRTY"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_ORDER = "OUT_OF_ORDER"


# The housekeeping state a room must be in to accept a check-in
READY_STATUS = RoomStatus.VACANT_CLEAN


@dataclass(frozen=True)
class HousekeepingMeta:
    status: HousekeepingStatus = HousekeepingStatus.CLEAN
    in_cleaning_list: bool = False
    last_cleaned_at: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class ParsedHousekeeping:
    hk: HousekeepingMeta
    notes: list[str]
    unknown: list[str]


def _status_or_none(value: str) -> Optional[HousekeepingStatus]:
    try:
        return HousekeepingStatus(value.strip().upper())
    except ValueError:
        return None


def _iso_or_none(value: str) -> Optional[str]:
    try:
        return date_parser.isoparse(value.strip()).isoformat()
    except (ValueError, OverflowError):
        return None


def parse_housekeeping(special_requests: Optional[Iterable[str]]) -> ParsedHousekeeping:
    """Split room tags into housekeeping meta, plain notes and unknown HK tags."""
    pairs, others = decode_entries(special_requests, PREFIX)

    status: Optional[HousekeepingStatus] = None
    notes: list[str] = []
    unknown: list[str] = []

    for entry in others:
        if not entry.startswith(PREFIX):
            notes.append(entry)
            continue
        legacy = _status_or_none(entry[len(PREFIX) :])
        if legacy is not None:
            status = legacy
        else:
            unknown.append(entry)

    if STATUS in pairs:
        status = _status_or_none(pairs[STATUS]) or status

    reason: Optional[str] = None
    if REASON in pairs:
        reason = unquote(pairs[REASON])

    last_cleaned = _iso_or_none(pairs[LAST_CLEANED_AT]) if LAST_CLEANED_AT in pairs else None

    unknown.extend(f"{PREFIX}{k}={v}" for k, v in pairs.items() if k not in _KNOWN_KEYS)

    return ParsedHousekeeping(
        hk=HousekeepingMeta(
            status=status or HousekeepingStatus.CLEAN,
            in_cleaning_list=pairs.get(IN_LIST, "").strip().lower() in _TRUTHY,
            last_cleaned_at=last_cleaned,
            reason=reason,
        ),
        notes=notes,
        unknown=unknown,
    )


def apply_housekeeping_patch(
    special_requests: Optional[Iterable[str]], patch: Mapping[str, Any]
) -> list[str]:
    """
    Write housekeeping fields back into a room's tag list.

    ``patch`` keys are HousekeepingMeta field names. A key present with
    None clears ``last_cleaned_at`` or ``reason``; absent keys keep their
    current value. The STATUS tag is always written.

    Example:
        >>> apply_housekeeping_patch(["VIP guest", "HK:CLEAN"],
        ...                          {"status": "DIRTY", "in_cleaning_list": True})
        ['VIP guest', 'HK:STATUS=DIRTY', 'HK:IN_LIST=true']
    """
    parsed = parse_housekeeping(special_requests)
    current = parsed.hk

    status = _status_or_none(str(patch["status"])) if patch.get("status") else None
    in_list = patch.get("in_cleaning_list")

    nxt = HousekeepingMeta(
        status=status or current.status,
        in_cleaning_list=in_list if isinstance(in_list, bool) else current.in_cleaning_list,
        last_cleaned_at=patch["last_cleaned_at"] if "last_cleaned_at" in patch else current.last_cleaned_at,
        reason=patch["reason"] if "reason" in patch else current.reason,
    )

    tags = [f"{PREFIX}{STATUS}={nxt.status.value}"]
    if nxt.in_cleaning_list:
        tags.append(f"{PREFIX}{IN_LIST}=true")
    if nxt.last_cleaned_at:
        tags.append(f"{PREFIX}{LAST_CLEANED_AT}={nxt.last_cleaned_at}")
    if (
        nxt.status in (HousekeepingStatus.MAINTENANCE, HousekeepingStatus.OUT_OF_ORDER)
        and nxt.reason
        and nxt.reason.strip()
    ):
        tags.append(f"{PREFIX}{REASON}={quote(nxt.reason.strip(), safe='')}")

    return parsed.notes + parsed.unknown + tags


def derive_room_status(occupied: bool, hk: HousekeepingMeta) -> RoomStatus:
    """Occupancy wins; otherwise the housekeeping status decides."""
    if occupied:
        return RoomStatus.OCCUPIED
    if hk.status == HousekeepingStatus.OUT_OF_ORDER:
        return RoomStatus.OUT_OF_ORDER
    if hk.status == HousekeepingStatus.MAINTENANCE:
        return RoomStatus.MAINTENANCE
    if hk.status == HousekeepingStatus.DIRTY:
        return RoomStatus.VACANT_DIRTY
    return RoomStatus.VACANT_CLEAN
