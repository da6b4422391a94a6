"""
Unit tests for the key/value tag micro-format.
"""

from __future__ import annotations

import pytest

from frontdesk.tags.codec import apply_entries, decode, decode_entries, encode

MARKER = "FD:ROOM_CHARGE"


@pytest.mark.unit
def test_decode_reads_managed_line_only() -> None:
    text = "Guest asked for late checkout\nFD:ROOM_CHARGE|res=r1|date=2024-05-01\nthanks"
    assert decode(text, MARKER) == {"res": "r1", "date": "2024-05-01"}


@pytest.mark.unit
@pytest.mark.parametrize(
    "text",
    [None, "", "plain prose", "MANUAL|CASH|by=a@b.c", "FD:ROOM_CHARGES|res=r1", 42],
)
def test_decode_returns_none_for_foreign_text(text: object) -> None:
    assert decode(text, MARKER) is None  # type: ignore[arg-type]


@pytest.mark.unit
def test_decode_ignores_segments_without_key() -> None:
    assert decode("FD:ROOM_CHARGE|=x|noequals|res=r1", MARKER) == {"res": "r1"}


@pytest.mark.unit
def test_encode_preserves_unrelated_lines_and_patched_keys() -> None:
    original = "Front desk note\nFD:ROOM_CHARGE|res=r1|date=2024-05-01\nSecond note"
    patch = {"date": "2024-05-02", "room": 101}

    updated = encode(patch, original, MARKER)
    decoded = decode(updated, MARKER)

    assert decoded == {"res": "r1", "date": "2024-05-02", "room": "101"}
    lines = updated.splitlines()
    assert lines[0] == "Front desk note"
    assert lines[2] == "Second note"


@pytest.mark.unit
def test_encode_removes_keys_mapped_to_none() -> None:
    updated = encode({"date": None}, "FD:ROOM_CHARGE|res=r1|date=2024-05-01", MARKER)
    assert updated == "FD:ROOM_CHARGE|res=r1"


@pytest.mark.unit
def test_encode_appends_managed_line_when_missing() -> None:
    updated = encode({"res": "r9"}, "Just prose", MARKER)
    assert updated == "Just prose\nFD:ROOM_CHARGE|res=r9"


@pytest.mark.unit
def test_encode_escapes_separator_in_values() -> None:
    updated = encode({"room": "A|B"}, None, MARKER)
    assert "A|B" not in updated
    assert decode(updated, MARKER) == {"room": "A|B"}


@pytest.mark.unit
def test_decode_leaves_raw_percent_text_alone() -> None:
    legacy = "FD:ROOM_CHARGE|res=r1|label=50% off|code=%zz"
    assert decode(legacy, MARKER) == {"res": "r1", "label": "50% off", "code": "%zz"}
    # Only the four escape sequences are rewritten
    assert decode("FD:ROOM_CHARGE|label=A%7CB%25", MARKER) == {"label": "A|B%"}


@pytest.mark.unit
def test_decode_entries_splits_prefixed_pairs_from_other_tags() -> None:
    pairs, others = decode_entries(["VIP", "HK:STATUS=DIRTY", "HK:CLEAN", "", "RATE:OVERRIDE=90"], "HK:")
    assert pairs == {"STATUS": "DIRTY"}
    assert others == ["VIP", "HK:CLEAN", "RATE:OVERRIDE=90"]


@pytest.mark.unit
def test_apply_entries_sets_and_removes_keys() -> None:
    entries = ["VIP", "RATE:OVERRIDE=90", "HK:STATUS=CLEAN"]

    assert apply_entries(entries, "RATE:", {"OVERRIDE": "120"}) == [
        "VIP",
        "HK:STATUS=CLEAN",
        "RATE:OVERRIDE=120",
    ]
    assert apply_entries(entries, "RATE:", {"OVERRIDE": None}) == ["VIP", "HK:STATUS=CLEAN"]
