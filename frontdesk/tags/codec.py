"""
Key/value tags embedded in free-text fields.

The backend has no columns for housekeeping state, rate overrides, hotel
settings or room-charge linkage, so they live inside text fields using a
small micro-format:

    <MARKER>|key=value|key=value

Two stores use it:

- Single text fields (order notes, descriptions): the managed line is the
  first line starting with the marker. Every other line is left untouched.
- Tag lists (room ``specialRequests``): each entry is ``<PREFIX>KEY=VALUE``.
  Entries with another prefix, or no prefix at all, are preserved.

Decoding never raises. Text that is not in this format decodes to None
(single fields) or to an empty mapping (tag lists).

Values in single fields are written with ``%``, ``|`` and line breaks
percent-escaped so they cannot split a segment. Older notes were written
raw; they decode unchanged unless a value contains one of the four escape
sequences (``%25``, ``%7C``, ``%0D``, ``%0A``) literally, which then
decodes to the escaped character. Other ``%`` text is left alone.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

SEPARATOR = "|"

_ESCAPES = (("%", "%25"), ("|", "%7C"), ("\r", "%0D"), ("\n", "%0A"))


def _escape(value: str) -> str:
    for raw, encoded in _ESCAPES:
        value = value.replace(raw, encoded)
    return value


def _unescape(value: str) -> str:
    for raw, encoded in reversed(_ESCAPES):
        value = value.replace(encoded, raw)
    return value


def parse_segments(segments: Iterable[str]) -> dict[str, str]:
    """Parse ``key=value`` segments, ignoring anything without a key."""
    out: dict[str, str] = {}
    for segment in segments:
        idx = segment.find("=")
        if idx <= 0:
            continue
        key = segment[:idx].strip()
        if key:
            out[key] = _unescape(segment[idx + 1 :].strip())
    return out


def decode(text: Optional[str], marker: str) -> Optional[dict[str, str]]:
    """
    Decode the managed line of ``text``.

    Args:
        text: Free text that may contain a managed line
        marker: Type marker the managed line starts with (e.g. "FD:ROOM_CHARGE")

    Returns:
        Mapping of the line's keys to values, or None when no line carries
        the marker. Foreign formats (payment tokens, prose) return None.

    Example:
        >>> decode("FD:ROOM_CHARGE|res=r1|date=2024-05-01", "FD:ROOM_CHARGE")
        {'res': 'r1', 'date': '2024-05-01'}
        >>> decode("pay_3Nx stripe token", "FD:ROOM_CHARGE") is None
        True
    """
    if not text or not isinstance(text, str):
        return None
    for line in text.splitlines():
        if line == marker or line.startswith(marker + SEPARATOR):
            return parse_segments(line.split(SEPARATOR)[1:])
    return None


def encode(
    patch: Mapping[str, Optional[object]],
    existing: Optional[str],
    marker: str,
) -> str:
    """
    Merge ``patch`` into the managed line of ``existing`` and return the text.

    Keys mapped to None are removed. Key order of the existing line is kept
    and new keys are appended. Lines without the marker are preserved
    verbatim; if no managed line exists, one is appended.
    """
    current = decode(existing, marker) or {}
    for key, value in patch.items():
        if value is None:
            current.pop(key, None)
        else:
            current[key] = str(value)

    managed = SEPARATOR.join([marker] + [f"{k}={_escape(v)}" for k, v in current.items()])

    lines = existing.splitlines() if existing else []
    for i, line in enumerate(lines):
        if line == marker or line.startswith(marker + SEPARATOR):
            lines[i] = managed
            return "\n".join(lines)
    lines.append(managed)
    return "\n".join(lines)


def decode_entries(entries: Optional[Iterable[str]], prefix: str) -> tuple[dict[str, str], list[str]]:
    """
    Split a tag list into this prefix's ``KEY=VALUE`` pairs and everything else.

    Returns:
        (pairs, others): ``others`` keeps every entry that is not a
        ``<prefix>KEY=VALUE`` tag, in order, including bare prefixed tags
        such as legacy ``HK:CLEAN``.
    """
    pairs: dict[str, str] = {}
    others: list[str] = []
    for entry in entries or ():
        if not isinstance(entry, str) or not entry.strip():
            continue
        if entry.startswith(prefix):
            body = entry[len(prefix) :]
            idx = body.find("=")
            if idx > 0:
                pairs[body[:idx].strip()] = body[idx + 1 :].strip()
                continue
        others.append(entry)
    return pairs, others


def apply_entries(
    entries: Optional[Iterable[str]],
    prefix: str,
    patch: Mapping[str, Optional[object]],
) -> list[str]:
    """
    Write ``patch`` into a tag list. None removes a key; other entries survive.
    """
    pairs, others = decode_entries(entries, prefix)
    for key, value in patch.items():
        if value is None:
            pairs.pop(key, None)
        else:
            pairs[key] = str(value)
    return others + [f"{prefix}{k}={v}" for k, v in pairs.items()]
