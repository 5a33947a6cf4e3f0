from __future__ import annotations

MAX_COMMUNITY_ID = 2**64 - 1
_MAX_ID_DIGITS = len(str(MAX_COMMUNITY_ID))


def normalize_community_id(value: object) -> int | None:
    """Coerce an export/API identifier into an unsigned 64-bit int, or None if invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        candidate = value
    elif isinstance(value, str):
        text = value.strip()
        if not text.isdigit() or not text.isascii():
            return None
        # int() rejects very long digit strings
        if len(text.lstrip("0")) > _MAX_ID_DIGITS:
            return None
        candidate = int(text)
    else:
        return None
    if candidate < 0 or candidate > MAX_COMMUNITY_ID:
        return None
    return candidate


def normalize_community_name(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    name = " ".join(value.split())
    return name or None
