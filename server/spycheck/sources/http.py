from __future__ import annotations

import datetime as dt
from email.utils import parsedate_to_datetime

import requests


def is_transient_status(status_code: int) -> bool:
    return status_code in (408, 429) or status_code >= 500


def backoff_delay(attempt: int, *, base: float, cap: float) -> float:
    # exponential backoff with cap; attempt is zero-based
    return min(cap, base * (2**attempt))


def retry_after_seconds(resp: requests.Response, *, now: dt.datetime | None = None) -> float | None:
    """Wait duration requested by a rate-limited response, if it gives one.

    Reads the ``Retry-After`` header (delta seconds or HTTP date), then a JSON
    body ``retry_after`` field in seconds.
    """
    raw = (resp.headers or {}).get("Retry-After")
    if raw:
        raw = raw.strip()
        try:
            return max(0.0, float(raw))
        except ValueError:
            pass
        try:
            when = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            when = None
        if when is not None:
            if when.tzinfo is None:
                when = when.replace(tzinfo=dt.timezone.utc)
            current = now or dt.datetime.now(dt.timezone.utc)
            return max(0.0, (when - current).total_seconds())

    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        value = body.get("retry_after")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0.0, float(value))
    return None
