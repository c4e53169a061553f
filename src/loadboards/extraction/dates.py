"""Sylectus date/time tokens to ISO-8601."""

import re
from datetime import datetime

_DATE_TIME = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{1,2}):(\d{2})$")
_DATE_ONLY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def parse_sylectus_datetime(token: str | None, now: datetime | None = None) -> str:
    """Normalize one date token from a Sylectus cell.

    ``ASAP`` and anything mentioning ``direct`` mean "now". ``MM/DD/YYYY HH:MM`` and
    ``MM/DD/YYYY`` parse as naive local time. Other tokens go through ISO parsing and are
    returned verbatim when that fails, so nothing is silently dropped or defaulted.
    """
    raw = (token or "").strip()
    if not raw:
        return ""
    lowered = raw.lower()
    if lowered == "asap" or "direct" in lowered:
        return (now or datetime.now()).isoformat()

    m = _DATE_TIME.match(raw)
    if m:
        month, day, year, hour, minute = (int(g) for g in m.groups())
        try:
            return datetime(year, month, day, hour, minute).isoformat()
        except ValueError:
            return raw

    m = _DATE_ONLY.match(raw)
    if m:
        month, day, year = (int(g) for g in m.groups())
        try:
            return datetime(year, month, day).isoformat()
        except ValueError:
            return raw

    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).isoformat()
    except ValueError:
        return raw
