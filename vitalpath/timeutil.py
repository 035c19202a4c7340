from __future__ import annotations

import datetime as dt
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")


def safe_zone(tz_name: str | None) -> ZoneInfo:
    """Resolve an IANA name, falling back to UTC for missing or unknown names."""
    if not tz_name:
        return UTC
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown timezone %r, using UTC", tz_name)
        return UTC


def now_in(tz_name: str | None) -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).astimezone(safe_zone(tz_name))


def today_in(tz_name: str | None) -> dt.date:
    return now_in(tz_name).date()
