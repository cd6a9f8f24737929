# medicore/utils/timezone.py
from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from medicore.core.config import settings


def hospital_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def now_local() -> datetime:
    """
    Returns a *naive* datetime representing hospital-local time.
    DateTime columns are naive, so tz info is dropped after conversion.
    """
    return datetime.now(timezone.utc).astimezone(hospital_tz()).replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()
