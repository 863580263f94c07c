from datetime import date, datetime, time
from typing import Optional, Tuple

import pytz

from ..config import settings


def local_tz():
    return pytz.timezone(settings.LOCAL_TIMEZONE)


def local_today() -> date:
    return datetime.now(local_tz()).date()


def day_bounds(day: Optional[date] = None) -> Tuple[datetime, datetime]:
    """UTC start and end of a local calendar day."""
    tz = local_tz()
    day = day or local_today()
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day, time.max))
    return start.astimezone(pytz.UTC), end.astimezone(pytz.UTC)


def range_bounds(date_from: Optional[date], date_to: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    start = day_bounds(date_from)[0] if date_from else None
    end = day_bounds(date_to)[1] if date_to else None
    return start, end
