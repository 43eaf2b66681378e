import calendar
from datetime import datetime


def format_duration(seconds: float) -> str:
    if seconds <= 0:
        return "0 ms"
    if seconds < 1:
        return f"{seconds * 1000:.1f} ms"
    if seconds < 60:
        return f"{seconds:.2f} s"
    if seconds < 3600:
        return f"{seconds / 60:.2f} min"
    return f"{seconds / 3600:.2f} h"


def months_before(moment: datetime, months: int) -> datetime:
    """Same day and time ``months`` calendar months earlier, clamped to month end."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def to_local_naive(moment: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)
