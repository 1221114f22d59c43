from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


OVERVIEW_PERIODS = ("week", "month", "quarter", "year")


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_period(year: int, month: int) -> Period:
    first = date(year, month, 1)
    return Period(f"{year:04d}-{month:02d}", first, month_end(first))


def year_period(year: int) -> Period:
    return Period(str(year), date(year, 1, 1), date(year, 12, 31))


def resolve_overview_period(
    period: Optional[str], *, today: Optional[date] = None
) -> Period:
    today = today or local_today()
    if period == "week":
        return Period("week", today - timedelta(days=7), today)
    if period == "quarter":
        quarter_month = ((today.month - 1) // 3) * 3 + 1
        return Period("quarter", date(today.year, quarter_month, 1), today)
    if period == "year":
        return Period("year", date(today.year, 1, 1), today)

    # month, and anything unrecognised
    return Period("month", month_start(today), today)
