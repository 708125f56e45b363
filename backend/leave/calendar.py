"""Business calendar: chargeable leave days over an inclusive date range."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.common.constants import WEEKEND_DAYS
from backend.config import settings
from backend.leave.interfaces import HolidaySource
from backend.leave.models import Holiday

logger = logging.getLogger(__name__)


def count_chargeable_days(
    start: date,
    end: date,
    holidays: Iterable[date] = (),
) -> Decimal:
    """Count the dates in ``start..end`` that are neither weekend nor holiday.

    Returns zero when ``start > end``.
    """
    if start > end:
        return Decimal("0")

    off_days = set(holidays)
    total = 0
    current = start
    while current <= end:
        if current.weekday() not in WEEKEND_DAYS and current not in off_days:
            total += 1
        current += timedelta(days=1)
    return Decimal(total)


class BusinessCalendar:
    """Weekend- and holiday-aware day counter over a :class:`HolidaySource`."""

    def __init__(self, holidays: HolidaySource) -> None:
        self._holidays = holidays

    async def chargeable_days(self, start: date, end: date) -> Decimal:
        if start > end:
            return Decimal("0")
        # One holiday lookup per computation, never per day.
        holidays = await self._holidays.holidays_between(start, end)
        return count_chargeable_days(start, end, holidays)


# ═════════════════════════════════════════════════════════════════════
# Database-backed holiday source
# ═════════════════════════════════════════════════════════════════════


def _project(holiday_date: date, year: int) -> Optional[date]:
    """Move a recurring holiday into ``year``; Feb 29 has no image in common years."""
    try:
        return holiday_date.replace(year=year)
    except ValueError:
        return None


class DatabaseHolidaySource:
    """Holiday lookups against the ``holidays`` table.

    Country scope is ``HOLIDAY_COUNTRY`` plus holidays with no country; an
    empty ``HOLIDAY_COUNTRY`` considers only country-less holidays.
    """

    def __init__(self, db: AsyncSession, country: Optional[str] = None) -> None:
        self.db = db
        self.country = (settings.HOLIDAY_COUNTRY if country is None else country) or None

    async def holidays_between(self, start: date, end: date) -> list[date]:
        if start > end:
            return []

        query = select(Holiday.date, Holiday.is_recurring).where(
            or_(
                Holiday.date.between(start, end),
                # Recurring rows are stored once under any year.
                Holiday.is_recurring.is_(True),
            )
        )
        if self.country:
            query = query.where(
                or_(Holiday.country == self.country, Holiday.country.is_(None))
            )
        else:
            query = query.where(Holiday.country.is_(None))

        result = await self.db.execute(query)

        dates: set[date] = set()
        for holiday_date, is_recurring in result.all():
            if not is_recurring:
                dates.add(holiday_date)
                continue
            for year in range(start.year, end.year + 1):
                projected = _project(holiday_date, year)
                if projected is not None and start <= projected <= end:
                    dates.add(projected)

        logger.debug(
            "Resolved %d holiday(s) between %s and %s (country=%s)",
            len(dates), start, end, self.country,
        )
        return sorted(dates)
