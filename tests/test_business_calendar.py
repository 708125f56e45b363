"""Business calendar tests: weekend/holiday exclusion, additivity, holiday source."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from backend.leave.calendar import (
    BusinessCalendar,
    DatabaseHolidaySource,
    count_chargeable_days,
)
from tests.conftest import create_holiday


class FakeHolidaySource:
    """In-memory holiday source that records every lookup."""

    def __init__(self, holidays=()):
        self.holidays = set(holidays)
        self.calls: list[tuple[date, date]] = []

    async def holidays_between(self, start: date, end: date) -> list[date]:
        self.calls.append((start, end))
        return sorted(d for d in self.holidays if start <= d <= end)


# ═════════════════════════════════════════════════════════════════════
# 1. count_chargeable_days: pure logic (no DB)
# ═════════════════════════════════════════════════════════════════════


class TestCountChargeableDays:

    def test_full_week(self):
        # 2026-02-23 is Monday, 2026-02-27 is Friday
        assert count_chargeable_days(date(2026, 2, 23), date(2026, 2, 27)) == Decimal("5")

    def test_weekends_excluded(self):
        """Mon–Sun → 5 chargeable days."""
        assert count_chargeable_days(date(2026, 2, 23), date(2026, 3, 1)) == Decimal("5")

    def test_weekend_only_range_is_zero(self):
        assert count_chargeable_days(date(2026, 2, 28), date(2026, 3, 1)) == Decimal("0")

    def test_start_after_end_is_zero(self):
        assert count_chargeable_days(date(2026, 3, 5), date(2026, 3, 2)) == Decimal("0")

    def test_single_day(self):
        assert count_chargeable_days(date(2026, 2, 24), date(2026, 2, 24)) == Decimal("1")

    def test_holiday_excluded(self):
        total = count_chargeable_days(
            date(2026, 2, 23), date(2026, 2, 27), [date(2026, 2, 25)],
        )
        assert total == Decimal("4")

    def test_holiday_on_weekend_not_double_counted(self):
        total = count_chargeable_days(
            date(2026, 2, 23), date(2026, 3, 1), [date(2026, 2, 28)],
        )
        assert total == Decimal("5")

    def test_holidays_outside_range_ignored(self):
        total = count_chargeable_days(
            date(2026, 2, 23), date(2026, 2, 27), [date(2026, 1, 1), date(2026, 12, 25)],
        )
        assert total == Decimal("5")

    def test_year_boundary(self):
        """Mon 2025-12-29 .. Fri 2026-01-02 with New Year's Day off → 4."""
        total = count_chargeable_days(
            date(2025, 12, 29), date(2026, 1, 2), [date(2026, 1, 1)],
        )
        assert total == Decimal("4")

    def test_additivity(self):
        """days(s, e) == days(e, e) + days(s, e - 1) for every pair in a month."""
        holidays = {date(2026, 3, 10), date(2026, 3, 17)}
        start = date(2026, 3, 1)
        for offset_s in range(0, 31):
            s = start + timedelta(days=offset_s)
            for offset_e in range(offset_s, 31):
                e = start + timedelta(days=offset_e)
                whole = count_chargeable_days(s, e, holidays)
                split = count_chargeable_days(e, e, holidays) + count_chargeable_days(
                    s, e - timedelta(days=1), holidays,
                )
                assert whole == split, (s, e)


# ═════════════════════════════════════════════════════════════════════
# 2. BusinessCalendar over a holiday source
# ═════════════════════════════════════════════════════════════════════


class TestBusinessCalendar:

    async def test_one_holiday_lookup_per_computation(self):
        source = FakeHolidaySource({date(2026, 3, 4)})
        calendar = BusinessCalendar(source)

        total = await calendar.chargeable_days(date(2026, 3, 2), date(2026, 3, 31))

        # March 2026: 22 weekdays, one holiday
        assert total == Decimal("21")
        assert source.calls == [(date(2026, 3, 2), date(2026, 3, 31))]

    async def test_inverted_range_skips_lookup(self):
        source = FakeHolidaySource()
        calendar = BusinessCalendar(source)

        assert await calendar.chargeable_days(date(2026, 3, 5), date(2026, 3, 2)) == 0
        assert source.calls == []


# ═════════════════════════════════════════════════════════════════════
# 3. DatabaseHolidaySource
# ═════════════════════════════════════════════════════════════════════


class TestDatabaseHolidaySource:

    async def test_range_scoped(self, db: AsyncSession):
        await create_holiday(db, date(2026, 2, 25), name="Inside")
        await create_holiday(db, date(2026, 4, 3), name="Outside")

        source = DatabaseHolidaySource(db, country="")
        result = await source.holidays_between(date(2026, 2, 23), date(2026, 2, 27))

        assert result == [date(2026, 2, 25)]

    async def test_recurring_projected_into_each_year(self, db: AsyncSession):
        await create_holiday(db, date(2020, 12, 25), name="Christmas", is_recurring=True)

        source = DatabaseHolidaySource(db, country="")
        result = await source.holidays_between(date(2025, 12, 1), date(2027, 1, 5))

        assert result == [date(2025, 12, 25), date(2026, 12, 25)]

    async def test_recurring_holiday_reduces_chargeable_days(self, db: AsyncSession):
        await create_holiday(db, date(2020, 12, 25), name="Christmas", is_recurring=True)

        calendar = BusinessCalendar(DatabaseHolidaySource(db, country=""))
        # Mon 2026-12-21 .. Fri 2026-12-25
        total = await calendar.chargeable_days(date(2026, 12, 21), date(2026, 12, 25))

        assert total == Decimal("4")

    async def test_leap_day_skipped_in_common_years(self, db: AsyncSession):
        await create_holiday(db, date(2024, 2, 29), name="Leap Day", is_recurring=True)

        source = DatabaseHolidaySource(db, country="")

        assert await source.holidays_between(date(2026, 2, 1), date(2026, 3, 31)) == []
        assert await source.holidays_between(date(2028, 2, 1), date(2028, 3, 31)) == [
            date(2028, 2, 29),
        ]

    async def test_country_scope(self, db: AsyncSession):
        await create_holiday(db, date(2026, 2, 24), name="Everywhere")
        await create_holiday(db, date(2026, 2, 25), name="US only", country="US")
        await create_holiday(db, date(2026, 2, 26), name="IN only", country="IN")

        us = DatabaseHolidaySource(db, country="US")
        unscoped = DatabaseHolidaySource(db, country="")
        start, end = date(2026, 2, 23), date(2026, 2, 27)

        assert await us.holidays_between(start, end) == [date(2026, 2, 24), date(2026, 2, 25)]
        assert await unscoped.holidays_between(start, end) == [date(2026, 2, 24)]
