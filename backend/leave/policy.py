"""Leave-type entitlement arithmetic."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from backend.common.constants import DAYS_QUANTUM, MONTHS_PER_YEAR
from backend.config import settings
from backend.leave.models import LeaveType


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(DAYS_QUANTUM, rounding=ROUND_HALF_UP)


class LeaveTypePolicy:
    """Annual entitlement and cap rules for a leave type.

    The standard PTO type (matched case-insensitively by name) gets a fixed
    entitlement instead of ``accrual_rate * 12``. An empty type name turns
    that exception off.
    """

    def __init__(
        self,
        standard_pto_name: Optional[str] = None,
        standard_pto_days: Optional[int] = None,
    ) -> None:
        name = settings.STANDARD_PTO_LEAVE_TYPE if standard_pto_name is None else standard_pto_name
        days = settings.STANDARD_PTO_DAYS if standard_pto_days is None else standard_pto_days
        self.standard_pto_name = name.strip().lower()
        self.standard_pto_days = Decimal(days)

    def is_standard_pto(self, leave_type: LeaveType) -> bool:
        return bool(self.standard_pto_name) and (
            leave_type.name.strip().lower() == self.standard_pto_name
        )

    def annual_entitlement(self, leave_type: LeaveType) -> Decimal:
        if self.is_standard_pto(leave_type):
            return _quantize(self.standard_pto_days)
        rate = leave_type.accrual_rate or Decimal("0")
        return _quantize(Decimal(rate) * MONTHS_PER_YEAR)

    @staticmethod
    def apply_adjustment(
        base: Decimal,
        adjustment: Decimal,
        max_days: Optional[int],
    ) -> Decimal:
        """``base + adjustment``, capped at ``max_days`` when one is set.

        The result is not floored at zero: a negative adjustment larger than
        the entitlement yields a negative total.
        """
        total = Decimal(base) + Decimal(adjustment)
        if max_days is not None:
            total = min(total, Decimal(max_days))
        return _quantize(total)

    def total_days(self, leave_type: LeaveType, adjustment: Decimal = Decimal("0")) -> Decimal:
        return self.apply_adjustment(
            self.annual_entitlement(leave_type), adjustment, leave_type.max_days,
        )
