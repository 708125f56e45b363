"""Leave-type policy: annual entitlement, standard PTO override, cap, adjustments."""

from __future__ import annotations

from decimal import Decimal

from backend.leave.models import LeaveType
from backend.leave.policy import LeaveTypePolicy


def _leave_type(name="Annual Leave", accrual_rate="1.50", max_days=18) -> LeaveType:
    return LeaveType(
        name=name,
        accrual_rate=Decimal(accrual_rate) if accrual_rate is not None else None,
        max_days=max_days,
    )


class TestAnnualEntitlement:

    def test_accrual_times_twelve(self):
        policy = LeaveTypePolicy(standard_pto_name="PTO", standard_pto_days=20)
        assert policy.annual_entitlement(_leave_type()) == Decimal("18.00")

    def test_missing_accrual_rate_is_zero(self):
        policy = LeaveTypePolicy(standard_pto_name="PTO", standard_pto_days=20)
        assert policy.annual_entitlement(_leave_type(accrual_rate=None)) == Decimal("0")

    def test_standard_pto_fixed(self):
        policy = LeaveTypePolicy(standard_pto_name="PTO", standard_pto_days=20)
        pto = _leave_type(name="PTO", accrual_rate="1.67", max_days=None)
        assert policy.annual_entitlement(pto) == Decimal("20.00")

    def test_standard_pto_name_case_insensitive(self):
        policy = LeaveTypePolicy(standard_pto_name="PTO", standard_pto_days=20)
        assert policy.is_standard_pto(_leave_type(name="pto"))
        assert policy.is_standard_pto(_leave_type(name=" Pto "))
        assert not policy.is_standard_pto(_leave_type(name="PTO Extra"))

    def test_empty_pto_name_disables_override(self):
        policy = LeaveTypePolicy(standard_pto_name="", standard_pto_days=20)
        pto = _leave_type(name="PTO", accrual_rate="1.00", max_days=None)
        assert not policy.is_standard_pto(pto)
        assert policy.annual_entitlement(pto) == Decimal("12.00")

    def test_quantized_to_two_places(self):
        policy = LeaveTypePolicy(standard_pto_name="", standard_pto_days=0)
        assert policy.annual_entitlement(
            _leave_type(accrual_rate="1.67", max_days=None)
        ) == Decimal("20.04")


class TestApplyAdjustment:

    def test_positive_adjustment_capped(self):
        assert LeaveTypePolicy.apply_adjustment(
            Decimal("18"), Decimal("5"), 18,
        ) == Decimal("18.00")

    def test_positive_adjustment_below_cap(self):
        assert LeaveTypePolicy.apply_adjustment(
            Decimal("12"), Decimal("3"), 18,
        ) == Decimal("15.00")

    def test_no_cap(self):
        assert LeaveTypePolicy.apply_adjustment(
            Decimal("20"), Decimal("7.5"), None,
        ) == Decimal("27.50")

    def test_negative_adjustment_not_floored(self):
        assert LeaveTypePolicy.apply_adjustment(
            Decimal("5"), Decimal("-8"), 18,
        ) == Decimal("-3.00")

    def test_total_days_with_adjustment(self):
        policy = LeaveTypePolicy(standard_pto_name="PTO", standard_pto_days=20)
        assert policy.total_days(_leave_type(), Decimal("-2")) == Decimal("16.00")
        assert policy.total_days(_leave_type(), Decimal("4")) == Decimal("18.00")
