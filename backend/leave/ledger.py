"""Balance ledger: per (employee, leave type, year) day counters.

Every mutation re-reads the balance row under ``SELECT ... FOR UPDATE``
(refreshing the in-memory object), checks, applies and flushes. The
``version`` column adds an optimistic check on top, so a lost update
surfaces as :class:`ConcurrentUpdateException` instead of silently
overwriting another writer. Nothing here commits; the caller owns the
transaction.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.common.constants import LeaveStatus
from backend.common.exceptions import (
    ConcurrentUpdateException,
    InsufficientBalanceException,
)
from backend.leave.models import LeaveBalance, LeaveType
from backend.leave.policy import LeaveTypePolicy

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class BalanceLedger:
    """Reserve / commit / release / adjust operations on :class:`LeaveBalance`."""

    def __init__(self, db: AsyncSession, policy: Optional[LeaveTypePolicy] = None) -> None:
        self.db = db
        self.policy = policy or LeaveTypePolicy()

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    async def _lock(self, balance: LeaveBalance) -> LeaveBalance:
        """Row-lock ``balance`` and overwrite its attributes with the stored values."""
        result = await self.db.execute(
            select(LeaveBalance)
            .where(LeaveBalance.id == balance.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _flush(self, balance: LeaveBalance) -> None:
        try:
            await self.db.flush()
        except StaleDataError as exc:
            logger.warning(
                "Lost update on leave balance %s (version %s)", balance.id, balance.version,
            )
            raise ConcurrentUpdateException("LeaveBalance", balance.id) from exc

    @staticmethod
    def _clamped(balance: LeaveBalance, field: str, value: Decimal) -> Decimal:
        if value < ZERO:
            logger.warning(
                "Leave balance %s: %s would drop to %s; clamping at zero",
                balance.id, field, value,
            )
            return ZERO
        return value

    @staticmethod
    def available_days(balance: LeaveBalance) -> Decimal:
        return balance.total_days - balance.used_days - balance.pending_days

    @staticmethod
    def snapshot(balance: LeaveBalance) -> dict[str, Any]:
        """JSON-safe view of the counters, for audit entries."""
        return {
            "total_days": str(balance.total_days),
            "used_days": str(balance.used_days),
            "pending_days": str(balance.pending_days),
            "adjustment_days": str(balance.adjustment_days),
            "available_days": str(BalanceLedger.available_days(balance)),
        }

    # ─────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────

    async def find(
        self,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Optional[LeaveBalance]:
        result = await self.db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalars().first()

    async def get_or_create(
        self,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
    ) -> LeaveBalance:
        """Return the balance row, creating it with the annual entitlement if absent."""
        balance = await self.find(employee_id, leave_type.id, year)
        if balance is not None:
            return balance

        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            year=year,
            total_days=self.policy.total_days(leave_type, ZERO),
            used_days=ZERO,
            pending_days=ZERO,
            adjustment_days=ZERO,
        )
        self.db.add(balance)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # Another request created the same (employee, type, year) row first.
            raise ConcurrentUpdateException(
                "LeaveBalance", f"{employee_id}/{leave_type.id}/{year}",
            ) from exc

        logger.info(
            "Created leave balance %s for employee %s, %s %d: %s day(s)",
            balance.id, employee_id, leave_type.name, year, balance.total_days,
        )
        return balance

    # ─────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────

    async def reserve(self, balance: LeaveBalance, days: Decimal) -> LeaveBalance:
        """Move ``days`` into pending; refuses to drive available below zero."""
        balance = await self._lock(balance)
        available = self.available_days(balance)
        if available < days:
            raise InsufficientBalanceException(requested=days, available=available)

        balance.pending_days = balance.pending_days + days
        await self._flush(balance)
        return balance

    async def commit_approval(self, balance: LeaveBalance, days: Decimal) -> LeaveBalance:
        """Move ``days`` from pending to used."""
        balance = await self._lock(balance)
        balance.pending_days = self._clamped(
            balance, "pending_days", balance.pending_days - days,
        )
        balance.used_days = balance.used_days + days
        await self._flush(balance)
        return balance

    async def release(
        self,
        balance: LeaveBalance,
        days: Decimal,
        from_status: LeaveStatus,
    ) -> LeaveBalance:
        """Give ``days`` back from the bucket that ``from_status`` charged."""
        if from_status not in (LeaveStatus.pending, LeaveStatus.approved):
            return balance

        balance = await self._lock(balance)
        if from_status == LeaveStatus.pending:
            balance.pending_days = self._clamped(
                balance, "pending_days", balance.pending_days - days,
            )
        else:
            balance.used_days = self._clamped(
                balance, "used_days", balance.used_days - days,
            )
        await self._flush(balance)
        return balance

    async def adjust(
        self,
        balance: LeaveBalance,
        leave_type: LeaveType,
        adjustment_days: Decimal,
    ) -> LeaveBalance:
        """Replace the manual adjustment and recompute total; used/pending untouched."""
        balance = await self._lock(balance)
        balance.adjustment_days = adjustment_days
        balance.total_days = self.policy.total_days(leave_type, adjustment_days)

        if self.available_days(balance) < ZERO:
            logger.warning(
                "Leave balance %s adjusted below committed days: total=%s used=%s pending=%s",
                balance.id, balance.total_days, balance.used_days, balance.pending_days,
            )
        await self._flush(balance)
        return balance
