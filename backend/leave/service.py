"""Leave service layer: request lifecycle, balance adjustments and read paths.

Business logic:
  - Submission: chargeable-day count, lazy balance creation, reservation
  - Status transitions (approve / reject / cancel) with ledger commit or release
  - HR balance adjustments and leave-type administration
  - Best-effort calendar and notification side effects after commit
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.common.audit import create_audit_entry
from backend.common.constants import LEAVE_TRANSITIONS, LeaveStatus, NotificationKind
from backend.common.exceptions import (
    ConcurrentUpdateException,
    ConflictError,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from backend.config import settings
from backend.core_hr.directory import DatabaseEmployeeDirectory
from backend.leave.calendar import BusinessCalendar, DatabaseHolidaySource
from backend.leave.interfaces import (
    CalendarEvent,
    CalendarSink,
    EmployeeDirectory,
    EmployeeInfo,
    HolidaySource,
    NotificationSink,
)
from backend.leave.ledger import BalanceLedger
from backend.leave.models import LeaveBalance, LeaveRequest, LeaveType
from backend.leave.policy import LeaveTypePolicy

logger = logging.getLogger(__name__)

_STATUS_NOTIFICATION: dict[LeaveStatus, NotificationKind] = {
    LeaveStatus.approved: NotificationKind.approved,
    LeaveStatus.rejected: NotificationKind.rejected,
    LeaveStatus.cancelled: NotificationKind.cancelled,
}


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations over one session.

    Each mutating call flushes its ledger and request changes and commits
    them together before any side effect runs. Calendar and notification
    failures are logged and never undo the committed state.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        holidays: Optional[HolidaySource] = None,
        directory: Optional[EmployeeDirectory] = None,
        notifier: Optional[NotificationSink] = None,
        calendar: Optional[CalendarSink] = None,
        policy: Optional[LeaveTypePolicy] = None,
    ) -> None:
        self.db = db
        self.policy = policy or LeaveTypePolicy()
        self.business_calendar = BusinessCalendar(holidays or DatabaseHolidaySource(db))
        self.directory = directory or DatabaseEmployeeDirectory(db)
        self.ledger = BalanceLedger(db, self.policy)
        self.notifier = notifier
        self.calendar = calendar

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    async def _get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo:
        employee = await self.directory.find_by_id(employee_id)
        if employee is None or not employee.is_active:
            raise NotFoundException("Employee", employee_id)
        return employee

    async def _get_active_leave_type(self, leave_type_id: uuid.UUID) -> LeaveType:
        result = await self.db.execute(
            select(LeaveType).where(LeaveType.id == leave_type_id)
        )
        leave_type = result.scalars().first()
        if leave_type is None:
            raise ValidationException(
                {"leave_type_id": [f"Leave type '{leave_type_id}' does not exist."]}
            )
        if not leave_type.is_active:
            raise ValidationException(
                {"leave_type_id": [f"{leave_type.name} is not active."]}
            )
        return leave_type

    async def _get_leave_type(self, leave_type_id: uuid.UUID) -> LeaveType:
        leave_type = await self.db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", leave_type_id)
        return leave_type

    async def _lock_request(self, request_id: uuid.UUID) -> LeaveRequest:
        """Row-lock the request and reload it, so the status check sees the stored value."""
        result = await self.db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        leave_request = result.scalars().first()
        if leave_request is None:
            raise NotFoundException("LeaveRequest", request_id)
        return leave_request

    async def _flush_request(self, leave_request: LeaveRequest) -> None:
        try:
            await self.db.flush()
        except StaleDataError as exc:
            logger.warning(
                "Lost update on leave request %s (version %s)",
                leave_request.id, leave_request.version,
            )
            raise ConcurrentUpdateException("LeaveRequest", leave_request.id) from exc

    async def _approvers(self, employee: EmployeeInfo) -> list[uuid.UUID]:
        """Reporting-line managers first, then department heads; no duplicates."""
        approvers: list[uuid.UUID] = list(employee.manager_chain)
        if employee.department_id is not None:
            for manager in await self.directory.department_managers(employee.department_id):
                approvers.append(manager.id)
        return [a for a in dict.fromkeys(approvers) if a != employee.id]

    @staticmethod
    def _calendar_event(
        request: LeaveRequest,
        employee: EmployeeInfo,
        leave_type_name: str,
    ) -> CalendarEvent:
        """Whole-day event in the configured timezone, expressed in UTC."""
        tz = ZoneInfo(settings.TIMEZONE)
        starts_at = datetime.combine(request.start_date, time.min, tzinfo=tz)
        ends_at = datetime.combine(request.end_date, time(23, 59, 59), tzinfo=tz)
        return CalendarEvent(
            reference_id=request.id,
            owner_id=employee.id,
            title=f"{employee.full_name} - {leave_type_name}",
            description=request.reason,
            starts_at=starts_at.astimezone(timezone.utc),
            ends_at=ends_at.astimezone(timezone.utc),
        )

    async def _notify(
        self,
        kind: NotificationKind,
        request: Optional[LeaveRequest],
        recipients: list[uuid.UUID],
        *,
        detail: Optional[str] = None,
    ) -> None:
        if self.notifier is None or not recipients:
            return
        try:
            await self.notifier.notify(kind, request, recipients, detail=detail)
        except Exception:
            logger.exception(
                "Failed to send %s notification for %s",
                kind.value, request.id if request is not None else "balance update",
            )

    async def _sync_calendar(
        self,
        action: str,
        request: LeaveRequest,
        event: Optional[CalendarEvent] = None,
    ) -> None:
        if self.calendar is None:
            return
        try:
            if action == "create":
                await self.calendar.create_event(event)
            elif action == "update":
                await self.calendar.update_event(event)
            else:
                await self.calendar.delete_event(request.id)
        except Exception:
            logger.exception(
                "Calendar %s failed for leave request %s", action, request.id,
            )

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    async def submit_leave_request(
        self,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
        *,
        full_day: bool = True,
    ) -> LeaveRequest:
        """Reserve balance for a new PENDING request.

        Raises ``ValidationException`` for a bad range or leave type,
        ``InsufficientBalanceException`` when the reservation does not fit;
        nothing is persisted in either case.
        """
        employee = await self._get_employee(employee_id)

        if start_date > end_date:
            raise ValidationException(
                {"end_date": ["end_date must be on or after start_date."]}
            )
        leave_type = await self._get_active_leave_type(leave_type_id)

        # ── Duration ────────────────────────────────────────────────
        duration = await self.business_calendar.chargeable_days(start_date, end_date)
        if duration <= 0:
            raise ValidationException(
                {"dates": ["No leave days found in the selected range "
                           "(all days are weekends or holidays)."]}
            )

        # ── Reserve ─────────────────────────────────────────────────
        balance = await self.ledger.get_or_create(employee_id, leave_type, start_date.year)
        await self.ledger.reserve(balance, duration)

        # ── Persist ─────────────────────────────────────────────────
        leave_request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            start_date=start_date,
            end_date=end_date,
            duration_days=duration,
            full_day=full_day,
            reason=reason,
            status=LeaveStatus.pending,
        )
        self.db.add(leave_request)
        await self.db.flush()

        await create_audit_entry(
            self.db,
            action="submit",
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=employee_id,
            new_values={
                "leave_type": leave_type.name,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "duration_days": str(duration),
                "status": LeaveStatus.pending.value,
                "balance": self.ledger.snapshot(balance),
            },
        )

        approvers = await self._approvers(employee)
        event = self._calendar_event(leave_request, employee, leave_type.name)
        await self.db.commit()

        logger.info(
            "Leave request %s submitted: employee=%s type=%s %s..%s (%s day(s))",
            leave_request.id, employee_id, leave_type.name,
            start_date, end_date, duration,
        )

        # ── Side effects (best-effort) ──────────────────────────────
        await self._sync_calendar("create", leave_request, event)
        await self._notify(NotificationKind.submitted, leave_request, [employee_id])
        await self._notify(NotificationKind.approval_pending, leave_request, approvers)

        return leave_request

    # ─────────────────────────────────────────────────────────────────
    # Status transitions
    # ─────────────────────────────────────────────────────────────────

    async def ensure_can_review(
        self,
        leave_request: LeaveRequest,
        reviewer_id: uuid.UUID,
        *,
        is_hr: bool = False,
    ) -> None:
        """Raise ``ForbiddenException`` unless ``reviewer_id`` may decide on the request.

        Nobody reviews their own request. HR may review any other request;
        everyone else must be in the employee's reporting line or head the
        employee's department.
        """
        if leave_request.employee_id == reviewer_id:
            raise ForbiddenException("You cannot review your own leave request.")
        if is_hr:
            return

        employee = await self.directory.find_by_id(leave_request.employee_id)
        if employee is None or reviewer_id not in await self._approvers(employee):
            raise ForbiddenException(
                "You are not authorized to review this leave request."
            )

    async def update_request_status(
        self,
        request_id: uuid.UUID,
        new_status: LeaveStatus,
        comments: Optional[str] = None,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        """Move a request to ``new_status`` and settle the ledger.

        Approval commits the reserved days; rejection or cancellation
        releases them from whichever bucket the old status charged. The
        request row is locked before its status is checked, so two reviewers
        deciding at once are applied one after the other.
        """
        new_status = LeaveStatus(new_status)
        leave_request = await self._lock_request(request_id)
        old_status = leave_request.status

        if new_status not in LEAVE_TRANSITIONS.get(old_status, frozenset()):
            raise InvalidTransitionException(old_status.value, new_status.value)

        duration = leave_request.duration_days
        if duration is None:
            duration = await self.business_calendar.chargeable_days(
                leave_request.start_date, leave_request.end_date,
            )

        leave_type = await self._get_leave_type(leave_request.leave_type_id)
        balance = await self.ledger.get_or_create(
            leave_request.employee_id, leave_type, leave_request.start_date.year,
        )
        before = self.ledger.snapshot(balance)

        if new_status == LeaveStatus.approved:
            await self.ledger.commit_approval(balance, duration)
        else:
            await self.ledger.release(balance, duration, old_status)

        leave_request.status = new_status
        leave_request.comments = comments
        leave_request.reviewed_by = actor_id
        leave_request.reviewed_at = datetime.now(timezone.utc)
        await self._flush_request(leave_request)

        await create_audit_entry(
            self.db,
            action=new_status.value,
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=actor_id,
            old_values={"status": old_status.value, "balance": before},
            new_values={
                "status": new_status.value,
                "comments": comments,
                "balance": self.ledger.snapshot(balance),
            },
        )

        event: Optional[CalendarEvent] = None
        if new_status == LeaveStatus.approved and self.calendar is not None:
            employee = await self.directory.find_by_id(leave_request.employee_id)
            if employee is not None:
                event = self._calendar_event(leave_request, employee, leave_type.name)
        await self.db.commit()

        logger.info(
            "Leave request %s: %s -> %s by %s",
            leave_request.id, old_status.value, new_status.value, actor_id,
        )

        # ── Side effects (best-effort) ──────────────────────────────
        if new_status == LeaveStatus.approved:
            if event is not None:
                await self._sync_calendar("update", leave_request, event)
        else:
            await self._sync_calendar("delete", leave_request)
        await self._notify(
            _STATUS_NOTIFICATION[new_status], leave_request, [leave_request.employee_id],
        )

        return leave_request

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    async def adjust_balance(
        self,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        adjustment_days: Decimal,
        reason: str,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalance:
        """Replace the manual adjustment on a balance and recompute its total."""
        await self._get_employee(employee_id)
        leave_type = await self._get_leave_type(leave_type_id)

        balance = await self.ledger.get_or_create(employee_id, leave_type, year)
        before = self.ledger.snapshot(balance)
        await self.ledger.adjust(balance, leave_type, Decimal(adjustment_days))

        await create_audit_entry(
            self.db,
            action="adjust",
            entity_type="leave_balance",
            entity_id=balance.id,
            actor_id=actor_id,
            old_values=before,
            new_values={**self.ledger.snapshot(balance), "reason": reason},
        )
        await self.db.commit()

        logger.info(
            "Adjusted %s balance for employee %s (%d) by %s: total=%s",
            leave_type.name, employee_id, year, adjustment_days, balance.total_days,
        )

        await self._notify(
            NotificationKind.balance_updated,
            None,
            [employee_id],
            detail=(
                f"{leave_type.name} {year}: total {balance.total_days} day(s), "
                f"available {self.ledger.available_days(balance)}. Reason: {reason}"
            ),
        )
        return balance

    async def get_balances(self, employee_id: uuid.UUID, year: int) -> list[LeaveBalance]:
        """All balances for an employee in ``year``; ``available_days`` is computed."""
        await self._get_employee(employee_id)
        result = await self.db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
            .order_by(LeaveBalance.leave_type_id)
        )
        return list(result.scalars().all())

    # ─────────────────────────────────────────────────────────────────
    # Leave types
    # ─────────────────────────────────────────────────────────────────

    async def create_leave_type(
        self,
        name: str,
        *,
        description: Optional[str] = None,
        accrual_rate: Optional[Decimal] = None,
        max_days: Optional[int] = None,
        requires_document: bool = False,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveType:
        existing = await self.db.execute(
            select(LeaveType.id).where(LeaveType.name == name)
        )
        if existing.scalar() is not None:
            raise ConflictError("name", name)

        leave_type = LeaveType(
            name=name,
            description=description,
            accrual_rate=accrual_rate,
            max_days=max_days,
            requires_document=requires_document,
            is_active=True,
        )
        self.db.add(leave_type)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise ConflictError("name", name) from exc

        await create_audit_entry(
            self.db,
            action="create",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values={
                "name": name,
                "accrual_rate": str(accrual_rate) if accrual_rate is not None else None,
                "max_days": max_days,
            },
        )
        await self.db.commit()

        logger.info("Created leave type %r", name)
        return leave_type

    async def list_leave_types(self, *, active_only: bool = True) -> list[LeaveType]:
        query = select(LeaveType).order_by(LeaveType.name)
        if active_only:
            query = query.where(LeaveType.is_active.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ─────────────────────────────────────────────────────────────────
    # Requests (read)
    # ─────────────────────────────────────────────────────────────────

    async def get_leave_request(self, request_id: uuid.UUID) -> LeaveRequest:
        result = await self.db.execute(
            select(LeaveRequest).where(LeaveRequest.id == request_id)
        )
        leave_request = result.scalars().first()
        if leave_request is None:
            raise NotFoundException("LeaveRequest", request_id)
        return leave_request

    async def list_employee_requests(
        self,
        employee_id: uuid.UUID,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> list[LeaveRequest]:
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .order_by(LeaveRequest.start_date.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_pending_requests(self) -> list[LeaveRequest]:
        """Every PENDING request, oldest submission first."""
        result = await self.db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.status == LeaveStatus.pending)
            .order_by(LeaveRequest.created_at)
        )
        return list(result.scalars().all())
