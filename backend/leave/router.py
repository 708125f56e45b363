"""Leave router: requests, status transitions, balances, leave types.

All endpoints require authentication. Manager/HR-specific endpoints enforce role checks.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.auth.dependencies import get_current_user, has_role, require_role
from backend.common.constants import LeaveStatus, UserRole
from backend.common.exceptions import ForbiddenException
from backend.common.rate_limit import SUBMIT_LIMIT, limiter
from backend.core_hr.models import Employee
from backend.database import get_db, get_session_factory
from backend.integrations.calendar import build_calendar_sink
from backend.leave.interfaces import CalendarSink
from backend.leave.schemas import (
    BalanceAdjustRequest,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    StatusUpdateRequest,
)
from backend.leave.service import LeaveService
from backend.notifications.service import InAppNotifier

router = APIRouter(prefix="", tags=["leave"])

_REVIEWER_ROLES = (UserRole.manager, UserRole.hr_admin, UserRole.system_admin)
_HR_ROLES = (UserRole.hr_admin, UserRole.system_admin)


def get_calendar_sink() -> Optional[CalendarSink]:
    return build_calendar_sink()


def get_leave_service(
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    calendar: Optional[CalendarSink] = Depends(get_calendar_sink),
) -> LeaveService:
    return LeaveService(
        db,
        notifier=InAppNotifier(session_factory),
        calendar=calendar,
    )


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
@limiter.limit(SUBMIT_LIMIT)
async def submit_leave_request(
    request: Request,
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    service: LeaveService = Depends(get_leave_service),
):
    """Submit a leave request for the authenticated employee; reserves balance."""
    return await service.submit_leave_request(
        employee.id,
        body.leave_type_id,
        body.start_date,
        body.end_date,
        body.reason,
        full_day=body.full_day,
    )


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=list[LeaveRequestOut])
async def my_leave_requests(
    status: Optional[LeaveStatus] = Query(None),
    employee: Employee = Depends(get_current_user),
    service: LeaveService = Depends(get_leave_service),
):
    """The authenticated employee's leave requests, newest first."""
    return await service.list_employee_requests(employee.id, status=status)


# ── GET /requests/pending ───────────────────────────────────────────

@router.get("/requests/pending", response_model=list[LeaveRequestOut])
async def pending_leave_requests(
    employee: Employee = Depends(require_role(*_REVIEWER_ROLES)),
    service: LeaveService = Depends(get_leave_service),
):
    """All requests awaiting a decision (manager/HR)."""
    return await service.list_pending_requests()


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    request_id: uuid.UUID,
    request: Request,
    employee: Employee = Depends(get_current_user),
    service: LeaveService = Depends(get_leave_service),
):
    leave_request = await service.get_leave_request(request_id)
    if leave_request.employee_id != employee.id and not has_role(
        request.state.user_role, *_REVIEWER_ROLES,
    ):
        raise ForbiddenException("You can only view your own leave requests.")
    return leave_request


# ── PUT /requests/{id}/status ───────────────────────────────────────

@router.put("/requests/{request_id}/status", response_model=LeaveRequestOut)
async def update_request_status(
    request_id: uuid.UUID,
    body: StatusUpdateRequest,
    request: Request,
    employee: Employee = Depends(get_current_user),
    service: LeaveService = Depends(get_leave_service),
):
    """Approve, reject or cancel a request.

    Employees may cancel their own requests. Every other transition needs a
    manager role in the employee's reporting line (or department head), or HR.
    """
    leave_request = await service.get_leave_request(request_id)
    is_owner = leave_request.employee_id == employee.id
    role = request.state.user_role

    if not (body.status == LeaveStatus.cancelled and is_owner):
        if not has_role(role, *_REVIEWER_ROLES):
            if body.status == LeaveStatus.cancelled:
                raise ForbiddenException("You can only cancel your own leave requests.")
            raise ForbiddenException("You are not authorized to review leave requests.")
        await service.ensure_can_review(
            leave_request, employee.id, is_hr=has_role(role, *_HR_ROLES),
        )

    return await service.update_request_status(
        request_id, body.status, body.comments, actor_id=employee.id,
    )


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def my_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_user),
    service: LeaveService = Depends(get_leave_service),
):
    """The authenticated employee's balances for ``year`` (default: this year)."""
    return await service.get_balances(employee.id, year or date.today().year)


# ── GET /balances/{employee_id} ─────────────────────────────────────

@router.get("/balances/{employee_id}", response_model=list[LeaveBalanceOut])
async def employee_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(require_role(*_HR_ROLES)),
    service: LeaveService = Depends(get_leave_service),
):
    """Any employee's balances (HR)."""
    return await service.get_balances(employee_id, year or date.today().year)


# ── POST /balances/adjust ───────────────────────────────────────────

@router.post("/balances/adjust", response_model=LeaveBalanceOut)
async def adjust_balance(
    body: BalanceAdjustRequest,
    employee: Employee = Depends(require_role(*_HR_ROLES)),
    service: LeaveService = Depends(get_leave_service),
):
    """Set the manual adjustment on a balance (HR)."""
    return await service.adjust_balance(
        body.employee_id,
        body.leave_type_id,
        body.year or date.today().year,
        body.adjustment_days,
        body.reason,
        actor_id=employee.id,
    )


# ── GET /types ──────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    active_only: bool = Query(True),
    employee: Employee = Depends(get_current_user),
    service: LeaveService = Depends(get_leave_service),
):
    return await service.list_leave_types(active_only=active_only)


# ── POST /types ─────────────────────────────────────────────────────

@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    employee: Employee = Depends(require_role(*_HR_ROLES)),
    service: LeaveService = Depends(get_leave_service),
):
    """Create a leave type (HR)."""
    return await service.create_leave_type(
        body.name,
        description=body.description,
        accrual_rate=body.accrual_rate,
        max_days=body.max_days,
        requires_document=body.requires_document,
        actor_id=employee.id,
    )
