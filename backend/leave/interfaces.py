"""Narrow interfaces the leave engine consumes.

The engine never talks to the holiday table, the HR directory, the
notification store or the shared calendar directly; it goes through these
protocols so each collaborator can be swapped (or faked in tests).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

from backend.common.constants import NotificationKind

if TYPE_CHECKING:
    from backend.leave.models import LeaveRequest


@dataclass(frozen=True)
class EmployeeInfo:
    """Read-only view of an employee as the leave engine needs it."""

    id: uuid.UUID
    full_name: str
    email: str
    department_id: Optional[uuid.UUID] = None
    is_active: bool = True
    # Reporting managers, nearest first.
    manager_chain: tuple[uuid.UUID, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CalendarEvent:
    """Shared-calendar entry mirroring one leave request (times are UTC)."""

    reference_id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    starts_at: datetime
    ends_at: datetime
    description: Optional[str] = None
    event_type: str = "LEAVE"


class HolidaySource(Protocol):
    async def holidays_between(self, start: date, end: date) -> list[date]:
        """Holiday dates falling inside ``start..end`` (inclusive)."""
        ...


class EmployeeDirectory(Protocol):
    async def find_by_id(self, employee_id: uuid.UUID) -> Optional[EmployeeInfo]:
        ...

    async def department_managers(
        self, department_id: uuid.UUID,
    ) -> list[EmployeeInfo]:
        ...


class NotificationSink(Protocol):
    async def notify(
        self,
        kind: NotificationKind,
        request: Optional[LeaveRequest],
        recipients: Sequence[uuid.UUID],
        *,
        detail: Optional[str] = None,
    ) -> None:
        """Deliver ``kind`` to each recipient; ``request`` is None for balance updates."""
        ...


class CalendarSink(Protocol):
    """Shared-calendar mirror of leave requests, keyed by request id."""

    async def create_event(self, event: CalendarEvent) -> None:
        ...

    async def update_event(self, event: CalendarEvent) -> None:
        ...

    async def delete_event(self, reference_id: uuid.UUID) -> None:
        ...
