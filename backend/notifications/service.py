"""Notification service and the in-app notification sink used by the leave engine."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.common.constants import NotificationKind
from backend.common.exceptions import NotFoundException
from backend.notifications.models import Notification

if TYPE_CHECKING:
    from backend.leave.models import LeaveRequest

logger = logging.getLogger(__name__)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        kind: NotificationKind,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            kind=kind,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def list_for_recipient(
        db: AsyncSession,
        recipient_id: uuid.UUID,
        *,
        kind: Optional[NotificationKind] = None,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Notifications for one employee, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == recipient_id)
            .order_by(Notification.created_at.desc())
        )
        if kind is not None:
            query = query.where(Notification.kind == kind)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for an employee."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark one of the employee's notifications as read.

        Someone else's notification is reported as not found.
        """
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == employee_id,
            )
        )
        notification = result.scalars().first()
        if notification is None:
            raise NotFoundException("Notification", notification_id)

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, employee_id: uuid.UUID) -> int:
        """Mark every unread notification of the employee as read; returns how many."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        return result.rowcount


# ── Message templates ───────────────────────────────────────────────


def _leave_message(kind: NotificationKind, request: LeaveRequest) -> tuple[str, str]:
    span = (
        f"{request.start_date} to {request.end_date} "
        f"({request.duration_days} day(s))"
    )
    if kind == NotificationKind.submitted:
        return (
            "Leave Request Submitted",
            f"Your leave request from {span} has been submitted for approval.",
        )
    if kind == NotificationKind.approval_pending:
        return (
            "Leave Request Pending Approval",
            f"A leave request from {span} requires your approval.",
        )
    if kind == NotificationKind.approved:
        return (
            "Leave Request Approved",
            f"Your leave request from {span} has been approved.",
        )
    if kind == NotificationKind.rejected:
        reason = f" Comments: {request.comments}" if request.comments else ""
        return (
            "Leave Request Rejected",
            f"Your leave request from {span} was rejected.{reason}",
        )
    if kind == NotificationKind.cancelled:
        return (
            "Leave Request Cancelled",
            f"The leave request from {span} has been cancelled.",
        )
    return ("Leave Update", f"Your leave request from {span} was updated.")


# ── In-app sink ─────────────────────────────────────────────────────


class InAppNotifier:
    """:class:`~backend.leave.interfaces.NotificationSink` writing ``notifications`` rows.

    Writes go through their own session so a failure here never touches the
    caller's (already committed) transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def notify(
        self,
        kind: NotificationKind,
        request: Optional[LeaveRequest],
        recipients: Sequence[uuid.UUID],
        *,
        detail: Optional[str] = None,
    ) -> None:
        if not recipients:
            return

        if request is not None:
            title, message = _leave_message(kind, request)
            entity_type, entity_id = "leave_request", request.id
        else:
            title, message = "Leave Balance Updated", "Your leave balance was updated."
            entity_type, entity_id = "leave_balance", None
        if detail:
            message = f"{message} {detail}"

        async with self.session_factory() as session:
            for recipient_id in dict.fromkeys(recipients):
                await NotificationService.create_notification(
                    session,
                    recipient_id=recipient_id,
                    kind=kind,
                    title=title,
                    message=message,
                    entity_type=entity_type,
                    entity_id=entity_id,
                )
            await session.commit()

        logger.info(
            "Sent %s notification to %d recipient(s)", kind.value, len(set(recipients)),
        )
