"""Notification endpoints: list, unread count, mark read."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import get_current_user
from backend.common.constants import NotificationKind
from backend.core_hr.models import Employee
from backend.database import get_db
from backend.notifications.schemas import NotificationListOut, NotificationOut
from backend.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=NotificationListOut)
async def list_notifications(
    unread_only: bool = Query(False),
    kind: Optional[NotificationKind] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated employee's notifications, newest first."""
    notifications = await NotificationService.list_for_recipient(
        db, employee.id, kind=kind, unread_only=unread_only,
    )
    unread = await NotificationService.get_unread_count(db, employee.id)
    return {"data": notifications, "unread": unread}


# ── GET /unread-count ───────────────────────────────────────────────
# Registered before /{notification_id}/read so the literal path wins.

@router.get("/unread-count")
async def unread_count(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, employee.id)
    return {"data": {"count": count}}


# ── PUT /read-all ───────────────────────────────────────────────────

@router.put("/read-all")
async def mark_all_read(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.mark_all_read(db, employee.id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── PUT /{notification_id}/read ─────────────────────────────────────

@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.mark_read(db, notification_id, employee.id)
