"""Notification Pydantic schemas (responses only; rows are written by the leave engine)."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from backend.common.constants import NotificationKind


class NotificationOut(BaseModel):
    """Single notification in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    kind: NotificationKind
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListOut(BaseModel):
    """The caller's notifications plus their unread count."""

    data: list[NotificationOut]
    unread: int
