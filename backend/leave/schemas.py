"""Leave Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.common.constants import LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    """Payload for creating a leave type (HR admin)."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    accrual_rate: Optional[Decimal] = Field(
        None, ge=0, max_digits=5, decimal_places=2,
        description="Days credited per month",
    )
    max_days: Optional[int] = Field(
        None, ge=0, description="Yearly cap on total days; empty means uncapped",
    )
    requires_document: bool = False


class LeaveTypeOut(BaseModel):
    """Full leave type representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    accrual_rate: Optional[Decimal] = None
    max_days: Optional[int] = None
    requires_document: bool = False
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance for a single leave type with computed available field."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    total_days: Decimal
    used_days: Decimal
    pending_days: Decimal
    adjustment_days: Decimal
    available_days: Decimal
    updated_at: Optional[datetime] = None


class BalanceAdjustRequest(BaseModel):
    """HR admin balance adjustment payload."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    adjustment_days: Decimal = Field(
        ..., max_digits=5, decimal_places=2,
        description="Replaces the current manual adjustment; negative to debit",
    )
    reason: str = Field(..., min_length=5, max_length=500)
    year: Optional[int] = Field(
        None, ge=2000, le=2100, description="Target year; defaults to current year",
    )


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request."""

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)
    full_day: bool = True

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        return self


class StatusUpdateRequest(BaseModel):
    """Payload for moving a leave request to a new status."""

    status: LeaveStatus
    comments: Optional[str] = Field(None, max_length=1000)


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    duration_days: Decimal
    full_day: bool = True
    reason: Optional[str] = None
    comments: Optional[str] = None
    status: LeaveStatus
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
