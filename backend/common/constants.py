"""Enums and constants for the leave service, matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


# Allowed next states per current state; anything absent is terminal.
LEAVE_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset(
        {LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled}
    ),
    LeaveStatus.approved: frozenset({LeaveStatus.rejected, LeaveStatus.cancelled}),
    LeaveStatus.rejected: frozenset(),
    LeaveStatus.cancelled: frozenset(),
}


# ── Notifications ───────────────────────────────────────────────────

class NotificationKind(str, enum.Enum):
    submitted = "submitted"
    approval_pending = "approval_pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"
    balance_updated = "balance_updated"


# ── Misc constants ──────────────────────────────────────────────────

WEEKEND_DAYS = frozenset({5, 6})   # Saturday, Sunday (date.weekday())
MONTHS_PER_YEAR = Decimal("12")
DAYS_QUANTUM = Decimal("0.01")     # balances carry 2-digit precision
