"""Common module: shared utilities for the leave service."""

from backend.common.audit import AuditTrail, create_audit_entry
from backend.common.constants import (
    DAYS_QUANTUM,
    LEAVE_TRANSITIONS,
    WEEKEND_DAYS,
    LeaveStatus,
    NotificationKind,
    UserRole,
)
from backend.common.exceptions import (
    AppException,
    ConcurrentUpdateException,
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "LeaveStatus",
    "NotificationKind",
    "UserRole",
    "LEAVE_TRANSITIONS",
    "WEEKEND_DAYS",
    "DAYS_QUANTUM",
    # Exceptions
    "AppException",
    "ConcurrentUpdateException",
    "ConflictError",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidTransitionException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
]
