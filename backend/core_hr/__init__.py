"""Core HR module: Employee and Department models plus the read-only directory."""

from backend.core_hr.models import Department, Employee

__all__ = ["Employee", "Department"]
