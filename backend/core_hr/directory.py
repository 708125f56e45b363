"""Read-only employee directory backed by the core HR tables."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core_hr.models import Department, Employee
from backend.leave.interfaces import EmployeeInfo

logger = logging.getLogger(__name__)

# Upper bound on how far up the reporting line we walk.
MAX_MANAGER_DEPTH = 10


class DatabaseEmployeeDirectory:
    """Resolves employees and their approvers from ``employees`` / ``departments``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _manager_chain(self, employee: Employee) -> tuple[uuid.UUID, ...]:
        chain: list[uuid.UUID] = []
        seen = {employee.id}
        manager_id = employee.reporting_manager_id

        while manager_id is not None and len(chain) < MAX_MANAGER_DEPTH:
            if manager_id in seen:
                logger.warning(
                    "Reporting-line cycle at employee %s (starting from %s)",
                    manager_id, employee.id,
                )
                break
            seen.add(manager_id)
            chain.append(manager_id)
            result = await self.db.execute(
                select(Employee.reporting_manager_id).where(Employee.id == manager_id)
            )
            manager_id = result.scalar()

        return tuple(chain)

    async def _to_info(self, employee: Employee) -> EmployeeInfo:
        return EmployeeInfo(
            id=employee.id,
            full_name=employee.full_name,
            email=employee.email,
            department_id=employee.department_id,
            is_active=bool(employee.is_active),
            manager_chain=await self._manager_chain(employee),
        )

    async def find_by_id(self, employee_id: uuid.UUID) -> Optional[EmployeeInfo]:
        result = await self.db.execute(
            select(Employee).where(Employee.id == employee_id)
        )
        employee = result.scalars().first()
        if employee is None:
            return None
        return await self._to_info(employee)

    async def department_managers(
        self, department_id: uuid.UUID,
    ) -> list[EmployeeInfo]:
        """The department head, if the department has an active one."""
        result = await self.db.execute(
            select(Employee)
            .join(Department, Department.head_employee_id == Employee.id)
            .where(
                Department.id == department_id,
                Department.is_active.is_(True),
                Employee.is_active.is_(True),
            )
        )
        return [
            EmployeeInfo(
                id=emp.id,
                full_name=emp.full_name,
                email=emp.email,
                department_id=emp.department_id,
                is_active=bool(emp.is_active),
            )
            for emp in result.scalars().all()
        ]
