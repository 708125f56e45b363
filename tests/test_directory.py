"""Employee directory tests: manager chains and department heads."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core_hr.directory import DatabaseEmployeeDirectory
from backend.core_hr.models import Department, Employee
from tests.conftest import create_department, create_employee


class TestFindById:

    async def test_unknown_employee(self, db: AsyncSession):
        assert await DatabaseEmployeeDirectory(db).find_by_id(uuid.uuid4()) is None

    async def test_info_fields(self, db: AsyncSession, test_employee, test_department):
        info = await DatabaseEmployeeDirectory(db).find_by_id(test_employee["id"])

        assert info.id == test_employee["id"]
        assert info.full_name == "Test User"
        assert info.email == test_employee["email"]
        assert info.department_id == test_department["id"]
        assert info.is_active is True

    async def test_manager_chain_nearest_first(self, db: AsyncSession):
        director = await create_employee(db, first_name="Dora")
        manager = await create_employee(db, first_name="Milo", reporting_manager_id=director["id"])
        employee = await create_employee(db, reporting_manager_id=manager["id"])

        info = await DatabaseEmployeeDirectory(db).find_by_id(employee["id"])

        assert info.manager_chain == (manager["id"], director["id"])

    async def test_reporting_cycle_stops(self, db: AsyncSession, caplog):
        first = await create_employee(db, first_name="Ann")
        second = await create_employee(db, first_name="Ben", reporting_manager_id=first["id"])
        await db.execute(
            update(Employee)
            .where(Employee.id == first["id"])
            .values(reporting_manager_id=second["id"])
        )

        with caplog.at_level(logging.WARNING, logger="backend.core_hr.directory"):
            info = await DatabaseEmployeeDirectory(db).find_by_id(second["id"])

        assert info.manager_chain == (first["id"],)
        assert "Reporting-line cycle" in caplog.text


class TestDepartmentManagers:

    async def test_active_head(self, db: AsyncSession, test_department, test_manager):
        heads = await DatabaseEmployeeDirectory(db).department_managers(test_department["id"])

        assert [h.id for h in heads] == [test_manager["id"]]

    async def test_department_without_head(self, db: AsyncSession):
        department = await create_department(db, name="Facilities")

        assert await DatabaseEmployeeDirectory(db).department_managers(department["id"]) == []

    async def test_inactive_head_ignored(self, db: AsyncSession):
        department = await create_department(db, name="Legal")
        head = await create_employee(db, first_name="Gwen", is_active=False)
        await db.execute(
            update(Department)
            .where(Department.id == department["id"])
            .values(head_employee_id=head["id"])
        )

        assert await DatabaseEmployeeDirectory(db).department_managers(department["id"]) == []
