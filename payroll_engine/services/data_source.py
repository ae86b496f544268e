"""
Collaborator interface the payroll engine reads its inputs through.

The engine only needs three reads per employee and period. The SQLAlchemy
implementation below serves them from this package's tables; a host
application can supply its own source instead.
"""

from datetime import date
from typing import List, Protocol

from sqlalchemy.orm import Session, selectinload

from payroll_engine.core.exceptions import MissingSalaryStructureError
from payroll_engine.models.attendance import Attendance
from payroll_engine.models.leave_request import LeaveRequest, LeaveStatus
from payroll_engine.models.salary_structure import SalaryStructure
from payroll_engine.schemas.attendance import AttendanceRecordSchema
from payroll_engine.schemas.leave import LeaveRecordSchema
from payroll_engine.schemas.salary import SalaryStructureSchema


class PayrollDataSource(Protocol):
    def get_attendance(self, employee_id: str, period_start: date, period_end: date) -> List[AttendanceRecordSchema]:
        ...

    def get_approved_leaves(self, employee_id: str, period_start: date, period_end: date) -> List[LeaveRecordSchema]:
        ...

    def get_salary_structure(self, employee_id: str) -> SalaryStructureSchema:
        ...


class SqlPayrollDataSource:
    def __init__(self, db: Session):
        self.db = db

    def get_attendance(self, employee_id: str, period_start: date, period_end: date) -> List[AttendanceRecordSchema]:
        rows = self.db.query(Attendance).filter(
            Attendance.employee_id == employee_id,
            Attendance.date >= period_start,
            Attendance.date <= period_end
        ).order_by(Attendance.date.asc()).all()
        return [AttendanceRecordSchema.model_validate(r) for r in rows]

    def get_approved_leaves(self, employee_id: str, period_start: date, period_end: date) -> List[LeaveRecordSchema]:
        rows = self.db.query(LeaveRequest).filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status == LeaveStatus.APPROVED.value,
            LeaveRequest.start_date <= period_end,
            LeaveRequest.end_date >= period_start
        ).order_by(LeaveRequest.start_date.asc()).all()
        return [LeaveRecordSchema.model_validate(r) for r in rows]

    def get_salary_structure(self, employee_id: str) -> SalaryStructureSchema:
        structure = self.db.query(SalaryStructure).options(
            selectinload(SalaryStructure.components)
        ).filter(
            SalaryStructure.employee_id == employee_id,
            SalaryStructure.is_active.is_(True)
        ).order_by(SalaryStructure.id.desc()).first()
        if not structure:
            raise MissingSalaryStructureError(employee_id)
        return SalaryStructureSchema.model_validate(structure)
