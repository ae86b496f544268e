import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict

from payroll_engine.models.attendance import AttendanceStatus


class AttendanceRecordSchema(BaseModel):
    employee_id: Optional[str] = None
    date: datetime.date
    status: AttendanceStatus
    check_in: Optional[datetime.datetime] = None
    check_out: Optional[datetime.datetime] = None
    working_hours: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_open_shift(self) -> bool:
        return self.check_in is not None and self.check_out is None


class AttendanceSummary(BaseModel):
    working_days: int
    worked_days: Decimal
    paid_leave_days: Decimal
    unpaid_leave_days: Decimal
    absent_days: Decimal = Decimal("0")
    total_hours: Decimal
    standard_hours: Decimal
    overtime_hours: Decimal

    model_config = ConfigDict(frozen=True)


AttendanceRecordSchema.model_rebuild()
AttendanceSummary.model_rebuild()
