from pydantic import BaseModel, ConfigDict
from datetime import date
from decimal import Decimal
from typing import Optional

from payroll_engine.models.leave_request import LeaveType, LeaveStatus

class LeaveRecordSchema(BaseModel):
    id: Optional[int] = None
    employee_id: Optional[str] = None
    leave_type: LeaveType
    status: LeaveStatus = LeaveStatus.APPROVED
    start_date: date
    end_date: date
    total_days: Decimal

    model_config = ConfigDict(from_attributes=True, frozen=True)

class LeaveBalanceSchema(BaseModel):
    employee_id: str
    leave_type: LeaveType
    total_days: Decimal
    used_days: Decimal
    remaining_days: Decimal
    year: int

    model_config = ConfigDict(from_attributes=True)

# Resolve forward references for Pydantic V2
LeaveRecordSchema.model_rebuild()
LeaveBalanceSchema.model_rebuild()
