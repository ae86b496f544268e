from sqlalchemy import Column, Integer, String, Date, Numeric, DateTime
from sqlalchemy.sql import func
from payroll_engine.database import Base
import enum

class LeaveType(str, enum.Enum):
    PAID_TIME_OFF = "PAID_TIME_OFF"
    SICK_LEAVE = "SICK_LEAVE"
    UNPAID_LEAVE = "UNPAID_LEAVE"

class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

# Leave types drawn from a yearly balance
BALANCE_LEAVE_TYPES = {LeaveType.PAID_TIME_OFF.value, LeaveType.SICK_LEAVE.value}

class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True, nullable=False)
    leave_type = Column(String, index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Numeric(5, 1), nullable=False)
    subject = Column(String, nullable=True)
    description = Column(String, nullable=True)
    status = Column(String, default=LeaveStatus.PENDING.value, index=True)
    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)  # Decision time for approval and rejection
    rejection_reason = Column(String, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
