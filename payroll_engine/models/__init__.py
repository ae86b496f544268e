# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    salary_structure, attendance,
    leave_request, leave_balance,
    payslip,
)

# Explicit class exports for cleaner imports
from .salary_structure import SalaryStructure, SalaryComponent, WageType, ComputationType
from .attendance import Attendance, AttendanceStatus
from .leave_request import LeaveRequest, LeaveType, LeaveStatus
from .leave_balance import LeaveBalance
from .payslip import Payslip, PayslipComponent, PayslipStatus

__all__ = [
    "SalaryStructure",
    "SalaryComponent",
    "WageType",
    "ComputationType",
    "Attendance",
    "AttendanceStatus",
    "LeaveRequest",
    "LeaveType",
    "LeaveStatus",
    "LeaveBalance",
    "Payslip",
    "PayslipComponent",
    "PayslipStatus",
]
