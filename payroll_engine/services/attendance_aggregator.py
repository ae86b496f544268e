"""
Attendance Aggregator

Reduces one employee's daily attendance records and approved leaves for a
pay period into the totals the payroll calculator works from.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Optional, Set

from payroll_engine.core.exceptions import IncompleteAttendanceError, InvalidOvertimeConfigError
from payroll_engine.models.attendance import AttendanceStatus
from payroll_engine.models.leave_request import LeaveStatus, LeaveType
from payroll_engine.schemas.attendance import AttendanceRecordSchema, AttendanceSummary
from payroll_engine.schemas.leave import LeaveRecordSchema
from payroll_engine.schemas.salary import SalaryStructureSchema
from payroll_engine.utils.dates import (
    count_working_days, is_working_day, iter_days, overlap_days, working_hours_between
)
from payroll_engine.utils.money import ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

WORKED_STATUSES = {AttendanceStatus.PRESENT, AttendanceStatus.HALF_DAY}


def _record_hours(record: AttendanceRecordSchema) -> Decimal:
    if record.working_hours is not None:
        return to_decimal(record.working_hours)
    if record.check_in and record.check_out:
        return working_hours_between(record.check_in, record.check_out)
    # Open shift: checked in, not yet checked out
    return ZERO


def aggregate_attendance(
    records: Iterable[AttendanceRecordSchema],
    leaves: Iterable[LeaveRecordSchema],
    period_start: date,
    period_end: date,
    *,
    overtime_enabled: bool = False,
    standard_work_hours_per_day: Optional[int] = None,
    standard_work_days_per_month: Optional[int] = None,
    absence_as_default: bool = False,
    half_day_weight: Decimal = Decimal("0.5"),
    employee_id: Optional[str] = None,
) -> AttendanceSummary:
    """
    Aggregate attendance and approved leave over [period_start, period_end].

    Args:
        records: Daily attendance records (records outside the period are ignored)
        leaves: Leave records; only APPROVED ones are counted
        overtime_enabled: Whether standard hours / overtime apply
        standard_work_hours_per_day: Required when overtime is enabled
        standard_work_days_per_month: Defaults to the non-Sunday days of the period
        absence_as_default: Treat working days without any record as absences
            instead of failing
        half_day_weight: Worked-day credit for a HALF_DAY record

    Raises:
        IncompleteAttendanceError: A working day has no record and no approved leave
        InvalidOvertimeConfigError: Overtime enabled without hours per day
    """
    if period_end < period_start:
        raise ValueError(f"period_end {period_end} is before period_start {period_start}")

    working_days = count_working_days(period_start, period_end)

    by_day: Dict[date, AttendanceRecordSchema] = {}
    for record in records:
        if not (period_start <= record.date <= period_end):
            continue
        if record.date in by_day:
            logger.warning(f"Duplicate attendance for employee {employee_id} on {record.date}; keeping the first record")
            continue
        by_day[record.date] = record

    worked_days = Decimal("0")
    absent_days = Decimal("0")
    total_hours = Decimal("0")
    for record in by_day.values():
        status = AttendanceStatus(record.status)
        if status == AttendanceStatus.ABSENT:
            absent_days += 1
        if status not in WORKED_STATUSES:
            continue
        worked_days += 1 if status == AttendanceStatus.PRESENT else half_day_weight
        total_hours += _record_hours(record)

    paid_leave_days = Decimal("0")
    unpaid_leave_days = Decimal("0")
    covered: Set[date] = set()
    for leave in leaves:
        if LeaveStatus(leave.status) != LeaveStatus.APPROVED:
            continue
        inside = overlap_days(leave.start_date, leave.end_date, period_start, period_end)
        if inside == 0:
            continue
        days = min(to_decimal(leave.total_days), Decimal(inside))
        if LeaveType(leave.leave_type) == LeaveType.UNPAID_LEAVE:
            unpaid_leave_days += days
        else:
            paid_leave_days += days
        covered.update(iter_days(max(leave.start_date, period_start), min(leave.end_date, period_end)))

    missing = [
        d for d in iter_days(period_start, period_end)
        if is_working_day(d) and d not in by_day and d not in covered
    ]
    if missing:
        if not absence_as_default:
            raise IncompleteAttendanceError(missing, employee_id, period_start, period_end)
        absent_days += len(missing)

    total_hours = round_money(total_hours)
    if overtime_enabled:
        if standard_work_hours_per_day is None:
            raise InvalidOvertimeConfigError(["standard_work_hours_per_day"], employee_id, period_start, period_end)
        days_per_month = standard_work_days_per_month or working_days
        standard_hours = round_money(Decimal(standard_work_hours_per_day) * Decimal(days_per_month))
        overtime_hours = max(ZERO, total_hours - standard_hours)
    else:
        standard_hours = total_hours
        overtime_hours = ZERO

    return AttendanceSummary(
        working_days=working_days,
        worked_days=worked_days,
        paid_leave_days=paid_leave_days,
        unpaid_leave_days=unpaid_leave_days,
        absent_days=absent_days,
        total_hours=total_hours,
        standard_hours=standard_hours,
        overtime_hours=overtime_hours,
    )


def aggregate_for_structure(
    structure: SalaryStructureSchema,
    records: Iterable[AttendanceRecordSchema],
    leaves: Iterable[LeaveRecordSchema],
    period_start: date,
    period_end: date,
    **options,
) -> AttendanceSummary:
    """Aggregate using the overtime settings carried by a salary structure."""
    return aggregate_attendance(
        records,
        leaves,
        period_start,
        period_end,
        overtime_enabled=structure.overtime_enabled,
        standard_work_hours_per_day=structure.standard_work_hours_per_day,
        standard_work_days_per_month=structure.standard_work_days_per_month,
        employee_id=structure.employee_id,
        **options,
    )
