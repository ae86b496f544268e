from datetime import date
from typing import Any, Dict, List, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


def _period(period_start: Optional[date], period_end: Optional[date]) -> Dict[str, Any]:
    return {
        "period_start": period_start.isoformat() if period_start else None,
        "period_end": period_end.isoformat() if period_end else None,
    }


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            message=f"{entity} {entity_id} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"entity": entity, "entity_id": entity_id}
        )


class IncompleteAttendanceError(AppException):
    def __init__(
        self,
        missing_dates: List[date],
        employee_id: Optional[str] = None,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None
    ):
        self.missing_dates = list(missing_dates)
        super().__init__(
            message=f"Attendance incomplete: {len(self.missing_dates)} working day(s) have no record or approved leave",
            status_code=422,
            error_code="INCOMPLETE_ATTENDANCE",
            details={
                "employee_id": employee_id,
                **_period(period_start, period_end),
                "missing_dates": [d.isoformat() for d in self.missing_dates],
            }
        )


class MissingBasicComponentError(AppException):
    def __init__(
        self,
        component_name: str,
        employee_id: Optional[str] = None,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None
    ):
        super().__init__(
            message=f"Component '{component_name}' is a percentage of Basic but no Basic component was resolved before it",
            status_code=422,
            error_code="MISSING_BASIC_COMPONENT",
            details={"employee_id": employee_id, **_period(period_start, period_end), "component": component_name}
        )


class NegativeWageError(AppException):
    def __init__(
        self,
        field: str,
        value: Any,
        employee_id: Optional[str] = None,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None
    ):
        super().__init__(
            message=f"'{field}' must not be negative (got {value})",
            status_code=422,
            error_code="NEGATIVE_WAGE",
            details={"employee_id": employee_id, **_period(period_start, period_end), "field": field, "value": str(value)}
        )


class InvalidOvertimeConfigError(AppException):
    def __init__(
        self,
        missing_fields: List[str],
        employee_id: Optional[str] = None,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None
    ):
        super().__init__(
            message=f"Overtime is enabled but {', '.join(missing_fields)} not configured",
            status_code=422,
            error_code="INVALID_OVERTIME_CONFIG",
            details={"employee_id": employee_id, **_period(period_start, period_end), "missing_fields": missing_fields}
        )


class InvalidTransitionError(AppException):
    def __init__(self, entity: str, entity_id: Any, current: str, action: str):
        super().__init__(
            message=f"Cannot {action} {entity.lower()} {entity_id} in status {current}",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"entity": entity, "entity_id": entity_id, "current_status": current, "action": action}
        )


class ConcurrentModificationError(AppException):
    def __init__(self, entity: str, entity_id: Any, expected: Optional[str] = None):
        super().__init__(
            message=f"{entity} {entity_id} was modified concurrently",
            status_code=409,
            error_code="CONCURRENT_MODIFICATION",
            details={"entity": entity, "entity_id": entity_id, "expected_status": expected}
        )


class PayslipExistsError(AppException):
    def __init__(self, employee_id: str, period_start: date, period_end: date, payslip_id: Optional[int] = None):
        super().__init__(
            message=f"Payslip already exists for employee {employee_id} in this period",
            status_code=409,
            error_code="PAYSLIP_EXISTS",
            details={"employee_id": employee_id, **_period(period_start, period_end), "payslip_id": payslip_id}
        )


class PayslipImmutableError(AppException):
    def __init__(self, payslip_id: Any, status: str):
        super().__init__(
            message=f"Payslip {payslip_id} is {status.lower()} and can no longer be modified",
            status_code=409,
            error_code="PAYSLIP_IMMUTABLE",
            details={"payslip_id": payslip_id, "status": status}
        )


class MissingSalaryStructureError(AppException):
    def __init__(self, employee_id: str):
        super().__init__(
            message=f"Employee {employee_id} does not have a salary structure",
            status_code=422,
            error_code="MISSING_SALARY_STRUCTURE",
            details={"employee_id": employee_id}
        )


class InsufficientLeaveBalanceError(AppException):
    def __init__(self, employee_id: str, leave_type: str, available: Any, required: Any):
        super().__init__(
            message=f"Insufficient {leave_type.lower().replace('_', ' ')} balance",
            status_code=400,
            error_code="INSUFFICIENT_LEAVE_BALANCE",
            details={
                "employee_id": employee_id,
                "leave_type": leave_type,
                "available": str(available),
                "required": str(required),
            }
        )
