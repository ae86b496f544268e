"""
Payroll Service Layer

This module is the boundary the surrounding application calls into.
It reads inputs through a PayrollDataSource, runs the pure calculation
pipeline and persists the result, keeping callers free of calculation rules.

Architecture:
- Caller -> Service (this module) -> Aggregator / Resolver / Calculator -> Models
- A payslip is persisted whole, with its lines, in a single commit or not at all
- Status changes delegate to PayslipLifecycleManager
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, Optional
from datetime import date
import logging
import uuid

from payroll_engine.core.config import settings
from payroll_engine.core.exceptions import AppException, InvalidTransitionError, NotFoundError, PayslipExistsError
from payroll_engine.core.logging import payrun_id_var
from payroll_engine.models.payslip import Payslip, PayslipComponent, PayslipStatus
from payroll_engine.schemas.payslip import (
    PayrollSummary, PayrunError, PayrunResult, PayslipDraft, PayslipResponse
)
from payroll_engine.services.attendance_aggregator import aggregate_for_structure
from payroll_engine.services.data_source import PayrollDataSource, SqlPayrollDataSource
from payroll_engine.services.payroll_calculator import calculate_payslip
from payroll_engine.services.payslip_lifecycle import PayslipLifecycleManager
from payroll_engine.services.professional_tax import ProfessionalTaxStrategy, tax_strategy_from_settings
from payroll_engine.services.salary_structure_service import list_employees_with_structure
from payroll_engine.utils.dates import month_date_range, pay_period_label
from payroll_engine.utils.money import to_decimal

logger = logging.getLogger(__name__)


def _find_active_payslip(db: Session, employee_id: str, period_start: date, period_end: date) -> Optional[Payslip]:
    return db.query(Payslip).filter(
        Payslip.employee_id == employee_id,
        Payslip.status != PayslipStatus.CANCELLED.value,
        Payslip.period_start <= period_end,
        Payslip.period_end >= period_start
    ).first()


def _persist_draft(db: Session, draft: PayslipDraft) -> Payslip:
    payslip = Payslip(
        employee_id=draft.employee_id,
        pay_period=pay_period_label(draft.period_start),
        status=PayslipStatus.DRAFT.value,
        components=[
            PayslipComponent(
                name=line.name,
                rate_percent=line.rate_percent,
                amount=line.amount,
                is_deduction=line.is_deduction,
                order=line.order
            )
            for line in draft.components
        ],
        **draft.model_dump(exclude={"employee_id", "components"})
    )
    db.add(payslip)
    try:
        db.commit()
        db.refresh(payslip)
    except IntegrityError as e:
        # Another caller stored a live payslip for the same period after our check
        db.rollback()
        existing = db.query(Payslip).filter(
            Payslip.employee_id == draft.employee_id,
            Payslip.period_start == draft.period_start,
            Payslip.period_end == draft.period_end,
            Payslip.status != PayslipStatus.CANCELLED.value
        ).first()
        raise PayslipExistsError(
            draft.employee_id, draft.period_start, draft.period_end, existing.id if existing else None
        ) from e
    except Exception:
        db.rollback()
        raise
    return payslip


def build_payslip_draft(
    source: PayrollDataSource,
    employee_id: str,
    period_start: date,
    period_end: date,
    *,
    tax_strategy: Optional[ProfessionalTaxStrategy] = None,
    absence_as_default: Optional[bool] = None
) -> PayslipDraft:
    """
    Run the calculation pipeline for one employee without touching storage.

    Identical source data always yields an identical draft.
    """
    structure = source.get_salary_structure(employee_id)
    records = source.get_attendance(employee_id, period_start, period_end)
    leaves = source.get_approved_leaves(employee_id, period_start, period_end)

    if absence_as_default is None:
        absence_as_default = settings.attendance_absence_as_default

    summary = aggregate_for_structure(
        structure,
        records,
        leaves,
        period_start,
        period_end,
        absence_as_default=absence_as_default,
        half_day_weight=settings.half_day_weight
    )
    return calculate_payslip(
        structure,
        summary,
        tax_strategy=tax_strategy or tax_strategy_from_settings(settings),
        employee_id=employee_id,
        period_start=period_start,
        period_end=period_end
    )


def compute_payslip(
    db: Session,
    employee_id: str,
    period_start: date,
    period_end: date,
    *,
    data_source: Optional[PayrollDataSource] = None,
    tax_strategy: Optional[ProfessionalTaxStrategy] = None,
    absence_as_default: Optional[bool] = None
) -> Payslip:
    """
    Compute and store a DRAFT payslip for one employee and period.

    Args:
        db: Database session
        employee_id: ID of the employee
        period_start: First day of the pay period
        period_end: Last day of the pay period
        data_source: Input reader; defaults to this package's tables
        tax_strategy: Professional tax rule; defaults to the configured one
        absence_as_default: Count days without attendance as absences instead of failing

    Returns:
        The persisted Payslip in DRAFT status

    Raises:
        PayslipExistsError: A non-cancelled payslip already covers the period
        IncompleteAttendanceError, MissingBasicComponentError, NegativeWageError,
        InvalidOvertimeConfigError, MissingSalaryStructureError: nothing is stored
    """
    existing = _find_active_payslip(db, employee_id, period_start, period_end)
    if existing:
        raise PayslipExistsError(employee_id, period_start, period_end, existing.id)

    draft = build_payslip_draft(
        data_source or SqlPayrollDataSource(db),
        employee_id,
        period_start,
        period_end,
        tax_strategy=tax_strategy,
        absence_as_default=absence_as_default
    )
    payslip = _persist_draft(db, draft)
    logger.info(
        f"Payslip {payslip.id} drafted for employee {employee_id} "
        f"({payslip.pay_period}): gross={payslip.gross_wage} net={payslip.net_wage}"
    )
    return payslip


def compute_monthly_payslip(db: Session, employee_id: str, year: int, month: int, **options) -> Payslip:
    """Compute a payslip for a calendar month (month is 1-12)."""
    period_start, period_end = month_date_range(year, month)
    return compute_payslip(db, employee_id, period_start, period_end, **options)


def validate_payslip(db: Session, payslip_id: int) -> Payslip:
    return PayslipLifecycleManager(db).validate(payslip_id)


def cancel_payslip(db: Session, payslip_id: int) -> Payslip:
    return PayslipLifecycleManager(db).cancel(payslip_id)


def get_payslip(db: Session, payslip_id: int) -> Payslip:
    payslip = db.query(Payslip).filter(Payslip.id == payslip_id).first()
    if not payslip:
        raise NotFoundError("Payslip", payslip_id)
    return payslip


def delete_payslip(db: Session, payslip_id: int) -> None:
    """Delete a payslip; only drafts may be deleted."""
    payslip = get_payslip(db, payslip_id)
    if payslip.status != PayslipStatus.DRAFT.value:
        raise InvalidTransitionError("Payslip", payslip_id, payslip.status, "delete")
    db.delete(payslip)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Draft payslip {payslip_id} deleted")


def generate_payrun(
    db: Session,
    year: int,
    month: int,
    employee_ids: Optional[Iterable[str]] = None,
    **options
) -> PayrunResult:
    """
    Compute payslips for every employee with an active salary structure.

    One employee's failure is recorded in the result and does not stop the run.

    Args:
        db: Database session
        year: Payroll year
        month: Payroll month (1-12)
        employee_ids: Restrict the run to these employees

    Returns:
        PayrunResult with the drafted payslips and per-employee errors
    """
    period_start, period_end = month_date_range(year, month)
    ids = list(employee_ids) if employee_ids is not None else list_employees_with_structure(db)
    result = PayrunResult(pay_period=pay_period_label(period_start))

    token = payrun_id_var.set(uuid.uuid4().hex)
    try:
        logger.info(f"Payrun {result.pay_period} started for {len(ids)} employee(s)")
        for employee_id in ids:
            try:
                payslip = compute_payslip(db, employee_id, period_start, period_end, **options)
                result.payslips.append(PayslipResponse.model_validate(payslip))
            except AppException as e:
                logger.warning(f"Payrun skipped employee {employee_id}: {e.message}")
                result.errors.append(PayrunError(employee_id=employee_id, error_code=e.error_code, message=e.message))
        logger.info(f"Payrun {result.pay_period} finished: {result.total} payslip(s), {len(result.errors)} error(s)")
    finally:
        payrun_id_var.reset(token)

    return result


def summarize_payslips(payslips: Iterable[Any]) -> PayrollSummary:
    """Aggregate totals; cancelled payslips are left out."""
    summary = PayrollSummary()
    for p in payslips:
        status = PayslipStatus(p.status)
        if status == PayslipStatus.CANCELLED:
            continue
        summary.total_payslips += 1
        summary.total_employee_cost += to_decimal(p.employee_cost)
        summary.total_basic_wage += to_decimal(p.basic_wage)
        summary.total_gross_wage += to_decimal(p.gross_wage)
        summary.total_net_wage += to_decimal(p.net_wage)
        if status == PayslipStatus.DRAFT:
            summary.draft_count += 1
        else:
            summary.done_count += 1
    return summary


def get_payroll_summary(
    db: Session,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
    employee_id: Optional[str] = None
) -> PayrollSummary:
    """
    Get aggregated payroll statistics, optionally for one period or employee.
    """
    query = db.query(Payslip).filter(Payslip.status != PayslipStatus.CANCELLED.value)
    if period_start:
        query = query.filter(Payslip.period_start >= period_start)
    if period_end:
        query = query.filter(Payslip.period_end <= period_end)
    if employee_id:
        query = query.filter(Payslip.employee_id == employee_id)
    return summarize_payslips(query.all())


def get_employee_payslip_history(db: Session, employee_id: str) -> List[Dict[str, Any]]:
    """
    Get payslip history for an employee, newest period first.

    Returns:
        List of payslip records as dicts
    """
    payslips = db.query(Payslip).filter(
        Payslip.employee_id == employee_id
    ).order_by(Payslip.period_start.desc(), Payslip.id.desc()).all()
    return [PayslipResponse.model_validate(p).model_dump(mode="json") for p in payslips]
