"""
Payroll Calculator

Turns a salary structure and an attendance summary into a payslip draft:
earning lines, overtime pay, statutory deductions and the financial summary.

The calculation is pure. The same structure and summary always produce the
same draft, and the draft always satisfies:

    sum(earning lines)   == gross_wage
    sum(deduction lines) == total_deductions
    net_wage             == gross_wage - total_deductions
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from payroll_engine.core.exceptions import InvalidOvertimeConfigError, NegativeWageError
from payroll_engine.models.salary_structure import ComputationType, WageType
from payroll_engine.schemas.attendance import AttendanceSummary
from payroll_engine.schemas.payslip import PayslipDraft, PayslipLine
from payroll_engine.schemas.salary import SalaryStructureSchema
from payroll_engine.services.component_resolver import ResolvedComponent, resolve_components
from payroll_engine.services.professional_tax import FlatProfessionalTax, ProfessionalTaxStrategy
from payroll_engine.utils.money import HUNDRED, ZERO, percent_of, round_money, to_decimal

logger = logging.getLogger(__name__)

OVERTIME_COMPONENT_NAME = "Overtime Pay"
PROVIDENT_FUND_NAME = "Provident Fund"
PROFESSIONAL_TAX_NAME = "Professional Tax"
PROVIDENT_FUND_ORDER = 100
PROFESSIONAL_TAX_ORDER = 101


def validate_structure(
    structure: SalaryStructureSchema,
    employee_id: Optional[str] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
) -> None:
    """
    Raises:
        NegativeWageError: Any wage, rate, tax, standard hours/days or component value is negative
        InvalidOvertimeConfigError: Overtime enabled without a rate or hours per day
    """
    for field in (
        "wage", "pf_rate", "professional_tax", "overtime_rate",
        "standard_work_hours_per_day", "standard_work_days_per_month",
    ):
        value = getattr(structure, field)
        if value is not None and value < 0:
            raise NegativeWageError(field, value, employee_id, period_start, period_end)
    for component in structure.components:
        if component.value < 0:
            raise NegativeWageError(f"components.{component.name}", component.value, employee_id, period_start, period_end)

    if structure.overtime_enabled:
        missing = []
        if structure.overtime_rate is None:
            missing.append("overtime_rate")
        if structure.standard_work_hours_per_day is None:
            missing.append("standard_work_hours_per_day")
        if missing:
            raise InvalidOvertimeConfigError(missing, employee_id, period_start, period_end)


def resolve_wage_base(structure: SalaryStructureSchema, summary: AttendanceSummary) -> Decimal:
    """
    Monthly wage for FIXED; for HOURLY, the rate times hours actually logged.

    Left unrounded: component amounts are the only rounding step.
    """
    if WageType(structure.wage_type) == WageType.HOURLY:
        return to_decimal(structure.wage) * summary.total_hours
    return to_decimal(structure.wage)


def calculate_overtime_pay(structure: SalaryStructureSchema, summary: AttendanceSummary) -> Decimal:
    if not structure.overtime_enabled:
        return ZERO
    return round_money(summary.overtime_hours * to_decimal(structure.overtime_rate))


def _share_of_gross(amount: Decimal, gross_wage: Decimal) -> Decimal:
    if gross_wage <= ZERO:
        return ZERO
    return round_money(amount * HUNDRED / gross_wage)


def calculate_payslip(
    structure: SalaryStructureSchema,
    summary: AttendanceSummary,
    *,
    tax_strategy: Optional[ProfessionalTaxStrategy] = None,
    employee_id: Optional[str] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
) -> PayslipDraft:
    """
    Compute the payslip for one employee and period.

    Args:
        structure: The employee's salary structure snapshot
        summary: Output of the attendance aggregator for the period
        tax_strategy: Professional tax rule; defaults to the structure's flat amount

    Returns:
        PayslipDraft with the financial summary and the ordered line breakdown
    """
    employee_id = employee_id or structure.employee_id
    validate_structure(structure, employee_id, period_start, period_end)
    tax_strategy = tax_strategy or FlatProfessionalTax()

    wage_base = resolve_wage_base(structure, summary)
    resolved = resolve_components(
        structure.components,
        wage_base,
        employee_id=employee_id,
        period_start=period_start,
        period_end=period_end,
    )
    earnings: List[ResolvedComponent] = list(resolved.items)

    overtime_pay = calculate_overtime_pay(structure, summary)
    if overtime_pay > ZERO:
        # Stays below the statutory deduction lines
        next_order = min(max((c.order for c in earnings), default=0) + 1, PROVIDENT_FUND_ORDER - 1)
        earnings.append(ResolvedComponent(
            name=OVERTIME_COMPONENT_NAME,
            computation_type=ComputationType.FIXED_AMOUNT,
            value=overtime_pay,
            order=next_order,
            amount=overtime_pay,
        ))

    gross_wage = sum((c.amount for c in earnings), ZERO)
    if gross_wage < ZERO:
        raise NegativeWageError("gross_wage", gross_wage, employee_id, period_start, period_end)

    pf_employee = percent_of(gross_wage, structure.pf_rate)
    pf_employer = pf_employee
    professional_tax = round_money(tax_strategy.amount_for(structure, gross_wage))
    total_deductions = pf_employee + professional_tax
    net_wage = gross_wage - total_deductions
    employee_cost = gross_wage + pf_employer

    lines = [
        PayslipLine(
            name=c.name,
            rate_percent=_share_of_gross(c.amount, gross_wage),
            amount=c.amount,
            is_deduction=False,
            order=c.order,
        )
        for c in earnings
    ]
    lines.append(PayslipLine(
        name=PROVIDENT_FUND_NAME,
        rate_percent=_share_of_gross(pf_employee, gross_wage),
        amount=pf_employee,
        is_deduction=True,
        order=PROVIDENT_FUND_ORDER,
    ))
    lines.append(PayslipLine(
        name=PROFESSIONAL_TAX_NAME,
        rate_percent=_share_of_gross(professional_tax, gross_wage),
        amount=professional_tax,
        is_deduction=True,
        order=PROFESSIONAL_TAX_ORDER,
    ))

    logger.debug(
        f"Calculated payslip for employee {employee_id}: gross={gross_wage} "
        f"deductions={total_deductions} net={net_wage}"
    )

    return PayslipDraft(
        employee_id=employee_id,
        period_start=period_start,
        period_end=period_end,
        working_days=summary.working_days,
        worked_days=summary.worked_days,
        paid_leave_days=summary.paid_leave_days,
        unpaid_leave_days=summary.unpaid_leave_days,
        total_hours=summary.total_hours,
        standard_hours=summary.standard_hours,
        overtime_hours=summary.overtime_hours,
        overtime_pay=overtime_pay,
        basic_wage=resolved.basic,
        gross_wage=gross_wage,
        pf_employee=pf_employee,
        pf_employer=pf_employer,
        professional_tax=professional_tax,
        total_deductions=total_deductions,
        net_wage=net_wage,
        employee_cost=employee_cost,
        components=lines,
    )
