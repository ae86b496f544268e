from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from payroll_engine.models.payslip import PayslipStatus


class PayslipLine(BaseModel):
    name: str
    rate_percent: Decimal
    amount: Decimal
    is_deduction: bool = False
    order: int

    model_config = ConfigDict(from_attributes=True, frozen=True)


class PayslipDraft(BaseModel):
    """Result of a payroll calculation, before it is persisted."""
    employee_id: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    working_days: int
    worked_days: Decimal
    paid_leave_days: Decimal
    unpaid_leave_days: Decimal
    total_hours: Decimal
    standard_hours: Decimal
    overtime_hours: Decimal
    overtime_pay: Decimal
    basic_wage: Decimal
    gross_wage: Decimal
    pf_employee: Decimal
    pf_employer: Decimal
    professional_tax: Decimal
    total_deductions: Decimal
    net_wage: Decimal
    employee_cost: Decimal
    components: List[PayslipLine] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def earnings(self) -> List[PayslipLine]:
        return [c for c in self.components if not c.is_deduction]

    @property
    def deductions(self) -> List[PayslipLine]:
        return [c for c in self.components if c.is_deduction]


class PayslipResponse(PayslipDraft):
    id: int
    pay_period: Optional[str] = None
    status: PayslipStatus
    validated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class PayrollSummary(BaseModel):
    total_payslips: int = 0
    total_employee_cost: Decimal = Decimal("0.00")
    total_basic_wage: Decimal = Decimal("0.00")
    total_gross_wage: Decimal = Decimal("0.00")
    total_net_wage: Decimal = Decimal("0.00")
    draft_count: int = 0
    done_count: int = 0


class PayrunError(BaseModel):
    employee_id: str
    error_code: str
    message: str


class PayrunResult(BaseModel):
    pay_period: str
    payslips: List[PayslipResponse] = Field(default_factory=list)
    errors: List[PayrunError] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.payslips)


PayslipDraft.model_rebuild()
PayslipResponse.model_rebuild()
PayrunResult.model_rebuild()
