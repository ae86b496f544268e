from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, Boolean, ForeignKey, Index, event, inspect, select, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payroll_engine.database import Base
from payroll_engine.core.exceptions import PayslipImmutableError
import enum

class PayslipStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    DONE = "DONE"
    CANCELLED = "CANCELLED"

# Columns frozen once a payslip leaves DRAFT
FINANCIAL_FIELDS = (
    "period_start", "period_end", "working_days", "worked_days", "paid_leave_days",
    "unpaid_leave_days", "total_hours", "standard_hours", "overtime_hours", "overtime_pay",
    "basic_wage", "gross_wage", "pf_employee", "pf_employer", "professional_tax",
    "total_deductions", "net_wage", "employee_cost",
)

class Payslip(Base):
    __tablename__ = "payslips"
    __table_args__ = (
        # One live payslip per employee and period; cancelled ones stay for audit
        Index(
            "uq_payslip_active_period",
            "employee_id", "period_start", "period_end",
            unique=True,
            sqlite_where=text("status != 'CANCELLED'"),
            postgresql_where=text("status != 'CANCELLED'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True, nullable=False)
    pay_period = Column(String)  # e.g. "Oct 2025"
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    working_days = Column(Integer, default=0)
    worked_days = Column(Numeric(5, 1), default=0)
    paid_leave_days = Column(Numeric(5, 1), default=0)
    unpaid_leave_days = Column(Numeric(5, 1), default=0)
    total_hours = Column(Numeric(8, 2), default=0)
    standard_hours = Column(Numeric(8, 2), default=0)
    overtime_hours = Column(Numeric(8, 2), default=0)
    overtime_pay = Column(Numeric(12, 2), default=0)
    basic_wage = Column(Numeric(12, 2), default=0)
    gross_wage = Column(Numeric(12, 2), default=0)
    pf_employee = Column(Numeric(12, 2), default=0)
    pf_employer = Column(Numeric(12, 2), default=0)
    professional_tax = Column(Numeric(12, 2), default=0)
    total_deductions = Column(Numeric(12, 2), default=0)
    net_wage = Column(Numeric(12, 2), default=0)
    employee_cost = Column(Numeric(12, 2), default=0)
    status = Column(String, default=PayslipStatus.DRAFT.value, index=True)
    validated_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    components = relationship(
        "PayslipComponent",
        back_populates="payslip",
        cascade="all, delete-orphan",
        order_by="PayslipComponent.order",
    )

class PayslipComponent(Base):
    __tablename__ = "payslip_components"

    id = Column(Integer, primary_key=True, index=True)
    payslip_id = Column(Integer, ForeignKey("payslips.id", ondelete="CASCADE"))
    name = Column(String, nullable=False)
    rate_percent = Column(Numeric(7, 2), default=0)  # Share of gross wage
    amount = Column(Numeric(12, 2), nullable=False)
    is_deduction = Column(Boolean, default=False)
    order = Column(Integer, default=0)

    payslip = relationship("Payslip", back_populates="components")


@event.listens_for(Payslip, "before_update")
def _freeze_finalized_payslip(mapper, connection, target):
    state = inspect(target)
    status_history = state.attrs.status.history
    previous = status_history.deleted[0] if status_history.deleted else target.status
    if previous == PayslipStatus.DRAFT.value:
        return
    for field in FINANCIAL_FIELDS:
        if state.attrs[field].history.has_changes():
            raise PayslipImmutableError(target.id, previous)


def _guard_component(connection, target):
    if target.payslip_id is None:
        return
    status = connection.execute(
        select(Payslip.status).where(Payslip.id == target.payslip_id)
    ).scalar()
    if status is not None and status != PayslipStatus.DRAFT.value:
        raise PayslipImmutableError(target.payslip_id, status)


@event.listens_for(PayslipComponent, "before_insert")
def _freeze_component_insert(mapper, connection, target):
    _guard_component(connection, target)


@event.listens_for(PayslipComponent, "before_update")
def _freeze_component_update(mapper, connection, target):
    _guard_component(connection, target)


@event.listens_for(PayslipComponent, "before_delete")
def _freeze_component_delete(mapper, connection, target):
    _guard_component(connection, target)
