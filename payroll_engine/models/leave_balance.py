from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, UniqueConstraint
from payroll_engine.database import Base

class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type", "year", name="uq_leave_balance_employee_type_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True)
    leave_type = Column(String, index=True)  # PAID_TIME_OFF or SICK_LEAVE
    total_days = Column(Numeric(5, 1), default=0)
    used_days = Column(Numeric(5, 1), default=0)
    remaining_days = Column(Numeric(5, 1), default=0)
    year = Column(Integer, index=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def adjust_used(self, delta: Decimal) -> None:
        """Move `delta` days into (or, when negative, out of) used_days, keeping remaining in step."""
        used = Decimal(self.used_days or 0) + delta
        if used < 0:
            raise ValueError(f"Leave balance {self.id} cannot give back more than its {self.used_days} used days")
        self.used_days = used
        self.remaining_days = Decimal(self.total_days or 0) - self.used_days

    def set_total(self, total_days: Decimal) -> None:
        self.total_days = total_days
        self.remaining_days = Decimal(total_days) - Decimal(self.used_days or 0)
