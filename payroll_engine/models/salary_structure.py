from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payroll_engine.database import Base
import enum

class WageType(str, enum.Enum):
    FIXED = "FIXED"
    HOURLY = "HOURLY"

class ComputationType(str, enum.Enum):
    FIXED_AMOUNT = "FIXED_AMOUNT"
    PERCENTAGE_OF_WAGE = "PERCENTAGE_OF_WAGE"
    PERCENTAGE_OF_BASIC = "PERCENTAGE_OF_BASIC"

class SalaryStructure(Base):
    __tablename__ = "salary_structures"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String, index=True, nullable=False)
    wage_type = Column(String, default=WageType.FIXED.value)  # Store enum value as string
    wage = Column(Numeric(12, 2), nullable=False)  # Monthly wage, or rate per hour when HOURLY
    pf_rate = Column(Numeric(5, 2), default=12)
    professional_tax = Column(Numeric(12, 2), default=0)
    overtime_enabled = Column(Boolean, default=False)
    standard_work_hours_per_day = Column(Integer, nullable=True)
    standard_work_days_per_month = Column(Integer, nullable=True)
    overtime_rate = Column(Numeric(12, 2), nullable=True)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    components = relationship(
        "SalaryComponent",
        back_populates="structure",
        cascade="all, delete-orphan",
        order_by="SalaryComponent.order",
    )

class SalaryComponent(Base):
    __tablename__ = "salary_components"

    id = Column(Integer, primary_key=True, index=True)
    structure_id = Column(Integer, ForeignKey("salary_structures.id", ondelete="CASCADE"))
    name = Column(String, nullable=False)
    computation_type = Column(String, nullable=False)
    value = Column(Numeric(12, 2), default=0)  # Percentage, or absolute amount for FIXED_AMOUNT
    order = Column(Integer, default=0)
    description = Column(String, nullable=True)

    structure = relationship("SalaryStructure", back_populates="components")
