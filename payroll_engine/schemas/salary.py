from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from payroll_engine.models.salary_structure import WageType, ComputationType


class SalaryComponentSchema(BaseModel):
    name: str
    computation_type: ComputationType
    value: Decimal = Decimal("0")
    order: int = 0
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class SalaryStructureSchema(BaseModel):
    """Immutable snapshot of an employee's salary structure, as fed to the calculator."""
    employee_id: Optional[str] = None
    wage_type: WageType = WageType.FIXED
    wage: Decimal
    pf_rate: Decimal = Decimal("12")
    professional_tax: Decimal = Decimal("0")
    overtime_enabled: bool = False
    standard_work_hours_per_day: Optional[int] = None
    standard_work_days_per_month: Optional[int] = None
    overtime_rate: Optional[Decimal] = None
    components: List[SalaryComponentSchema] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True, frozen=True)


# Resolve forward references for Pydantic V2
SalaryStructureSchema.model_rebuild()
