"""
Component Resolver

Evaluates each salary component's formula into a concrete amount for the
period. Amounts are rounded once here and never re-rounded downstream.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from payroll_engine.core.exceptions import MissingBasicComponentError
from payroll_engine.models.salary_structure import ComputationType
from payroll_engine.schemas.salary import SalaryComponentSchema
from payroll_engine.utils.money import ZERO, percent_of, round_money

BASIC_COMPONENT_NAME = "Basic"


def is_basic(name: str) -> bool:
    return name.strip().lower() == BASIC_COMPONENT_NAME.lower()


@dataclass(frozen=True)
class ResolvedComponent:
    name: str
    computation_type: ComputationType
    value: Decimal
    order: int
    amount: Decimal


@dataclass
class ResolvedComponents:
    items: List[ResolvedComponent] = field(default_factory=list)
    amounts: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def basic(self) -> Decimal:
        for name, amount in self.amounts.items():
            if is_basic(name):
                return amount
        return ZERO

    @property
    def total(self) -> Decimal:
        return sum((c.amount for c in self.items), ZERO)


def calculate_component_amount(
    component: SalaryComponentSchema,
    wage_base: Decimal,
    basic_amount: Optional[Decimal],
    employee_id: Optional[str] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
) -> Decimal:
    computation_type = ComputationType(component.computation_type)
    if computation_type == ComputationType.FIXED_AMOUNT:
        return round_money(component.value)
    if computation_type == ComputationType.PERCENTAGE_OF_WAGE:
        return percent_of(wage_base, component.value)
    if basic_amount is None:
        raise MissingBasicComponentError(component.name, employee_id, period_start, period_end)
    return percent_of(basic_amount, component.value)


def resolve_components(
    components: Iterable[SalaryComponentSchema],
    wage_base: Decimal,
    *,
    resolved: Optional[Mapping[str, Decimal]] = None,
    employee_id: Optional[str] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
) -> ResolvedComponents:
    """
    Resolve components in `order` (ties keep their declared position).

    Args:
        components: Salary components of the structure
        wage_base: Monthly wage, or hourly rate x hours worked (unrounded)
        resolved: Amounts already resolved elsewhere, keyed by component name

    Raises:
        MissingBasicComponentError: A PERCENTAGE_OF_BASIC component comes before
            (or without) the Basic component
    """
    result = ResolvedComponents(amounts=dict(resolved or {}))
    basic_amount = next((v for k, v in result.amounts.items() if is_basic(k)), None)

    for component in sorted(components, key=lambda c: c.order):
        amount = calculate_component_amount(
            component, wage_base, basic_amount, employee_id, period_start, period_end
        )
        if is_basic(component.name):
            basic_amount = amount
        result.items.append(ResolvedComponent(
            name=component.name,
            computation_type=ComputationType(component.computation_type),
            value=component.value,
            order=component.order,
            amount=amount,
        ))
        result.amounts[component.name] = amount

    return result
