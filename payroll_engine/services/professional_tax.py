from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Sequence

from payroll_engine.core.config import Config, TaxSlab
from payroll_engine.schemas.salary import SalaryStructureSchema
from payroll_engine.utils.money import ZERO, round_money


class ProfessionalTaxStrategy(ABC):
    """Decides the professional tax withheld for one period."""

    @abstractmethod
    def amount_for(self, structure: SalaryStructureSchema, gross_wage: Decimal) -> Decimal:
        ...


class FlatProfessionalTax(ProfessionalTaxStrategy):
    """The structure's flat amount, waived for a period with no earnings."""

    def amount_for(self, structure: SalaryStructureSchema, gross_wage: Decimal) -> Decimal:
        if gross_wage <= ZERO:
            return ZERO
        return round_money(structure.professional_tax)


class SlabProfessionalTax(ProfessionalTaxStrategy):
    def __init__(self, slabs: Sequence[TaxSlab]):
        # Bounded slabs ascending, the open-ended slab last
        self.slabs: List[TaxSlab] = sorted(
            slabs, key=lambda s: (s.up_to is None, s.up_to or ZERO)
        )

    def amount_for(self, structure: SalaryStructureSchema, gross_wage: Decimal) -> Decimal:
        if gross_wage <= ZERO:
            return ZERO
        for slab in self.slabs:
            if slab.up_to is None or gross_wage <= slab.up_to:
                return round_money(slab.amount)
        return ZERO


def tax_strategy_from_settings(config: Config) -> ProfessionalTaxStrategy:
    if config.professional_tax_mode == "slab":
        return SlabProfessionalTax(config.professional_tax_slabs)
    return FlatProfessionalTax()
