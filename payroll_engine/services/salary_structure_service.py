import logging
from typing import List

from sqlalchemy.orm import Session

from payroll_engine.models.salary_structure import SalaryStructure, SalaryComponent
from payroll_engine.schemas.salary import SalaryStructureSchema
from payroll_engine.services.payroll_calculator import validate_structure

logger = logging.getLogger(__name__)


def create_with_components(
    db: Session,
    employee_id: str,
    structure: SalaryStructureSchema
) -> SalaryStructure:
    """
    Create a salary structure together with its components in one transaction.

    The employee's previously active structure is deactivated in the same
    transaction, so exactly one structure stays active.

    Raises:
        NegativeWageError / InvalidOvertimeConfigError: The structure is unusable for payroll
    """
    validate_structure(structure, employee_id)

    try:
        db.query(SalaryStructure).filter(
            SalaryStructure.employee_id == employee_id,
            SalaryStructure.is_active.is_(True)
        ).update({"is_active": False}, synchronize_session=False)

        record = SalaryStructure(
            employee_id=employee_id,
            wage_type=structure.wage_type.value,
            wage=structure.wage,
            pf_rate=structure.pf_rate,
            professional_tax=structure.professional_tax,
            overtime_enabled=structure.overtime_enabled,
            standard_work_hours_per_day=structure.standard_work_hours_per_day,
            standard_work_days_per_month=structure.standard_work_days_per_month,
            overtime_rate=structure.overtime_rate,
            is_active=True,
            components=[
                SalaryComponent(
                    name=c.name,
                    computation_type=c.computation_type.value,
                    value=c.value,
                    order=c.order,
                    description=c.description
                )
                for c in structure.components
            ]
        )
        db.add(record)
        db.commit()
        db.refresh(record)
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Salary structure {record.id} created for employee {employee_id} "
        f"({record.wage_type}, {len(record.components)} components)"
    )
    return record


def list_employees_with_structure(db: Session) -> List[str]:
    rows = db.query(SalaryStructure.employee_id).filter(
        SalaryStructure.is_active.is_(True)
    ).distinct().order_by(SalaryStructure.employee_id.asc()).all()
    return [r[0] for r in rows]
