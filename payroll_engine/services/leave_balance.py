"""
Leave balance ledger.

Balances are the only shared mutable state around payroll. Every mutation
locks the balance row (`SELECT ... FOR UPDATE` where the backend supports it)
and is version-checked through the `version` column, so a racing writer makes
the flush fail with StaleDataError and the caller's unit of work is retried.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from payroll_engine.core.exceptions import InsufficientLeaveBalanceError
from payroll_engine.models.leave_balance import LeaveBalance
from payroll_engine.models.leave_request import BALANCE_LEAVE_TYPES, LeaveType
from payroll_engine.schemas.leave import LeaveBalanceSchema
from payroll_engine.services.base import run_with_retry
from payroll_engine.utils.money import to_decimal

logger = logging.getLogger(__name__)


class LeaveBalanceLedger(ABC):
    """Collaborator notified when leave consumes or gives back balance."""

    @abstractmethod
    def on_leave_approved(self, employee_id: str, leave_type: str, total_days: Decimal, year: int) -> None:
        ...

    @abstractmethod
    def on_leave_cancelled(self, employee_id: str, leave_type: str, total_days: Decimal, year: int) -> None:
        """Restore `total_days` of an approved leave that has been voided."""
        ...


def get_balance(db: Session, employee_id: str, leave_type: str, year: int, *, for_update: bool = False) -> Optional[LeaveBalance]:
    query = db.query(LeaveBalance).filter(
        LeaveBalance.employee_id == employee_id,
        LeaveBalance.leave_type == LeaveType(leave_type).value,
        LeaveBalance.year == year
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


class SqlLeaveBalanceLedger(LeaveBalanceLedger):
    """
    Applies balance changes inside the caller's session; the caller commits.
    """

    def __init__(self, db: Session):
        self.db = db

    def on_leave_approved(self, employee_id: str, leave_type: str, total_days: Decimal, year: int) -> None:
        if LeaveType(leave_type).value not in BALANCE_LEAVE_TYPES:
            return
        days = to_decimal(total_days)
        balance = get_balance(self.db, employee_id, leave_type, year, for_update=True)
        if balance is None:
            logger.warning(f"No {leave_type} balance for employee {employee_id} in {year}; approval refused")
            raise InsufficientLeaveBalanceError(employee_id, leave_type, Decimal("0"), days)
        if to_decimal(balance.remaining_days) < days:
            raise InsufficientLeaveBalanceError(employee_id, leave_type, balance.remaining_days, days)
        balance.adjust_used(days)
        self.db.flush()

    def on_leave_cancelled(self, employee_id: str, leave_type: str, total_days: Decimal, year: int) -> None:
        if LeaveType(leave_type).value not in BALANCE_LEAVE_TYPES:
            return
        balance = get_balance(self.db, employee_id, leave_type, year, for_update=True)
        if balance is None:
            logger.warning(f"No {leave_type} balance for employee {employee_id} in {year}; nothing restored")
            return
        balance.adjust_used(-to_decimal(total_days))
        self.db.flush()


def allocate_leave_balance(
    db: Session,
    employee_id: str,
    leave_type: str,
    total_days: Decimal,
    year: int
) -> LeaveBalance:
    """
    Create or resize an employee's yearly allocation for a paid leave type.

    Raises:
        ValueError: The leave type carries no balance, the total is negative, or it is below the days already used
    """
    leave_type = LeaveType(leave_type).value
    if leave_type not in BALANCE_LEAVE_TYPES:
        raise ValueError(f"{leave_type} does not carry a balance")
    total_days = to_decimal(total_days)
    if total_days < 0:
        raise ValueError(f"Cannot allocate a negative number of days ({total_days})")

    def _allocate() -> LeaveBalance:
        balance = get_balance(db, employee_id, leave_type, year, for_update=True)
        if balance is None:
            balance = LeaveBalance(
                employee_id=employee_id,
                leave_type=leave_type,
                total_days=total_days,
                used_days=Decimal("0"),
                remaining_days=total_days,
                year=year
            )
            db.add(balance)
        else:
            if total_days < to_decimal(balance.used_days):
                raise ValueError(
                    f"Cannot allocate {total_days} days: {balance.used_days} already used"
                )
            balance.set_total(total_days)
        db.flush()
        return balance

    balance = run_with_retry(db, _allocate, "LeaveBalance", f"{employee_id}/{leave_type}/{year}")
    db.refresh(balance)
    logger.info(f"Allocated {total_days} {leave_type} days to employee {employee_id} for {year}")
    return balance


def get_leave_balances(db: Session, employee_id: str, year: int) -> List[LeaveBalanceSchema]:
    """All of an employee's balances for a year, by leave type."""
    balances = db.query(LeaveBalance).filter(
        LeaveBalance.employee_id == employee_id,
        LeaveBalance.year == year
    ).order_by(LeaveBalance.leave_type.asc()).all()
    return [LeaveBalanceSchema.model_validate(b) for b in balances]
