"""
Leave request state machine.

PENDING  -> APPROVED | REJECTED   (approver required, decision time in approved_at)
PENDING  -> CANCELLED             (withdrawn by the requester)
APPROVED -> CANCELLED             (retroactive void, balance restored)

REJECTED and CANCELLED are terminal. Status changes are compare-and-set
writes committed together with the balance update they trigger.
"""

import enum
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from payroll_engine.core.exceptions import InsufficientLeaveBalanceError, InvalidTransitionError, NotFoundError
from payroll_engine.models.leave_request import BALANCE_LEAVE_TYPES, LeaveRequest, LeaveStatus, LeaveType
from payroll_engine.services.base import compare_and_set_status, run_with_retry
from payroll_engine.services.leave_balance import LeaveBalanceLedger, SqlLeaveBalanceLedger, get_balance
from payroll_engine.utils.dates import inclusive_days
from payroll_engine.utils.money import to_decimal

logger = logging.getLogger(__name__)


class LeaveAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


LEAVE_TRANSITIONS: Dict[Tuple[LeaveStatus, LeaveAction], LeaveStatus] = {
    (LeaveStatus.PENDING, LeaveAction.APPROVE): LeaveStatus.APPROVED,
    (LeaveStatus.PENDING, LeaveAction.REJECT): LeaveStatus.REJECTED,
    (LeaveStatus.PENDING, LeaveAction.CANCEL): LeaveStatus.CANCELLED,
    (LeaveStatus.APPROVED, LeaveAction.CANCEL): LeaveStatus.CANCELLED,
}

DECISION_ACTIONS = {
    LeaveStatus.APPROVED: LeaveAction.APPROVE,
    LeaveStatus.REJECTED: LeaveAction.REJECT,
}


def next_leave_status(current: LeaveStatus, action: LeaveAction, leave_id: Optional[int] = None) -> LeaveStatus:
    target = LEAVE_TRANSITIONS.get((LeaveStatus(current), LeaveAction(action)))
    if target is None:
        raise InvalidTransitionError("Leave", leave_id, LeaveStatus(current).value, LeaveAction(action).value)
    return target


def _get_leave(db: Session, leave_id: int) -> LeaveRequest:
    leave = db.query(LeaveRequest).filter(LeaveRequest.id == leave_id).first()
    if not leave:
        raise NotFoundError("Leave", leave_id)
    return leave


def apply_leave(
    db: Session,
    employee_id: str,
    leave_type: str,
    start_date: date,
    end_date: date,
    *,
    total_days: Optional[Decimal] = None,
    subject: Optional[str] = None,
    description: Optional[str] = None
) -> LeaveRequest:
    """
    Submit a leave request in PENDING status.

    total_days defaults to the calendar days from start to end, both included.
    Paid leave types need enough remaining balance for the year the leave starts in.
    """
    if end_date < start_date:
        raise ValueError(f"end_date {end_date} is before start_date {start_date}")
    leave_type = LeaveType(leave_type).value
    days = to_decimal(total_days) if total_days is not None else Decimal(inclusive_days(start_date, end_date))

    if leave_type in BALANCE_LEAVE_TYPES:
        balance = get_balance(db, employee_id, leave_type, start_date.year)
        available = to_decimal(balance.remaining_days) if balance else Decimal("0")
        if available < days:
            raise InsufficientLeaveBalanceError(employee_id, leave_type, available, days)

    leave = LeaveRequest(
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=days,
        subject=subject,
        description=description,
        status=LeaveStatus.PENDING.value
    )
    db.add(leave)
    try:
        db.commit()
        db.refresh(leave)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Leave {leave.id} submitted by employee {employee_id}: {leave_type} x {days}")
    return leave


def decide_leave(
    db: Session,
    leave_id: int,
    decision: LeaveStatus,
    approver_id: str,
    *,
    reason: Optional[str] = None,
    ledger: Optional[LeaveBalanceLedger] = None
) -> LeaveRequest:
    """
    Approve or reject a pending leave.

    Approval of a paid leave type consumes balance in the same transaction.

    Raises:
        ValueError: decision is not APPROVED/REJECTED, or no approver given
        InvalidTransitionError: The leave is not PENDING
        ConcurrentModificationError: Another decision landed first
    """
    decision = LeaveStatus(decision)
    if decision not in DECISION_ACTIONS:
        raise ValueError(f"Decision must be APPROVED or REJECTED, got {decision.value}")
    if not approver_id:
        raise ValueError("An approver is required to decide a leave request")

    leave = _get_leave(db, leave_id)
    current = LeaveStatus(leave.status)
    try:
        target = next_leave_status(current, DECISION_ACTIONS[decision], leave_id)
    except InvalidTransitionError:
        logger.warning(f"Rejected decision on leave {leave_id}: already {current.value}")
        raise

    ledger = ledger or SqlLeaveBalanceLedger(db)
    employee_id = leave.employee_id
    leave_type = leave.leave_type
    total_days = to_decimal(leave.total_days)
    year = leave.start_date.year
    decided_at = datetime.now(timezone.utc)

    def _decide():
        values = {"approved_by": approver_id, "approved_at": decided_at}
        if target == LeaveStatus.REJECTED:
            values["rejection_reason"] = reason
        compare_and_set_status(db, LeaveRequest, leave_id, current.value, target.value, **values)
        if target == LeaveStatus.APPROVED:
            ledger.on_leave_approved(employee_id, leave_type, total_days, year)

    run_with_retry(db, _decide, "Leave", leave_id)
    db.refresh(leave)
    logger.info(f"Leave {leave_id}: {current.value} -> {target.value} by {approver_id}")
    return leave


def cancel_leave(
    db: Session,
    leave_id: int,
    *,
    ledger: Optional[LeaveBalanceLedger] = None
) -> LeaveRequest:
    """
    Withdraw a pending leave or void an approved one.

    Voiding an approved leave hands its days back through
    `ledger.on_leave_cancelled` in the same transaction.
    """
    leave = _get_leave(db, leave_id)
    current = LeaveStatus(leave.status)
    try:
        target = next_leave_status(current, LeaveAction.CANCEL, leave_id)
    except InvalidTransitionError:
        logger.warning(f"Rejected cancellation of leave {leave_id} in status {current.value}")
        raise

    ledger = ledger or SqlLeaveBalanceLedger(db)
    employee_id = leave.employee_id
    leave_type = leave.leave_type
    total_days = to_decimal(leave.total_days)
    year = leave.start_date.year
    cancelled_at = datetime.now(timezone.utc)

    def _cancel():
        compare_and_set_status(db, LeaveRequest, leave_id, current.value, target.value, cancelled_at=cancelled_at)
        if current == LeaveStatus.APPROVED:
            ledger.on_leave_cancelled(employee_id, leave_type, total_days, year)

    run_with_retry(db, _cancel, "Leave", leave_id)
    db.refresh(leave)
    logger.info(f"Leave {leave_id}: {current.value} -> {target.value}")
    return leave
