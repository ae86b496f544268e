"""
Payslip Lifecycle Manager

DRAFT -> DONE        (validate)
DRAFT -> CANCELLED   (cancel)
DONE  -> CANCELLED   (cancel)

Nothing leaves CANCELLED and nothing returns to DRAFT. Status changes are
compare-and-set writes, so two callers racing on the same payslip cannot both
succeed.
"""

import enum
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from payroll_engine.core.exceptions import InvalidTransitionError, NotFoundError
from payroll_engine.models.payslip import Payslip, PayslipStatus
from payroll_engine.services.base import BaseService, compare_and_set_status


class PayslipAction(str, enum.Enum):
    VALIDATE = "validate"
    CANCEL = "cancel"


PAYSLIP_TRANSITIONS: Dict[Tuple[PayslipStatus, PayslipAction], PayslipStatus] = {
    (PayslipStatus.DRAFT, PayslipAction.VALIDATE): PayslipStatus.DONE,
    (PayslipStatus.DRAFT, PayslipAction.CANCEL): PayslipStatus.CANCELLED,
    (PayslipStatus.DONE, PayslipAction.CANCEL): PayslipStatus.CANCELLED,
}


def next_payslip_status(current: PayslipStatus, action: PayslipAction, payslip_id: Optional[int] = None) -> PayslipStatus:
    target = PAYSLIP_TRANSITIONS.get((PayslipStatus(current), PayslipAction(action)))
    if target is None:
        raise InvalidTransitionError("Payslip", payslip_id, PayslipStatus(current).value, PayslipAction(action).value)
    return target


class PayslipLifecycleManager(BaseService):
    def validate(self, payslip_id: int) -> Payslip:
        """Mark a draft payslip DONE; its totals and lines are frozen from here on."""
        now = datetime.now(timezone.utc)
        return self._transition(payslip_id, PayslipAction.VALIDATE, validated_at=now, cancelled_at=None)

    def cancel(self, payslip_id: int) -> Payslip:
        """
        Cancel a DRAFT or DONE payslip.

        Totals are kept for audit; reporting skips cancelled payslips.
        validated_at is cleared so exactly one decision timestamp is set.
        """
        now = datetime.now(timezone.utc)
        return self._transition(payslip_id, PayslipAction.CANCEL, cancelled_at=now, validated_at=None)

    def _transition(self, payslip_id: int, action: PayslipAction, **stamps) -> Payslip:
        payslip = self.db.query(Payslip).filter(Payslip.id == payslip_id).first()
        if not payslip:
            raise NotFoundError("Payslip", payslip_id)

        current = PayslipStatus(payslip.status)
        try:
            target = next_payslip_status(current, action, payslip_id)
        except InvalidTransitionError:
            self.log_warning(f"Rejected {action.value} of payslip {payslip_id} in status {current.value}")
            raise

        try:
            compare_and_set_status(self.db, Payslip, payslip_id, current.value, target.value, **stamps)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(payslip)
        self._logger.info(f"Payslip {payslip_id}: {current.value} -> {target.value}")
        return payslip
