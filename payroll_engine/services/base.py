import logging
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from payroll_engine.core.config import settings
from payroll_engine.core.exceptions import ConcurrentModificationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compare_and_set_status(db: Session, model: Any, entity_id: int, expected: str, new_status: str, **values: Any) -> None:
    """
    Atomically move `entity_id` from `expected` to `new_status`.

    Issues `UPDATE ... WHERE id = :id AND status = :expected`; if another writer
    changed the status first no row matches and the update is refused.

    Raises:
        ConcurrentModificationError: The stored status no longer equals `expected`
    """
    rows = (
        db.query(model)
        .filter(model.id == entity_id, model.status == expected)
        .update({"status": new_status, **values}, synchronize_session=False)
    )
    if rows != 1:
        raise ConcurrentModificationError(model.__name__, entity_id, expected)


def run_with_retry(
    db: Session,
    unit_of_work: Callable[[], T],
    entity: str,
    entity_id: Any,
    attempts: Optional[int] = None,
) -> T:
    """
    Run and commit `unit_of_work`, retrying when an optimistic version check fails.

    The unit of work must be safe to re-run: every attempt starts from a clean
    rollback.
    """
    attempts = attempts or settings.balance_retry_attempts
    for attempt in range(1, attempts + 1):
        try:
            result = unit_of_work()
            db.commit()
            return result
        except StaleDataError:
            db.rollback()
            logger.warning(f"Version conflict on {entity} {entity_id} (attempt {attempt}/{attempts})")
        except Exception:
            db.rollback()
            raise
    raise ConcurrentModificationError(entity, entity_id)


class BaseService:
    def __init__(self, db: Session):
        self.db = db
        self._logger = logging.getLogger(self.__class__.__module__)

    def log_warning(self, message: str):
        self._logger.warning(message)

    def commit(self):
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
