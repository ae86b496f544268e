import os
import json
import logging
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


class TaxSlab(BaseModel):
    # up_to=None marks the open-ended top slab
    up_to: Optional[Decimal] = None
    amount: Decimal


def _load_slabs() -> List[TaxSlab]:
    raw = os.getenv("PROFESSIONAL_TAX_SLABS", "").strip()
    if not raw:
        return []
    return [TaxSlab(**slab) for slab in json.loads(raw)]


class Config(BaseModel):
    app_name: str = "Payroll Engine"
    environment: str = os.getenv("APP_ENV", "development")
    version: str = "1.0.0"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./payroll.db")

    # Attendance
    attendance_absence_as_default: bool = Field(
        default=os.getenv("ATTENDANCE_ABSENCE_AS_DEFAULT", "false").lower() == "true"
    )
    half_day_weight: Decimal = Decimal(os.getenv("HALF_DAY_WEIGHT", "0.5"))

    # Deductions
    professional_tax_mode: str = os.getenv("PROFESSIONAL_TAX_MODE", "flat").lower()
    professional_tax_slabs: List[TaxSlab] = Field(default_factory=_load_slabs)

    # Leave balances
    balance_retry_attempts: int = int(os.getenv("BALANCE_RETRY_ATTEMPTS", "3"))


settings = Config()

# --- Startup Validation ---
_logger = logging.getLogger(__name__)
if settings.professional_tax_mode not in ("flat", "slab"):
    raise RuntimeError(
        f"FATAL: PROFESSIONAL_TAX_MODE must be 'flat' or 'slab', got '{settings.professional_tax_mode}'."
    )
if settings.professional_tax_mode == "slab" and not settings.professional_tax_slabs:
    if settings.environment != "development":
        raise RuntimeError(
            "FATAL: PROFESSIONAL_TAX_MODE=slab requires PROFESSIONAL_TAX_SLABS to be set for non-development environments."
        )
    _logger.warning("⚠ Slab professional tax selected without slabs; every period will be taxed 0.")
