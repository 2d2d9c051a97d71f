"""
Billing Settings
Environment-driven knobs for scheduling and overdue reconciliation
"""

import os
from dataclasses import dataclass

from utils.exceptions import ValidationException


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class BillingSettings:
    """Billing configuration management"""
    rent_due_day: int = 5
    overdue_grace_days: int = 0
    prorate_first_rent: bool = True
    log_level: str = 'INFO'

    def __post_init__(self):
        if not 1 <= self.rent_due_day <= 28:
            raise ValidationException("Rent due day must be between 1 and 28")
        if self.overdue_grace_days < 0:
            raise ValidationException("Overdue grace days cannot be negative")

    @classmethod
    def from_env(cls) -> 'BillingSettings':
        """Build settings from BILLING_* environment variables"""
        return cls(
            rent_due_day=int(os.getenv('BILLING_RENT_DUE_DAY', 5)),
            overdue_grace_days=int(os.getenv('BILLING_OVERDUE_GRACE_DAYS', 0)),
            prorate_first_rent=_env_bool('BILLING_PRORATE_FIRST_RENT', True),
            log_level=os.getenv('BILLING_LOG_LEVEL', 'INFO').upper(),
        )
