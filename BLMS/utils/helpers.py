"""
Helper Utilities
Common utility functions for billing operations
"""

import uuid
import calendar
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, date
from typing import Optional, Dict, Any, List
import logging

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

class NumberUtils:
    """Utility functions for number operations"""

    @staticmethod
    def round_currency(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places for currency"""
        return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)

    @staticmethod
    def split_installments(loan_amount: Decimal, count: int) -> List[Decimal]:
        """Split a loan into equal installments.

        Every installment is the rounded quotient except the last, which
        takes whatever is left so the installments add up to the loan.
        """
        installment = NumberUtils.round_currency(loan_amount / count)
        last = loan_amount - installment * (count - 1)
        return [installment] * (count - 1) + [last]

    @staticmethod
    def round_percentage(part: int, whole: int) -> int:
        """Whole-number percentage rounded half up"""
        if not whole:
            return 0
        ratio = Decimal(part) * 100 / Decimal(whole)
        return int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

class DateUtils:
    """Utility functions for date operations"""

    @staticmethod
    def add_months(start_date: date, months: int) -> date:
        """Add months to a date (clamped to month end)"""
        return start_date + relativedelta(months=months)

    @staticmethod
    def first_of_month(check_date: date) -> date:
        """First day of the month containing check_date"""
        return check_date.replace(day=1)

    @staticmethod
    def days_in_month(check_date: date) -> int:
        return calendar.monthrange(check_date.year, check_date.month)[1]

    @staticmethod
    def as_date(value) -> Optional[date]:
        """Normalize datetime/date values coming back from the driver"""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        return value

class StringUtils:
    """Utility functions for string operations"""

    @staticmethod
    def generate_reference_number(prefix: str = "PAY") -> str:
        """Generate unique reference number"""
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        unique_id = str(uuid.uuid4())[:8].upper()
        return f"{prefix}{timestamp}{unique_id}"

    @staticmethod
    def clean_string(text: str) -> str:
        """Clean and normalize string input"""
        if not text:
            return ""

        return " ".join(text.strip().split())

class LoggingUtils:
    """Logging utility functions"""

    @staticmethod
    def log_payment(event_type: str, customer_id: int, amount: Decimal,
                    user_id: int = None, details: Dict[str, Any] = None):
        """Log payment event for audit trail"""
        log_data = {
            'event_type': event_type,
            'customer_id': customer_id,
            'amount': str(amount),
            'user_id': user_id,
            'timestamp': datetime.now().isoformat(),
            'details': details or {}
        }

        logger.info(f"Payment: {event_type}", extra=log_data)

    @staticmethod
    def log_business_event(event_type: str, entity_type: str, entity_id: int,
                           user_id: int = None, details: Dict[str, Any] = None):
        """Log business events"""
        log_data = {
            'event_type': event_type,
            'entity_type': entity_type,
            'entity_id': entity_id,
            'user_id': user_id,
            'timestamp': datetime.now().isoformat(),
            'details': details or {}
        }

        logger.info(f"Business Event: {event_type}", extra=log_data)

    @staticmethod
    def log_failure(event_type: str, error: Exception, details: Dict[str, Any] = None):
        """Log a failed billing operation before it is reported to the caller"""
        log_data = {
            'event_type': event_type,
            'error_code': getattr(error, 'error_code', type(error).__name__),
            'timestamp': datetime.now().isoformat(),
            'details': details or {}
        }

        logger.warning(f"Billing Failure: {event_type}: {error}", extra=log_data)
