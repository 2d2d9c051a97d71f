"""
Rent Repository
Handles database operations for monthly_rents table
"""

from datetime import date
from typing import Optional, List, Set, Dict, Any

from core.repositories.obligation_repository import ObligationRepository
from core.models.entities import RentObligation, PaymentStatus
from utils.helpers import DateUtils

class RentRepository(ObligationRepository):
    """Repository for monthly_rents table operations"""

    sequence_column = 'rent_month'

    def __init__(self, db=None):
        super().__init__('monthly_rents', 'rent_id', db=db)

    def existing_rent_months(self, customer_id: int) -> Set[date]:
        query = f"SELECT rent_month FROM {self.table_name} WHERE customer_id = %s"
        rows = self.db.execute_query(query, (customer_id,), fetch_all=True)
        return {DateUtils.as_date(row['rent_month']) for row in rows or []}

    def latest_rent_month(self, customer_id: int) -> Optional[date]:
        """Most recent month covered by a rent obligation"""
        query = f"SELECT MAX(rent_month) AS latest FROM {self.table_name} WHERE customer_id = %s"
        row = self.db.execute_query(query, (customer_id,), fetch_one=True)
        return DateUtils.as_date(row['latest']) if row else None

    def find_for_month(self, month_start: date) -> List[RentObligation]:
        """Rents billed for the month starting at month_start"""
        query = f"SELECT * FROM {self.table_name} WHERE rent_month = %s ORDER BY customer_id ASC"
        rows = self.db.execute_query(query, (month_start,), fetch_all=True)
        return [self._dict_to_obligation(row) for row in rows or []]

    def _obligation_to_dict(self, rent: RentObligation) -> Dict[str, Any]:
        return {
            'customer_id': rent.customer_id,
            'rent_month': rent.rent_month,
            'amount': rent.amount,
            'due_date': rent.due_date,
            'paid_amount': rent.paid_amount,
            'remaining_amount': rent.remaining_amount,
            'payment_status': rent.payment_status.value,
            'is_prorated': rent.is_prorated,
            'prorated_days': rent.prorated_days,
        }

    def _dict_to_obligation(self, rent_data: dict) -> RentObligation:
        """Convert dictionary to RentObligation object"""
        return RentObligation(
            rent_id=rent_data['rent_id'],
            customer_id=rent_data['customer_id'],
            rent_month=DateUtils.as_date(rent_data['rent_month']),
            amount=rent_data['amount'],
            due_date=DateUtils.as_date(rent_data['due_date']),
            paid_amount=rent_data['paid_amount'],
            remaining_amount=rent_data['remaining_amount'],
            payment_status=PaymentStatus(rent_data['payment_status']),
            is_prorated=bool(rent_data.get('is_prorated')),
            prorated_days=rent_data.get('prorated_days'),
            created_at=rent_data.get('created_at'),
            updated_at=rent_data.get('updated_at'),
        )
