"""
EMI Repository
Handles database operations for emis table
"""

from datetime import date
from typing import List, Set, Dict, Any

from core.repositories.obligation_repository import ObligationRepository
from core.models.entities import EMIObligation, PaymentStatus
from utils.helpers import DateUtils

class EMIRepository(ObligationRepository):
    """Repository for emis table operations"""

    sequence_column = 'emi_number'

    def __init__(self, db=None):
        super().__init__('emis', 'emi_id', db=db)

    def existing_emi_numbers(self, customer_id: int) -> Set[int]:
        """Installment numbers already scheduled for a customer"""
        query = f"SELECT emi_number FROM {self.table_name} WHERE customer_id = %s"
        rows = self.db.execute_query(query, (customer_id,), fetch_all=True)
        return {row['emi_number'] for row in rows or []}

    def find_due_in_month(self, month_start: date) -> List[EMIObligation]:
        """EMIs whose due date falls in the month starting at month_start"""
        query = f"""
            SELECT * FROM {self.table_name}
            WHERE due_date >= %s AND due_date < %s
            ORDER BY due_date ASC
        """
        next_month = DateUtils.add_months(month_start, 1)
        rows = self.db.execute_query(query, (month_start, next_month), fetch_all=True)
        return [self._dict_to_obligation(row) for row in rows or []]

    def _obligation_to_dict(self, emi: EMIObligation) -> Dict[str, Any]:
        return {
            'customer_id': emi.customer_id,
            'emi_number': emi.emi_number,
            'total_emi_count': emi.total_emi_count,
            'amount': emi.amount,
            'due_date': emi.due_date,
            'paid_amount': emi.paid_amount,
            'remaining_amount': emi.remaining_amount,
            'payment_status': emi.payment_status.value,
        }

    def _dict_to_obligation(self, emi_data: dict) -> EMIObligation:
        """Convert dictionary to EMIObligation object"""
        return EMIObligation(
            emi_id=emi_data['emi_id'],
            customer_id=emi_data['customer_id'],
            emi_number=emi_data['emi_number'],
            total_emi_count=emi_data['total_emi_count'],
            amount=emi_data['amount'],
            due_date=DateUtils.as_date(emi_data['due_date']),
            paid_amount=emi_data['paid_amount'],
            remaining_amount=emi_data['remaining_amount'],
            payment_status=PaymentStatus(emi_data['payment_status']),
            created_at=emi_data.get('created_at'),
            updated_at=emi_data.get('updated_at'),
        )
