"""
Ledger Repository
Handles database operations for payment_ledger table (append-only)
"""

from typing import List

from core.repositories.base_repository import BaseRepository
from core.models.entities import LedgerEntry, PaymentMode
from utils.exceptions import ValidationException
from utils.helpers import DateUtils

class LedgerRepository(BaseRepository):
    """Repository for payment_ledger table operations"""

    def __init__(self, db=None):
        super().__init__('payment_ledger', 'entry_id', db=db)

    def create_entry(self, entry: LedgerEntry) -> int:
        """Append a ledger entry"""
        if not entry.customer_id or entry.amount_paid <= 0 or entry.running_balance < 0:
            raise ValidationException("Ledger entry needs a customer, a positive amount and a non-negative balance")

        entry_data = {
            'customer_id': entry.customer_id,
            'payment_date': entry.payment_date,
            'payment_type': entry.payment_type,
            'payment_mode': entry.payment_mode.value,
            'amount_paid': entry.amount_paid,
            'running_balance': entry.running_balance,
            'reference_number': entry.reference_number,
            'remarks': entry.remarks,
        }

        return self.create(entry_data)

    def find_by_customer(self, customer_id: int, limit: int = 200) -> List[LedgerEntry]:
        """Ledger of a customer, most recent first"""
        query = f"""
            SELECT * FROM {self.table_name}
            WHERE customer_id = %s
            ORDER BY payment_date DESC, entry_id DESC
            LIMIT %s
        """
        results = self.db.execute_query(query, (customer_id, limit), fetch_all=True)
        return [self._dict_to_entry(row) for row in results or []]

    def _dict_to_entry(self, entry_data: dict) -> LedgerEntry:
        """Convert dictionary to LedgerEntry object"""
        return LedgerEntry(
            entry_id=entry_data['entry_id'],
            customer_id=entry_data['customer_id'],
            payment_date=DateUtils.as_date(entry_data['payment_date']),
            payment_type=entry_data['payment_type'],
            payment_mode=PaymentMode(entry_data['payment_mode']),
            amount_paid=entry_data['amount_paid'],
            running_balance=entry_data['running_balance'],
            reference_number=entry_data.get('reference_number'),
            remarks=entry_data.get('remarks'),
            created_at=entry_data.get('created_at'),
        )
