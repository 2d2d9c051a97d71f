"""
Transaction Repository
Handles database operations for transactions table
"""

from typing import Optional, List

from core.repositories.base_repository import BaseRepository
from core.models.entities import Transaction, TransactionType, PaymentStatus
from utils.exceptions import ValidationException

class TransactionRepository(BaseRepository):
    """Repository for transactions table operations"""

    def __init__(self, db=None):
        super().__init__('transactions', 'transaction_id', db=db)

    def create_transaction(self, transaction: Transaction) -> int:
        """Create a new transaction"""
        if not transaction.customer_id or transaction.amount <= 0 or transaction.transaction_date is None:
            raise ValidationException("Customer ID, positive amount and transaction date are required")

        transaction_data = {
            'customer_id': transaction.customer_id,
            'transaction_type': transaction.transaction_type.value,
            'amount': transaction.amount,
            'transaction_date': transaction.transaction_date,
            'payment_status': transaction.payment_status.value,
            'remarks': transaction.remarks,
            'reference_number': transaction.reference_number,
        }

        return self.create(transaction_data)

    def find_transaction_by_id(self, transaction_id: int) -> Optional[Transaction]:
        """Find transaction by ID"""
        txn_data = self.find_by_id(transaction_id)
        if not txn_data:
            return None

        return self._dict_to_transaction(txn_data)

    def find_by_customer(self, customer_id: int, limit: int = 200) -> List[Transaction]:
        """Transactions of a customer, most recent first"""
        query = f"""
            SELECT * FROM {self.table_name}
            WHERE customer_id = %s
            ORDER BY transaction_date DESC, transaction_id DESC
            LIMIT %s
        """
        results = self.db.execute_query(query, (customer_id, limit), fetch_all=True)
        return [self._dict_to_transaction(txn_data) for txn_data in results or []]

    def _dict_to_transaction(self, txn_data: dict) -> Transaction:
        """Convert dictionary to Transaction object"""
        return Transaction(
            transaction_id=txn_data['transaction_id'],
            customer_id=txn_data['customer_id'],
            transaction_type=TransactionType(txn_data['transaction_type']),
            amount=txn_data['amount'],
            transaction_date=txn_data.get('transaction_date'),
            payment_status=PaymentStatus(txn_data['payment_status']),
            remarks=txn_data.get('remarks'),
            reference_number=txn_data.get('reference_number'),
            created_at=txn_data.get('created_at'),
        )
