"""
Credit Repository
Handles database operations for customer_credits table
"""

from decimal import Decimal

from core.repositories.base_repository import BaseRepository
from core.models.entities import CreditBalance, ZERO
from utils.exceptions import ValidationException

class CreditRepository(BaseRepository):
    """Repository for customer_credits table operations"""

    def __init__(self, db=None):
        super().__init__('customer_credits', 'customer_id', auto_increment=False, db=db)

    def get_credit(self, customer_id: int) -> CreditBalance:
        """Current credit of a customer (zero when no row exists yet)"""
        row = self.find_by_id(customer_id)
        if not row:
            return CreditBalance(customer_id=customer_id, credit_balance=ZERO)
        return self._dict_to_credit(row)

    def lock_credit(self, customer_id: int) -> CreditBalance:
        """Ensure the credit row exists and lock it for the current transaction"""
        self.create({'customer_id': customer_id, 'credit_balance': ZERO}, ignore_duplicates=True)
        return self._dict_to_credit(self.find_by_id(customer_id, for_update=True))

    def add_credit(self, customer_id: int, amount: Decimal, expected_balance: Decimal) -> bool:
        """Increase the balance if it still equals expected_balance"""
        if amount < 0:
            raise ValidationException("Credit adjustments from payments cannot be negative")

        query = f"""
            UPDATE {self.table_name}
            SET credit_balance = credit_balance + %s
            WHERE customer_id = %s AND credit_balance = %s
        """
        return self.db.execute_update(query, (amount, customer_id, expected_balance)) == 1

    def _dict_to_credit(self, credit_data: dict) -> CreditBalance:
        return CreditBalance(
            customer_id=credit_data['customer_id'],
            credit_balance=credit_data['credit_balance'],
            updated_at=credit_data.get('updated_at'),
        )
