"""
Obligation Repository
Shared database operations for the emis and monthly_rents tables
"""

from abc import abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Any, Iterable
import logging

from core.repositories.base_repository import BaseRepository
from utils.helpers import DateUtils
from core.models.entities import (
    Allocation, PaymentStatus, OUTSTANDING_STATUSES, OVERDUE_ELIGIBLE_STATUSES, ZERO
)

logger = logging.getLogger(__name__)

def _status_list(statuses: Iterable[PaymentStatus]) -> str:
    return ', '.join(f"'{s.value}'" for s in statuses)

class ObligationRepository(BaseRepository):
    """Base repository for money-owed rows (EMI installments and monthly rents)"""

    # Column that orders a customer's obligations (emi_number / rent_month)
    sequence_column = None

    @abstractmethod
    def _dict_to_obligation(self, row: dict):
        """Convert dictionary to obligation object"""

    @abstractmethod
    def _obligation_to_dict(self, obligation) -> Dict[str, Any]:
        """Convert obligation object to insertable columns"""

    def create_obligations(self, obligations: list) -> int:
        """Insert obligations, silently skipping ones that already exist.

        The table's unique key makes this duplicate-safe even when two
        schedulers race; the return value counts only new rows.
        """
        rows = [self._obligation_to_dict(o) for o in obligations]
        return self.create_many(rows, ignore_duplicates=True)

    def find_obligation_by_id(self, obligation_id: int):
        row = self.find_by_id(obligation_id)
        return self._dict_to_obligation(row) if row else None

    def find_by_customer(self, customer_id: int) -> list:
        """All obligations of a customer in schedule order"""
        rows = self.find_by_field('customer_id', customer_id, order_by=f"{self.sequence_column} ASC")
        return [self._dict_to_obligation(row) for row in rows]

    def find_outstanding(self, customer_id: int, for_update: bool = False) -> list:
        """Unpaid obligations of a customer (overdue, partial or due)"""
        query = f"""
            SELECT * FROM {self.table_name}
            WHERE customer_id = %s AND payment_status IN ({_status_list(OUTSTANDING_STATUSES)})
        """
        query += f" ORDER BY due_date ASC, {self.sequence_column} ASC"
        if for_update:
            query += " FOR UPDATE"
        rows = self.db.execute_query(query, (customer_id,), fetch_all=True)
        return [self._dict_to_obligation(row) for row in rows or []]

    def earliest_unpaid_due_date(self, customer_id: int) -> Optional[date]:
        query = f"""
            SELECT MIN(due_date) AS next_due FROM {self.table_name}
            WHERE customer_id = %s AND payment_status <> 'paid'
        """
        row = self.db.execute_query(query, (customer_id,), fetch_one=True)
        return DateUtils.as_date(row['next_due']) if row else None

    def month_totals(self, month_start: date) -> Dict[str, Decimal]:
        """Amount, collected and pending sums of obligations due within a month"""
        query = f"""
            SELECT COALESCE(SUM(amount), 0) AS total_amount,
                   COALESCE(SUM(paid_amount), 0) AS collected,
                   COALESCE(SUM(remaining_amount), 0) AS pending,
                   COUNT(*) AS count
            FROM {self.table_name} WHERE due_date >= %s AND due_date < %s
        """
        next_month = DateUtils.add_months(month_start, 1)
        row = self.db.execute_query(query, (month_start, next_month), fetch_one=True) or {}
        return {
            'total_amount': row.get('total_amount') or ZERO,
            'collected': row.get('collected') or ZERO,
            'pending': row.get('pending') or ZERO,
            'count': row.get('count') or 0,
        }

    def apply_allocation(self, allocation: Allocation) -> bool:
        """Write a payment allocation, guarded by the paid amount read at plan time.

        Returns False when the row is gone or another writer changed it.
        """
        query = f"""
            UPDATE {self.table_name}
            SET paid_amount = %s, remaining_amount = %s, payment_status = %s
            WHERE {self.primary_key} = %s AND paid_amount = %s AND payment_status <> 'paid'
        """
        affected = self.db.execute_update(query, (
            allocation.new_paid_amount,
            allocation.new_remaining_amount,
            allocation.new_status.value,
            allocation.obligation_id,
            allocation.previous_paid_amount,
        ))
        return affected == 1

    def mark_overdue(self, cutoff: date) -> list:
        """Flip due/partial rows with due_date before cutoff to overdue.

        Returns the rows that were transitioned. The UPDATE re-checks status
        and balance so rows paid by a concurrent commit are left alone.
        """
        select = f"""
            SELECT * FROM {self.table_name}
            WHERE payment_status IN ({_status_list(OVERDUE_ELIGIBLE_STATUSES)})
              AND remaining_amount > 0 AND due_date < %s
            ORDER BY customer_id ASC, due_date ASC
            FOR UPDATE
        """
        candidates = [self._dict_to_obligation(row)
                      for row in self.db.execute_query(select, (cutoff,), fetch_all=True) or []]
        if not candidates:
            return []

        ids = [c.obligation_id for c in candidates]
        placeholders = ', '.join(['%s'] * len(ids))
        update = f"""
            UPDATE {self.table_name} SET payment_status = 'overdue'
            WHERE {self.primary_key} IN ({placeholders})
              AND payment_status IN ({_status_list(OVERDUE_ELIGIBLE_STATUSES)})
              AND remaining_amount > 0
        """
        affected = self.db.execute_update(update, tuple(ids))
        logger.info(f"Marked {affected} {self.table_name} row(s) overdue (cutoff {cutoff})")

        for candidate in candidates:
            candidate.payment_status = PaymentStatus.OVERDUE
        return candidates

    def portfolio_totals(self) -> Dict[str, Decimal]:
        """Amount, paid and overdue balance across every customer"""
        query = f"""
            SELECT
                COALESCE(SUM(amount), 0) AS total_amount,
                COALESCE(SUM(paid_amount), 0) AS total_paid,
                COALESCE(SUM(CASE WHEN payment_status = 'overdue' THEN remaining_amount ELSE 0 END), 0) AS total_overdue
            FROM {self.table_name}
        """
        row = self.db.execute_query(query, fetch_one=True) or {}
        return {
            'total_amount': row.get('total_amount') or ZERO,
            'total_paid': row.get('total_paid') or ZERO,
            'total_overdue': row.get('total_overdue') or ZERO,
        }

    def overdue_customer_ids(self) -> set:
        query = f"SELECT DISTINCT customer_id FROM {self.table_name} WHERE payment_status = 'overdue'"
        rows = self.db.execute_query(query, fetch_all=True)
        return {row['customer_id'] for row in rows or []}


def earliest_unpaid_due_date(customer_id: int, *repos: ObligationRepository) -> Optional[date]:
    """Earliest due date of any unpaid obligation across the given tables"""
    dates = [d for d in (repo.earliest_unpaid_due_date(customer_id) for repo in repos) if d is not None]
    return min(dates) if dates else None
