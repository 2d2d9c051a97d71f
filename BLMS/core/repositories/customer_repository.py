"""
Customer Repository
Handles database operations for customers table
"""

from typing import Optional, List, Dict, Any
from datetime import date

from core.repositories.base_repository import BaseRepository
from core.models.entities import (
    Customer, CustomerStatus, PaymentType, EMIPlan, RentPlan, PurchasePlan, BillingPlan
)
from utils.exceptions import ValidationException
from utils.helpers import DateUtils

class CustomerRepository(BaseRepository):
    """Repository for customers table operations"""

    def __init__(self, db=None):
        super().__init__('customers', 'customer_id', db=db)

    def create_customer(self, customer: Customer) -> int:
        """Create a new customer with exactly one plan group populated"""
        if not customer.name or customer.plan is None or customer.join_date is None:
            raise ValidationException("Customer name, plan and join date are required")

        customer_data = {
            'name': customer.name,
            'phone': customer.phone,
            'partner_id': customer.partner_id,
            'status': customer.status.value,
            'join_date': customer.join_date,
            'next_due_date': customer.next_due_date,
        }
        customer_data.update(self._plan_to_columns(customer.plan))

        return self.create(customer_data)

    def find_customer_by_id(self, customer_id: int) -> Optional[Customer]:
        """Find customer by ID"""
        customer_data = self.find_by_id(customer_id)
        if not customer_data:
            return None

        return self._dict_to_customer(customer_data)

    def lock_customer(self, customer_id: int) -> Optional[Customer]:
        """Read the customer row with SELECT ... FOR UPDATE.

        Must run inside a transaction; concurrent payment commits for the
        same customer queue on this lock.
        """
        customer_data = self.find_by_id(customer_id, for_update=True)
        if not customer_data:
            return None

        return self._dict_to_customer(customer_data)

    def find_customers(self, partner_id: Optional[int] = None) -> List[Customer]:
        """All customers, or those of one partner"""
        if partner_id is None:
            results = self.db.execute_query(
                f"SELECT * FROM {self.table_name} ORDER BY name ASC", fetch_all=True)
        else:
            results = self.find_by_field('partner_id', partner_id, order_by="name ASC")
        return [self._dict_to_customer(row) for row in results or []]

    def find_active_by_payment_type(self, payment_type: PaymentType) -> List[Customer]:
        """Active customers on a given plan"""
        query = f"""
            SELECT * FROM {self.table_name}
            WHERE payment_type = %s AND status = 'active'
            ORDER BY customer_id ASC
        """
        results = self.db.execute_query(query, (payment_type.value,), fetch_all=True)
        return [self._dict_to_customer(row) for row in results or []]

    def count_active_by_payment_type(self, payment_type: PaymentType) -> int:
        return self.count("payment_type = %s AND status = 'active'", (payment_type.value,))

    def update_next_due_date(self, customer_id: int, next_due_date: Optional[date]) -> bool:
        """Store the earliest unpaid due date (NULL when nothing is owed)"""
        return self.update(customer_id, {'next_due_date': next_due_date})

    @staticmethod
    def _plan_to_columns(plan: BillingPlan) -> Dict[str, Any]:
        if isinstance(plan, EMIPlan):
            return {
                'payment_type': PaymentType.EMI.value,
                'total_amount': plan.total_amount,
                'down_payment': plan.down_payment,
                'emi_count': plan.emi_count,
                'emi_amount': plan.emi_amount,
                'emi_start_date': plan.emi_start_date,
            }
        if isinstance(plan, RentPlan):
            return {
                'payment_type': PaymentType.MONTHLY_RENT.value,
                'monthly_rent': plan.monthly_rent,
                'security_deposit': plan.security_deposit,
            }
        if isinstance(plan, PurchasePlan):
            return {
                'payment_type': PaymentType.ONE_TIME_PURCHASE.value,
                'purchase_amount': plan.purchase_amount,
            }
        raise ValidationException(f"Unsupported plan {plan!r}")

    @staticmethod
    def _row_to_plan(row: dict) -> BillingPlan:
        """Build the plan variant named by payment_type; other columns are ignored"""
        try:
            payment_type = PaymentType(row['payment_type'])
        except (KeyError, ValueError):
            raise ValidationException(f"Customer {row.get('customer_id')} has invalid payment type")

        if payment_type == PaymentType.EMI:
            return EMIPlan(
                total_amount=row['total_amount'],
                down_payment=row['down_payment'],
                emi_count=row['emi_count'],
                emi_amount=row.get('emi_amount'),
                emi_start_date=DateUtils.as_date(row.get('emi_start_date')),
            )
        if payment_type == PaymentType.MONTHLY_RENT:
            return RentPlan(
                monthly_rent=row['monthly_rent'],
                security_deposit=row.get('security_deposit'),
            )
        return PurchasePlan(purchase_amount=row['purchase_amount'])

    def _dict_to_customer(self, customer_data: dict) -> Customer:
        """Convert dictionary to Customer object"""
        return Customer(
            customer_id=customer_data['customer_id'],
            name=customer_data.get('name', ''),
            plan=self._row_to_plan(customer_data),
            join_date=DateUtils.as_date(customer_data.get('join_date')),
            partner_id=customer_data.get('partner_id'),
            status=CustomerStatus(customer_data.get('status') or 'active'),
            phone=customer_data.get('phone'),
            next_due_date=DateUtils.as_date(customer_data.get('next_due_date')),
        )
