"""
Billing Summary Service
Read views: per-customer billing details and portfolio summaries
"""
from datetime import date
from typing import Dict, Any

from core.models.entities import (
    BillingDetails, EMIProgress, PaymentStatus, PaymentType, PurchasePlan, ZERO
)
from core.repositories.customer_repository import CustomerRepository
from core.repositories.credit_repository import CreditRepository
from core.repositories.emi_repository import EMIRepository
from core.repositories.ledger_repository import LedgerRepository
from core.repositories.obligation_repository import earliest_unpaid_due_date
from core.repositories.rent_repository import RentRepository
from core.repositories.transaction_repository import TransactionRepository
from utils.exceptions import CustomerNotFoundException, ValidationException
from utils.helpers import NumberUtils


class BillingSummaryService:
    """Service class for billing read views"""

    def __init__(self, customer_repo: CustomerRepository = None, emi_repo: EMIRepository = None,
                 rent_repo: RentRepository = None, transaction_repo: TransactionRepository = None,
                 ledger_repo: LedgerRepository = None, credit_repo: CreditRepository = None):
        self.customer_repo = customer_repo or CustomerRepository()
        self.emi_repo = emi_repo or EMIRepository()
        self.rent_repo = rent_repo or RentRepository()
        self.transaction_repo = transaction_repo or TransactionRepository()
        self.ledger_repo = ledger_repo or LedgerRepository()
        self.credit_repo = credit_repo or CreditRepository()

    def get_billing_details(self, customer_id: int) -> BillingDetails:
        """Billing state of one customer"""
        customer = self.customer_repo.find_customer_by_id(customer_id)
        if not customer:
            raise CustomerNotFoundException(f"Customer {customer_id} not found")

        details = BillingDetails(
            customer_id=customer_id,
            payment_type=customer.payment_type,
            credits=self.credit_repo.get_credit(customer_id),
            transactions=self.transaction_repo.find_by_customer(customer_id),
            ledger=self.ledger_repo.find_by_customer(customer_id),
        )

        if isinstance(customer.plan, PurchasePlan):
            details.total_paid = customer.plan.purchase_amount
            return details

        details.emis = self.emi_repo.find_by_customer(customer_id)
        details.rents = self.rent_repo.find_by_customer(customer_id)
        obligations = details.emis + details.rents

        details.total_paid = sum((o.paid_amount for o in obligations), ZERO)
        details.total_due = sum((o.remaining_amount for o in obligations
                                 if o.payment_status != PaymentStatus.PAID), ZERO)
        details.next_due_date = earliest_unpaid_due_date(customer_id, self.emi_repo, self.rent_repo)

        if customer.payment_type == PaymentType.EMI:
            paid = sum(1 for emi in details.emis if emi.payment_status == PaymentStatus.PAID)
            total = customer.plan.emi_count
            details.emi_progress = EMIProgress(
                paid=paid,
                total=total,
                percentage=NumberUtils.round_percentage(paid, total),
            )

        return details

    def get_monthly_summary(self, year: int, month: int) -> Dict[str, Any]:
        """Rent and EMI amounts falling due in a calendar month"""
        try:
            month_start = date(year, month, 1)
        except (TypeError, ValueError):
            raise ValidationException(f"Invalid month {year}-{month}")

        rent = self.rent_repo.month_totals(month_start)
        emi = self.emi_repo.month_totals(month_start)

        return {
            'month': month_start,
            'rent': rent,
            'emi': emi,
            'total_amount': rent['total_amount'] + emi['total_amount'],
            'total_collected': rent['collected'] + emi['collected'],
            'total_pending': rent['pending'] + emi['pending'],
        }

    def get_payment_summary(self, today: date) -> Dict[str, Any]:
        """Portfolio-wide due, collected and overdue figures"""
        rent = self.rent_repo.portfolio_totals()
        emi = self.emi_repo.portfolio_totals()
        overdue_customers = self.rent_repo.overdue_customer_ids() | self.emi_repo.overdue_customer_ids()

        return {
            'as_of': today,
            'total_rent_due': rent['total_amount'],
            'total_rent_paid': rent['total_paid'],
            'total_rent_overdue': rent['total_overdue'],
            'total_emi_due': emi['total_amount'],
            'total_emi_paid': emi['total_paid'],
            'total_emi_overdue': emi['total_overdue'],
            'active_rental_customers': self.customer_repo.count_active_by_payment_type(PaymentType.MONTHLY_RENT),
            'active_emi_customers': self.customer_repo.count_active_by_payment_type(PaymentType.EMI),
            'overdue_customers': len(overdue_customers),
        }
