"""
Ledger Service
Persists a distribution plan: obligation updates, transaction, ledger entry and credit
"""
from datetime import date, datetime
from typing import Dict, Any, Optional
import logging

from core.models.entities import (
    Allocation, Customer, DistributionMode, DistributionPlan, LedgerEntry, ObligationKind,
    PaymentMode, PaymentStatus, PaymentType, Transaction, TransactionType, ZERO
)
from core.repositories.customer_repository import CustomerRepository
from core.repositories.credit_repository import CreditRepository
from core.repositories.emi_repository import EMIRepository
from core.repositories.ledger_repository import LedgerRepository
from core.repositories.obligation_repository import earliest_unpaid_due_date
from core.repositories.rent_repository import RentRepository
from core.repositories.transaction_repository import TransactionRepository
from core.services.audit_service import AuditService
from db.database import db_manager
from utils.exceptions import (
    ConcurrentModificationException, CustomerNotFoundException, ObligationNotFoundException
)
from utils.helpers import StringUtils

logger = logging.getLogger(__name__)

_PLAN_TRANSACTION_TYPES = {
    PaymentType.EMI: TransactionType.EMI,
    PaymentType.MONTHLY_RENT: TransactionType.RENT,
    PaymentType.ONE_TIME_PURCHASE: TransactionType.PURCHASE,
}


def transaction_type_for(plan: DistributionPlan, payment_type: Optional[PaymentType]) -> TransactionType:
    """Dominant obligation kind by applied amount (EMI on a tie).

    Without allocations the distribution mode decides, and for auto mode the
    customer's plan.
    """
    totals = {ObligationKind.EMI: ZERO, ObligationKind.RENT: ZERO}
    for allocation in plan.allocations:
        totals[allocation.kind] += allocation.applied_amount

    if plan.allocations:
        if totals[ObligationKind.EMI] >= totals[ObligationKind.RENT]:
            return TransactionType.EMI
        return TransactionType.RENT

    if plan.mode == DistributionMode.EMI:
        return TransactionType.EMI
    if plan.mode == DistributionMode.RENT:
        return TransactionType.RENT
    return _PLAN_TRANSACTION_TYPES.get(payment_type, TransactionType.EMI)


def transaction_status_for(plan: DistributionPlan) -> PaymentStatus:
    """Status of the last obligation touched, or paid when nothing is left owing"""
    if plan.allocations and plan.excess_amount == 0:
        return plan.allocations[-1].new_status
    return PaymentStatus.PAID


class LedgerService:
    """Service class writing payments to the ledger"""

    def __init__(self, db=None, customer_repo: CustomerRepository = None,
                 emi_repo: EMIRepository = None, rent_repo: RentRepository = None,
                 transaction_repo: TransactionRepository = None, ledger_repo: LedgerRepository = None,
                 credit_repo: CreditRepository = None, audit_svc: AuditService = None):
        self.db = db or db_manager
        self.customer_repo = customer_repo or CustomerRepository()
        self.emi_repo = emi_repo or EMIRepository()
        self.rent_repo = rent_repo or RentRepository()
        self.transaction_repo = transaction_repo or TransactionRepository()
        self.ledger_repo = ledger_repo or LedgerRepository()
        self.credit_repo = credit_repo or CreditRepository()
        self.audit_svc = audit_svc or AuditService()

    def _repo_for(self, kind: ObligationKind):
        return self.emi_repo if kind == ObligationKind.EMI else self.rent_repo

    def _apply_allocation(self, allocation: Allocation):
        repo = self._repo_for(allocation.kind)
        if repo.apply_allocation(allocation):
            return
        if not repo.exists(allocation.obligation_id):
            raise ObligationNotFoundException(f"{allocation.label} (id {allocation.obligation_id}) no longer exists")
        raise ConcurrentModificationException(
            f"{allocation.label} was modified by another payment; preview again")

    def apply(self, plan: DistributionPlan, payment_date: date, payment_mode: PaymentMode,
              remarks: str = "", reference_number: Optional[str] = None,
              customer: Optional[Customer] = None, paid_at: Optional[datetime] = None) -> Dict[str, Any]:
        """Persist a plan inside the current transaction (or a new one).

        The transaction is stamped with payment_date at the time of day of
        paid_at, or at midnight when no time is supplied.
        """
        reference_number = reference_number or StringUtils.generate_reference_number("PAY")

        with self.db.get_transaction():
            if customer is None:
                customer = self.customer_repo.lock_customer(plan.customer_id)
                if not customer:
                    raise CustomerNotFoundException(f"Customer {plan.customer_id} not found")

            for allocation in plan.allocations:
                self._apply_allocation(allocation)

            transaction_type = transaction_type_for(plan, customer.payment_type)
            transaction_id = self.transaction_repo.create_transaction(Transaction(
                customer_id=plan.customer_id,
                transaction_type=transaction_type,
                amount=plan.total_processed,
                transaction_date=datetime.combine(payment_date, (paid_at or datetime.min).time()),
                payment_status=transaction_status_for(plan),
                remarks=remarks or None,
                reference_number=reference_number,
            ))

            credit = self.credit_repo.lock_credit(plan.customer_id)
            new_balance = credit.credit_balance + plan.excess_amount

            ledger_entry_id = self.ledger_repo.create_entry(LedgerEntry(
                customer_id=plan.customer_id,
                payment_date=payment_date,
                payment_type=transaction_type.value,
                payment_mode=payment_mode,
                amount_paid=plan.total_processed,
                running_balance=new_balance,
                reference_number=reference_number,
                remarks=remarks or None,
            ))

            if plan.excess_amount > 0:
                if not self.credit_repo.add_credit(plan.customer_id, plan.excess_amount, credit.credit_balance):
                    raise ConcurrentModificationException(
                        f"Credit balance of customer {plan.customer_id} changed during the payment")

            next_due = earliest_unpaid_due_date(plan.customer_id, self.emi_repo, self.rent_repo)
            self.customer_repo.update_next_due_date(plan.customer_id, next_due)

            self.audit_svc.log(AuditService.PAYMENT_COMMIT, details={
                'customer_id': plan.customer_id,
                'amount': plan.total_processed,
                'excess': plan.excess_amount,
                'transaction_id': transaction_id,
                'reference_number': reference_number,
                'allocations': [
                    {'kind': a.kind.value, 'id': a.obligation_id, 'applied': a.applied_amount,
                     'status': a.new_status.value}
                    for a in plan.allocations
                ],
            })

        logger.info(f"Ledger updated for customer {plan.customer_id}: "
                    f"{len(plan.allocations)} allocation(s), credit {new_balance}")

        return {
            'transaction_id': transaction_id,
            'ledger_entry_id': ledger_entry_id,
            'reference_number': reference_number,
            'credit_balance': new_balance,
            'next_due_date': next_due,
        }
