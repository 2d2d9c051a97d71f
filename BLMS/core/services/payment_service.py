"""
Payment Service
Distributes incoming payments across a customer's outstanding obligations
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union

from core.models.entities import (
    Allocation, DistributionPlan, DistributionMode, PaymentMode, PaymentResult,
    PaymentStatus, ObligationKind, Obligation, Customer
)
from core.repositories.customer_repository import CustomerRepository
from core.repositories.emi_repository import EMIRepository
from core.repositories.rent_repository import RentRepository
from core.services.ledger_service import LedgerService
from core.services.billing_summary_service import BillingSummaryService
from db.database import db_manager
from utils.exceptions import CustomerNotFoundException, ConcurrentModificationException
from utils.helpers import LoggingUtils, StringUtils
from utils.validators import BillingValidator


def _distribution_order(obligation: Obligation):
    return (
        0 if obligation.payment_status == PaymentStatus.OVERDUE else 1,
        obligation.due_date,
        0 if obligation.kind == ObligationKind.EMI else 1,
        obligation.sequence,
        obligation.obligation_id or 0,
    )


def distribute(customer_id: int, obligations: List[Obligation], amount: Decimal,
               mode: DistributionMode) -> DistributionPlan:
    """Walk the obligations in payment order and allocate amount to them.

    Overdue obligations come first, then ascending due date; when an EMI and
    a rent fall due on the same day the EMI is paid first. Whatever is left
    after every obligation is covered becomes the excess amount.
    """
    remaining = amount
    allocations = []

    for obligation in sorted(obligations, key=_distribution_order):
        if remaining <= 0:
            break
        if obligation.remaining_amount <= 0:
            continue

        applied = min(remaining, obligation.remaining_amount)
        new_paid = obligation.paid_amount + applied
        new_remaining = obligation.remaining_amount - applied

        allocations.append(Allocation(
            kind=obligation.kind,
            obligation_id=obligation.obligation_id,
            label=obligation.label,
            due_date=obligation.due_date,
            applied_amount=applied,
            previous_status=obligation.payment_status,
            previous_paid_amount=obligation.paid_amount,
            new_paid_amount=new_paid,
            new_remaining_amount=new_remaining,
            new_status=PaymentStatus.PAID if new_remaining == 0 else PaymentStatus.PARTIAL,
        ))
        remaining -= applied

    return DistributionPlan(
        customer_id=customer_id,
        mode=mode,
        amount=amount,
        allocations=tuple(allocations),
        excess_amount=remaining,
    )


class PaymentService:
    """Service class for payment preview and commit"""

    def __init__(self, db=None, customer_repo: CustomerRepository = None,
                 emi_repo: EMIRepository = None, rent_repo: RentRepository = None,
                 ledger_svc: LedgerService = None, summary_svc: BillingSummaryService = None):
        self.db = db or db_manager
        self.customer_repo = customer_repo or CustomerRepository()
        self.emi_repo = emi_repo or EMIRepository()
        self.rent_repo = rent_repo or RentRepository()
        self.ledger_svc = ledger_svc or LedgerService(db=self.db, customer_repo=self.customer_repo,
                                                      emi_repo=self.emi_repo, rent_repo=self.rent_repo)
        self.summary_svc = summary_svc or BillingSummaryService(customer_repo=self.customer_repo,
                                                                emi_repo=self.emi_repo, rent_repo=self.rent_repo)

    def _load_candidates(self, customer_id: int, mode: DistributionMode,
                         for_update: bool = False) -> List[Obligation]:
        candidates = []
        if mode in (DistributionMode.EMI, DistributionMode.AUTO):
            candidates.extend(self.emi_repo.find_outstanding(customer_id, for_update=for_update))
        if mode in (DistributionMode.RENT, DistributionMode.AUTO):
            candidates.extend(self.rent_repo.find_outstanding(customer_id, for_update=for_update))
        return candidates

    def _plan(self, customer_id: int, amount: Decimal, mode: DistributionMode,
              for_update: bool = False) -> DistributionPlan:
        candidates = self._load_candidates(customer_id, mode, for_update=for_update)
        return distribute(customer_id, candidates, amount, mode)

    def preview(self, customer_id: int, amount: Decimal,
                mode: Union[str, DistributionMode]) -> DistributionPlan:
        """Compute the distribution of a payment without writing anything"""
        amount = BillingValidator.validate_amount(amount)
        mode = BillingValidator.parse_choice(mode, DistributionMode, "distribution mode")

        if not self.customer_repo.find_customer_by_id(customer_id):
            raise CustomerNotFoundException(f"Customer {customer_id} not found")

        return self._plan(customer_id, amount, mode)

    def commit(self, customer_id: int, amount: Decimal, mode: Union[str, DistributionMode],
               payment_mode: Union[str, PaymentMode], remarks: str, payment_date: date,
               reference_number: Optional[str] = None,
               expected_plan: Optional[DistributionPlan] = None,
               paid_at: Optional[datetime] = None) -> PaymentResult:
        """Distribute and persist a payment as one atomic unit.

        When expected_plan (an earlier preview) is given and the fresh plan
        differs from it, the payment is rejected with a concurrency error so
        the caller can preview again.
        """
        amount = BillingValidator.validate_amount(amount)
        mode = BillingValidator.parse_choice(mode, DistributionMode, "distribution mode")
        payment_mode = BillingValidator.parse_choice(payment_mode, PaymentMode, "payment mode")
        remarks = StringUtils.clean_string(remarks)
        BillingValidator.validate_date(payment_date, "Payment date")
        if reference_number:
            BillingValidator.validate_reference_number(reference_number)

        with self.db.get_transaction():
            customer = self._lock_customer(customer_id)
            plan = self._plan(customer_id, amount, mode, for_update=True)

            if expected_plan is not None and not plan.same_distribution(expected_plan):
                raise ConcurrentModificationException(
                    f"Obligations of customer {customer_id} changed since the preview; preview again")

            outcome = self.ledger_svc.apply(
                plan, payment_date, payment_mode, remarks,
                reference_number=reference_number, customer=customer, paid_at=paid_at,
            )

        LoggingUtils.log_payment(
            "payment_committed", customer_id, amount,
            details={
                'mode': mode.value,
                'payment_mode': payment_mode.value,
                'allocations': len(plan.allocations),
                'excess': str(plan.excess_amount),
                'reference_number': outcome['reference_number'],
            }
        )

        return PaymentResult(
            plan=plan,
            transaction_id=outcome['transaction_id'],
            ledger_entry_id=outcome['ledger_entry_id'],
            reference_number=outcome['reference_number'],
            credit_balance=outcome['credit_balance'],
            next_due_date=outcome['next_due_date'],
            summary=self.summary_svc.get_billing_details(customer_id),
        )

    def _lock_customer(self, customer_id: int) -> Customer:
        customer = self.customer_repo.lock_customer(customer_id)
        if not customer:
            raise CustomerNotFoundException(f"Customer {customer_id} not found")
        return customer
