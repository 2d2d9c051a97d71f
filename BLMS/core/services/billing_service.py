"""
Billing Service
Entry point for the host application: scopes callers and returns typed results
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Callable, Optional, Any
import logging

from core.models.entities import Caller, Customer, DistributionPlan, OperationResult
from core.repositories.customer_repository import CustomerRepository
from core.services.billing_summary_service import BillingSummaryService
from core.services.daily_check_service import DailyCheckService
from core.services.overdue_service import OverdueService
from core.services.payment_service import PaymentService
from core.services.scheduling_service import SchedulingService
from utils.exceptions import (
    AuthorizationException, BillingSystemException, CustomerNotFoundException
)
from utils.helpers import LoggingUtils

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "INTERNAL_ERROR"


class BillingService:
    """Facade over the billing services.

    Every public method returns an ``OperationResult``; engine exceptions are
    logged and converted to a ``BillingError`` instead of propagating.
    Partners only reach customers carrying their partner id, and portfolio
    operations require an admin caller.
    """

    def __init__(self, caller: Caller, clock: Callable[[], datetime] = datetime.now,
                 customer_repo: CustomerRepository = None, scheduling_svc: SchedulingService = None,
                 overdue_svc: OverdueService = None, payment_svc: PaymentService = None,
                 summary_svc: BillingSummaryService = None, daily_svc: DailyCheckService = None):
        self.caller = caller
        self.clock = clock
        self.customer_repo = customer_repo or CustomerRepository()
        self.scheduling_svc = scheduling_svc or SchedulingService(customer_repo=self.customer_repo)
        self.overdue_svc = overdue_svc or OverdueService()
        self.payment_svc = payment_svc or PaymentService(customer_repo=self.customer_repo)
        self.summary_svc = summary_svc or BillingSummaryService(customer_repo=self.customer_repo)
        self.daily_svc = daily_svc or DailyCheckService(self.overdue_svc, self.scheduling_svc)

    # ── Plumbing ───────────────────────────────────────────────────────────────
    def _now(self) -> Optional[datetime]:
        now = self.clock()
        return now if isinstance(now, datetime) else None

    def _today(self) -> date:
        now = self.clock()
        return now.date() if isinstance(now, datetime) else now

    def _run(self, operation: str, func: Callable[[], Any], **context) -> OperationResult:
        try:
            return OperationResult.ok(func())
        except BillingSystemException as e:
            LoggingUtils.log_failure(operation, e, dict(context, caller_role=self.caller.role.value))
            return OperationResult.fail(e.error_code, e.message, e.retryable)
        except Exception as e:
            logger.exception(f"Unexpected error in {operation}")
            return OperationResult.fail(INTERNAL_ERROR, f"Unexpected error: {e}")

    def _authorize_customer(self, customer_id: int) -> Customer:
        customer = self.customer_repo.find_customer_by_id(customer_id)
        if not customer:
            raise CustomerNotFoundException(f"Customer {customer_id} not found")
        if not self.caller.can_access(customer):
            raise AuthorizationException(f"Customer {customer_id} belongs to another partner")
        return customer

    def _require_admin(self, operation: str):
        if not self.caller.is_admin:
            raise AuthorizationException(f"Only admins can run {operation.replace('_', ' ')}")

    # ── Customers ──────────────────────────────────────────────────────────────
    def list_customers(self) -> OperationResult:
        """Customers visible to the caller"""
        def op():
            if self.caller.is_admin:
                return self.customer_repo.find_customers()
            if self.caller.partner_id is None:
                raise AuthorizationException("Partner callers need a partner id")
            return self.customer_repo.find_customers(partner_id=self.caller.partner_id)
        return self._run("list_customers", op)

    # ── Scheduling ─────────────────────────────────────────────────────────────
    def schedule_emi(self, customer_id: int, total_amount: Decimal, down_payment: Decimal,
                     emi_count: int, start_date: date) -> OperationResult:
        def op():
            self._authorize_customer(customer_id)
            return self.scheduling_svc.schedule_emi(customer_id, total_amount, down_payment, emi_count, start_date)
        return self._run("schedule_emi", op, customer_id=customer_id)

    def schedule_rent(self, customer_id: int, monthly_rent: Decimal, start_date: date) -> OperationResult:
        def op():
            self._authorize_customer(customer_id)
            return self.scheduling_svc.schedule_rent(customer_id, monthly_rent, start_date)
        return self._run("schedule_rent", op, customer_id=customer_id)

    def schedule_for_customer(self, customer_id: int) -> OperationResult:
        """Create the initial obligations of an onboarded customer from their plan"""
        def op():
            customer = self._authorize_customer(customer_id)
            return self.scheduling_svc.schedule_for_customer(customer, self._today())
        return self._run("schedule_for_customer", op, customer_id=customer_id)

    def generate_monthly_rents(self) -> OperationResult:
        def op():
            self._require_admin("rent generation")
            return self.scheduling_svc.generate_monthly_rents(self._today())
        return self._run("generate_monthly_rents", op)

    # ── Overdue / daily job ────────────────────────────────────────────────────
    def reconcile_overdue(self) -> OperationResult:
        def op():
            self._require_admin("overdue reconciliation")
            return self.overdue_svc.reconcile_overdue(self.clock())
        return self._run("reconcile_overdue", op)

    def run_daily_check(self) -> OperationResult:
        def op():
            self._require_admin("daily check")
            return self.daily_svc.run(self._today())
        return self._run("run_daily_check", op)

    # ── Payments ───────────────────────────────────────────────────────────────
    def preview_payment(self, customer_id: int, amount: Decimal, mode: str) -> OperationResult:
        def op():
            self._authorize_customer(customer_id)
            return self.payment_svc.preview(customer_id, amount, mode)
        return self._run("preview_payment", op, customer_id=customer_id)

    def commit_payment(self, customer_id: int, amount: Decimal, mode: str, payment_mode: str,
                       remarks: str = "", reference_number: Optional[str] = None,
                       expected_plan: Optional[DistributionPlan] = None,
                       payment_date: Optional[date] = None) -> OperationResult:
        def op():
            self._authorize_customer(customer_id)
            return self.payment_svc.commit(
                customer_id, amount, mode, payment_mode, remarks,
                payment_date or self._today(),
                reference_number=reference_number,
                expected_plan=expected_plan,
                paid_at=self._now(),
            )
        return self._run("commit_payment", op, customer_id=customer_id, amount=str(amount))

    # ── Read views ─────────────────────────────────────────────────────────────
    def get_billing_details(self, customer_id: int) -> OperationResult:
        def op():
            self._authorize_customer(customer_id)
            return self.summary_svc.get_billing_details(customer_id)
        return self._run("get_billing_details", op, customer_id=customer_id)

    def get_monthly_summary(self, year: int, month: int) -> OperationResult:
        def op():
            self._require_admin("portfolio summaries")
            return self.summary_svc.get_monthly_summary(year, month)
        return self._run("get_monthly_summary", op)

    def get_payment_summary(self) -> OperationResult:
        def op():
            self._require_admin("portfolio summaries")
            return self.summary_svc.get_payment_summary(self._today())
        return self._run("get_payment_summary", op)
