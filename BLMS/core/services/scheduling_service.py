"""
Scheduling Service
Generates EMI installments and monthly rent obligations
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Any, Optional, List

from core.models.entities import (
    Customer, EMIObligation, RentObligation, PaymentType, EMIPlan, RentPlan, ZERO
)
from core.repositories.customer_repository import CustomerRepository
from core.repositories.emi_repository import EMIRepository
from core.repositories.rent_repository import RentRepository
from core.repositories.obligation_repository import earliest_unpaid_due_date
from core.services.audit_service import AuditService
from db.database import db_manager
from utils.exceptions import (
    BillingSystemException, CustomerNotFoundException, InvalidPlanParametersException
)
from utils.helpers import NumberUtils, DateUtils, LoggingUtils
from utils.settings import BillingSettings
from utils.validators import BillingValidator


class SchedulingService:
    """Service class creating EMI and rent obligations"""

    def __init__(self, db=None, customer_repo: CustomerRepository = None,
                 emi_repo: EMIRepository = None, rent_repo: RentRepository = None,
                 audit_svc: AuditService = None, settings: BillingSettings = None):
        self.db = db or db_manager
        self.customer_repo = customer_repo or CustomerRepository()
        self.emi_repo = emi_repo or EMIRepository()
        self.rent_repo = rent_repo or RentRepository()
        self.audit_svc = audit_svc or AuditService()
        self.settings = settings or BillingSettings.from_env()

    # ── EMI ────────────────────────────────────────────────────────────────────
    def build_emi_schedule(self, customer_id: int, total_amount: Decimal, down_payment: Decimal,
                           emi_count: int, start_date: date) -> List[EMIObligation]:
        """Installment rows for a plan; the first falls due one month after start_date"""
        total_amount, down_payment = BillingValidator.validate_emi_plan(total_amount, down_payment, emi_count)
        BillingValidator.validate_date(start_date, "EMI start date")

        loan_amount = total_amount - down_payment
        installments = NumberUtils.split_installments(loan_amount, emi_count)
        if installments[0] <= 0 or installments[-1] <= 0:
            raise InvalidPlanParametersException(
                f"Loan of {loan_amount} cannot be split into {emi_count} positive installments")

        return [
            EMIObligation(
                customer_id=customer_id,
                emi_number=number,
                total_emi_count=emi_count,
                amount=amount,
                due_date=DateUtils.add_months(start_date, number),
                paid_amount=ZERO,
                remaining_amount=amount,
            )
            for number, amount in enumerate(installments, start=1)
        ]

    def schedule_emi(self, customer_id: int, total_amount: Decimal, down_payment: Decimal,
                     emi_count: int, start_date: date) -> int:
        """Create the EMI schedule of a customer; returns the number of new rows.

        Installment numbers that already exist are left untouched, so calling
        this again with the same plan is a no-op.
        """
        schedule = self.build_emi_schedule(customer_id, total_amount, down_payment, emi_count, start_date)

        with self.db.get_transaction():
            customer = self._lock_customer(customer_id, PaymentType.EMI)
            existing = self.emi_repo.existing_emi_numbers(customer.customer_id)
            missing = [emi for emi in schedule if emi.emi_number not in existing]
            created = self.emi_repo.create_obligations(missing) if missing else 0
            next_due = self.refresh_next_due_date(customer_id)

            self.audit_svc.log(AuditService.SCHEDULE_EMI, details={
                'customer_id': customer_id, 'emi_count': emi_count, 'created': created,
            })

        LoggingUtils.log_business_event(
            "emi_scheduled", "customer", customer_id,
            details={'created': created, 'skipped': len(schedule) - len(missing), 'next_due_date': str(next_due)}
        )
        return created

    # ── Rent ───────────────────────────────────────────────────────────────────
    def build_rent(self, customer_id: int, monthly_rent: Decimal, rent_month: date,
                   start_date: date) -> RentObligation:
        """Rent row for rent_month; the join month is pro-rated when joining mid-month"""
        if (self.settings.prorate_first_rent
                and rent_month == DateUtils.first_of_month(start_date)
                and start_date.day != 1):
            days_in_month = DateUtils.days_in_month(start_date)
            days = days_in_month - start_date.day + 1
            amount = NumberUtils.round_currency(monthly_rent / days_in_month * days)
            return RentObligation(
                customer_id=customer_id,
                rent_month=rent_month,
                amount=amount,
                due_date=start_date + timedelta(days=self.settings.rent_due_day),
                paid_amount=ZERO,
                remaining_amount=amount,
                is_prorated=True,
                prorated_days=days,
            )

        return RentObligation(
            customer_id=customer_id,
            rent_month=rent_month,
            amount=monthly_rent,
            due_date=rent_month.replace(day=self.settings.rent_due_day),
            paid_amount=ZERO,
            remaining_amount=monthly_rent,
        )

    def schedule_rent(self, customer_id: int, monthly_rent: Decimal, start_date: date) -> RentObligation:
        """Create the rent for the first month on or after start_date not yet billed"""
        monthly_rent = BillingValidator.validate_monthly_rent(monthly_rent)
        BillingValidator.validate_date(start_date, "Rent start date")

        with self.db.get_transaction():
            self._lock_customer(customer_id, PaymentType.MONTHLY_RENT)
            rent = self._schedule_next_rent(customer_id, monthly_rent, start_date)
            self.refresh_next_due_date(customer_id)

            self.audit_svc.log(AuditService.SCHEDULE_RENT, details={
                'customer_id': customer_id, 'rent_month': rent.rent_month, 'amount': rent.amount,
            })

        LoggingUtils.log_business_event(
            "rent_scheduled", "customer", customer_id,
            details={'rent_month': str(rent.rent_month), 'amount': str(rent.amount), 'prorated': rent.is_prorated}
        )
        return rent

    def _schedule_next_rent(self, customer_id: int, monthly_rent: Decimal, start_date: date) -> RentObligation:
        covered = self.rent_repo.existing_rent_months(customer_id)
        rent_month = DateUtils.first_of_month(start_date)
        while rent_month in covered:
            rent_month = DateUtils.add_months(rent_month, 1)

        rent = self.build_rent(customer_id, monthly_rent, rent_month, start_date)
        self.rent_repo.create_obligations([rent])
        return rent

    def generate_monthly_rents(self, today: date) -> Dict[str, Any]:
        """Extend every active rent customer by one month when their coverage lags today.

        Failures of individual customers are collected in the result instead
        of stopping the run; store outages abort it.
        """
        current_month = DateUtils.first_of_month(today)
        customers = self.customer_repo.find_active_by_payment_type(PaymentType.MONTHLY_RENT)

        result = {
            'month': current_month,
            'total_customers': len(customers),
            'created': [],
            'skipped': [],
            'errors': [],
        }

        for customer in customers:
            try:
                rent = self._extend_rent_coverage(customer, today)
            except BillingSystemException as e:
                if e.retryable:
                    raise
                LoggingUtils.log_failure("rent_generation_failed", e, {'customer_id': customer.customer_id})
                result['errors'].append({
                    'customer_id': customer.customer_id,
                    'error_code': e.error_code,
                    'message': e.message,
                })
                continue

            if rent is None:
                result['skipped'].append(customer.customer_id)
            else:
                result['created'].append({
                    'customer_id': customer.customer_id,
                    'rent_month': rent.rent_month,
                    'amount': rent.amount,
                    'due_date': rent.due_date,
                })

        if result['created']:
            self.audit_svc.log(AuditService.RENT_GENERATION, details={
                'month': current_month, 'created': len(result['created']), 'errors': len(result['errors']),
            })

        LoggingUtils.log_business_event(
            "monthly_rents_generated", "rent_run", 0,
            details={'month': str(current_month), 'created': len(result['created']),
                     'skipped': len(result['skipped']), 'errors': len(result['errors'])}
        )
        return result

    def _extend_rent_coverage(self, customer: Customer, today: date) -> Optional[RentObligation]:
        current_month = DateUtils.first_of_month(today)
        monthly_rent = BillingValidator.validate_monthly_rent(customer.plan.monthly_rent)

        with self.db.get_transaction():
            self._lock_customer(customer.customer_id, PaymentType.MONTHLY_RENT)
            latest = self.rent_repo.latest_rent_month(customer.customer_id)

            if latest is None:
                start_date = customer.join_date or today
                if start_date > today:
                    return None
                rent = self._schedule_next_rent(customer.customer_id, monthly_rent, start_date)
            elif latest < current_month:
                next_month = DateUtils.add_months(latest, 1)
                rent = self.build_rent(customer.customer_id, monthly_rent, next_month, next_month)
                self.rent_repo.create_obligations([rent])
            else:
                return None

            self.refresh_next_due_date(customer.customer_id)
        return rent

    # ── Onboarding ─────────────────────────────────────────────────────────────
    def schedule_for_customer(self, customer: Customer, today: date) -> Dict[str, Any]:
        """Create the initial obligations of a newly onboarded customer"""
        plan = customer.plan
        if isinstance(plan, EMIPlan):
            start_date = plan.emi_start_date or customer.join_date
            created = self.schedule_emi(customer.customer_id, plan.total_amount, plan.down_payment,
                                        plan.emi_count, start_date)
            return {'payment_type': PaymentType.EMI.value, 'created': created}

        if isinstance(plan, RentPlan):
            rents = [self.schedule_rent(customer.customer_id, plan.monthly_rent, customer.join_date)]
            # Bring coverage up to the current month, one month at a time
            while rents[-1].rent_month < DateUtils.first_of_month(today):
                rent = self._extend_rent_coverage(customer, today)
                if rent is None:
                    break
                rents.append(rent)
            return {'payment_type': PaymentType.MONTHLY_RENT.value, 'created': len(rents)}

        return {'payment_type': PaymentType.ONE_TIME_PURCHASE.value, 'created': 0}

    # ── Helpers ────────────────────────────────────────────────────────────────
    def refresh_next_due_date(self, customer_id: int) -> Optional[date]:
        next_due = earliest_unpaid_due_date(customer_id, self.emi_repo, self.rent_repo)
        self.customer_repo.update_next_due_date(customer_id, next_due)
        return next_due

    def _lock_customer(self, customer_id: int, payment_type: PaymentType) -> Customer:
        customer = self.customer_repo.lock_customer(customer_id)
        if not customer:
            raise CustomerNotFoundException(f"Customer {customer_id} not found")
        if customer.payment_type != payment_type:
            raise InvalidPlanParametersException(
                f"Customer {customer_id} is on a {customer.payment_type.value} plan, not {payment_type.value}")
        return customer
