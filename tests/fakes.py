"""
In-memory stand-ins for the MySQL repositories and DatabaseManager.

The fake database snapshots every registered store when an outermost
transaction opens and restores it if the block raises, so service tests can
check all-or-nothing behaviour without a server.
"""

import copy
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from core.models.entities import (
    CreditBalance, Customer, CustomerStatus, EMIPlan, PaymentStatus, PaymentType,
    PurchasePlan, RentPlan, Transaction, TransactionType, ZERO,
    OUTSTANDING_STATUSES, OVERDUE_ELIGIBLE_STATUSES,
)
from core.services.audit_service import AuditService
from core.services.billing_summary_service import BillingSummaryService
from core.services.daily_check_service import DailyCheckService
from core.services.ledger_service import LedgerService
from core.services.overdue_service import OverdueService
from core.services.payment_service import PaymentService
from core.services.scheduling_service import SchedulingService
from utils.helpers import DateUtils
from utils.settings import BillingSettings


class FakeDatabaseManager:
    def __init__(self):
        self.stores = []
        self.depth = 0
        self.commits = 0
        self.rollbacks = 0

    def register(self, store):
        self.stores.append(store)
        return store

    @property
    def in_transaction(self):
        return self.depth > 0

    @contextmanager
    def get_transaction(self):
        if self.depth:
            yield self
            return

        snapshot = [copy.deepcopy(store.__dict__['_state']) for store in self.stores]
        self.depth = 1
        try:
            yield self
            self.commits += 1
        except Exception:
            for store, state in zip(self.stores, snapshot):
                store.__dict__['_state'] = state
            self.rollbacks += 1
            raise
        finally:
            self.depth = 0


class _Store:
    """State lives in a single dict so the fake database can snapshot it"""

    def __init__(self, db):
        self._state = {'rows': {}, 'next_id': 1}
        db.register(self)

    @property
    def rows(self):
        return self._state['rows']

    def _next_id(self):
        value = self._state['next_id']
        self._state['next_id'] += 1
        return value


class FakeCustomerRepository(_Store):
    def __init__(self, db):
        super().__init__(db)
        self.lock_calls = 0

    def create_customer(self, customer: Customer) -> int:
        customer_id = customer.customer_id or self._next_id()
        self.rows[customer_id] = replace(customer, customer_id=customer_id)
        return customer_id

    def find_customer_by_id(self, customer_id):
        row = self.rows.get(customer_id)
        return replace(row) if row else None

    def lock_customer(self, customer_id):
        self.lock_calls += 1
        return self.find_customer_by_id(customer_id)

    def find_customers(self, partner_id=None):
        return [replace(c) for c in sorted(self.rows.values(), key=lambda c: c.name)
                if partner_id is None or c.partner_id == partner_id]

    def find_active_by_payment_type(self, payment_type):
        return [replace(c) for _, c in sorted(self.rows.items())
                if c.payment_type == payment_type and c.status == CustomerStatus.ACTIVE]

    def count_active_by_payment_type(self, payment_type):
        return len(self.find_active_by_payment_type(payment_type))

    def update_next_due_date(self, customer_id, next_due_date):
        if customer_id not in self.rows:
            return False
        self.rows[customer_id].next_due_date = next_due_date
        return True


class _FakeObligationRepository(_Store):
    id_field = None

    def _key(self, obligation):
        return obligation.customer_id, obligation.sequence

    def create_obligations(self, obligations):
        existing = {self._key(o) for o in self.rows.values()}
        created = 0
        for obligation in obligations:
            if self._key(obligation) in existing:
                continue
            new_id = self._next_id()
            self.rows[new_id] = replace(obligation, **{self.id_field: new_id})
            existing.add(self._key(obligation))
            created += 1
        return created

    def exists(self, obligation_id):
        return obligation_id in self.rows

    def find_obligation_by_id(self, obligation_id):
        row = self.rows.get(obligation_id)
        return replace(row) if row else None

    def find_by_customer(self, customer_id):
        return [replace(o) for o in sorted(self.rows.values(), key=lambda o: o.sequence)
                if o.customer_id == customer_id]

    def find_outstanding(self, customer_id, for_update=False):
        return [replace(o) for o in sorted(self.rows.values(), key=lambda o: (o.due_date, o.sequence))
                if o.customer_id == customer_id
                and o.payment_status in OUTSTANDING_STATUSES]

    def earliest_unpaid_due_date(self, customer_id):
        dates = [o.due_date for o in self.rows.values()
                 if o.customer_id == customer_id and o.payment_status != PaymentStatus.PAID]
        return min(dates) if dates else None

    def apply_allocation(self, allocation):
        row = self.rows.get(allocation.obligation_id)
        if (row is None or row.paid_amount != allocation.previous_paid_amount
                or row.payment_status == PaymentStatus.PAID):
            return False
        row.paid_amount = allocation.new_paid_amount
        row.remaining_amount = allocation.new_remaining_amount
        row.payment_status = allocation.new_status
        return True

    def mark_overdue(self, cutoff):
        transitioned = []
        for row in sorted(self.rows.values(), key=lambda o: (o.customer_id, o.due_date)):
            if (row.payment_status in OVERDUE_ELIGIBLE_STATUSES
                    and row.remaining_amount > 0 and row.due_date < cutoff):
                row.payment_status = PaymentStatus.OVERDUE
                transitioned.append(replace(row))
        return transitioned

    def month_totals(self, month_start):
        next_month = DateUtils.add_months(month_start, 1)
        rows = [o for o in self.rows.values() if month_start <= o.due_date < next_month]
        return {
            'total_amount': sum((o.amount for o in rows), ZERO),
            'collected': sum((o.paid_amount for o in rows), ZERO),
            'pending': sum((o.remaining_amount for o in rows), ZERO),
            'count': len(rows),
        }

    def portfolio_totals(self):
        rows = list(self.rows.values())
        return {
            'total_amount': sum((o.amount for o in rows), ZERO),
            'total_paid': sum((o.paid_amount for o in rows), ZERO),
            'total_overdue': sum((o.remaining_amount for o in rows
                                  if o.payment_status == PaymentStatus.OVERDUE), ZERO),
        }

    def overdue_customer_ids(self):
        return {o.customer_id for o in self.rows.values() if o.payment_status == PaymentStatus.OVERDUE}


class FakeEMIRepository(_FakeObligationRepository):
    id_field = 'emi_id'

    def existing_emi_numbers(self, customer_id):
        return {o.emi_number for o in self.rows.values() if o.customer_id == customer_id}


class FakeRentRepository(_FakeObligationRepository):
    id_field = 'rent_id'

    def existing_rent_months(self, customer_id):
        return {o.rent_month for o in self.rows.values() if o.customer_id == customer_id}

    def latest_rent_month(self, customer_id):
        months = self.existing_rent_months(customer_id)
        return max(months) if months else None


class FakeTransactionRepository(_Store):
    def create_transaction(self, transaction):
        transaction_id = self._next_id()
        self.rows[transaction_id] = replace(transaction, transaction_id=transaction_id)
        return transaction_id

    def find_by_customer(self, customer_id, limit=200):
        rows = [t for t in self.rows.values() if t.customer_id == customer_id]
        rows.sort(key=lambda t: (t.transaction_date, t.transaction_id), reverse=True)
        return [replace(t) for t in rows[:limit]]


class FakeLedgerRepository(_Store):
    def create_entry(self, entry):
        entry_id = self._next_id()
        self.rows[entry_id] = replace(entry, entry_id=entry_id)
        return entry_id

    def find_by_customer(self, customer_id, limit=200):
        rows = [e for e in self.rows.values() if e.customer_id == customer_id]
        rows.sort(key=lambda e: (e.payment_date, e.entry_id), reverse=True)
        return [replace(e) for e in rows[:limit]]


class FakeCreditRepository(_Store):
    def __init__(self, db):
        super().__init__(db)
        self.conflict_on_add = False

    def get_credit(self, customer_id):
        return CreditBalance(customer_id=customer_id,
                             credit_balance=self.rows.get(customer_id, ZERO))

    def lock_credit(self, customer_id):
        self.rows.setdefault(customer_id, ZERO)
        return self.get_credit(customer_id)

    def add_credit(self, customer_id, amount, expected_balance):
        if self.conflict_on_add or self.rows.get(customer_id, ZERO) != expected_balance:
            return False
        self.rows[customer_id] = self.rows.get(customer_id, ZERO) + amount
        return True


class FakeAuditRepository(_Store):
    def log_action(self, actor_id, role, action, details=None):
        audit_id = self._next_id()
        self.rows[audit_id] = {'audit_id': audit_id, 'actor_id': actor_id, 'role': role,
                               'action': action, 'details': details}
        return audit_id

    def get_recent_logs(self, limit=20, action=None):
        rows = [r for _, r in sorted(self.rows.items(), reverse=True)
                if action is None or r['action'] == action]
        return rows[:limit]

    def actions(self):
        return [r['action'] for _, r in sorted(self.rows.items())]


def build_engine(settings: BillingSettings = None) -> SimpleNamespace:
    """Wire every billing service to a fresh set of in-memory repositories"""
    settings = settings or BillingSettings()
    db = FakeDatabaseManager()
    customers = FakeCustomerRepository(db)
    emis = FakeEMIRepository(db)
    rents = FakeRentRepository(db)
    transactions = FakeTransactionRepository(db)
    ledger = FakeLedgerRepository(db)
    credits = FakeCreditRepository(db)
    audit_repo = FakeAuditRepository(db)
    audit = AuditService(repo=audit_repo)

    summary = BillingSummaryService(customer_repo=customers, emi_repo=emis, rent_repo=rents,
                                    transaction_repo=transactions, ledger_repo=ledger, credit_repo=credits)
    ledger_svc = LedgerService(db=db, customer_repo=customers, emi_repo=emis, rent_repo=rents,
                               transaction_repo=transactions, ledger_repo=ledger,
                               credit_repo=credits, audit_svc=audit)
    scheduling = SchedulingService(db=db, customer_repo=customers, emi_repo=emis, rent_repo=rents,
                                   audit_svc=audit, settings=settings)
    overdue = OverdueService(db=db, emi_repo=emis, rent_repo=rents, audit_svc=audit, settings=settings)
    payments = PaymentService(db=db, customer_repo=customers, emi_repo=emis, rent_repo=rents,
                              ledger_svc=ledger_svc, summary_svc=summary)
    daily = DailyCheckService(overdue_svc=overdue, scheduling_svc=scheduling)

    return SimpleNamespace(
        db=db, customers=customers, emis=emis, rents=rents, transactions=transactions,
        ledger=ledger, credits=credits, audit_repo=audit_repo, audit=audit,
        summary=summary, ledger_svc=ledger_svc, scheduling=scheduling, overdue=overdue,
        payments=payments, daily=daily, settings=settings,
    )


def add_emi_customer(engine, name="EMI Customer", total="60000", down="10000", count=10,
                     join_date=date(2024, 1, 10), partner_id=None) -> int:
    return engine.customers.create_customer(Customer(
        name=name,
        plan=EMIPlan(total_amount=Decimal(total), down_payment=Decimal(down), emi_count=count,
                     emi_start_date=join_date),
        join_date=join_date,
        partner_id=partner_id,
    ))


def add_rent_customer(engine, name="Rent Customer", monthly_rent="3000",
                      join_date=date(2024, 1, 1), partner_id=None, status=CustomerStatus.ACTIVE) -> int:
    return engine.customers.create_customer(Customer(
        name=name,
        plan=RentPlan(monthly_rent=Decimal(monthly_rent)),
        join_date=join_date,
        partner_id=partner_id,
        status=status,
    ))


def add_purchase_customer(engine, name="Purchase Customer", amount="45000",
                          join_date=date(2024, 2, 1), partner_id=None) -> int:
    customer_id = engine.customers.create_customer(Customer(
        name=name,
        plan=PurchasePlan(purchase_amount=Decimal(amount)),
        join_date=join_date,
        partner_id=partner_id,
    ))
    engine.transactions.create_transaction(Transaction(
        customer_id=customer_id,
        transaction_type=TransactionType.PURCHASE,
        amount=Decimal(amount),
        transaction_date=datetime.combine(join_date, datetime.min.time()),
        payment_status=PaymentStatus.PAID,
        remarks="One-time battery purchase",
    ))
    return customer_id
