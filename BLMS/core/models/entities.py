"""
Data Models for ChargeLedger Billing Engine
Dataclasses representing database entities and billing value objects
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Dict, Any, Union
from enum import Enum

ZERO = Decimal('0.00')

# Enums for database constraints
class PaymentType(Enum):
    EMI = 'emi'
    MONTHLY_RENT = 'monthly_rent'
    ONE_TIME_PURCHASE = 'one_time_purchase'

class PaymentStatus(Enum):
    DUE = 'due'
    PARTIAL = 'partial'
    PAID = 'paid'
    OVERDUE = 'overdue'

OUTSTANDING_STATUSES = (PaymentStatus.OVERDUE, PaymentStatus.PARTIAL, PaymentStatus.DUE)
OVERDUE_ELIGIBLE_STATUSES = (PaymentStatus.DUE, PaymentStatus.PARTIAL)

class TransactionType(Enum):
    EMI = 'emi'
    RENT = 'rent'
    PURCHASE = 'purchase'

class PaymentMode(Enum):
    CASH = 'cash'
    UPI = 'upi'
    BANK_TRANSFER = 'bank_transfer'
    CARD = 'card'
    CHEQUE = 'cheque'

class DistributionMode(Enum):
    EMI = 'emi'
    RENT = 'rent'
    AUTO = 'auto'

class ObligationKind(Enum):
    EMI = 'emi'
    RENT = 'rent'

class CustomerStatus(Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'

class CallerRole(Enum):
    ADMIN = 'admin'
    PARTNER = 'partner'

# Plan variants: exactly one is attached to a customer, selected by payment_type
@dataclass(frozen=True)
class EMIPlan:
    """EMI plan parameters"""
    total_amount: Decimal
    down_payment: Decimal
    emi_count: int
    emi_amount: Optional[Decimal] = None
    emi_start_date: Optional[date] = None
    payment_type: PaymentType = field(default=PaymentType.EMI, init=False)

@dataclass(frozen=True)
class RentPlan:
    """Monthly rent plan parameters"""
    monthly_rent: Decimal
    security_deposit: Optional[Decimal] = None
    payment_type: PaymentType = field(default=PaymentType.MONTHLY_RENT, init=False)

@dataclass(frozen=True)
class PurchasePlan:
    """One-time purchase parameters"""
    purchase_amount: Decimal
    payment_type: PaymentType = field(default=PaymentType.ONE_TIME_PURCHASE, init=False)

BillingPlan = Union[EMIPlan, RentPlan, PurchasePlan]

@dataclass
class Customer:
    """Customer entity"""
    customer_id: Optional[int] = None
    name: str = ""
    plan: Optional[BillingPlan] = None
    join_date: Optional[date] = None
    partner_id: Optional[int] = None
    status: CustomerStatus = CustomerStatus.ACTIVE
    phone: Optional[str] = None
    next_due_date: Optional[date] = None

    @property
    def payment_type(self) -> Optional[PaymentType]:
        return self.plan.payment_type if self.plan else None

@dataclass
class EMIObligation:
    """EMI installment entity"""
    emi_id: Optional[int] = None
    customer_id: int = 0
    emi_number: int = 0
    total_emi_count: int = 0
    amount: Decimal = ZERO
    due_date: Optional[date] = None
    paid_amount: Decimal = ZERO
    remaining_amount: Decimal = ZERO
    payment_status: PaymentStatus = PaymentStatus.DUE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    kind = ObligationKind.EMI

    @property
    def obligation_id(self) -> Optional[int]:
        return self.emi_id

    @property
    def label(self) -> str:
        return f"EMI {self.emi_number}/{self.total_emi_count}"

    @property
    def sequence(self):
        return self.emi_number

@dataclass
class RentObligation:
    """Monthly rent entity"""
    rent_id: Optional[int] = None
    customer_id: int = 0
    rent_month: Optional[date] = None
    amount: Decimal = ZERO
    due_date: Optional[date] = None
    paid_amount: Decimal = ZERO
    remaining_amount: Decimal = ZERO
    payment_status: PaymentStatus = PaymentStatus.DUE
    is_prorated: bool = False
    prorated_days: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    kind = ObligationKind.RENT

    @property
    def obligation_id(self) -> Optional[int]:
        return self.rent_id

    @property
    def label(self) -> str:
        return f"Rent {self.rent_month:%b %Y}" if self.rent_month else "Rent"

    @property
    def sequence(self):
        return self.rent_month

Obligation = Union[EMIObligation, RentObligation]

@dataclass
class Transaction:
    """Billing transaction entity (immutable once written)"""
    transaction_id: Optional[int] = None
    customer_id: int = 0
    transaction_type: TransactionType = TransactionType.EMI
    amount: Decimal = ZERO
    transaction_date: Optional[datetime] = None
    payment_status: PaymentStatus = PaymentStatus.PAID
    remarks: Optional[str] = None
    reference_number: Optional[str] = None
    created_at: Optional[datetime] = None

@dataclass
class LedgerEntry:
    """Payment ledger entity (append-only)"""
    entry_id: Optional[int] = None
    customer_id: int = 0
    payment_date: Optional[date] = None
    payment_type: str = ""
    payment_mode: PaymentMode = PaymentMode.CASH
    amount_paid: Decimal = ZERO
    running_balance: Decimal = ZERO
    reference_number: Optional[str] = None
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None

@dataclass
class CreditBalance:
    """Customer credit entity"""
    customer_id: int = 0
    credit_balance: Decimal = ZERO
    updated_at: Optional[datetime] = None

# Distribution value objects
@dataclass(frozen=True)
class Allocation:
    """Share of a payment applied to a single obligation"""
    kind: ObligationKind
    obligation_id: int
    label: str
    due_date: date
    applied_amount: Decimal
    previous_status: PaymentStatus
    previous_paid_amount: Decimal
    new_paid_amount: Decimal
    new_remaining_amount: Decimal
    new_status: PaymentStatus

@dataclass(frozen=True)
class DistributionPlan:
    """Computed, not-yet-committed mapping of a payment onto obligations"""
    customer_id: int
    mode: DistributionMode
    amount: Decimal
    allocations: tuple = ()
    excess_amount: Decimal = ZERO

    @property
    def total_processed(self) -> Decimal:
        return self.amount

    @property
    def allocated_amount(self) -> Decimal:
        return sum((a.applied_amount for a in self.allocations), ZERO)

    def same_distribution(self, other: 'DistributionPlan') -> bool:
        """True when both plans touch the same obligations with the same amounts"""
        def key(plan):
            return [(a.kind, a.obligation_id, a.applied_amount, a.new_status) for a in plan.allocations]
        return (
            self.customer_id == other.customer_id
            and self.amount == other.amount
            and self.excess_amount == other.excess_amount
            and key(self) == key(other)
        )

@dataclass
class EMIProgress:
    paid: int = 0
    total: int = 0
    percentage: int = 0

@dataclass
class BillingDetails:
    """Read view of a customer's billing state"""
    customer_id: int
    payment_type: PaymentType
    total_paid: Decimal = ZERO
    total_due: Decimal = ZERO
    credits: CreditBalance = None
    next_due_date: Optional[date] = None
    emi_progress: Optional[EMIProgress] = None
    emis: List[EMIObligation] = field(default_factory=list)
    rents: List[RentObligation] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    ledger: List[LedgerEntry] = field(default_factory=list)

@dataclass
class OverdueReport:
    """Obligations moved to overdue by one reconciliation run"""
    cutoff: date
    overdue_emis: int = 0
    overdue_rents: int = 0
    # customer_id -> {'emis': Decimal, 'rents': Decimal, 'total': Decimal}
    customers: Dict[int, Dict[str, Decimal]] = field(default_factory=dict)

    @property
    def affected_customers(self) -> int:
        return len(self.customers)

@dataclass
class PaymentResult:
    """Outcome of a committed payment"""
    plan: DistributionPlan
    transaction_id: int
    ledger_entry_id: int
    reference_number: str
    credit_balance: Decimal
    next_due_date: Optional[date]
    summary: Optional[BillingDetails] = None

@dataclass
class Caller:
    """Identity supplied by the host, used only to scope customer access"""
    role: CallerRole = CallerRole.ADMIN
    partner_id: Optional[int] = None
    user_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == CallerRole.ADMIN

    def can_access(self, customer: Customer) -> bool:
        if self.is_admin:
            return True
        return self.partner_id is not None and customer.partner_id == self.partner_id

@dataclass(frozen=True)
class BillingError:
    code: str
    message: str
    retryable: bool = False

@dataclass
class OperationResult:
    """Typed result returned across the billing module boundary"""
    success: bool
    data: Any = None
    error: Optional[BillingError] = None

    @classmethod
    def ok(cls, data: Any = None) -> 'OperationResult':
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, retryable: bool = False) -> 'OperationResult':
        return cls(success=False, error=BillingError(code, message, retryable))

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {'status': 'SUCCESS', 'data': self.data}
        return {
            'status': 'FAILED',
            'error_code': self.error.code,
            'message': self.error.message,
            'retryable': self.error.retryable,
        }
