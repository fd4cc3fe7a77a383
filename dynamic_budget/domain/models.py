"""Domain models - pure Python dataclasses and enums representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class SuggestedKind(str, Enum):
    """Classifier verdict for a credit; debits always stay UNKNOWN"""

    UNKNOWN = "unknown"
    PAYCHECK = "paycheck"
    WINDFALL = "windfall"
    INTERNAL_TRANSFER = "internal_transfer"
    REFUND = "refund"


class DecisionCategory(str, Enum):
    """Which state machine a decision (or a transaction) belongs to"""

    DEPOSIT = "deposit"
    LARGE_EXPENSE = "large_expense"
    NONE = "none"


class UserDecision(str, Enum):
    """User disposition of a transaction, stored on the row"""

    UNDECIDED = "undecided"

    # Deposit decisions (credits)
    TREAT_AS_INCOME = "treat_as_income"
    IGNORE_FOR_DYNAMIC = "ignore_for_dynamic"
    DEBT_PAYMENT = "debt_payment"
    SAVINGS_FUNDED = "savings_funded"

    # Large expense decisions (big debits)
    TREAT_AS_VARIABLE_SPEND = "treat_as_variable_spend"
    LARGE_EXPENSE_FROM_SAVINGS = "large_expense_from_savings"
    LARGE_EXPENSE_TO_FIXED_COST = "large_expense_to_fixed_cost"

    @property
    def category(self) -> DecisionCategory:
        if self in _DEPOSIT_DECISIONS:
            return DecisionCategory.DEPOSIT
        if self in _LARGE_EXPENSE_DECISIONS:
            return DecisionCategory.LARGE_EXPENSE
        return DecisionCategory.NONE


_DEPOSIT_DECISIONS = frozenset(
    {
        UserDecision.TREAT_AS_INCOME,
        UserDecision.IGNORE_FOR_DYNAMIC,
        UserDecision.DEBT_PAYMENT,
        UserDecision.SAVINGS_FUNDED,
    }
)

_LARGE_EXPENSE_DECISIONS = frozenset(
    {
        UserDecision.TREAT_AS_VARIABLE_SPEND,
        UserDecision.LARGE_EXPENSE_FROM_SAVINGS,
        UserDecision.LARGE_EXPENSE_TO_FIXED_COST,
    }
)


class LargeExpenseOption(str, Enum):
    """Options offered by the dedicated large-expense review flow"""

    TREAT_AS_NORMAL = "treat_as_normal"
    FROM_SAVINGS = "from_savings"
    CONVERT_TO_FIXED_COST = "convert_to_fixed_cost"

    @property
    def decision(self) -> UserDecision:
        return {
            LargeExpenseOption.TREAT_AS_NORMAL: UserDecision.TREAT_AS_VARIABLE_SPEND,
            LargeExpenseOption.FROM_SAVINGS: UserDecision.LARGE_EXPENSE_FROM_SAVINGS,
            LargeExpenseOption.CONVERT_TO_FIXED_COST: UserDecision.LARGE_EXPENSE_TO_FIXED_COST,
        }[self]


class FixedCostType(str, Enum):
    """Origin of a fixed cost row"""

    MANUAL = "manual"
    PLAID_DISCOVERED = "plaid_discovered"
    LARGE_EXPENSE = "large_expense"
    LARGE_EXPENSE_PLAN = "large_expense_plan"
    FROM_TRANSACTION = "from_transaction"


@dataclass
class SourceTransaction:
    """Transaction record as delivered by the provider.

    amount keeps the provider sign convention: positive = money out,
    negative = money in.
    """

    external_id: str
    account_id: str
    amount: Decimal
    date: date
    name: str
    merchant_name: Optional[str] = None
    pending: bool = False


@dataclass
class SyncPage:
    """One page of the provider's incremental sync"""

    added: List[SourceTransaction]
    next_cursor: Optional[str]
    has_more: bool


@dataclass
class RecurringStream:
    """Recurring inflow or outflow detected by the provider"""

    stream_id: str
    description: str
    merchant_name: Optional[str]
    frequency: str
    last_amount: Decimal
    average_amount: Optional[Decimal] = None
    last_date: Optional[date] = None
    is_active: bool = True
    confidence: Optional[str] = None


@dataclass
class RecurringStreams:
    inflow: List[RecurringStream] = field(default_factory=list)
    outflow: List[RecurringStream] = field(default_factory=list)


@dataclass
class ProviderAccount:
    """Account under a linked item; current_balance is what is owed for credit accounts"""

    account_id: str
    name: Optional[str]
    official_name: Optional[str]
    mask: Optional[str]
    type: str
    subtype: Optional[str]
    current_balance: Optional[Decimal]


@dataclass
class DebtAccount:
    institution_name: str
    account_name: str
    mask: Optional[str]
    current_balance: Decimal


@dataclass
class DebtSnapshot:
    """Outstanding credit balances across all linked items"""

    total_debt: Decimal
    accounts: List[DebtAccount] = field(default_factory=list)


@dataclass(frozen=True)
class NormalizedAmount:
    """Provider amount split into direction and magnitude"""

    is_credit: bool
    amount: Decimal


@dataclass
class DepositContext:
    """Inputs to deposit classification"""

    amount: Decimal
    date: date
    merchant_name: Optional[str]
    pay_day_1: Optional[int]
    pay_day_2: Optional[int]
    expected_paycheck_amount: Optional[Decimal]


@dataclass
class Installment:
    """Single payment of an installment plan"""

    due_date: date
    amount: Decimal


@dataclass
class TransactionState:
    """Snapshot of the classification state a decision is applied to"""

    amount: Decimal
    date: date
    suggested_kind: SuggestedKind
    counted_as_income: bool
    is_large_expense_candidate: bool
    large_expense_handled: bool
    label: str = "Large purchase"


@dataclass
class DecisionExtras:
    """Optional parameters for converting a large expense into installments"""

    fixed_cost_amount: Optional[Decimal] = None
    fixed_cost_name: Optional[str] = None
    first_due_date: Optional[date] = None
    periods: Optional[int] = None


@dataclass
class DecisionOutcome:
    """Effect of a decision: balance delta, new flags, installments to create"""

    balance_delta: Decimal
    counted_as_income: bool
    is_large_expense_candidate: bool
    large_expense_handled: bool
    effect: str
    category_mismatch: bool = False
    installments: List[Installment] = field(default_factory=list)
    installment_name: Optional[str] = None


@dataclass
class SyncResult:
    """Outcome of one sync call"""

    added_count: int
    has_more: bool
    balance: Optional[Decimal]


@dataclass
class DecisionResult:
    """Outcome of applying a decision"""

    transaction_id: int
    decision: UserDecision
    counted_as_income: bool
    balance: Optional[Decimal]


@dataclass
class Proration:
    """Pay-cycle proration for a fresh period"""

    previous_paycheck_date: date
    pay_cycle_days: int
    days_until_next_paycheck: int
    prorate_factor: Decimal


@dataclass
class FinalizeResult:
    """Freshly seeded balance for a new period"""

    balance: Decimal
    prorate_factor: Decimal
    total_recurring_costs: Decimal
    pay_cycle_days: int
    days_until_next_paycheck: int
