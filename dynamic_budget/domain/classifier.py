"""Transaction classification - deposit kinds, large expenses and sign normalization"""

from datetime import date
from decimal import Decimal
from typing import Optional

from dynamic_budget.domain.models import DepositContext, NormalizedAmount, SuggestedKind
from dynamic_budget.utils.date_utils import clamp_day
from dynamic_budget.utils.money import Number, as_decimal

# Days either side of a configured payday that still count as "on payday"
PAY_WINDOW_DAYS = 5

# Allowed relative distance from the expected paycheck amount (inclusive)
AMOUNT_TOLERANCE = Decimal("0.15")

# Share of the expected paycheck at which a debit needs user disposition
LARGE_EXPENSE_THRESHOLD = Decimal("0.30")

# Used only when no expected paycheck amount is configured
PAYROLL_TOKENS = ("payroll", "salary", "direct dep")


def normalize_amount(raw_amount: Number) -> NormalizedAmount:
    """
    Convert a provider-signed amount into direction + magnitude.

    Provider convention (Plaid): positive = money leaving the account,
    negative = money coming in. Zero is treated as a (no-op) debit.
    """
    value = as_decimal(raw_amount)
    return NormalizedAmount(is_credit=value < 0, amount=abs(value))


def is_amount_within_tolerance(actual: Decimal, expected: Decimal, tolerance: Decimal = AMOUNT_TOLERANCE) -> bool:
    return abs(actual - expected) <= expected * tolerance


def is_valid_pay_day(pay_day: Optional[int]) -> bool:
    return pay_day is not None and 1 <= pay_day <= 31


def is_in_pay_window(txn_date: date, pay_day: Optional[int], window_days: int = PAY_WINDOW_DAYS) -> bool:
    """True if txn_date is within window_days of pay_day in the same month"""
    if not is_valid_pay_day(pay_day):
        return False

    candidate = clamp_day(txn_date.year, txn_date.month, pay_day)
    return abs((candidate - txn_date).days) <= window_days


def looks_like_payroll(merchant_name: Optional[str]) -> bool:
    if not merchant_name:
        return False
    lowered = merchant_name.lower()
    return any(token in lowered for token in PAYROLL_TOKENS)


def classify_deposit(ctx: DepositContext) -> SuggestedKind:
    """
    Suggest what kind of deposit a credit is.

    Rules:
    - Non-positive amounts are not deposits (UNKNOWN)
    - No expected paycheck configured: payroll-looking merchant -> PAYCHECK, else WINDFALL
    - Amount must be within 15% of the expected paycheck, else WINDFALL
    - With paydays configured the date must also fall within the pay window;
      a right-sized deposit on the wrong day is a WINDFALL
    - Without paydays an amount match alone is a PAYCHECK
    """
    amount = as_decimal(ctx.amount)
    if amount <= 0:
        return SuggestedKind.UNKNOWN

    expected = as_decimal(ctx.expected_paycheck_amount) if ctx.expected_paycheck_amount is not None else Decimal("0")
    if expected <= 0:
        if looks_like_payroll(ctx.merchant_name):
            return SuggestedKind.PAYCHECK
        return SuggestedKind.WINDFALL

    if not is_amount_within_tolerance(amount, expected):
        return SuggestedKind.WINDFALL

    pay_days = [d for d in (ctx.pay_day_1, ctx.pay_day_2) if is_valid_pay_day(d)]
    if not pay_days:
        return SuggestedKind.PAYCHECK

    if any(is_in_pay_window(ctx.date, d) for d in pay_days):
        return SuggestedKind.PAYCHECK

    return SuggestedKind.WINDFALL


def is_large_expense(amount: Number, expected_paycheck_amount: Optional[Number]) -> bool:
    """True if a debit is at least 30% of the expected paycheck"""
    if expected_paycheck_amount is None:
        return False

    amount = as_decimal(amount)
    expected = as_decimal(expected_paycheck_amount)
    if amount <= 0 or expected <= 0:
        return False

    return amount / expected >= LARGE_EXPENSE_THRESHOLD
