"""Pay-cycle math used to seed the balance of a fresh period"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from dynamic_budget.domain.exceptions import InvalidArgumentError
from dynamic_budget.domain.models import Proration
from dynamic_budget.utils.date_utils import add_months, clamp_day
from dynamic_budget.utils.money import Number, as_decimal, round_money

SAVINGS_CATEGORY = "Savings"


def previous_paycheck_date(pay_day_1: int, pay_day_2: int, next_paycheck: date) -> date:
    """
    Infer the paycheck before next_paycheck from the two configured paydays.

    If the next paycheck lands on the earlier payday, the previous one was the
    later payday of the prior month; otherwise it was the earlier payday of
    the same month. Days are clamped to the month length.
    """
    first, second = sorted((pay_day_1, pay_day_2))

    if next_paycheck.day == first:
        prior = add_months(next_paycheck.replace(day=1), -1)
        return clamp_day(prior.year, prior.month, second)

    return clamp_day(next_paycheck.year, next_paycheck.month, first)


def compute_proration(pay_day_1: int, pay_day_2: int, next_paycheck: date, today: date) -> Proration:
    """
    Fraction of the current pay cycle still ahead of today.

    Raises:
        InvalidArgumentError: next paycheck not in the future, or dates that
            are inconsistent with the configured paydays
    """
    if next_paycheck <= today:
        raise InvalidArgumentError("Next paycheck date must be in the future.")

    previous = previous_paycheck_date(pay_day_1, pay_day_2, next_paycheck)

    pay_cycle_days = (next_paycheck - previous).days
    if pay_cycle_days <= 0:
        raise InvalidArgumentError("Invalid pay cycle detected.")

    days_until_next = (next_paycheck - today).days
    if days_until_next < 0 or days_until_next > pay_cycle_days:
        raise InvalidArgumentError("Next paycheck date is inconsistent with pay days / current date.")

    return Proration(
        previous_paycheck_date=previous,
        pay_cycle_days=pay_cycle_days,
        days_until_next_paycheck=days_until_next,
        prorate_factor=Decimal(days_until_next) / Decimal(pay_cycle_days),
    )


def prorated_balance(paycheck_amount: Number, recurring_costs: Iterable[Number], prorate_factor: Decimal) -> Decimal:
    """(paycheck - recurring costs) * factor, rounded to cents"""
    total_recurring = sum((as_decimal(c) for c in recurring_costs), Decimal("0"))
    effective_paycheck = as_decimal(paycheck_amount) - total_recurring
    return round_money(effective_paycheck * prorate_factor)
