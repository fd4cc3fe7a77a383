"""Installment plan generation for large expenses converted to fixed costs"""

from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from dynamic_budget.domain.models import Installment
from dynamic_budget.utils.money import round_money

DEFAULT_INSTALLMENTS = 4
INSTALLMENT_INTERVAL_DAYS = 14


def generate_installment_plan(
    amount: Decimal,
    num_installments: int = DEFAULT_INSTALLMENTS,
    interval_days: int = INSTALLMENT_INTERVAL_DAYS,
    start_date: Optional[date] = None,
    installment_amount: Optional[Decimal] = None,
) -> List[Installment]:
    """
    Split a purchase into equal bi-weekly installments.

    Requirements:
    - Each installment is round(amount / num_installments, 2), unless an
      explicit positive installment_amount is given
    - Installments are interval_days apart
    - Rounding drift is left in place: the sum stays within
      num_installments * 0.005 of the original amount

    Args:
        amount: Total amount to split
        num_installments: Number of payments (default 4)
        interval_days: Days between payments (default 14)
        start_date: First due date (default: today + interval_days)
        installment_amount: Per-installment override

    Example:
        $100.00 over 3 -> [$33.33, $33.33, $33.33]
    """
    if amount <= 0 or num_installments <= 0:
        return []

    if start_date is None:
        start_date = date.today() + timedelta(days=interval_days)

    if installment_amount is not None and installment_amount > 0:
        per_period = round_money(installment_amount)
    else:
        per_period = round_money(amount / num_installments)

    return [
        Installment(due_date=start_date + timedelta(days=i * interval_days), amount=per_period)
        for i in range(num_installments)
    ]
