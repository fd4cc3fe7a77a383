"""Seeding the dynamic balance at the start of a period"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from dynamic_budget.domain.classifier import is_valid_pay_day
from dynamic_budget.domain.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from dynamic_budget.domain.models import FinalizeResult
from dynamic_budget.domain.periods import SAVINGS_CATEGORY, compute_proration, prorated_balance
from dynamic_budget.infrastructure.database.models import FixedCost
from dynamic_budget.infrastructure.database.repositories import (
    BalanceRepository,
    FixedCostRepository,
    UserRepository,
)
from dynamic_budget.infrastructure.observability.logging import log_finalize
from dynamic_budget.infrastructure.observability.metrics import finalize_counter
from dynamic_budget.utils.money import as_decimal, round_money


class PeriodFinalizer:
    """Computes and stores the prorated balance once onboarding is done"""

    def __init__(self, db: Session):
        self.db = db

    def finalize(
        self,
        user_id: int,
        paycheck_amount,
        pay_day_1: int,
        pay_day_2: int,
        next_paycheck_date: date,
        debt_per_paycheck=None,
        today: Optional[date] = None,
    ) -> FinalizeResult:
        """
        Seed the balance for the current pay cycle.

        balance = (paycheck - recurring costs) * days_until_next / pay_cycle_days

        Recurring costs are the fixed costs due between today and the next
        paycheck plus every Savings row plus the debt payment per paycheck.
        A Savings row that is also due in the window is counted once, not
        once per rule.

        today defaults to the current UTC date.

        Raises:
            NotFoundError: Unknown user
            ConflictError: Onboarding already completed
            InvalidArgumentError: Bad pay days, amounts or paycheck date
        """
        today = today or datetime.now(timezone.utc).date()
        paycheck = as_decimal(paycheck_amount)
        debt = as_decimal(debt_per_paycheck) if debt_per_paycheck is not None else Decimal("0")

        if not (is_valid_pay_day(pay_day_1) and is_valid_pay_day(pay_day_2)):
            finalize_counter.labels(outcome="invalid").inc()
            raise InvalidArgumentError("Pay days must be between 1 and 31.")
        if paycheck < 0 or debt < 0:
            finalize_counter.labels(outcome="invalid").inc()
            raise InvalidArgumentError("Amounts must not be negative.")

        user = UserRepository(self.db).get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found.")

        try:
            balance = BalanceRepository(self.db).lock(user.id)
            self.db.refresh(user)

            if user.onboarding_complete:
                finalize_counter.labels(outcome="conflict").inc()
                raise ConflictError("Budget has already been finalized.")

            try:
                proration = compute_proration(pay_day_1, pay_day_2, next_paycheck_date, today)
            except InvalidArgumentError:
                finalize_counter.labels(outcome="invalid").inc()
                raise

            fixed_costs = FixedCostRepository(self.db)
            recurring: Dict[int, FixedCost] = {
                fc.id: fc for fc in fixed_costs.due_between(user.id, today, next_paycheck_date)
            }
            for fc in fixed_costs.in_category(user.id, SAVINGS_CATEGORY):
                recurring.setdefault(fc.id, fc)

            costs = [fc.amount for fc in recurring.values()] + [debt]
            total_recurring = round_money(sum(costs, Decimal("0")))
            new_balance = prorated_balance(paycheck, costs, proration.prorate_factor)

            balance.amount = new_balance
            balance.updated_at = datetime.now(timezone.utc)

            user.pay_day_1 = pay_day_1
            user.pay_day_2 = pay_day_2
            user.expected_paycheck_amount = paycheck
            user.debt_per_paycheck = debt if debt_per_paycheck is not None else None
            user.onboarding_complete = True

            self.db.commit()

        except Exception:
            self.db.rollback()
            raise

        finalize_counter.labels(outcome="ok").inc()
        log_finalize(
            user.id,
            proration.pay_cycle_days,
            proration.days_until_next_paycheck,
            total_recurring,
            new_balance,
        )

        return FinalizeResult(
            balance=new_balance,
            prorate_factor=proration.prorate_factor,
            total_recurring_costs=total_recurring,
            pay_cycle_days=proration.pay_cycle_days,
            days_until_next_paycheck=proration.days_until_next_paycheck,
        )
