"""Applying user decisions to deposits and large expenses"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from dynamic_budget.domain.decisions import parse_decision, parse_large_expense_option, plan_decision
from dynamic_budget.domain.exceptions import InvalidArgumentError, NotFoundError
from dynamic_budget.domain.models import (
    DecisionExtras,
    DecisionResult,
    FixedCostType,
    LargeExpenseOption,
    TransactionState,
    UserDecision,
)
from dynamic_budget.infrastructure.database.models import Transaction, User
from dynamic_budget.infrastructure.database.repositories import (
    BalanceRepository,
    FixedCostRepository,
    TransactionRepository,
)
from dynamic_budget.infrastructure.observability.logging import log_decision
from dynamic_budget.infrastructure.observability.metrics import record_decision

logger = logging.getLogger(__name__)

TRANSACTION_NOT_FOUND = "Transaction not found."


def _state_of(transaction: Transaction) -> TransactionState:
    return TransactionState(
        amount=transaction.amount,
        date=transaction.date,
        suggested_kind=transaction.suggested_kind,
        counted_as_income=transaction.counted_as_income,
        is_large_expense_candidate=transaction.is_large_expense_candidate,
        large_expense_handled=transaction.large_expense_handled,
        label=transaction.label,
    )


class DecisionService:
    """Records decisions and applies their balance effect exactly once"""

    def __init__(self, db: Session):
        self.db = db
        self.transactions = TransactionRepository(db)

    def get_pending_deposits(self, user: User) -> List[Transaction]:
        return self.transactions.pending_deposits(user.id)

    def get_pending_large_expenses(self, user: User) -> List[Transaction]:
        return self.transactions.pending_large_expenses(user.id)

    def apply_decision(
        self,
        user: User,
        transaction_id: int,
        decision,
        extras: Optional[DecisionExtras] = None,
    ) -> DecisionResult:
        """
        Apply a decision to one of the user's transactions.

        Raises:
            InvalidArgumentError: Unknown decision or non-positive periods
            NotFoundError: Transaction missing or owned by someone else
        """
        parsed = parse_decision(decision)
        return self._apply(user, transaction_id, parsed, extras, FixedCostType.LARGE_EXPENSE)

    def apply_large_expense_decision(
        self,
        user: User,
        transaction_id: int,
        option,
        split_over_periods: Optional[int] = None,
    ) -> DecisionResult:
        """
        Resolve a flagged large expense through the review flow.

        convert_to_fixed_cost splits the amount over split_over_periods
        installments, the first one 14 days after the purchase.

        Raises:
            InvalidArgumentError: Unknown option, a deposit, or missing/invalid split
            NotFoundError: Transaction missing or owned by someone else
        """
        parsed = parse_large_expense_option(option)
        if parsed == LargeExpenseOption.CONVERT_TO_FIXED_COST and (split_over_periods is None or split_over_periods < 1):
            raise InvalidArgumentError("split_over_periods must be at least 1.")

        transaction = self.transactions.get_for_user(transaction_id, user.id)
        if transaction is None:
            raise NotFoundError(TRANSACTION_NOT_FOUND)
        if transaction.is_credit:
            raise InvalidArgumentError("Only expenses can be handled as large expenses.")

        extras = DecisionExtras(periods=split_over_periods) if split_over_periods else None
        return self._apply(user, transaction_id, parsed.decision, extras, FixedCostType.LARGE_EXPENSE_PLAN)

    def _apply(
        self,
        user: User,
        transaction_id: int,
        decision: UserDecision,
        extras: Optional[DecisionExtras],
        installment_type: FixedCostType,
    ) -> DecisionResult:
        try:
            # Lock the balance before reading the flags so re-applications serialize
            balance = BalanceRepository(self.db).lock(user.id)

            transaction = self.transactions.get_for_user(transaction_id, user.id)
            if transaction is None:
                raise NotFoundError(TRANSACTION_NOT_FOUND)

            outcome = plan_decision(_state_of(transaction), decision, extras)

            if outcome.balance_delta:
                balance.amount = balance.amount + outcome.balance_delta
                balance.updated_at = datetime.now(timezone.utc)

            if outcome.installments:
                FixedCostRepository(self.db).create_installments(
                    user_id=user.id,
                    name=outcome.installment_name,
                    installments=outcome.installments,
                    type=installment_type,
                    plaid_merchant_name=transaction.merchant_name,
                    plaid_account_id=transaction.account_id,
                )

            transaction.user_decision = decision
            transaction.counted_as_income = outcome.counted_as_income
            transaction.is_large_expense_candidate = outcome.is_large_expense_candidate
            transaction.large_expense_handled = outcome.large_expense_handled
            transaction.updated_at = datetime.now(timezone.utc)

            self.db.commit()

        except Exception:
            self.db.rollback()
            raise

        if outcome.category_mismatch:
            logger.warning(
                "Decision does not match transaction category",
                extra={"user_id": user.id, "transaction_id": transaction.id, "decision": decision.value},
            )

        record_decision(decision.value, outcome.effect, outcome.category_mismatch)
        log_decision(user.id, transaction.id, decision.value, outcome.effect, outcome.balance_delta, balance.amount)

        return DecisionResult(
            transaction_id=transaction.id,
            decision=decision,
            counted_as_income=transaction.counted_as_income,
            balance=balance.amount,
        )
