"""Decision state machine - how a user's choice moves the balance and the flags"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from dynamic_budget.domain.exceptions import InvalidArgumentError
from dynamic_budget.domain.installments import (
    DEFAULT_INSTALLMENTS,
    INSTALLMENT_INTERVAL_DAYS,
    generate_installment_plan,
)
from dynamic_budget.domain.models import (
    DecisionCategory,
    DecisionExtras,
    DecisionOutcome,
    LargeExpenseOption,
    SuggestedKind,
    TransactionState,
    UserDecision,
)

ZERO = Decimal("0")


def parse_decision(value) -> UserDecision:
    """Coerce a raw value into a UserDecision"""
    if isinstance(value, UserDecision):
        return value
    try:
        return UserDecision(value)
    except ValueError as e:
        raise InvalidArgumentError(f"Invalid decision: {value!r}") from e


def parse_large_expense_option(value) -> LargeExpenseOption:
    if isinstance(value, LargeExpenseOption):
        return value
    try:
        return LargeExpenseOption(value)
    except ValueError as e:
        raise InvalidArgumentError(f"Unknown option: {value!r}") from e


def transaction_category(state: TransactionState) -> DecisionCategory:
    """
    Category a transaction currently sits in.

    Only credits get a suggested kind, so anything classified is a deposit.
    A large expense stops being one once it has been handled.
    """
    if state.suggested_kind != SuggestedKind.UNKNOWN:
        return DecisionCategory.DEPOSIT
    if state.is_large_expense_candidate and not state.large_expense_handled:
        return DecisionCategory.LARGE_EXPENSE
    return DecisionCategory.NONE


def _unchanged(state: TransactionState, effect: str, mismatch: bool = False) -> DecisionOutcome:
    return DecisionOutcome(
        balance_delta=ZERO,
        counted_as_income=state.counted_as_income,
        is_large_expense_candidate=state.is_large_expense_candidate,
        large_expense_handled=state.large_expense_handled,
        effect=effect,
        category_mismatch=mismatch,
    )


def _plan_deposit(state: TransactionState, decision: UserDecision) -> DecisionOutcome:
    if decision == UserDecision.TREAT_AS_INCOME:
        if state.counted_as_income:
            return _unchanged(state, "already_counted")
        return DecisionOutcome(
            balance_delta=state.amount,
            counted_as_income=True,
            is_large_expense_candidate=state.is_large_expense_candidate,
            large_expense_handled=state.large_expense_handled,
            effect="income_counted",
        )

    # ignore_for_dynamic / debt_payment / savings_funded: undo a previous count
    if state.counted_as_income:
        return DecisionOutcome(
            balance_delta=-state.amount,
            counted_as_income=False,
            is_large_expense_candidate=state.is_large_expense_candidate,
            large_expense_handled=state.large_expense_handled,
            effect="income_reversed",
        )
    return _unchanged(state, "not_counted")


def _plan_large_expense(state: TransactionState, decision: UserDecision, extras: DecisionExtras) -> DecisionOutcome:
    outcome = DecisionOutcome(
        balance_delta=ZERO,
        counted_as_income=state.counted_as_income,
        is_large_expense_candidate=False,
        large_expense_handled=True,
        effect="kept_as_spend",
    )

    if decision == UserDecision.TREAT_AS_VARIABLE_SPEND:
        # The debit already hit the balance at sync time
        return outcome

    outcome.balance_delta = state.amount
    outcome.effect = "refunded"

    if decision == UserDecision.LARGE_EXPENSE_TO_FIXED_COST:
        periods = extras.periods or DEFAULT_INSTALLMENTS
        first_due = extras.first_due_date or state.date + timedelta(days=INSTALLMENT_INTERVAL_DAYS)
        outcome.installments = generate_installment_plan(
            state.amount,
            num_installments=periods,
            start_date=first_due,
            installment_amount=extras.fixed_cost_amount,
        )
        outcome.installment_name = (extras.fixed_cost_name or "").strip() or f"Installment: {state.label}"
        outcome.effect = "refunded_to_installments"

    return outcome


def plan_decision(
    state: TransactionState,
    decision: UserDecision,
    extras: Optional[DecisionExtras] = None,
) -> DecisionOutcome:
    """
    Compute the effect of applying a decision to a transaction.

    Deposit:
    - treat_as_income adds the amount once (guarded by counted_as_income)
    - ignore_for_dynamic / debt_payment / savings_funded take it back out if counted

    Large expense (candidate, not yet handled):
    - treat_as_variable_spend keeps the sync-time debit
    - large_expense_from_savings refunds the amount
    - large_expense_to_fixed_cost refunds and spreads it over installments

    Anything else is recorded without touching the balance. Decisions from the
    other category are flagged as a mismatch.

    Raises:
        InvalidArgumentError: non-positive installment count
    """
    extras = extras or DecisionExtras()
    if extras.periods is not None and extras.periods <= 0:
        raise InvalidArgumentError("Installment periods must be at least 1.")

    category = transaction_category(state)
    mismatch = (
        category != DecisionCategory.NONE
        and decision.category != DecisionCategory.NONE
        and decision.category != category
    )

    if mismatch or decision.category == DecisionCategory.NONE:
        return _unchanged(state, "recorded", mismatch=mismatch)

    if category == DecisionCategory.DEPOSIT:
        return _plan_deposit(state, decision)
    if category == DecisionCategory.LARGE_EXPENSE:
        return _plan_large_expense(state, decision, extras)

    return _unchanged(state, "recorded")
