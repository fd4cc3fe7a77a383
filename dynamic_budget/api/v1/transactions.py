"""Transaction sync, listing and decision endpoints"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from dynamic_budget.api.dependencies import get_current_user, get_notifier, get_request_id, get_transaction_source
from dynamic_budget.api.errors import http_error, internal_error
from dynamic_budget.api.v1.schemas import (
    DecisionRequest,
    DecisionResponse,
    FixedCostResponse,
    LargeExpenseDecisionRequest,
    MarkRecurringRequest,
    SyncResponse,
    TransactionResponse,
)
from dynamic_budget.domain.exceptions import DomainException, TransactionSourceError
from dynamic_budget.domain.models import DecisionExtras, DecisionResult
from dynamic_budget.infrastructure.clients.expo import ExpoPushNotifier
from dynamic_budget.infrastructure.clients.plaid import PlaidClient
from dynamic_budget.infrastructure.database.models import User
from dynamic_budget.infrastructure.database.session import get_db
from dynamic_budget.services.accounts import AccountService
from dynamic_budget.services.decisions import DecisionService
from dynamic_budget.services.fixed_costs import FixedCostService
from dynamic_budget.services.ingestion import TransactionIngestionService

router = APIRouter()


def _decision_response(result: DecisionResult) -> DecisionResponse:
    return DecisionResponse(
        transaction_id=result.transaction_id,
        decision=result.decision.value,
        counted_as_income=result.counted_as_income,
        balance=result.balance,
    )


@router.post("/transactions/sync", response_model=SyncResponse)
async def sync_transactions(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    source: PlaidClient = Depends(get_transaction_source),
    notifier: ExpoPushNotifier = Depends(get_notifier),
):
    """
    Pull new transactions for the caller's first linked item.

    Credits are classified and wait for a decision; debits that are not
    known fixed costs are subtracted from the balance in one update.
    """
    try:
        result = await TransactionIngestionService(db, source, notifier).sync_for_user(user.id)
        return SyncResponse(added_count=result.added_count, has_more=result.has_more, balance=result.balance)
    except TransactionSourceError as e:
        logging.error(f"Transaction source error: {e}", extra={"request_id": get_request_id(request)})
        raise http_error(e)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.get("/transactions", response_model=List[TransactionResponse])
def list_transactions(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """All of the caller's transactions, newest first"""
    return [TransactionResponse.from_row(t) for t in AccountService(db).list_transactions(user)]


@router.get("/transactions/deposits/pending", response_model=List[TransactionResponse])
def pending_deposits(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Classified deposits still waiting for a decision"""
    return [TransactionResponse.from_row(t) for t in DecisionService(db).get_pending_deposits(user)]


@router.get("/transactions/large-expenses/pending", response_model=List[TransactionResponse])
def pending_large_expenses(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Flagged large expenses not yet handled"""
    return [TransactionResponse.from_row(t) for t in DecisionService(db).get_pending_large_expenses(user)]


@router.post("/transactions/{transaction_id}/decision", response_model=DecisionResponse)
def apply_decision(
    transaction_id: int,
    request_body: DecisionRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Record a decision and apply its balance effect at most once"""
    extras = DecisionExtras(
        fixed_cost_amount=request_body.fixed_cost_amount,
        fixed_cost_name=request_body.fixed_cost_name,
        first_due_date=request_body.first_due_date,
        periods=request_body.periods,
    )
    try:
        result = DecisionService(db).apply_decision(user, transaction_id, request_body.decision, extras)
        return _decision_response(result)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.post("/transactions/{transaction_id}/large-expense-decision", response_model=DecisionResponse)
def apply_large_expense_decision(
    transaction_id: int,
    request_body: LargeExpenseDecisionRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Resolve a flagged large expense: normal spend, from savings, or split into installments"""
    try:
        result = DecisionService(db).apply_large_expense_decision(
            user,
            transaction_id,
            request_body.option,
            request_body.split_over_periods,
        )
        return _decision_response(result)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.post("/transactions/{transaction_id}/mark-recurring", response_model=FixedCostResponse, status_code=201)
def mark_recurring(
    transaction_id: int,
    request: Request,
    request_body: Optional[MarkRecurringRequest] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Promote a charge to a recurring fixed cost"""
    try:
        fixed_cost = FixedCostService(db).mark_recurring(
            user,
            transaction_id,
            request_body.first_due_date if request_body else None,
        )
        return FixedCostResponse.from_row(fixed_cost)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)
