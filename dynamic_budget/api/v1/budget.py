"""Dynamic balance and period finalization endpoints"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from dynamic_budget.api.dependencies import get_current_user, get_request_id
from dynamic_budget.api.errors import http_error, internal_error
from dynamic_budget.api.v1.schemas import BalanceResponse, FinalizeRequest, FinalizeResponse, SetBalanceRequest
from dynamic_budget.domain.exceptions import DomainException
from dynamic_budget.infrastructure.database.models import User
from dynamic_budget.infrastructure.database.session import get_db
from dynamic_budget.services.accounts import AccountService
from dynamic_budget.services.finalizer import PeriodFinalizer

router = APIRouter()


@router.get("/balance", response_model=BalanceResponse)
def get_balance(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        balance = AccountService(db).get_balance(user)
    except DomainException as e:
        raise http_error(e)
    return BalanceResponse(balance=balance.amount, updated_at=balance.updated_at)


@router.post("/balance", response_model=BalanceResponse)
def set_balance(
    request_body: SetBalanceRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Manually override the dynamic balance"""
    try:
        balance = AccountService(db).set_balance(user, request_body.amount)
        return BalanceResponse(balance=balance.amount, updated_at=balance.updated_at)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.post("/budget/finalize", response_model=FinalizeResponse)
def finalize_budget(
    request_body: FinalizeRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Seed the balance for the current pay cycle at the end of onboarding.

    Returns:
        Prorated balance and the factor it was scaled by
    """
    try:
        result = PeriodFinalizer(db).finalize(
            user.id,
            paycheck_amount=request_body.paycheck_amount,
            pay_day_1=request_body.pay_day_1,
            pay_day_2=request_body.pay_day_2,
            next_paycheck_date=request_body.next_paycheck_date,
            debt_per_paycheck=request_body.debt_per_paycheck,
        )
        return FinalizeResponse(
            balance=result.balance,
            prorate_factor=result.prorate_factor,
            total_recurring_costs=result.total_recurring_costs,
            pay_cycle_days=result.pay_cycle_days,
            days_until_next_paycheck=result.days_until_next_paycheck,
        )
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)
