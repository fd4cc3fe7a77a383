"""Fixed cost endpoints"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from dynamic_budget.api.dependencies import get_current_user, get_request_id
from dynamic_budget.api.errors import http_error, internal_error
from dynamic_budget.api.v1.schemas import FixedCostListResponse, FixedCostRequest, FixedCostResponse
from dynamic_budget.domain.exceptions import DomainException
from dynamic_budget.infrastructure.database.models import User
from dynamic_budget.infrastructure.database.session import get_db
from dynamic_budget.services.fixed_costs import FixedCostService

router = APIRouter()


@router.get("/fixed-costs", response_model=FixedCostListResponse)
def list_fixed_costs(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    fixed_costs = FixedCostService(db).list_fixed_costs(user)
    return FixedCostListResponse(fixed_costs=[FixedCostResponse.from_row(fc) for fc in fixed_costs])


@router.post("/fixed-costs", response_model=FixedCostResponse, status_code=201)
def create_fixed_cost(
    request_body: FixedCostRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Add a fixed cost.

    Setting plaid_merchant_name makes matching debits skip the balance at sync time.
    """
    try:
        fixed_cost = FixedCostService(db).create_fixed_cost(
            user,
            name=request_body.name,
            amount=request_body.amount,
            category=request_body.category,
            type=request_body.type,
            next_due_date=request_body.next_due_date,
            plaid_merchant_name=request_body.plaid_merchant_name,
            plaid_account_id=request_body.plaid_account_id,
        )
        return FixedCostResponse.from_row(fixed_cost)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.delete("/fixed-costs/{fixed_cost_id}", status_code=204)
def delete_fixed_cost(
    fixed_cost_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        FixedCostService(db).delete_fixed_cost(user, fixed_cost_id)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)
    return Response(status_code=204)
