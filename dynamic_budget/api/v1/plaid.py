"""Plaid discovery endpoints used during onboarding"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from dynamic_budget.api.dependencies import get_account_data_source, get_current_user, get_request_id
from dynamic_budget.api.errors import http_error, internal_error
from dynamic_budget.api.v1.schemas import (
    DebtSnapshotResponse,
    FixedCostResponse,
    ImportRecurringRequest,
    RecurringStreamResponse,
    RecurringStreamsResponse,
)
from dynamic_budget.domain.exceptions import DomainException, TransactionSourceError
from dynamic_budget.infrastructure.clients.plaid import PlaidClient
from dynamic_budget.infrastructure.database.models import User
from dynamic_budget.infrastructure.database.session import get_db
from dynamic_budget.services.discovery import PlaidDiscoveryService

router = APIRouter()


@router.get("/plaid/recurring", response_model=RecurringStreamsResponse)
async def get_recurring_streams(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    source: PlaidClient = Depends(get_account_data_source),
):
    """Recurring inflow/outflow streams Plaid found for the caller's first item"""
    try:
        streams = await PlaidDiscoveryService(db, source).recurring_streams(user)
        if streams is None:
            return RecurringStreamsResponse(linked=False)
        return RecurringStreamsResponse(
            linked=True,
            inflow_streams=[RecurringStreamResponse.model_validate(s) for s in streams.inflow],
            outflow_streams=[RecurringStreamResponse.model_validate(s) for s in streams.outflow],
        )
    except TransactionSourceError as e:
        logging.error(f"Transaction source error: {e}", extra={"request_id": get_request_id(request)})
        raise http_error(e)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.post("/plaid/recurring/import", response_model=List[FixedCostResponse], status_code=201)
async def import_recurring_streams(
    request: Request,
    request_body: Optional[ImportRecurringRequest] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    source: PlaidClient = Depends(get_account_data_source),
):
    """
    Save outflow streams as plaid_discovered fixed costs.

    Their merchant names are then skipped when debits are synced.
    """
    stream_ids = request_body.stream_ids if request_body else None
    try:
        created = await PlaidDiscoveryService(db, source).import_recurring_streams(user, stream_ids)
        return [FixedCostResponse.from_row(fc) for fc in created]
    except TransactionSourceError as e:
        logging.error(f"Transaction source error: {e}", extra={"request_id": get_request_id(request)})
        raise http_error(e)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.get("/debt/snapshot", response_model=DebtSnapshotResponse)
async def get_debt_snapshot(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    source: PlaidClient = Depends(get_account_data_source),
):
    """Outstanding credit card balances across every linked item"""
    try:
        snapshot = await PlaidDiscoveryService(db, source).debt_snapshot(user)
        return DebtSnapshotResponse.model_validate(snapshot)
    except TransactionSourceError as e:
        logging.error(f"Transaction source error: {e}", extra={"request_id": get_request_id(request)})
        raise http_error(e)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)
