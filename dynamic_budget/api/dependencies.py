"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from dynamic_budget.api.errors import http_error
from dynamic_budget.domain.exceptions import DomainException
from dynamic_budget.infrastructure.clients.expo import ExpoPushNotifier
from dynamic_budget.infrastructure.clients.plaid import PlaidClient
from dynamic_budget.infrastructure.database.models import User
from dynamic_budget.infrastructure.database.repositories import DeviceRepository
from dynamic_budget.infrastructure.database.session import get_db
from dynamic_budget.services.accounts import AccountService

AUTH_HEADER = "X-Auth-Uid"


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_transaction_source() -> PlaidClient:
    """Provide Plaid client instance"""
    return PlaidClient()


def get_account_data_source() -> PlaidClient:
    """Provide Plaid client for recurring streams and account balances"""
    return PlaidClient()


def get_notifier(db: Session = Depends(get_db)) -> ExpoPushNotifier:
    """Provide push notifier bound to the request's session"""
    return ExpoPushNotifier(DeviceRepository(db))


def get_current_user(
    x_auth_uid: Optional[str] = Header(None, alias=AUTH_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the caller from the uid forwarded by the authenticating gateway.

    Missing header -> 401, unknown uid -> 404.
    """
    try:
        return AccountService(db).resolve_user(x_auth_uid)
    except DomainException as e:
        raise http_error(e)
