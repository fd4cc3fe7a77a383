"""User registration, profile and linked items"""

from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from dynamic_budget.api.dependencies import get_current_user, get_request_id
from dynamic_budget.api.errors import http_error, internal_error
from dynamic_budget.api.v1.schemas import (
    LinkedItemResponse,
    LinkItemRequest,
    RegisterUserRequest,
    UserProfileResponse,
)
from dynamic_budget.domain.exceptions import DomainException
from dynamic_budget.infrastructure.database.models import User
from dynamic_budget.infrastructure.database.session import get_db
from dynamic_budget.services.accounts import AccountService

router = APIRouter()


@router.post("/users/register", response_model=UserProfileResponse, status_code=201)
def register_user(request_body: RegisterUserRequest, request: Request, db: Session = Depends(get_db)):
    """Create a user and its zero balance"""
    try:
        user = AccountService(db).register_user(request_body.name, request_body.email, request_body.auth_uid)
        return UserProfileResponse.model_validate(user)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.get("/users/profile", response_model=UserProfileResponse)
def get_profile(user: User = Depends(get_current_user)):
    return UserProfileResponse.model_validate(user)


@router.post("/items", response_model=LinkedItemResponse, status_code=201)
def link_item(
    request_body: LinkItemRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Attach a provider item (bank connection) to the caller"""
    try:
        item = AccountService(db).link_item(
            user,
            request_body.item_id,
            request_body.access_token,
            request_body.institution_name,
        )
        return LinkedItemResponse.model_validate(item)
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)


@router.get("/items", response_model=List[LinkedItemResponse])
def list_items(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """The caller's linked institutions, oldest first"""
    return [LinkedItemResponse.model_validate(item) for item in AccountService(db).list_linked_items(user)]
