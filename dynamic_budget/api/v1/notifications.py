"""Push notification device registration"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from dynamic_budget.api.dependencies import get_current_user, get_request_id
from dynamic_budget.api.errors import http_error, internal_error
from dynamic_budget.api.v1.schemas import RegisterDeviceRequest
from dynamic_budget.domain.exceptions import DomainException
from dynamic_budget.infrastructure.database.models import User
from dynamic_budget.infrastructure.database.session import get_db
from dynamic_budget.services.accounts import AccountService

router = APIRouter()


@router.post("/notifications/register-device")
def register_device(
    request_body: RegisterDeviceRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Register (or reactivate) an Expo push token for the caller"""
    try:
        device = AccountService(db).register_device(user, request_body.expo_push_token, request_body.platform)
        return {"device_id": device.id, "is_active": device.is_active}
    except DomainException as e:
        raise http_error(e)
    except Exception as e:
        raise internal_error(db, get_request_id(request), e)
