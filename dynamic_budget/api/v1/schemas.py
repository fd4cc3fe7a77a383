"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterUserRequest(BaseModel):
    """Request body for POST /v1/users/register"""

    name: str = ""
    email: str = Field(..., min_length=3, description="Login email")
    auth_uid: Optional[str] = Field(None, description="Identity provider uid; generated when omitted")


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    auth_uid: str
    onboarding_complete: bool


class LinkItemRequest(BaseModel):
    """Request body for POST /v1/items"""

    item_id: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    institution_name: Optional[str] = None


class LinkedItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: str
    institution_name: Optional[str] = None


class BalanceResponse(BaseModel):
    balance: Decimal
    updated_at: Optional[datetime] = None


class SetBalanceRequest(BaseModel):
    amount: Decimal


class TransactionResponse(BaseModel):
    id: int
    external_id: str
    account_id: str
    amount: Decimal
    is_credit: bool
    date: date
    name: str
    merchant_name: Optional[str] = None
    pending: bool
    suggested_kind: str
    user_decision: str
    counted_as_income: bool
    is_large_expense_candidate: bool
    large_expense_handled: bool

    @classmethod
    def from_row(cls, row) -> "TransactionResponse":
        return cls(
            id=row.id,
            external_id=row.external_id,
            account_id=row.account_id,
            amount=row.amount,
            is_credit=row.is_credit,
            date=row.date,
            name=row.name,
            merchant_name=row.merchant_name,
            pending=row.pending,
            suggested_kind=row.suggested_kind.value,
            user_decision=row.user_decision.value,
            counted_as_income=row.counted_as_income,
            is_large_expense_candidate=row.is_large_expense_candidate,
            large_expense_handled=row.large_expense_handled,
        )


class SyncResponse(BaseModel):
    added_count: int
    has_more: bool
    balance: Optional[Decimal] = None


class DecisionRequest(BaseModel):
    """Request body for POST /v1/transactions/{id}/decision"""

    decision: str = Field(..., description="treat_as_income, ignore_for_dynamic, debt_payment, ...")
    fixed_cost_amount: Optional[Decimal] = None
    fixed_cost_name: Optional[str] = None
    first_due_date: Optional[date] = None
    periods: Optional[int] = None


class LargeExpenseDecisionRequest(BaseModel):
    """Request body for POST /v1/transactions/{id}/large-expense-decision"""

    option: str = Field(..., description="treat_as_normal, from_savings or convert_to_fixed_cost")
    split_over_periods: Optional[int] = None


class DecisionResponse(BaseModel):
    transaction_id: int
    decision: str
    counted_as_income: bool
    balance: Optional[Decimal] = None


class MarkRecurringRequest(BaseModel):
    first_due_date: Optional[date] = None


class FixedCostRequest(BaseModel):
    """Request body for POST /v1/fixed-costs"""

    name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    category: Optional[str] = None
    type: Optional[str] = None
    next_due_date: Optional[date] = None
    plaid_merchant_name: Optional[str] = None
    plaid_account_id: Optional[str] = None


class FixedCostResponse(BaseModel):
    id: int
    name: str
    amount: Decimal
    category: str
    type: str
    next_due_date: Optional[date] = None
    plaid_merchant_name: Optional[str] = None
    plaid_account_id: Optional[str] = None
    user_has_approved: bool

    @classmethod
    def from_row(cls, row) -> "FixedCostResponse":
        return cls(
            id=row.id,
            name=row.name,
            amount=row.amount,
            category=row.category,
            type=row.type.value,
            next_due_date=row.next_due_date,
            plaid_merchant_name=row.plaid_merchant_name,
            plaid_account_id=row.plaid_account_id,
            user_has_approved=row.user_has_approved,
        )


class FixedCostListResponse(BaseModel):
    fixed_costs: List[FixedCostResponse]


class FinalizeRequest(BaseModel):
    """Request body for POST /v1/budget/finalize"""

    paycheck_amount: Decimal = Field(..., ge=0)
    pay_day_1: int = Field(..., ge=1, le=31)
    pay_day_2: int = Field(..., ge=1, le=31)
    next_paycheck_date: date
    debt_per_paycheck: Optional[Decimal] = Field(None, ge=0)


class FinalizeResponse(BaseModel):
    balance: Decimal
    prorate_factor: Decimal
    total_recurring_costs: Decimal
    pay_cycle_days: int
    days_until_next_paycheck: int


class RegisterDeviceRequest(BaseModel):
    expo_push_token: str = Field(..., min_length=1)
    platform: Optional[str] = None


class WebhookRequest(BaseModel):
    """Plaid webhook payload (only the fields we act on)"""

    webhook_type: Optional[Any] = None
    webhook_code: Optional[Any] = None
    item_id: Optional[Any] = None


class RecurringStreamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stream_id: str
    description: str
    merchant_name: Optional[str] = None
    frequency: str
    last_amount: Decimal
    average_amount: Optional[Decimal] = None
    last_date: Optional[date] = None
    is_active: bool
    confidence: Optional[str] = None


class RecurringStreamsResponse(BaseModel):
    linked: bool
    inflow_streams: List[RecurringStreamResponse] = []
    outflow_streams: List[RecurringStreamResponse] = []


class ImportRecurringRequest(BaseModel):
    """Request body for POST /v1/plaid/recurring/import; omit stream_ids to take confident streams"""

    stream_ids: Optional[List[str]] = None


class DebtAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    institution_name: str
    account_name: str
    mask: Optional[str] = None
    current_balance: Decimal


class DebtSnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_debt: Decimal
    accounts: List[DebtAccountResponse]
