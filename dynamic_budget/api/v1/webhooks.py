"""POST /v1/plaid/webhook - provider callbacks"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dynamic_budget.api.dependencies import get_notifier, get_transaction_source
from dynamic_budget.api.v1.schemas import WebhookRequest
from dynamic_budget.infrastructure.clients.expo import ExpoPushNotifier
from dynamic_budget.infrastructure.clients.plaid import PlaidClient
from dynamic_budget.infrastructure.database.session import get_db
from dynamic_budget.services.webhooks import WebhookProcessor

router = APIRouter()


@router.post("/plaid/webhook")
async def plaid_webhook(
    request_body: WebhookRequest,
    db: Session = Depends(get_db),
    source: PlaidClient = Depends(get_transaction_source),
    notifier: ExpoPushNotifier = Depends(get_notifier),
):
    """Always answers 200 so the provider does not retry; failures are logged"""
    return await WebhookProcessor(db, source, notifier).process(
        request_body.webhook_type,
        request_body.webhook_code,
        request_body.item_id,
    )
