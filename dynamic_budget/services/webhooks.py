"""Plaid webhook handling"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from dynamic_budget.infrastructure.database.repositories import LinkedItemRepository
from dynamic_budget.services.ingestion import Notifier, TransactionIngestionService, TransactionSource

logger = logging.getLogger(__name__)

SYNC_WEBHOOK_TYPE = "TRANSACTIONS"
SYNC_WEBHOOK_CODES = frozenset({"DEFAULT_UPDATE", "INITIAL_UPDATE", "TRANSACTIONS_REMOVED"})


def triggers_sync(webhook_type: Optional[str], webhook_code: Optional[str]) -> bool:
    return webhook_type == SYNC_WEBHOOK_TYPE and webhook_code in SYNC_WEBHOOK_CODES


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


class WebhookProcessor:
    """Runs a sync for transaction webhooks and tells the owner about the new balance"""

    def __init__(self, db: Session, source: TransactionSource, notifier: Optional[Notifier] = None):
        self.db = db
        self.source = source
        self.notifier = notifier

    async def process(
        self,
        webhook_type: Any,
        webhook_code: Any,
        item_id: Any,
    ) -> Dict[str, Any]:
        """
        Handle one webhook delivery.

        Never raises: the provider only needs an acknowledgement, so failures
        are logged and reported in the message. Fields arrive loosely typed
        and are compared as strings.
        """
        webhook_type = _as_text(webhook_type)
        webhook_code = _as_text(webhook_code)
        item_id = _as_text(item_id)

        if not triggers_sync(webhook_type, webhook_code) or not item_id:
            logger.info(
                "Ignoring webhook",
                extra={"webhook_type": webhook_type, "webhook_code": webhook_code, "item_id": item_id},
            )
            return {"message": "Webhook received, no action needed for this type."}

        try:
            result = await TransactionIngestionService(self.db, self.source, self.notifier).sync_item(item_id)
        except Exception:
            logger.error("Webhook processing failed", exc_info=True, extra={"item_id": item_id})
            return {"message": "Processing failed internally, but response sent."}

        item = LinkedItemRepository(self.db).get_by_item_id(item_id)
        if item is not None and self.notifier is not None:
            await self._notify_owner(item.user_id, result.balance, result.added_count)

        return {"message": "Webhook processed, sync done.", "added": result.added_count}

    async def _notify_owner(self, user_id: int, balance: Optional[Decimal], added_count: int) -> None:
        remaining = balance if balance is not None else Decimal("0")
        try:
            await self.notifier.notify_user(
                user_id,
                "Dynamic budget updated",
                f"Your period spend limit has been updated. Current remaining: {remaining:.2f}",
                {
                    "type": "transactions_sync",
                    "hasNewTransactions": added_count > 0,
                    "dynamicBalance": f"{remaining:.2f}",
                },
            )
        except Exception:
            logger.warning("Webhook notification failed", exc_info=True, extra={"user_id": user_id})
