"""Expo push notification client"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from dynamic_budget.config import settings
from dynamic_budget.domain.exceptions import NotificationError
from dynamic_budget.domain.models import SuggestedKind
from dynamic_budget.infrastructure.database.models import Transaction
from dynamic_budget.infrastructure.database.repositories import DeviceRepository
from dynamic_budget.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)


def _fmt(amount: Optional[Decimal]) -> str:
    return f"{(amount or Decimal('0')):.2f}"


def build_transaction_message(transaction: Transaction, balance: Optional[Decimal]) -> Dict[str, Any]:
    """Title, body and data payload describing a freshly synced transaction"""
    label = transaction.merchant_name or transaction.name

    if transaction.suggested_kind != SuggestedKind.UNKNOWN:
        kind = "deposit"
        title = (
            "New paycheck detected"
            if transaction.suggested_kind == SuggestedKind.PAYCHECK
            else "New deposit detected"
        )
        body = (
            f"Your Period Spend Limit is currently ${_fmt(balance)}. "
            "Tap to decide how to use this deposit."
        )
    elif transaction.is_large_expense_candidate and not transaction.large_expense_handled:
        kind = "large-expense"
        title = "Large purchase spotted"
        body = (
            f"${_fmt(transaction.amount)} at {label}. "
            f"Period Spend Limit is now ${_fmt(balance)}. "
            "Tap to choose: pay from savings, convert to fixed cost, or treat as normal spend."
        )
    else:
        kind = "spend"
        title = f"New charge: {label}"
        body = (
            f"-${_fmt(transaction.amount)}. Period Spend Limit is now ${_fmt(balance)}. "
            "Tap to mark this as a recurring bill or review your spending."
        )

    return {
        "title": title,
        "body": body,
        "data": {
            "type": kind,
            "transactionId": transaction.id,
            "dynamicBalance": _fmt(balance),
            "canMarkRecurring": kind == "spend",
        },
    }


class ExpoPushNotifier:
    """Sends push notifications to every active device of a user"""

    def __init__(
        self,
        devices: DeviceRepository,
        push_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.devices = devices
        self.push_url = push_url or settings.expo_push_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def notify(self, transaction: Transaction, balance: Optional[Decimal]) -> None:
        """Announce a new transaction and the resulting balance"""
        message = build_transaction_message(transaction, balance)
        await self.notify_user(transaction.user_id, message["title"], message["body"], message["data"])

    async def notify_user(
        self,
        user_id: int,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Send a generic notification.

        Raises:
            NotificationError: Expo unreachable or rejected the request
        """
        tokens = self.devices.active_tokens(user_id)
        if not tokens:
            return

        payloads = [
            {"to": token, "sound": "default", "title": title, "body": body, "data": data or {}}
            for token in tokens
        ]
        await self._post(payloads)

    async def _post(self, payloads: List[Dict[str, Any]]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                with notification_latency_histogram.time():
                    response = await client.post(self.push_url, json=payloads)
                    response.raise_for_status()
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                notification_failure_counter.inc()
                raise NotificationError(f"Expo push failed: {e}") from e
