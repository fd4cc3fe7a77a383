"""Plaid HTTP client: incremental transaction sync, recurring streams and accounts"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from dynamic_budget.config import settings
from dynamic_budget.domain.exceptions import TransactionSourceError
from dynamic_budget.domain.models import (
    ProviderAccount,
    RecurringStream,
    RecurringStreams,
    SourceTransaction,
    SyncPage,
)


def _amount(value: Optional[Dict[str, Any]]) -> Optional[Decimal]:
    if not value or value.get("amount") is None:
        return None
    return Decimal(str(value["amount"]))


def _parse_stream(raw: Dict[str, Any]) -> RecurringStream:
    last_amount = _amount(raw.get("last_amount"))
    if last_amount is None:
        raise ValueError(f"stream {raw.get('stream_id')!r} has no last_amount")
    return RecurringStream(
        stream_id=raw["stream_id"],
        description=raw.get("description") or "",
        merchant_name=raw.get("merchant_name"),
        frequency=raw.get("frequency") or "UNKNOWN",
        last_amount=last_amount,
        average_amount=_amount(raw.get("average_amount")),
        last_date=date.fromisoformat(raw["last_date"]) if raw.get("last_date") else None,
        is_active=bool(raw.get("is_active", True)),
        confidence=raw.get("confidence_level"),
    )


class PlaidClient:
    """Client for the Plaid endpoints the budget engine reads from"""

    def __init__(
        self,
        base_url: str | None = None,
        client_id: str | None = None,
        secret: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.plaid_base_url
        self.client_id = client_id if client_id is not None else settings.plaid_client_id
        self.secret = secret if secret is not None else settings.plaid_secret
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def _post(self, path: str, access_token: str, **fields) -> Dict[str, Any]:
        payload = {
            "client_id": self.client_id,
            "secret": self.secret,
            "access_token": access_token,
            **fields,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(f"{self.base_url}{path}", json=payload)
                response.raise_for_status()
                return response.json(parse_float=Decimal)

            except httpx.TimeoutException as e:
                raise TransactionSourceError(f"Plaid timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise TransactionSourceError(f"Plaid error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise TransactionSourceError(f"Plaid unreachable: {e}") from e
            except ValueError as e:
                raise TransactionSourceError(f"Invalid JSON from Plaid: {e}") from e

    async def fetch_new_transactions(
        self,
        access_token: str,
        cursor: Optional[str],
        page_size: int,
    ) -> SyncPage:
        """
        Fetch one page of added transactions since cursor.

        Amounts are returned in Plaid's convention: positive = money out,
        negative = money in. Modified/removed records are not consumed.

        Raises:
            TransactionSourceError: On timeout, HTTP errors, or invalid response
        """
        fields: Dict[str, Any] = {"count": page_size}
        # Plaid rejects an empty cursor string on the first sync
        if cursor:
            fields["cursor"] = cursor

        data = await self._post("/transactions/sync", access_token, **fields)

        try:
            added = [
                SourceTransaction(
                    external_id=txn["transaction_id"],
                    account_id=txn.get("account_id") or "",
                    amount=Decimal(str(txn["amount"])),
                    date=date.fromisoformat(txn["date"]) if txn.get("date") else date.today(),
                    name=txn.get("name") or "",
                    merchant_name=txn.get("merchant_name"),
                    pending=bool(txn.get("pending", False)),
                )
                for txn in data.get("added", [])
            ]

            return SyncPage(
                added=added,
                next_cursor=data["next_cursor"],
                has_more=bool(data.get("has_more", False)),
            )
        except (KeyError, ValueError, TypeError, AttributeError, ArithmeticError) as e:
            raise TransactionSourceError(f"Invalid transaction data from Plaid: {e}") from e

    async def fetch_recurring_streams(self, access_token: str) -> RecurringStreams:
        """
        Recurring inflow/outflow streams Plaid detected in the item's history.

        Raises:
            TransactionSourceError: On timeout, HTTP errors, or invalid response
        """
        data = await self._post("/transactions/recurring/get", access_token)

        try:
            return RecurringStreams(
                inflow=[_parse_stream(s) for s in data.get("inflow_streams") or []],
                outflow=[_parse_stream(s) for s in data.get("outflow_streams") or []],
            )
        except (KeyError, ValueError, TypeError, AttributeError, ArithmeticError) as e:
            raise TransactionSourceError(f"Invalid recurring stream data from Plaid: {e}") from e

    async def fetch_accounts(self, access_token: str) -> List[ProviderAccount]:
        """
        Accounts under the item with their current balances.

        Raises:
            TransactionSourceError: On timeout, HTTP errors, or invalid response
        """
        data = await self._post("/accounts/get", access_token)

        try:
            return [
                ProviderAccount(
                    account_id=acct["account_id"],
                    name=acct.get("name"),
                    official_name=acct.get("official_name"),
                    mask=acct.get("mask"),
                    type=acct.get("type") or "other",
                    subtype=acct.get("subtype"),
                    current_balance=(
                        Decimal(str(acct["balances"]["current"]))
                        if (acct.get("balances") or {}).get("current") is not None
                        else None
                    ),
                )
                for acct in data["accounts"]
            ]
        except (KeyError, ValueError, TypeError, AttributeError, ArithmeticError) as e:
            raise TransactionSourceError(f"Invalid account data from Plaid: {e}") from e
