"""Transaction ingestion and balance reconciliation"""

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dynamic_budget.config import settings
from dynamic_budget.domain.classifier import classify_deposit, is_large_expense, normalize_amount
from dynamic_budget.domain.exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    TransactionSourceError,
    UnauthorizedError,
)
from dynamic_budget.domain.models import DepositContext, SourceTransaction, SuggestedKind, SyncPage, SyncResult
from dynamic_budget.infrastructure.database.models import Transaction, User
from dynamic_budget.infrastructure.database.repositories import (
    BalanceRepository,
    FixedCostRepository,
    LinkedItemRepository,
    TransactionRepository,
    UserRepository,
)
from dynamic_budget.infrastructure.observability.logging import log_sync
from dynamic_budget.infrastructure.observability.metrics import (
    ingested_transactions_counter,
    large_expense_counter,
    sync_counter,
    transaction_source_failures_counter,
)

logger = logging.getLogger(__name__)


class TransactionSource(Protocol):
    async def fetch_new_transactions(self, access_token: str, cursor: Optional[str], page_size: int) -> SyncPage:
        ...


class Notifier(Protocol):
    async def notify(self, transaction: Transaction, balance: Optional[Decimal]) -> None:
        ...

    async def notify_user(self, user_id: int, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...


class TransactionIngestionService:
    """Pulls new provider transactions, classifies them and debits variable spend"""

    def __init__(
        self,
        db: Session,
        source: TransactionSource,
        notifier: Optional[Notifier] = None,
        page_size: Optional[int] = None,
    ):
        self.db = db
        self.source = source
        self.notifier = notifier
        self.page_size = page_size or settings.plaid_page_size

    async def sync_for_user(self, user_id: int) -> SyncResult:
        """Sync the user's first linked item"""
        item = LinkedItemRepository(self.db).get_first_for_user(user_id)
        if item is None:
            raise InvalidArgumentError("No linked item for this user.")
        return await self.sync_item(item.item_id)

    async def sync_item(self, item_id: str) -> SyncResult:
        """
        Run one sync cycle for a linked item.

        Flow:
        1. Resolve the item and its owner
        2. Fetch one page of added transactions from the provider
        3. Store each unseen transaction, classifying credits and flagging large debits
        4. Debit the batch's variable spend from the balance once
        5. Advance the cursor and commit everything together
        6. Notify about posted transactions (best-effort)

        Raises:
            NotFoundError: Unknown item
            UnauthorizedError: Item has no resolvable owner
            TransactionSourceError: Provider failed; nothing is persisted
            ConflictError: A concurrent sync stored the same transactions first
        """
        start_time = time.time()

        item = LinkedItemRepository(self.db).get_by_item_id(item_id)
        if item is None:
            sync_counter.labels(outcome="not_found").inc()
            raise NotFoundError(f"Linked item {item_id} not found.")

        user = UserRepository(self.db).get_by_id(item.user_id)
        if user is None:
            sync_counter.labels(outcome="unauthorized").inc()
            raise UnauthorizedError("User linked to this item not found.")

        try:
            page = await self.source.fetch_new_transactions(item.access_token, item.cursor, self.page_size)
        except TransactionSourceError:
            transaction_source_failures_counter.inc()
            sync_counter.labels(outcome="upstream_error").inc()
            self.db.rollback()
            raise

        fixed_merchants = FixedCostRepository(self.db).merchant_names(user.id)
        transactions = TransactionRepository(self.db)

        try:
            # Lock first so concurrent syncs see each other's rows before filtering
            balance = BalanceRepository(self.db).lock(user.id)
            seen = transactions.existing_external_ids(r.external_id for r in page.added)

            new_rows: List[Transaction] = []
            variable_spend = Decimal("0")
            large_expenses = 0

            for record in page.added:
                if record.external_id in seen:
                    continue
                seen.add(record.external_id)

                row, spend = self._ingest(user, record, fixed_merchants)
                transactions.add(row)
                new_rows.append(row)
                variable_spend += spend
                if row.is_large_expense_candidate:
                    large_expenses += 1

            # One balance update per sync call
            if variable_spend > 0:
                balance.amount = balance.amount - variable_spend
                balance.updated_at = datetime.now(timezone.utc)

            item.cursor = page.next_cursor
            self.db.commit()

        except IntegrityError as e:
            self.db.rollback()
            sync_counter.labels(outcome="conflict").inc()
            raise ConflictError("Transactions were stored by a concurrent sync; retry.") from e
        except Exception:
            self.db.rollback()
            sync_counter.labels(outcome="error").inc()
            raise

        sync_counter.labels(outcome="ok").inc()
        if large_expenses:
            large_expense_counter.inc(large_expenses)

        current_balance = balance.amount
        duration_ms = (time.time() - start_time) * 1000
        log_sync(item_id, user.id, len(new_rows), variable_spend, large_expenses, current_balance, duration_ms)

        await self._notify_posted(new_rows, current_balance)

        return SyncResult(added_count=len(new_rows), has_more=page.has_more, balance=current_balance)

    def _ingest(self, user: User, record: SourceTransaction, fixed_merchants: Set[str]):
        """Build the Transaction row for one record and return it with its variable-spend share"""
        normalized = normalize_amount(record.amount)
        merchant_hint = record.merchant_name or record.name

        row = Transaction(
            user_id=user.id,
            external_id=record.external_id,
            account_id=record.account_id,
            amount=normalized.amount,
            is_credit=normalized.is_credit,
            date=record.date,
            name=record.name,
            merchant_name=record.merchant_name,
            pending=record.pending,
            suggested_kind=SuggestedKind.UNKNOWN,
            counted_as_income=False,
            is_large_expense_candidate=False,
            large_expense_handled=False,
        )

        if normalized.is_credit:
            # Deposits wait for a user decision before touching the balance
            row.suggested_kind = classify_deposit(
                DepositContext(
                    amount=normalized.amount,
                    date=record.date,
                    merchant_name=merchant_hint,
                    pay_day_1=user.pay_day_1,
                    pay_day_2=user.pay_day_2,
                    expected_paycheck_amount=user.expected_paycheck_amount,
                )
            )
            ingested_transactions_counter.labels(kind=row.suggested_kind.value).inc()
            return row, Decimal("0")

        if merchant_hint and merchant_hint.lower() in fixed_merchants:
            # Known bill, already covered by period proration
            ingested_transactions_counter.labels(kind="fixed_cost").inc()
            return row, Decimal("0")

        # Large expenses are debited now and refunded only on a later decision
        row.is_large_expense_candidate = is_large_expense(normalized.amount, user.expected_paycheck_amount)
        ingested_transactions_counter.labels(kind=SuggestedKind.UNKNOWN.value).inc()
        return row, normalized.amount

    async def _notify_posted(self, rows: List[Transaction], balance: Optional[Decimal]) -> None:
        if self.notifier is None:
            return

        for row in rows:
            if row.pending:
                continue
            try:
                await self.notifier.notify(row, balance)
            except Exception:
                logger.warning(
                    "Transaction notification failed",
                    exc_info=True,
                    extra={"transaction_id": row.id, "user_id": row.user_id},
                )
