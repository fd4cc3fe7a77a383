"""Read-side Plaid helpers used while onboarding: recurring streams and debt"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol

from sqlalchemy.orm import Session

from dynamic_budget.domain.exceptions import InvalidArgumentError, TransactionSourceError
from dynamic_budget.domain.models import (
    DebtAccount,
    DebtSnapshot,
    FixedCostType,
    ProviderAccount,
    RecurringStream,
    RecurringStreams,
)
from dynamic_budget.infrastructure.database.models import FixedCost, User
from dynamic_budget.infrastructure.database.repositories import FixedCostRepository, LinkedItemRepository
from dynamic_budget.infrastructure.observability.metrics import (
    discovered_fixed_costs_counter,
    transaction_source_failures_counter,
)
from dynamic_budget.services.fixed_costs import RECURRING_CATEGORY

logger = logging.getLogger(__name__)

CREDIT_ACCOUNT_TYPE = "credit"
AUTO_IMPORT_CONFIDENCE = frozenset({"HIGH", "MEDIUM"})


class AccountDataSource(Protocol):
    async def fetch_recurring_streams(self, access_token: str) -> RecurringStreams:
        ...

    async def fetch_accounts(self, access_token: str) -> List[ProviderAccount]:
        ...


def stream_merchant(stream: RecurringStream) -> str:
    """Name a discovered cost is matched on at sync time"""
    return (stream.merchant_name or stream.description or "").strip()


def debt_accounts(institution_name: Optional[str], accounts: Iterable[ProviderAccount]) -> List[DebtAccount]:
    """Credit accounts that currently carry a balance"""
    owed = []
    for acct in accounts:
        if acct.type.lower() != CREDIT_ACCOUNT_TYPE:
            continue
        balance = acct.current_balance or Decimal("0")
        if balance <= 0:
            continue
        owed.append(
            DebtAccount(
                institution_name=institution_name or "Unknown institution",
                account_name=acct.name or acct.official_name or "Credit account",
                mask=acct.mask,
                current_balance=balance,
            )
        )
    return owed


class PlaidDiscoveryService:
    """Surfaces what Plaid already knows so onboarding can prefill fixed costs and debt"""

    def __init__(self, db: Session, source: AccountDataSource):
        self.db = db
        self.source = source
        self.items = LinkedItemRepository(db)

    async def recurring_streams(self, user: User) -> Optional[RecurringStreams]:
        """Streams for the user's first linked item; None when nothing is linked"""
        item = self.items.get_first_for_user(user.id)
        if item is None:
            return None
        try:
            return await self.source.fetch_recurring_streams(item.access_token)
        except TransactionSourceError:
            transaction_source_failures_counter.inc()
            raise

    async def import_recurring_streams(
        self,
        user: User,
        stream_ids: Optional[Iterable[str]] = None,
    ) -> List[FixedCost]:
        """
        Store outflow streams as plaid_discovered fixed costs.

        Without stream_ids only HIGH/MEDIUM confidence streams are taken.
        Streams whose merchant already backs a fixed cost are skipped, so
        importing twice creates nothing new.

        Raises:
            InvalidArgumentError: No linked item
            TransactionSourceError: Plaid call failed
        """
        streams = await self.recurring_streams(user)
        if streams is None:
            raise InvalidArgumentError("No linked item for this user.")

        wanted = set(stream_ids) if stream_ids is not None else None
        fixed_costs = FixedCostRepository(self.db)
        known = fixed_costs.merchant_names(user.id)

        created: List[FixedCost] = []
        try:
            for stream in streams.outflow:
                if wanted is not None:
                    if stream.stream_id not in wanted:
                        continue
                elif (stream.confidence or "").upper() not in AUTO_IMPORT_CONFIDENCE:
                    continue

                merchant = stream_merchant(stream)
                if not merchant or merchant.lower() in known:
                    continue
                known.add(merchant.lower())

                created.append(
                    fixed_costs.create_fixed_cost(
                        user_id=user.id,
                        name=stream.description or merchant,
                        amount=abs(stream.last_amount),
                        category=RECURRING_CATEGORY,
                        type=FixedCostType.PLAID_DISCOVERED,
                        plaid_merchant_name=merchant,
                    )
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        discovered_fixed_costs_counter.inc(len(created))
        logger.info(
            "Imported recurring streams",
            extra={"user_id": user.id, "created": len(created), "outflow_streams": len(streams.outflow)},
        )
        return created

    async def debt_snapshot(self, user: User) -> DebtSnapshot:
        """
        Sum credit balances across every linked item.

        Raises:
            TransactionSourceError: Plaid call failed for any item
        """
        accounts: List[DebtAccount] = []
        for item in self.items.list_for_user(user.id):
            try:
                provider_accounts = await self.source.fetch_accounts(item.access_token)
            except TransactionSourceError:
                transaction_source_failures_counter.inc()
                raise
            accounts.extend(debt_accounts(item.institution_name, provider_accounts))

        total = sum((acct.current_balance for acct in accounts), Decimal("0"))
        return DebtSnapshot(total_debt=total, accounts=accounts)
