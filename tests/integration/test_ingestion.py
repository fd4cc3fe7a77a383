"""Integration tests for transaction sync and balance reconciliation"""

import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session
from conftest import FakeNotifier, FakeTransactionSource, make_txn
from dynamic_budget.domain.exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    TransactionSourceError,
    UnauthorizedError,
)
from dynamic_budget.domain.models import SuggestedKind
from dynamic_budget.infrastructure.database.models import LinkedItem, Transaction, User
from dynamic_budget.infrastructure.database.repositories import (
    BalanceRepository,
    FixedCostRepository,
    TransactionRepository,
)
from dynamic_budget.services.ingestion import TransactionIngestionService


def balance_of(db: Session, user: User) -> Decimal:
    return BalanceRepository(db).get(user.id).amount


def set_balance(db: Session, user: User, amount: str) -> None:
    BalanceRepository(db).get(user.id).amount = Decimal(amount)
    db.commit()


async def test_sync_debits_variable_spend_once(db: Session, user: User, linked_item: LinkedItem):
    set_balance(db, user, "1000.00")
    source = FakeTransactionSource([make_txn("t1", "25.50"), make_txn("t2", "14.50")])

    result = await TransactionIngestionService(db, source).sync_item("item-1")

    assert result.added_count == 2
    assert result.has_more is False
    assert result.balance == Decimal("960.00")
    assert balance_of(db, user) == Decimal("960.00")
    db.refresh(linked_item)
    assert linked_item.cursor == "cursor-1"


async def test_sync_is_idempotent(db: Session, user: User, linked_item: LinkedItem):
    """Re-delivering the same batch stores nothing new and leaves the balance alone"""
    set_balance(db, user, "1000.00")
    source = FakeTransactionSource([make_txn("t1", "100"), make_txn("pay", "-3000", name="ACME PAYROLL")])
    service = TransactionIngestionService(db, source)

    await service.sync_item("item-1")
    second = await service.sync_item("item-1")

    assert second.added_count == 0
    assert balance_of(db, user) == Decimal("900.00")
    assert len(TransactionRepository(db).list_for_user(user.id)) == 2


async def test_duplicate_ids_within_one_page_are_stored_once(db: Session, user: User, linked_item: LinkedItem):
    source = FakeTransactionSource([make_txn("dup", "10"), make_txn("dup", "10")])

    result = await TransactionIngestionService(db, source).sync_item("item-1")

    assert result.added_count == 1
    assert balance_of(db, user) == Decimal("-10.00")


async def test_credit_is_classified_and_does_not_touch_balance(db: Session, user: User, linked_item: LinkedItem):
    source = FakeTransactionSource([make_txn("pay", "-3000", txn_date=date(2024, 2, 15), name="ACME")])

    await TransactionIngestionService(db, source).sync_item("item-1")

    stored = db.query(Transaction).filter(Transaction.external_id == "pay").one()
    assert stored.is_credit is True
    assert stored.amount == Decimal("3000.00")
    assert stored.suggested_kind == SuggestedKind.PAYCHECK
    assert stored.counted_as_income is False
    assert balance_of(db, user) == Decimal("0.00")


async def test_windfall_classification(db: Session, user: User, linked_item: LinkedItem):
    source = FakeTransactionSource([make_txn("gift", "-500", txn_date=date(2024, 2, 15), name="Venmo")])

    await TransactionIngestionService(db, source).sync_item("item-1")

    stored = db.query(Transaction).filter(Transaction.external_id == "gift").one()
    assert stored.suggested_kind == SuggestedKind.WINDFALL


async def test_fixed_cost_merchant_is_suppressed(db: Session, user: User, linked_item: LinkedItem):
    """Known bills never change the balance and are never flagged, whatever the case"""
    FixedCostRepository(db).create_fixed_cost(user.id, "Rent", Decimal("1500"), plaid_merchant_name="Landlord LLC")
    db.commit()
    source = FakeTransactionSource([make_txn("rent", "1500", name="LANDLORD LLC")])

    await TransactionIngestionService(db, source).sync_item("item-1")

    stored = db.query(Transaction).filter(Transaction.external_id == "rent").one()
    assert stored.is_large_expense_candidate is False
    assert balance_of(db, user) == Decimal("0.00")


async def test_large_expense_is_flagged_and_debited(db: Session, user: User, linked_item: LinkedItem):
    set_balance(db, user, "2000.00")
    source = FakeTransactionSource([make_txn("tv", "1200", merchant_name="Best Buy")])

    await TransactionIngestionService(db, source).sync_item("item-1")

    stored = db.query(Transaction).filter(Transaction.external_id == "tv").one()
    assert stored.is_large_expense_candidate is True
    assert stored.large_expense_handled is False
    assert balance_of(db, user) == Decimal("800.00")


async def test_unknown_item_raises_not_found(db: Session, user: User):
    with pytest.raises(NotFoundError):
        await TransactionIngestionService(db, FakeTransactionSource()).sync_item("missing")


async def test_item_without_owner_raises_unauthorized(db: Session):
    db.add(LinkedItem(user_id=999, item_id="orphan", access_token="tok"))
    db.commit()

    with pytest.raises(UnauthorizedError):
        await TransactionIngestionService(db, FakeTransactionSource()).sync_item("orphan")


async def test_source_failure_persists_nothing(db: Session, user: User, linked_item: LinkedItem):
    set_balance(db, user, "500.00")
    source = FakeTransactionSource([make_txn("t1", "10")], fail=True)

    with pytest.raises(TransactionSourceError):
        await TransactionIngestionService(db, source).sync_item("item-1")

    assert TransactionRepository(db).list_for_user(user.id) == []
    assert balance_of(db, user) == Decimal("500.00")
    db.refresh(linked_item)
    assert linked_item.cursor is None


async def test_duplicate_at_commit_rolls_back_rows_cursor_and_balance(
    db: Session, user: User, linked_item: LinkedItem, monkeypatch
):
    set_balance(db, user, "1000.00")
    source = FakeTransactionSource([make_txn("t1", "100")])
    service = TransactionIngestionService(db, source)
    await service.sync_item("item-1")
    assert balance_of(db, user) == Decimal("900.00")

    # A concurrent sync stored t1 after this one filtered it out
    monkeypatch.setattr(TransactionRepository, "existing_external_ids", lambda self, ids: set())
    source.added = [make_txn("t1", "100"), make_txn("t2", "50")]

    with pytest.raises(ConflictError):
        await service.sync_item("item-1")

    assert balance_of(db, user) == Decimal("900.00")
    assert [t.external_id for t in TransactionRepository(db).list_for_user(user.id)] == ["t1"]
    db.refresh(linked_item)
    assert linked_item.cursor == "cursor-1"


async def test_notifies_posted_transactions_only(db: Session, user: User, linked_item: LinkedItem):
    notifier = FakeNotifier()
    source = FakeTransactionSource([make_txn("posted", "20"), make_txn("pending", "5", pending=True)])

    await TransactionIngestionService(db, source, notifier).sync_item("item-1")

    assert notifier.transactions == [("posted", Decimal("-25.00"))]


async def test_notification_failure_is_swallowed(db: Session, user: User, linked_item: LinkedItem):
    source = FakeTransactionSource([make_txn("t1", "20")])

    result = await TransactionIngestionService(db, source, FakeNotifier(fail=True)).sync_item("item-1")

    assert result.added_count == 1
    assert balance_of(db, user) == Decimal("-20.00")


async def test_sync_for_user_uses_first_item(db: Session, user: User, linked_item: LinkedItem):
    source = FakeTransactionSource()

    await TransactionIngestionService(db, source).sync_for_user(user.id)

    assert source.calls[0]["access_token"] == "access-sandbox-1"
    assert source.calls[0]["cursor"] is None
    assert source.calls[0]["page_size"] == 100


async def test_sync_for_user_without_item(db: Session, user: User):
    with pytest.raises(InvalidArgumentError):
        await TransactionIngestionService(db, FakeTransactionSource()).sync_for_user(user.id)
