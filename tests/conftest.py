"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from dynamic_budget.api.dependencies import get_account_data_source, get_notifier, get_transaction_source
from dynamic_budget.api.main import create_app
from dynamic_budget.domain.exceptions import NotificationError, TransactionSourceError
from dynamic_budget.domain.models import (
    ProviderAccount,
    RecurringStream,
    RecurringStreams,
    SourceTransaction,
    SyncPage,
)
from dynamic_budget.infrastructure.database.models import Base, LinkedItem, User
from dynamic_budget.infrastructure.database.repositories import LinkedItemRepository, UserRepository
from dynamic_budget.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

AUTH_UID = "uid-alice"


class FakeTransactionSource:
    """In-memory provider: returns the configured page, or fails"""

    def __init__(self, added: Optional[List[SourceTransaction]] = None, fail: bool = False):
        self.added = list(added or [])
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    async def fetch_new_transactions(self, access_token: str, cursor: Optional[str], page_size: int) -> SyncPage:
        self.calls.append({"access_token": access_token, "cursor": cursor, "page_size": page_size})
        if self.fail:
            raise TransactionSourceError("Plaid timeout after 5.0s")
        return SyncPage(added=list(self.added), next_cursor=f"cursor-{len(self.calls)}", has_more=False)


class FakeNotifier:
    """Records notifications instead of sending them"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.transactions: List[Any] = []
        self.messages: List[Dict[str, Any]] = []

    async def notify(self, transaction, balance: Optional[Decimal]) -> None:
        if self.fail:
            raise NotificationError("Expo push failed: 500")
        self.transactions.append((transaction.external_id, balance))

    async def notify_user(self, user_id: int, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> None:
        if self.fail:
            raise NotificationError("Expo push failed: 500")
        self.messages.append({"user_id": user_id, "title": title, "body": body, "data": data})


class FakeAccountData:
    """In-memory recurring streams and accounts keyed by access token"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.outflow: List[RecurringStream] = []
        self.inflow: List[RecurringStream] = []
        self.accounts: Dict[str, List[ProviderAccount]] = {}
        self.calls: List[str] = []

    async def fetch_recurring_streams(self, access_token: str) -> RecurringStreams:
        self.calls.append(access_token)
        if self.fail:
            raise TransactionSourceError("Plaid error: 500")
        return RecurringStreams(inflow=list(self.inflow), outflow=list(self.outflow))

    async def fetch_accounts(self, access_token: str) -> List[ProviderAccount]:
        self.calls.append(access_token)
        if self.fail:
            raise TransactionSourceError("Plaid error: 500")
        return list(self.accounts.get(access_token, []))


def make_stream(
    stream_id: str,
    amount,
    description: str = "NETFLIX.COM",
    merchant_name: Optional[str] = "Netflix",
    confidence: Optional[str] = "HIGH",
) -> RecurringStream:
    return RecurringStream(
        stream_id=stream_id,
        description=description,
        merchant_name=merchant_name,
        frequency="MONTHLY",
        last_amount=Decimal(str(amount)),
        confidence=confidence,
    )


def make_account(account_id: str, type: str, current=None, name: Optional[str] = None) -> ProviderAccount:
    return ProviderAccount(
        account_id=account_id,
        name=name,
        official_name=None,
        mask="0000",
        type=type,
        subtype=None,
        current_balance=Decimal(str(current)) if current is not None else None,
    )


def make_txn(
    external_id: str,
    amount,
    txn_date: date = date(2024, 2, 15),
    name: str = "Coffee Shop",
    merchant_name: Optional[str] = None,
    pending: bool = False,
) -> SourceTransaction:
    """Provider-style record: positive amount = money out, negative = money in"""
    return SourceTransaction(
        external_id=external_id,
        account_id="acc-1",
        amount=Decimal(str(amount)),
        date=txn_date,
        name=name,
        merchant_name=merchant_name,
        pending=pending,
    )


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user(db: Session) -> User:
    """Registered user paid on the 1st and 15th, expecting 3000 per paycheck"""
    user = UserRepository(db).create_user(name="Alice", email="alice@example.com", auth_uid=AUTH_UID)
    user.pay_day_1 = 1
    user.pay_day_2 = 15
    user.expected_paycheck_amount = Decimal("3000.00")
    db.commit()
    return user


@pytest.fixture
def linked_item(db: Session, user: User) -> LinkedItem:
    item = LinkedItemRepository(db).create_item(user.id, "item-1", "access-sandbox-1", "First Platypus Bank")
    db.commit()
    return item


@pytest.fixture
def source() -> FakeTransactionSource:
    return FakeTransactionSource()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def account_data() -> FakeAccountData:
    return FakeAccountData()


@pytest.fixture
def client(
    db: Session,
    source: FakeTransactionSource,
    notifier: FakeNotifier,
    account_data: FakeAccountData,
) -> TestClient:
    """Create FastAPI test client with test database and fake collaborators"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transaction_source] = lambda: source
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_account_data_source] = lambda: account_data
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"X-Auth-Uid": AUTH_UID}
