"""Data access layer for budget entities"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from dynamic_budget.domain.models import FixedCostType, Installment, SuggestedKind, UserDecision
from dynamic_budget.infrastructure.database.models import (
    Balance,
    FixedCost,
    LinkedItem,
    Transaction,
    User,
    UserDevice,
)


class UserRepository:
    """Repository for users"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_auth_uid(self, auth_uid: str) -> Optional[User]:
        return self.db.query(User).filter(User.auth_uid == auth_uid).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def create_user(self, name: str, email: str, auth_uid: str) -> User:
        """Create user together with its zero balance row"""
        user = User(name=name, email=email, auth_uid=auth_uid)
        self.db.add(user)
        self.db.flush()  # Get ID without committing

        self.db.add(Balance(user_id=user.id, amount=Decimal("0")))
        self.db.flush()
        return user


class BalanceRepository:
    """Repository for the per-user dynamic balance"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[Balance]:
        return self.db.query(Balance).filter(Balance.user_id == user_id).first()

    def lock(self, user_id: int) -> Balance:
        """
        Fetch the balance row with a row-level lock for read-modify-write.

        The lock is held until the surrounding transaction commits or rolls back,
        which serializes balance mutations per user. Creates the row if missing.
        """
        balance = (
            self.db.query(Balance)
            .filter(Balance.user_id == user_id)
            .with_for_update()
            .one_or_none()
        )
        if balance is None:
            balance = Balance(user_id=user_id, amount=Decimal("0"))
            self.db.add(balance)
            self.db.flush()
        return balance


class LinkedItemRepository:
    """Repository for linked provider items"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_item_id(self, item_id: str) -> Optional[LinkedItem]:
        return self.db.query(LinkedItem).filter(LinkedItem.item_id == item_id).first()

    def get_first_for_user(self, user_id: int) -> Optional[LinkedItem]:
        return (
            self.db.query(LinkedItem)
            .filter(LinkedItem.user_id == user_id)
            .order_by(LinkedItem.id)
            .first()
        )

    def list_for_user(self, user_id: int) -> List[LinkedItem]:
        return (
            self.db.query(LinkedItem)
            .filter(LinkedItem.user_id == user_id)
            .order_by(LinkedItem.id)
            .all()
        )

    def create_item(
        self,
        user_id: int,
        item_id: str,
        access_token: str,
        institution_name: Optional[str] = None,
    ) -> LinkedItem:
        item = LinkedItem(
            user_id=user_id,
            item_id=item_id,
            access_token=access_token,
            institution_name=institution_name,
        )
        self.db.add(item)
        self.db.flush()
        return item


class TransactionRepository:
    """Repository for ingested transactions"""

    def __init__(self, db: Session):
        self.db = db

    def existing_external_ids(self, external_ids: Iterable[str]) -> Set[str]:
        """Subset of external_ids that are already stored"""
        ids = list(external_ids)
        if not ids:
            return set()
        rows = self.db.query(Transaction.external_id).filter(Transaction.external_id.in_(ids)).all()
        return {row[0] for row in rows}

    def add(self, transaction: Transaction) -> Transaction:
        self.db.add(transaction)
        return transaction

    def get_for_user(self, transaction_id: int, user_id: int) -> Optional[Transaction]:
        """Fetch a transaction only if owned by user_id"""
        return (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .first()
        )

    def list_for_user(self, user_id: int) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.user_id == user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .all()
        )

    def pending_deposits(self, user_id: int) -> List[Transaction]:
        """Classified credits still waiting for a user decision"""
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.user_id == user_id,
                Transaction.suggested_kind != SuggestedKind.UNKNOWN,
                Transaction.user_decision == UserDecision.UNDECIDED,
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .all()
        )

    def pending_large_expenses(self, user_id: int) -> List[Transaction]:
        """Flagged large debits not yet handled"""
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.user_id == user_id,
                Transaction.is_large_expense_candidate.is_(True),
                Transaction.large_expense_handled.is_(False),
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .all()
        )


class FixedCostRepository:
    """Repository for fixed costs"""

    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: int) -> List[FixedCost]:
        return (
            self.db.query(FixedCost)
            .filter(FixedCost.user_id == user_id)
            .order_by(FixedCost.name, FixedCost.id)
            .all()
        )

    def get_for_user(self, fixed_cost_id: int, user_id: int) -> Optional[FixedCost]:
        return (
            self.db.query(FixedCost)
            .filter(FixedCost.id == fixed_cost_id, FixedCost.user_id == user_id)
            .first()
        )

    def merchant_names(self, user_id: int) -> Set[str]:
        """Lower-cased merchant names that mark a debit as a known fixed cost"""
        rows = (
            self.db.query(FixedCost.plaid_merchant_name)
            .filter(FixedCost.user_id == user_id, FixedCost.plaid_merchant_name.isnot(None))
            .all()
        )
        return {row[0].lower() for row in rows if row[0]}

    def due_between(self, user_id: int, start: date, end: date) -> List[FixedCost]:
        """Fixed costs with next_due_date in [start, end]"""
        return (
            self.db.query(FixedCost)
            .filter(
                FixedCost.user_id == user_id,
                FixedCost.next_due_date.isnot(None),
                FixedCost.next_due_date >= start,
                FixedCost.next_due_date <= end,
            )
            .all()
        )

    def in_category(self, user_id: int, category: str) -> List[FixedCost]:
        return (
            self.db.query(FixedCost)
            .filter(FixedCost.user_id == user_id, FixedCost.category == category)
            .all()
        )

    def create_fixed_cost(
        self,
        user_id: int,
        name: str,
        amount: Decimal,
        category: str = "other",
        type: FixedCostType = FixedCostType.MANUAL,
        next_due_date: Optional[date] = None,
        plaid_merchant_name: Optional[str] = None,
        plaid_account_id: Optional[str] = None,
    ) -> FixedCost:
        fixed_cost = FixedCost(
            user_id=user_id,
            name=name,
            amount=amount,
            category=category,
            type=type,
            next_due_date=next_due_date,
            plaid_merchant_name=plaid_merchant_name,
            plaid_account_id=plaid_account_id,
            user_has_approved=True,
        )
        self.db.add(fixed_cost)
        self.db.flush()
        return fixed_cost

    def create_installments(
        self,
        user_id: int,
        name: str,
        installments: List[Installment],
        type: FixedCostType,
        plaid_merchant_name: Optional[str] = None,
        plaid_account_id: Optional[str] = None,
    ) -> List[FixedCost]:
        """Create one Installment-category fixed cost per installment"""
        created = []
        for inst in installments:
            fixed_cost = FixedCost(
                user_id=user_id,
                name=name,
                amount=inst.amount,
                category="Installment",
                type=type,
                next_due_date=inst.due_date,
                plaid_merchant_name=plaid_merchant_name,
                plaid_account_id=plaid_account_id,
                user_has_approved=True,
            )
            self.db.add(fixed_cost)
            created.append(fixed_cost)
        self.db.flush()
        return created

    def delete(self, fixed_cost: FixedCost) -> None:
        self.db.delete(fixed_cost)


class DeviceRepository:
    """Repository for push notification devices"""

    def __init__(self, db: Session):
        self.db = db

    def active_tokens(self, user_id: int) -> List[str]:
        rows = (
            self.db.query(UserDevice.expo_push_token)
            .filter(UserDevice.user_id == user_id, UserDevice.is_active.is_(True))
            .all()
        )
        return [row[0] for row in rows if row[0]]

    def register(self, user_id: int, expo_push_token: str, platform: Optional[str]) -> UserDevice:
        """Insert the device or reactivate an existing registration"""
        device = (
            self.db.query(UserDevice)
            .filter(UserDevice.user_id == user_id, UserDevice.expo_push_token == expo_push_token)
            .first()
        )
        if device is None:
            device = UserDevice(user_id=user_id, expo_push_token=expo_push_token, platform=platform, is_active=True)
            self.db.add(device)
        else:
            device.is_active = True
            device.platform = platform
        self.db.flush()
        return device
