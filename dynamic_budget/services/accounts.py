"""Users, linked items, balances and devices"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dynamic_budget.domain.exceptions import ConflictError, InvalidArgumentError, NotFoundError, UnauthorizedError
from dynamic_budget.infrastructure.database.models import Balance, LinkedItem, Transaction, User, UserDevice
from dynamic_budget.infrastructure.database.repositories import (
    BalanceRepository,
    DeviceRepository,
    LinkedItemRepository,
    TransactionRepository,
    UserRepository,
)
from dynamic_budget.utils.money import as_decimal


class AccountService:
    """Account-level operations that sit around the budget engine"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)

    def register_user(self, name: str, email: str, auth_uid: Optional[str] = None) -> User:
        """
        Create a user with a zero balance.

        Raises:
            ConflictError: Email or auth uid already registered
        """
        email = email.strip().lower()
        if not email:
            raise InvalidArgumentError("Email is required.")
        if self.users.get_by_email(email) is not None:
            raise ConflictError("A user with this email already exists.")

        try:
            user = self.users.create_user(name=name or "", email=email, auth_uid=auth_uid or str(uuid.uuid4()))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A user with this email already exists.") from e

        self.db.refresh(user)
        return user

    def resolve_user(self, auth_uid: Optional[str]) -> User:
        """
        Map an authenticated uid onto a user.

        Raises:
            UnauthorizedError: No uid supplied
            NotFoundError: No user for this uid
        """
        if not auth_uid:
            raise UnauthorizedError("Missing credentials.")
        user = self.users.get_by_auth_uid(auth_uid)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    def link_item(self, user: User, item_id: str, access_token: str, institution_name: Optional[str] = None) -> LinkedItem:
        items = LinkedItemRepository(self.db)
        if items.get_by_item_id(item_id) is not None:
            raise ConflictError("This item is already linked.")

        try:
            item = items.create_item(user.id, item_id, access_token, institution_name)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("This item is already linked.") from e
        return item

    def list_linked_items(self, user: User) -> List[LinkedItem]:
        return LinkedItemRepository(self.db).list_for_user(user.id)

    def get_balance(self, user: User) -> Balance:
        balance = BalanceRepository(self.db).get(user.id)
        if balance is None:
            raise NotFoundError("Balance not found.")
        return balance

    def set_balance(self, user: User, amount) -> Balance:
        """Manual override of the dynamic balance"""
        value = as_decimal(amount)
        try:
            balance = BalanceRepository(self.db).lock(user.id)
            balance.amount = value
            balance.updated_at = datetime.now(timezone.utc)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return balance

    def list_transactions(self, user: User) -> List[Transaction]:
        return TransactionRepository(self.db).list_for_user(user.id)

    def register_device(self, user: User, expo_push_token: str, platform: Optional[str] = None) -> UserDevice:
        if not expo_push_token or not expo_push_token.strip():
            raise InvalidArgumentError("expo_push_token is required.")

        try:
            device = DeviceRepository(self.db).register(user.id, expo_push_token.strip(), platform)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Device registration raced; retry.") from e
        return device
