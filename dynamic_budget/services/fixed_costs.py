"""Fixed cost management"""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from dynamic_budget.domain.exceptions import InvalidArgumentError, NotFoundError
from dynamic_budget.domain.models import FixedCostType
from dynamic_budget.infrastructure.database.models import FixedCost, User
from dynamic_budget.infrastructure.database.repositories import FixedCostRepository, TransactionRepository
from dynamic_budget.utils.date_utils import add_months
from dynamic_budget.utils.money import as_decimal

RECURRING_CATEGORY = "Recurring"


class FixedCostService:
    """CRUD for fixed costs plus promotion of a charge to a recurring bill"""

    def __init__(self, db: Session):
        self.db = db
        self.fixed_costs = FixedCostRepository(db)

    def list_fixed_costs(self, user: User) -> List[FixedCost]:
        return self.fixed_costs.list_for_user(user.id)

    def create_fixed_cost(
        self,
        user: User,
        name: str,
        amount,
        category: Optional[str] = None,
        type: Optional[str] = None,
        next_due_date: Optional[date] = None,
        plaid_merchant_name: Optional[str] = None,
        plaid_account_id: Optional[str] = None,
    ) -> FixedCost:
        """
        Raises:
            InvalidArgumentError: Empty name, negative amount or unknown type
        """
        if not name or not name.strip():
            raise InvalidArgumentError("Name is required.")
        value = as_decimal(amount)
        if value < 0:
            raise InvalidArgumentError("Amount must not be negative.")
        try:
            cost_type = FixedCostType(type) if type else FixedCostType.MANUAL
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown fixed cost type: {type!r}") from e

        try:
            fixed_cost = self.fixed_costs.create_fixed_cost(
                user_id=user.id,
                name=name.strip(),
                amount=value,
                category=category or "other",
                type=cost_type,
                next_due_date=next_due_date,
                plaid_merchant_name=plaid_merchant_name,
                plaid_account_id=plaid_account_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return fixed_cost

    def delete_fixed_cost(self, user: User, fixed_cost_id: int) -> None:
        fixed_cost = self.fixed_costs.get_for_user(fixed_cost_id, user.id)
        if fixed_cost is None:
            raise NotFoundError("Fixed cost not found.")

        try:
            self.fixed_costs.delete(fixed_cost)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def mark_recurring(self, user: User, transaction_id: int, first_due_date: Optional[date] = None) -> FixedCost:
        """
        Turn a charge into a recurring fixed cost due one month later.

        Future debits from the same merchant are then skipped at sync time.

        Raises:
            NotFoundError: Transaction missing or owned by someone else
            InvalidArgumentError: Transaction is a deposit
        """
        transaction = TransactionRepository(self.db).get_for_user(transaction_id, user.id)
        if transaction is None:
            raise NotFoundError("Transaction not found.")
        if transaction.is_credit or transaction.amount <= 0:
            raise InvalidArgumentError("Only outflow transactions can be marked as recurring.")

        try:
            fixed_cost = self.fixed_costs.create_fixed_cost(
                user_id=user.id,
                name=transaction.merchant_name or transaction.name or "Recurring charge",
                amount=transaction.amount,
                category=RECURRING_CATEGORY,
                type=FixedCostType.FROM_TRANSACTION,
                next_due_date=add_months(first_due_date or transaction.date, 1),
                plaid_merchant_name=transaction.merchant_name,
                plaid_account_id=transaction.account_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return fixed_cost
