"""SQLAlchemy ORM models for users, balances, transactions and fixed costs"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from dynamic_budget.domain.models import FixedCostType, SuggestedKind, UserDecision

Base = declarative_base()

Money = Numeric(14, 2)


def _enum(enum_cls, name: str) -> Enum:
    # Store enum values ("treat_as_income"), not member names
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=40,
        values_callable=lambda members: [m.value for m in members],
    )


class User(Base):
    """Account holder plus pay-cycle configuration"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, default="")
    email = Column(String(320), nullable=False, unique=True)
    auth_uid = Column(String(128), nullable=False, unique=True, index=True)
    onboarding_complete = Column(Boolean, nullable=False, default=False)
    pay_day_1 = Column(Integer, nullable=False, default=1)
    pay_day_2 = Column(Integer, nullable=False, default=15)
    expected_paycheck_amount = Column(Money, nullable=False, default=0)
    debt_per_paycheck = Column(Money, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    balance = relationship("Balance", back_populates="user", uselist=False, cascade="all, delete-orphan")
    items = relationship("LinkedItem", back_populates="user", cascade="all, delete-orphan")


class Balance(Base):
    """Dynamic spending budget left in the current period (one row per user)"""

    __tablename__ = "balances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    amount = Column(Money, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="balance")


class LinkedItem(Base):
    """Provider item (a linked institution) and its sync cursor"""

    __tablename__ = "linked_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(String(128), nullable=False, unique=True)
    access_token = Column(Text, nullable=False)
    institution_name = Column(Text, nullable=True)
    cursor = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="items")


class Transaction(Base):
    """Provider transaction enriched with classification and decision state"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String(128), nullable=False, unique=True)
    account_id = Column(String(128), nullable=False, default="")
    amount = Column(Money, nullable=False)  # magnitude only, see is_credit
    is_credit = Column(Boolean, nullable=False, default=False)
    date = Column(Date, nullable=False)
    name = Column(Text, nullable=False, default="")
    merchant_name = Column(Text, nullable=True)
    pending = Column(Boolean, nullable=False, default=False)
    suggested_kind = Column(_enum(SuggestedKind, "suggested_kind"), nullable=False, default=SuggestedKind.UNKNOWN)
    user_decision = Column(_enum(UserDecision, "user_decision"), nullable=False, default=UserDecision.UNDECIDED)
    counted_as_income = Column(Boolean, nullable=False, default=False)
    is_large_expense_candidate = Column(Boolean, nullable=False, default=False)
    large_expense_handled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def label(self) -> str:
        return self.merchant_name or self.name or "Large purchase"


class FixedCost(Base):
    """Recurring or installment obligation excluded from variable spend"""

    __tablename__ = "fixed_costs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    amount = Column(Money, nullable=False)
    category = Column(String(64), nullable=False, default="other")
    type = Column(_enum(FixedCostType, "fixed_cost_type"), nullable=False, default=FixedCostType.MANUAL)
    next_due_date = Column(Date, nullable=True)
    plaid_merchant_name = Column(Text, nullable=True)
    plaid_account_id = Column(String(128), nullable=True)
    user_has_approved = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class UserDevice(Base):
    """Push notification target"""

    __tablename__ = "user_devices"
    __table_args__ = (UniqueConstraint("user_id", "expo_push_token", name="uq_user_device_token"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expo_push_token = Column(Text, nullable=False)
    platform = Column(String(16), nullable=True)  # ios | android | web
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
