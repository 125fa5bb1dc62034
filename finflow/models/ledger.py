"""
Core Data Models for FinFlow

These models define the strict schemas for the per-user state document.
They are designed to:
1. Enforce type safety at runtime
2. Round-trip the persisted JSON document (camelCase keys, numeric money)
3. Be the only shapes the ledger engine, mutation service and planner see

DESIGN DECISION: The whole user state is ONE aggregate (AppState).
No entity exists outside of it and the document is replaced wholesale
on every save.
"""

import calendar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)
from pydantic.alias_generators import to_camel


CURRENT_SCHEMA_VERSION = 2
LEGACY_SCHEMA_VERSION = 1


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _money_to_json(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _coerce_datetime(value: Any) -> Any:
    if isinstance(value, str) and len(value) == 10:
        return f"{value}T00:00:00"
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    return value


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _truncate_to_day(value: Any) -> Any:
    if value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


Money = Annotated[
    Decimal,
    PlainSerializer(_money_to_json, when_used="json"),
]
IsoDateTime = Annotated[
    datetime,
    BeforeValidator(_coerce_datetime),
    AfterValidator(_to_naive_utc),
]
IsoDate = Annotated[date, BeforeValidator(_truncate_to_day)]
OptionalIsoDate = Annotated[Optional[date], BeforeValidator(_truncate_to_day)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a transaction.

    NOTE: savings transactions leave the account like an expense;
    the money is counted again in the savings value.
    """
    INCOME = "income"
    EXPENSE = "expense"
    SAVINGS = "savings"


class AccountType(str, Enum):
    CARD = "card"
    CASH = "cash"


class DebtType(str, Enum):
    """Who owes whom."""
    I_OWE = "i_owe"
    THEY_OWE = "they_owe"


class DebtAction(str, Enum):
    """How a linked transaction moves the remaining debt amount."""
    INCREASE = "increase"
    DECREASE = "decrease"


class SubscriptionPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class TransactionOrigin(str, Enum):
    """
    Where a transaction came from.

    Replaces the "[ПОДПИСКА]" / "[ДОЛГ]" prefixes that older documents
    stored inside the free-text note.
    """
    MANUAL = "manual"
    SUBSCRIPTION = "subscription"
    DEBT = "debt"


class PlannedItemType(str, Enum):
    """Source of a calendar entry."""
    TRANSACTION = "transaction"
    DEBT = "debt"
    SUBSCRIPTION = "subscription"


# =============================================================================
# BASE MODEL
# =============================================================================

class LedgerModel(BaseModel):
    """
    Base for every persisted shape.

    Fields are snake_case in Python and camelCase in the JSON document.
    Unknown keys written by other clients are ignored.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


# =============================================================================
# ENTITIES
# =============================================================================

class Account(LedgerModel):
    """
    A card or cash wallet.

    `balance` is the manually set baseline, not the running balance.
    """
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType = AccountType.CARD
    balance: Money = Field(
        default=Decimal("0"),
        description="Baseline balance set by the user"
    )
    color: str = "#6366f1"
    icon: str = "💳"


class Category(LedgerModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = "📦"
    color: str = "#94a3b8"
    type: TransactionType


class TransactionDraft(LedgerModel):
    """
    Transaction data as entered, before an id is assigned.

    This is what the presentation layer hands to the mutation service.
    """
    amount: Money = Field(
        ...,
        gt=0,
        description="Always positive; direction comes from `type`"
    )
    category_id: str = ""
    account_id: str = ""
    date: IsoDateTime = Field(default_factory=utcnow)
    note: str = ""
    type: TransactionType

    is_planned: bool = False
    is_joint: bool = Field(
        default=False,
        description="Shared with the paired partner (visibility only)"
    )

    # Debt linkage
    linked_debt_id: Optional[str] = None
    debt_action: Optional[DebtAction] = None

    # Subscription linkage
    subscription_id: Optional[str] = None

    origin: TransactionOrigin = TransactionOrigin.MANUAL


class Transaction(TransactionDraft):
    """A stored transaction. Replaced by id on edit, never patched."""
    id: str = Field(..., min_length=1)

    @property
    def day(self) -> date:
        """Calendar day of the transaction."""
        return self.date.date()

    def to_draft(self) -> TransactionDraft:
        return TransactionDraft.model_validate(self.model_dump(exclude={"id"}))


class Debt(LedgerModel):
    """
    A debt between the user and a person or a bank.

    `amount` is the running remainder. Linked transactions move it;
    it never goes below zero.
    """
    id: str = Field(..., min_length=1)
    person_name: str = Field(..., min_length=1, max_length=200)
    amount: Money = Field(default=Decimal("0"), ge=0)
    type: DebtType
    is_bank: bool = False
    is_monthly: bool = False
    due_date: OptionalIsoDate = Field(
        default=None,
        description="Nearest payment date; places the debt on the calendar"
    )
    end_date: OptionalIsoDate = None
    date: IsoDateTime = Field(default_factory=utcnow)
    description: str = ""


class SavingsGoal(LedgerModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Money = Field(default=Decimal("0"), ge=0)
    current_amount: Money = Field(default=Decimal("0"), ge=0)
    icon: str = "🎯"
    color: str = "#6366f1"

    @property
    def progress_percent(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return min(100.0, float(self.current_amount / self.target_amount * 100))


class Subscription(LedgerModel):
    """
    A recurring payment.

    `next_payment_date` moves one period forward when a payment
    transaction is saved and one period back when it is deleted.
    `billing_day` anchors month/year steps so that both moves are
    exact inverses, even from the 31st. The anchor always agrees with
    `next_payment_date`: a billing day that would not land on that
    date is replaced by the date's own day.
    """
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    amount: Money = Field(..., gt=0)
    period: SubscriptionPeriod = SubscriptionPeriod.MONTHLY
    next_payment_date: IsoDate
    category_id: str = ""
    account_id: str = ""
    is_active: bool = True
    reminder_days: int = Field(default=1, ge=0, le=31)
    icon: str = "🎬"
    color: str = "#6366f1"
    billing_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month the payment is due (defaults to next_payment_date.day)"
    )

    @staticmethod
    def anchor_fits(value: date, billing_day: Optional[int]) -> bool:
        """True when `billing_day`, clamped to the month of `value`, is `value.day`."""
        if billing_day is None:
            return False
        last_day = calendar.monthrange(value.year, value.month)[1]
        return value.day == min(billing_day, last_day)

    @model_validator(mode='after')
    def align_billing_day(self) -> 'Subscription':
        if not self.anchor_fits(self.next_payment_date, self.billing_day):
            self.billing_day = self.next_payment_date.day
        return self


class Profile(LedgerModel):
    """Per-user singleton."""
    name: str = "Гость"
    currency: str = "₽"
    avatar: Optional[str] = None
    partner_id: Optional[int] = None
    pending_partner_id: Optional[int] = None
    include_debts_in_capital: bool = False
    dashboard_layout: Optional[Any] = None


# =============================================================================
# AGGREGATE ROOT
# =============================================================================

class AppState(LedgerModel):
    """
    The entire persisted document for one user.

    CRITICAL: Treat instances as snapshots. The mutation service builds
    a new AppState for every change instead of editing lists in place.
    """
    schema_version: int = CURRENT_SCHEMA_VERSION
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    accounts: list[Account] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)
    savings: list[SavingsGoal] = Field(default_factory=list)
    subscriptions: list[Subscription] = Field(default_factory=list)
    profile: Profile = Field(default_factory=Profile)

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def find_debt(self, debt_id: Optional[str]) -> Optional[Debt]:
        return next((d for d in self.debts if d.id == debt_id), None)

    def find_subscription(self, subscription_id: Optional[str]) -> Optional[Subscription]:
        return next((s for s in self.subscriptions if s.id == subscription_id), None)

    def find_category(self, category_id: Optional[str]) -> Optional[Category]:
        return next((c for c in self.categories if c.id == category_id), None)

    def find_account(self, account_id: Optional[str]) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def find_goal(self, goal_id: str) -> Optional[SavingsGoal]:
        return next((g for g in self.savings if g.id == goal_id), None)

    def to_document(self) -> dict:
        """Serialize to the JSON-ready document sent to the remote store."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, data: dict) -> 'AppState':
        """
        Parse a stored document.

        Documents written before versioning have no `schemaVersion`
        and are marked as legacy so the loader can migrate them.
        """
        payload = dict(data)
        payload.setdefault("schemaVersion", LEGACY_SCHEMA_VERSION)
        return cls.model_validate(payload)


class PlannedItem(LedgerModel):
    """
    One entry of the unified calendar view.

    Read-only projection of a planned transaction, a debt with a due
    date, or an active subscription.
    """
    id: str
    date: date
    amount: Money
    type: TransactionType
    title: str
    icon: str
    color: str
    item_type: PlannedItemType
    is_bank: Optional[bool] = None
    is_monthly: Optional[bool] = None
    reminder_days: Optional[int] = None


# =============================================================================
# DEFAULTS
# =============================================================================

def default_categories() -> list[Category]:
    """Categories a new user starts with."""
    return [
        Category(id="1", name="Продукты", icon="🛒", color="#3b82f6", type=TransactionType.EXPENSE),
        Category(id="2", name="Транспорт", icon="🚌", color="#6366f1", type=TransactionType.EXPENSE),
        Category(id="3", name="Жилье", icon="🏠", color="#10b981", type=TransactionType.EXPENSE),
        Category(id="4", name="Развлечения", icon="🎬", color="#f59e0b", type=TransactionType.EXPENSE),
        Category(id="5", name="Зарплата", icon="💰", color="#8b5cf6", type=TransactionType.INCOME),
        Category(id="6", name="Подработки", icon="💼", color="#ec4899", type=TransactionType.INCOME),
        Category(id="7", name="Копилка", icon="🐷", color="#f43f5e", type=TransactionType.SAVINGS),
    ]


def default_accounts() -> list[Account]:
    """Accounts a new user starts with."""
    return [
        Account(id="cash", name="Наличные", type=AccountType.CASH, color="#10b981", icon="💵"),
        Account(id="main_card", name="Основная карта", type=AccountType.CARD, color="#6366f1", icon="💳"),
    ]


def default_state(
    profile_name: str = "Гость",
    currency: str = "₽",
) -> AppState:
    """State shown before (or instead of) a remote document."""
    return AppState(
        categories=default_categories(),
        accounts=default_accounts(),
        profile=Profile(name=profile_name, currency=currency),
    )
