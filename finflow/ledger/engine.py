"""
Ledger Engine

Pure aggregation over an AppState snapshot: running balances, net worth,
debt netting, savings totals, period summaries and breakdowns.

GUARANTEES:
- No function here mutates its inputs
- Every value is recomputed from the snapshot on each call (no caching)
- Planned transactions never count towards balances or summaries
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, NamedTuple, Optional

from pydantic import BaseModel, Field

from finflow.ledger.dates import shift_months
from finflow.models.ledger import (
    Account,
    AppState,
    Debt,
    DebtType,
    Transaction,
    TransactionType,
)


ZERO = Decimal("0")


class HistoryPeriod(str, Enum):
    """Look-back windows offered by the history screen."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"


class DateRange(NamedTuple):
    """Inclusive day range. An open end means "up to now"."""
    start: date
    end: Optional[date] = None

    def contains(self, day: date) -> bool:
        if day < self.start:
            return False
        return self.end is None or day <= self.end


class PeriodTotals(BaseModel):
    income: Decimal = ZERO
    expense: Decimal = ZERO
    savings: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


class CategoryTotal(BaseModel):
    category_id: str
    amount: Decimal
    count: int = Field(ge=1)


class DebtSummary(BaseModel):
    """
    Debt totals split the way the debts screen shows them.

    Bank debt is tracked separately and never netted.
    """
    they_owe: Decimal = ZERO
    i_owe_people: Decimal = ZERO
    i_owe_bank: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.they_owe - self.i_owe_people


class GoalProgress(BaseModel):
    total_target: Decimal = ZERO
    total_saved: Decimal = ZERO
    percent: float = 0.0


class DashboardStats(BaseModel):
    """Everything the dashboard header needs, in one pass."""
    month_income: Decimal
    month_expense: Decimal
    all_time_income: Decimal
    all_time_expense: Decimal
    all_time_savings: Decimal
    current_balance: Decimal
    total_savings_value: Decimal
    debts: DebtSummary
    net_worth: Decimal
    goal_progress: GoalProgress


# =============================================================================
# BASIC BUILDING BLOCKS
# =============================================================================

def settled(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Non-planned transactions only."""
    return [t for t in transactions if not t.is_planned]


def signed_amount(transaction: Transaction) -> Decimal:
    """Effect on the account: income adds, expense and savings subtract."""
    if transaction.type == TransactionType.INCOME:
        return transaction.amount
    return -transaction.amount


def _sum_by_type(transactions: Iterable[Transaction], kind: TransactionType) -> Decimal:
    return sum((t.amount for t in transactions if t.type == kind), ZERO)


# =============================================================================
# BALANCES
# =============================================================================

def account_running_balance(
    account: Account,
    transactions: Iterable[Transaction],
) -> Decimal:
    """Baseline plus the signed sum of settled transactions on the account."""
    movement = sum(
        (signed_amount(t) for t in settled(transactions) if t.account_id == account.id),
        ZERO,
    )
    return account.balance + movement


def account_balances(state: AppState) -> dict[str, Decimal]:
    return {
        account.id: account_running_balance(account, state.transactions)
        for account in state.accounts
    }


def total_balance(state: AppState) -> Decimal:
    return sum(account_balances(state).values(), ZERO)


# =============================================================================
# SAVINGS AND DEBTS
# =============================================================================

def total_savings_value(state: AppState) -> Decimal:
    """Money in goals plus every settled savings-type transaction."""
    in_goals = sum((g.current_amount for g in state.savings), ZERO)
    moved = _sum_by_type(settled(state.transactions), TransactionType.SAVINGS)
    return in_goals + moved


def goal_progress(state: AppState) -> GoalProgress:
    total_target = sum((g.target_amount for g in state.savings), ZERO)
    total_saved = total_savings_value(state)
    percent = float(total_saved / total_target * 100) if total_target > 0 else 0.0
    return GoalProgress(
        total_target=total_target,
        total_saved=total_saved,
        percent=percent,
    )


def debt_summary(debts: Iterable[Debt]) -> DebtSummary:
    summary = DebtSummary()
    for debt in debts:
        if debt.type == DebtType.THEY_OWE:
            summary.they_owe += debt.amount
        elif debt.is_bank:
            summary.i_owe_bank += debt.amount
        else:
            summary.i_owe_people += debt.amount
    return summary


def net_debt(debts: Iterable[Debt]) -> Decimal:
    """What people owe me minus what I owe people (banks excluded)."""
    return debt_summary(debts).net


def net_worth(state: AppState) -> Decimal:
    """
    Accounts + savings value, plus net debt when the profile opts in.

    Linear in its inputs: order of entities never matters.
    """
    worth = total_balance(state) + total_savings_value(state)
    if state.profile.include_debts_in_capital:
        worth += net_debt(state.debts)
    return worth


# =============================================================================
# PERIOD SUMMARIES
# =============================================================================

def period_totals(transactions: Iterable[Transaction]) -> PeriodTotals:
    """Totals per type over the given (already filtered) transactions."""
    items = list(transactions)
    return PeriodTotals(
        income=_sum_by_type(items, TransactionType.INCOME),
        expense=_sum_by_type(items, TransactionType.EXPENSE),
        savings=_sum_by_type(items, TransactionType.SAVINGS),
    )


def monthly_totals(
    transactions: Iterable[Transaction],
    month: int,
    year: int,
) -> PeriodTotals:
    """Settled totals for one calendar month (month is 1-12)."""
    in_month = [
        t for t in settled(transactions)
        if t.date.month == month and t.date.year == year
    ]
    return period_totals(in_month)


def lifetime_totals(transactions: Iterable[Transaction]) -> PeriodTotals:
    return period_totals(settled(transactions))


def period_range(period: HistoryPeriod, today: date) -> Optional[DateRange]:
    """
    Start of a look-back window ending today.

    Returns None for ALL (no filtering).
    """
    if period == HistoryPeriod.TODAY:
        return DateRange(today)
    if period == HistoryPeriod.WEEK:
        return DateRange(date.fromordinal(today.toordinal() - 7))
    if period == HistoryPeriod.MONTH:
        return DateRange(shift_months(today, -1))
    if period == HistoryPeriod.YEAR:
        return DateRange(shift_months(today, -12))
    return None


def category_breakdown(
    transactions: Iterable[Transaction],
    kind: TransactionType,
    period: Optional[DateRange] = None,
) -> list[CategoryTotal]:
    """
    Settled transactions of one type grouped by category, largest first.

    Ties keep the order in which each category first appeared.
    """
    groups: dict[str, CategoryTotal] = {}
    for t in settled(transactions):
        if t.type != kind:
            continue
        if period is not None and not period.contains(t.day):
            continue
        group = groups.get(t.category_id)
        if group is None:
            groups[t.category_id] = CategoryTotal(
                category_id=t.category_id,
                amount=t.amount,
                count=1,
            )
        else:
            group.amount += t.amount
            group.count += 1
    return sorted(groups.values(), key=lambda g: g.amount, reverse=True)


# =============================================================================
# SCREENS
# =============================================================================

def dashboard_stats(state: AppState, today: date) -> DashboardStats:
    month = monthly_totals(state.transactions, today.month, today.year)
    lifetime = lifetime_totals(state.transactions)
    debts = debt_summary(state.debts)
    return DashboardStats(
        month_income=month.income,
        month_expense=month.expense,
        all_time_income=lifetime.income,
        all_time_expense=lifetime.expense,
        all_time_savings=lifetime.savings,
        current_balance=total_balance(state),
        total_savings_value=total_savings_value(state),
        debts=debts,
        net_worth=net_worth(state),
        goal_progress=goal_progress(state),
    )


def joint_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Transactions shared with the partner, newest first."""
    joint = [t for t in transactions if t.is_joint]
    return sorted(joint, key=lambda t: t.date, reverse=True)


def joint_summary(transactions: Iterable[Transaction]) -> PeriodTotals:
    return period_totals(joint_transactions(transactions))


def filter_history(
    state: AppState,
    period: HistoryPeriod = HistoryPeriod.ALL,
    today: Optional[date] = None,
    date_range: Optional[DateRange] = None,
    account_id: Optional[str] = None,
    query: Optional[str] = None,
    order: SortOrder = SortOrder.NEWEST,
) -> list[Transaction]:
    """
    Settled transactions for the history screen.

    An explicit date_range wins over period. The search is
    case-insensitive over category name, note and linked debt person.
    """
    window = date_range
    if window is None and period != HistoryPeriod.ALL:
        window = period_range(period, today or date.today())

    needle = (query or "").strip().lower()
    result = []
    for t in settled(state.transactions):
        if window is not None and not window.contains(t.day):
            continue
        if account_id and t.account_id != account_id:
            continue
        if needle and not _matches(state, t, needle):
            continue
        result.append(t)

    return sorted(result, key=lambda t: t.date, reverse=order == SortOrder.NEWEST)


def _matches(state: AppState, transaction: Transaction, needle: str) -> bool:
    category = state.find_category(transaction.category_id)
    if category and needle in category.name.lower():
        return True
    if needle in transaction.note.lower():
        return True
    debt = state.find_debt(transaction.linked_debt_id)
    return bool(debt and needle in debt.person_name.lower())
