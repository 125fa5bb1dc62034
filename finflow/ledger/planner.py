"""
Planned-Item Projector

One calendar of upcoming obligations built from three sources:

    planned transactions   (isPlanned)
    debts with a due date  (i_owe -> expense, they_owe -> income)
    active subscriptions   (always expense)

The projection is read-only. Acting on an item (execute / cancel)
goes through PlannerService, which delegates to the transaction
mutation service so all side effects stay in one place.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, NamedTuple, Optional

from finflow.audit.logger import AuditLogger
from finflow.ledger.dates import shift_months
from finflow.ledger.mutations import TransactionService
from finflow.models.audit import AuditEventBuilder
from finflow.models.ledger import (
    AppState,
    Debt,
    DebtAction,
    DebtType,
    PlannedItem,
    PlannedItemType,
    Subscription,
    Transaction,
    TransactionDraft,
    TransactionOrigin,
    TransactionType,
)
from finflow.services.host import HostBridge

if TYPE_CHECKING:
    from finflow.store.state_store import StateStore


FALLBACK_TITLE = "Операция"
FALLBACK_ICON = "📦"
FALLBACK_COLOR = "#94a3b8"

# Category used for debt payments when the user has no "долг" category
DEBT_SYSTEM_CATEGORY = "debt_system"


def debt_flow(debt: Debt) -> TransactionType:
    """I will pay (expense) or I will receive (income)."""
    return TransactionType.EXPENSE if debt.type == DebtType.I_OWE else TransactionType.INCOME


def _debt_icon(debt: Debt) -> tuple[str, str]:
    if debt.is_bank:
        return "🏦", "#f59e0b"
    if debt.type == DebtType.I_OWE:
        return "👤", "#f43f5e"
    return "🤲", "#10b981"


# =============================================================================
# PROJECTION
# =============================================================================

def project_planned_items(state: AppState) -> list[PlannedItem]:
    """All upcoming items, ascending by date (stable within a day)."""
    items: list[PlannedItem] = []

    for t in state.transactions:
        if not t.is_planned:
            continue
        category = state.find_category(t.category_id)
        items.append(PlannedItem(
            id=t.id,
            date=t.day,
            amount=t.amount,
            type=t.type,
            title=category.name if category else FALLBACK_TITLE,
            icon=category.icon if category else FALLBACK_ICON,
            color=category.color if category else FALLBACK_COLOR,
            item_type=PlannedItemType.TRANSACTION,
        ))

    for d in state.debts:
        if d.due_date is None:
            continue
        icon, color = _debt_icon(d)
        items.append(PlannedItem(
            id=d.id,
            date=d.due_date,
            amount=d.amount,
            type=debt_flow(d),
            title=d.person_name,
            icon=icon,
            color=color,
            item_type=PlannedItemType.DEBT,
            is_bank=d.is_bank,
            is_monthly=d.is_monthly,
        ))

    for s in state.subscriptions:
        if not s.is_active:
            continue
        items.append(PlannedItem(
            id=s.id,
            date=s.next_payment_date,
            amount=s.amount,
            type=TransactionType.EXPENSE,
            title=s.name,
            icon=s.icon,
            color=s.color,
            item_type=PlannedItemType.SUBSCRIPTION,
            reminder_days=s.reminder_days,
        ))

    return sorted(items, key=lambda item: item.date)


def items_on(items: Iterable[PlannedItem], day: date) -> list[PlannedItem]:
    """Items falling exactly on `day`."""
    return [item for item in items if item.date == day]


def dates_with_events(items: Iterable[PlannedItem]) -> set[date]:
    return {item.date for item in items}


def daily_balance(items: Iterable[PlannedItem]) -> Decimal:
    """Net effect of a day's items: income adds, everything else subtracts."""
    total = Decimal("0")
    for item in items:
        if item.type == TransactionType.INCOME:
            total += item.amount
        else:
            total -= item.amount
    return total


class Reminder(NamedTuple):
    subscription: Subscription
    days_left: int

    @property
    def overdue(self) -> bool:
        return self.days_left < 0


def due_reminders(state: AppState, today: date) -> list[Reminder]:
    """
    Active subscriptions due within their reminder window.

    Overdue payments are included (negative days_left). Soonest first.
    """
    reminders = []
    for s in state.subscriptions:
        if not s.is_active:
            continue
        days_left = (s.next_payment_date - today).days
        if days_left <= s.reminder_days:
            reminders.append(Reminder(s, days_left))
    return sorted(reminders, key=lambda r: r.days_left)


# =============================================================================
# ACTIONS
# =============================================================================

class PlannerService:
    """
    Execute or cancel calendar items.

    Unknown item ids are silent no-ops: the item may have been removed
    since the calendar was rendered.
    """

    def __init__(
        self,
        store: 'StateStore',
        transactions: TransactionService,
        host: Optional[HostBridge] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._transactions = transactions
        self._host = host
        self._audit = audit_logger or AuditLogger()

    def items(self) -> list[PlannedItem]:
        return project_planned_items(self._store.state)

    def execute(self, item: PlannedItem) -> Optional[Transaction]:
        """
        Turn a calendar item into a real transaction.

        Returns:
            The saved transaction, or None if nothing was executed
        """
        state = self._store.state
        editing: Optional[Transaction] = None

        if item.item_type == PlannedItemType.TRANSACTION:
            editing = state.find_transaction(item.id)
            if editing is None:
                return None
            draft = editing.to_draft().model_copy(
                update={"is_planned": False, "date": self._transactions.now()}
            )
        elif item.item_type == PlannedItemType.SUBSCRIPTION:
            subscription = state.find_subscription(item.id)
            if subscription is None:
                return None
            draft = self._subscription_payment(state, subscription)
        else:
            debt = state.find_debt(item.id)
            if debt is None or debt.amount <= 0:
                return None
            draft = self._debt_payment(state, debt)

        transaction = self._transactions.save(draft, editing=editing)
        self._audit.log(
            AuditEventBuilder.planned_item(item.id, item.item_type.value, executed=True)
        )
        if self._host is not None:
            self._host.haptic_success()
        return transaction

    def cancel(self, item: PlannedItem) -> bool:
        """
        Drop a calendar item without paying it.

        - transaction: deleted
        - subscription: deactivated (not deleted)
        - monthly debt: this installment skipped (due date +1 month)
        - other debt: due date cleared, the debt itself stays
        """
        state = self._store.state

        if item.item_type == PlannedItemType.TRANSACTION:
            if not self._transactions.delete(item.id):
                return False
        elif item.item_type == PlannedItemType.SUBSCRIPTION:
            if state.find_subscription(item.id) is None:
                return False
            self._store.update(subscriptions=[
                s.model_copy(update={"is_active": False}) if s.id == item.id else s
                for s in state.subscriptions
            ])
        else:
            debt = state.find_debt(item.id)
            if debt is None:
                return False
            if debt.is_monthly and debt.due_date is not None:
                update = {"due_date": shift_months(debt.due_date, 1)}
            else:
                update = {"due_date": None}
            self._store.update(debts=[
                d.model_copy(update=update) if d.id == item.id else d
                for d in state.debts
            ])

        self._audit.log(
            AuditEventBuilder.planned_item(item.id, item.item_type.value, executed=False)
        )
        return True

    def _subscription_payment(
        self,
        state: AppState,
        subscription: Subscription,
    ) -> TransactionDraft:
        category_id = subscription.category_id
        if not category_id:
            fallback = next(
                (c for c in state.categories if c.type == TransactionType.EXPENSE),
                None,
            )
            category_id = fallback.id if fallback else "1"

        account_id = subscription.account_id
        if not account_id and state.accounts:
            account_id = state.accounts[0].id

        return TransactionDraft(
            amount=subscription.amount,
            category_id=category_id,
            account_id=account_id,
            date=self._transactions.now(),
            note=subscription.name,
            type=TransactionType.EXPENSE,
            subscription_id=subscription.id,
            origin=TransactionOrigin.SUBSCRIPTION,
        )

    def _debt_payment(self, state: AppState, debt: Debt) -> TransactionDraft:
        kind = debt_flow(debt)
        category = next(
            (
                c for c in state.categories
                if "долг" in c.name.lower() and c.type == kind
            ),
            None,
        )
        return TransactionDraft(
            amount=debt.amount,
            category_id=category.id if category else DEBT_SYSTEM_CATEGORY,
            account_id=state.accounts[0].id if state.accounts else "",
            date=self._transactions.now(),
            note=debt.person_name,
            type=kind,
            linked_debt_id=debt.id,
            debt_action=DebtAction.DECREASE,
            origin=TransactionOrigin.DEBT,
        )
