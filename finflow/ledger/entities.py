"""
Entity Management

Add, edit and delete for everything that is not a transaction:
accounts, categories, debts, savings goals, subscriptions and the
profile. Plus the two bulk operations from the profile screen
(baseline balances, full data reset).

DESIGN DECISION: Deleting an entity never cascades into transactions.
A transaction whose category or account is gone keeps the dangling id;
the presentation layer falls back to a default icon and name.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Mapping, Optional

from finflow.audit.logger import AuditLogger
from finflow.ledger.mutations import new_id
from finflow.models.audit import AuditEventBuilder
from finflow.models.ledger import (
    Account,
    AppState,
    Category,
    Debt,
    LedgerModel,
    Profile,
    SavingsGoal,
    Subscription,
    Transaction,
    TransactionType,
    utcnow,
)

if TYPE_CHECKING:
    from finflow.store.state_store import StateStore


SAVINGS_TOP_UP_CATEGORY = "savings_manual"


class LedgerError(Exception):
    """Base exception for rejected entity operations."""
    pass


class LastAccountError(LedgerError):
    """The only remaining account cannot be deleted."""
    pass


class EntityNotFoundError(LedgerError):
    """The entity to edit or delete does not exist."""
    pass


# Collection name on AppState -> human name used in errors and audit
_COLLECTIONS = {
    "accounts": "account",
    "categories": "category",
    "debts": "debt",
    "savings": "goal",
    "subscriptions": "subscription",
}


class EntityService:
    """
    CRUD for the secondary entities of the ledger.

    Every method commits through the state store (one update per call),
    so each change is debounce-persisted like a transaction save.
    """

    def __init__(
        self,
        store: 'StateStore',
        audit_logger: Optional[AuditLogger] = None,
        id_factory: Callable[[str], str] = new_id,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._new_id = id_factory
        self._clock = clock

    # =========================================================================
    # GENERIC HELPERS
    # =========================================================================

    def _add(self, collection: str, entity: LedgerModel) -> LedgerModel:
        items = list(getattr(self._store.state, collection))
        items.append(entity)
        self._store.update(**{collection: items})
        return entity

    def _replace(self, collection: str, entity: LedgerModel) -> LedgerModel:
        items = list(getattr(self._store.state, collection))
        for index, existing in enumerate(items):
            if existing.id == entity.id:
                items[index] = entity
                self._store.update(**{collection: items})
                return entity
        raise EntityNotFoundError(f"No {_COLLECTIONS[collection]} with id {entity.id}")

    def _remove(self, collection: str, entity_id: str) -> None:
        items = getattr(self._store.state, collection)
        remaining = [item for item in items if item.id != entity_id]
        if len(remaining) == len(items):
            raise EntityNotFoundError(f"No {_COLLECTIONS[collection]} with id {entity_id}")
        self._store.update(**{collection: remaining})
        self._audit.log(
            AuditEventBuilder.entity_deleted(_COLLECTIONS[collection], entity_id)
        )

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def add_account(self, **fields) -> Account:
        return self._add("accounts", Account(id=self._new_id("acc"), **fields))

    def update_account(self, account: Account) -> Account:
        return self._replace("accounts", account)

    def delete_account(self, account_id: str) -> None:
        """
        Raises:
            LastAccountError: If this is the only account
            EntityNotFoundError: If there is no such account
        """
        if len(self._store.state.accounts) <= 1:
            raise LastAccountError("At least one account must remain")
        self._remove("accounts", account_id)

    def set_account_baselines(self, balances: Mapping[str, Decimal]) -> list[Account]:
        """
        Overwrite baseline balances in bulk.

        Accounts missing from `balances` get a zero baseline, as the
        balance sync form submits every account.
        """
        accounts = [
            account.model_copy(
                update={"balance": Decimal(str(balances.get(account.id, 0)))}
            )
            for account in self._store.state.accounts
        ]
        self._store.update(accounts=accounts)
        return accounts

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    def add_category(self, **fields) -> Category:
        return self._add("categories", Category(id=self._new_id("cat"), **fields))

    def update_category(self, category: Category) -> Category:
        return self._replace("categories", category)

    def delete_category(self, category_id: str) -> None:
        """Transactions in the category are orphaned, not deleted."""
        self._remove("categories", category_id)

    # =========================================================================
    # DEBTS
    # =========================================================================

    def add_debt(self, **fields) -> Debt:
        debt = self._add("debts", Debt(id=self._new_id("debt"), **fields))
        self._audit.log(
            AuditEventBuilder.debt_created(
                debt.id, debt.person_name, str(debt.amount), debt.type.value
            )
        )
        return debt

    def update_debt(self, debt: Debt) -> Debt:
        return self._replace("debts", debt)

    def delete_debt(self, debt_id: str) -> None:
        """Linked transactions keep their (now dangling) linkedDebtId."""
        self._remove("debts", debt_id)

    # =========================================================================
    # SAVINGS GOALS
    # =========================================================================

    def add_goal(self, **fields) -> SavingsGoal:
        return self._add("savings", SavingsGoal(id=self._new_id("goal"), **fields))

    def update_goal(self, goal: SavingsGoal) -> SavingsGoal:
        return self._replace("savings", goal)

    def delete_goal(self, goal_id: str) -> None:
        """Contributions stay in the transaction history."""
        self._remove("savings", goal_id)

    def top_up_goal(self, goal_id: str, amount: Decimal) -> Transaction:
        """
        Put money into a goal.

        Raises the goal's current amount and records a savings
        transaction on the first account, in one update.
        """
        state = self._store.state
        goal = state.find_goal(goal_id)
        if goal is None:
            raise EntityNotFoundError(f"No goal with id {goal_id}")

        transaction = Transaction(
            id=self._new_id("tx"),
            amount=amount,
            category_id=SAVINGS_TOP_UP_CATEGORY,
            account_id=state.accounts[0].id if state.accounts else "",
            date=self._clock(),
            note=f"В цель: {goal.name}",
            type=TransactionType.SAVINGS,
        )
        goals = [
            g.model_copy(update={"current_amount": g.current_amount + transaction.amount})
            if g.id == goal_id else g
            for g in state.savings
        ]
        self._store.update(
            savings=goals,
            transactions=[*state.transactions, transaction],
        )
        return transaction

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def add_subscription(self, **fields) -> Subscription:
        return self._add(
            "subscriptions", Subscription(id=self._new_id("sub"), **fields)
        )

    def update_subscription(self, subscription: Subscription) -> Subscription:
        """
        Replace a subscription.

        The billing day is kept while it still lands on the next
        payment date (day 31 fits Apr 30); otherwise it follows the date.
        """
        if not subscription.anchor_fits(
            subscription.next_payment_date, subscription.billing_day
        ):
            subscription = subscription.model_copy(
                update={"billing_day": subscription.next_payment_date.day}
            )
        return self._replace("subscriptions", subscription)

    def set_subscription_active(self, subscription_id: str, active: bool) -> Subscription:
        subscription = self._store.state.find_subscription(subscription_id)
        if subscription is None:
            raise EntityNotFoundError(f"No subscription with id {subscription_id}")
        return self._replace(
            "subscriptions", subscription.model_copy(update={"is_active": active})
        )

    def delete_subscription(self, subscription_id: str) -> None:
        self._remove("subscriptions", subscription_id)

    # =========================================================================
    # PROFILE AND BULK OPERATIONS
    # =========================================================================

    def update_profile(self, **changes) -> Profile:
        profile = Profile.model_validate(
            {**self._store.state.profile.model_dump(), **changes}
        )
        self._store.update(profile=profile)
        return profile

    def reset_data(self) -> AppState:
        """
        Wipe the financial history.

        Clears transactions, debts and goals and zeroes every baseline.
        Categories, accounts, subscriptions and the profile survive.
        """
        state = self._store.state
        self._audit.log(
            AuditEventBuilder.data_reset(
                len(state.transactions), len(state.debts), len(state.savings)
            )
        )
        return self._store.update(
            transactions=[],
            debts=[],
            savings=[],
            accounts=[a.model_copy(update={"balance": Decimal("0")}) for a in state.accounts],
        )

    def export_json(self) -> tuple[str, str]:
        """
        Backup of the whole document.

        Returns:
            (suggested file name, pretty-printed JSON)
        """
        filename = f"finflow_backup_{self._clock().date().isoformat()}.json"
        payload = json.dumps(self._store.state.to_document(), ensure_ascii=False, indent=2)
        return filename, payload
