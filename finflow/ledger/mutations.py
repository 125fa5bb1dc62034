"""
Transaction Mutation Service

The single authority for creating, editing and deleting transactions.

Two side effects ride on every transaction:
- A linked debt's remaining amount moves (increase adds, anything
  else subtracts), clamped at zero.
- A linked subscription's next payment date moves one period forward
  on save and one period back on delete.

GUARANTEES:
- Save followed by Delete restores the debt amount (unless clamping
  kicked in) and the subscription date.
- Editing reverses the OLD transaction's effects before the new ones
  are applied, so an edit never double-counts.
- That reversal covers the old subscription link too: its payment date
  is moved back before the edited transaction advances one.
- Every mutation is one atomic store update.

KNOWN ASYMMETRY: paying an installment on a monthly debt moves its due
date one month forward. Deleting that payment does NOT move it back.
"""

import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Optional

from finflow.audit.logger import AuditLogger
from finflow.ledger.dates import advance, regress, shift_months
from finflow.models.audit import AuditEvent, AuditEventBuilder
from finflow.models.ledger import (
    Debt,
    DebtAction,
    DebtType,
    Subscription,
    Transaction,
    TransactionDraft,
    TransactionOrigin,
    TransactionType,
    utcnow,
)

if TYPE_CHECKING:
    from finflow.store.state_store import StateStore


ZERO = Decimal("0")


def new_id(prefix: str) -> str:
    """
    Unique entity id such as `tx_1718000000000_9f2c41ab`.

    The random suffix keeps ids minted in the same millisecond apart.
    """
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def debt_delta(transaction: Transaction) -> Decimal:
    """Change a transaction applies to its linked debt."""
    if transaction.debt_action == DebtAction.INCREASE:
        return transaction.amount
    return -transaction.amount


def infer_debt_type(kind: TransactionType) -> DebtType:
    """
    Direction of a debt opened by a transaction.

    Money received (income) means I owe it back; money paid out means
    they owe me.
    """
    if kind == TransactionType.INCOME:
        return DebtType.I_OWE
    return DebtType.THEY_OWE


class TransactionService:
    """
    CRUD for transactions with debt and subscription side effects.

    Input is assumed valid (see finflow.validation); nothing here
    re-validates business rules beyond what the models enforce.
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

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # SAVE
    # =========================================================================

    def save(
        self,
        draft: TransactionDraft,
        editing: Optional[Transaction] = None,
        new_debt_name: Optional[str] = None,
    ) -> Transaction:
        """
        Create a transaction, or replace `editing` with the draft.

        Args:
            draft: Transaction data as entered
            editing: The stored transaction being edited, if any
            new_debt_name: Person to open a new debt for, when the draft
                is an `increase` not linked to an existing debt

        Returns:
            The stored transaction (with its final id and debt link)
        """
        state = self._store.state
        debts = list(state.debts)
        subscriptions = list(state.subscriptions)
        events: list[AuditEvent] = []

        # 1. Undo what the old version did
        if editing is not None:
            if editing.linked_debt_id:
                self._apply_to_debt(debts, editing, reverse=True, events=events)
            if editing.subscription_id:
                self._move_subscription(
                    subscriptions, editing.subscription_id, forward=False, events=events
                )

        # 2. Resolve the id
        transaction_id = editing.id if editing is not None else self._new_id("tx")
        transaction = Transaction.model_validate(
            {**draft.model_dump(), "id": transaction_id}
        )

        # 3. Subscription payment moves the next payment date
        if transaction.subscription_id:
            self._move_subscription(
                subscriptions, transaction.subscription_id, forward=True, events=events
            )

        # 4. Debt effect
        if transaction.linked_debt_id:
            self._apply_to_debt(debts, transaction, reverse=False, events=events)
        elif new_debt_name and new_debt_name.strip() and transaction.debt_action == DebtAction.INCREASE:
            debt = Debt(
                id=self._new_id("debt"),
                person_name=new_debt_name.strip(),
                amount=transaction.amount,
                type=infer_debt_type(transaction.type),
                date=transaction.date,
                description=transaction.note,
            )
            debts.append(debt)
            update = {"linked_debt_id": debt.id}
            if transaction.origin == TransactionOrigin.MANUAL:
                update["origin"] = TransactionOrigin.DEBT
            transaction = transaction.model_copy(update=update)
            events.append(
                AuditEventBuilder.debt_created(
                    debt.id, debt.person_name, str(debt.amount), debt.type.value
                )
            )

        # 5. Upsert and commit in one step
        transactions = list(state.transactions)
        for index, existing in enumerate(transactions):
            if existing.id == transaction.id:
                transactions[index] = transaction
                break
        else:
            transactions.append(transaction)

        self._store.update(
            transactions=transactions,
            debts=debts,
            subscriptions=subscriptions,
        )

        events.append(
            AuditEventBuilder.transaction_saved(
                transaction.id,
                str(transaction.amount),
                transaction.type.value,
                created=editing is None,
            )
        )
        for event in events:
            self._audit.log(event)

        return transaction

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete(self, transaction_id: str) -> bool:
        """
        Remove a transaction and reverse its side effects.

        Returns:
            False (and changes nothing) if the id is unknown
        """
        state = self._store.state
        transaction = state.find_transaction(transaction_id)
        if transaction is None:
            return False

        debts = list(state.debts)
        subscriptions = list(state.subscriptions)
        events: list[AuditEvent] = []

        if transaction.subscription_id:
            self._move_subscription(
                subscriptions, transaction.subscription_id, forward=False, events=events
            )
        if transaction.linked_debt_id:
            self._apply_to_debt(debts, transaction, reverse=True, events=events)

        self._store.update(
            transactions=[t for t in state.transactions if t.id != transaction_id],
            debts=debts,
            subscriptions=subscriptions,
        )

        events.append(
            AuditEventBuilder.transaction_deleted(transaction_id, str(transaction.amount))
        )
        for event in events:
            self._audit.log(event)

        return True

    # =========================================================================
    # SIDE EFFECTS
    # =========================================================================

    def _apply_to_debt(
        self,
        debts: list[Debt],
        transaction: Transaction,
        reverse: bool,
        events: list[AuditEvent],
    ) -> None:
        for index, debt in enumerate(debts):
            if debt.id != transaction.linked_debt_id:
                continue

            delta = debt_delta(transaction)
            if reverse:
                delta = -delta
            raw = debt.amount + delta
            update = {"amount": max(ZERO, raw)}

            if (
                not reverse
                and transaction.debt_action == DebtAction.DECREASE
                and debt.is_monthly
                and debt.due_date is not None
            ):
                update["due_date"] = shift_months(debt.due_date, 1)

            debts[index] = debt.model_copy(update=update)
            events.append(
                AuditEventBuilder.debt_adjusted(
                    debt.id,
                    str(debt.amount),
                    str(update["amount"]),
                    transaction.id,
                    clamped=raw < ZERO,
                )
            )
            return

    def _move_subscription(
        self,
        subscriptions: list[Subscription],
        subscription_id: str,
        forward: bool,
        events: list[AuditEvent],
    ) -> None:
        for index, subscription in enumerate(subscriptions):
            if subscription.id != subscription_id:
                continue

            step = advance if forward else regress
            old_date = subscription.next_payment_date
            new_date = step(old_date, subscription.period, subscription.billing_day)
            subscriptions[index] = subscription.model_copy(
                update={"next_payment_date": new_date}
            )
            events.append(
                AuditEventBuilder.subscription_moved(
                    subscription.id, old_date.isoformat(), new_date.isoformat(), forward
                )
            )
            return
