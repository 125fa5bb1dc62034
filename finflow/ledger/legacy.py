"""
Legacy Document Migration

Version-1 documents marked the provenance of generated transactions
inside the free-text note:

    "[ПОДПИСКА] Netflix"   subscription payment
    "[ДОЛГ] Alex"          debt payment

Migration strips the marker, sets `origin`, and links subscription
payments that have no `subscriptionId` to the subscription whose name
matches the rest of the note exactly.

CRITICAL: This is the only place where entities are matched by name.
After migration every link is an id.
"""

import re

from finflow.models.ledger import (
    CURRENT_SCHEMA_VERSION,
    AppState,
    Transaction,
    TransactionOrigin,
)


SUBSCRIPTION_MARKER = "[ПОДПИСКА]"
DEBT_MARKER = "[ДОЛГ]"

_MARKER_PATTERN = re.compile(r"^\[(ПОДПИСКА|ДОЛГ)\]\s*")


def strip_marker(note: str) -> str:
    """Note text without a leading provenance marker."""
    return _MARKER_PATTERN.sub("", note)


def _migrate_transaction(
    transaction: Transaction,
    subscriptions_by_name: dict[str, str],
) -> Transaction:
    note = transaction.note
    changes = {}

    if note.startswith(SUBSCRIPTION_MARKER):
        clean = strip_marker(note)
        changes["note"] = clean
        changes["origin"] = TransactionOrigin.SUBSCRIPTION
        if not transaction.subscription_id and clean in subscriptions_by_name:
            changes["subscription_id"] = subscriptions_by_name[clean]
    elif note.startswith(DEBT_MARKER):
        changes["note"] = strip_marker(note)
        changes["origin"] = TransactionOrigin.DEBT
    elif transaction.subscription_id and transaction.origin == TransactionOrigin.MANUAL:
        changes["origin"] = TransactionOrigin.SUBSCRIPTION

    if not changes:
        return transaction
    return transaction.model_copy(update=changes)


def migrate_legacy_state(state: AppState) -> tuple[AppState, int]:
    """
    Bring a pre-versioning document to the current schema.

    Returns:
        (migrated state, number of transactions that changed)
    """
    subscriptions_by_name: dict[str, str] = {}
    for subscription in state.subscriptions:
        # First subscription wins when two share a name
        subscriptions_by_name.setdefault(subscription.name, subscription.id)

    migrated = []
    changed = 0
    for transaction in state.transactions:
        updated = _migrate_transaction(transaction, subscriptions_by_name)
        if updated is not transaction:
            changed += 1
        migrated.append(updated)

    return (
        state.model_copy(
            update={
                "transactions": migrated,
                "schema_version": CURRENT_SCHEMA_VERSION,
            }
        ),
        changed,
    )
