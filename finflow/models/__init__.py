"""
Data Models Package

This package contains all Pydantic models used in FinFlow.
The persisted document and everything derived from it conform to these schemas.
"""

from finflow.models.ledger import (
    CURRENT_SCHEMA_VERSION,
    LEGACY_SCHEMA_VERSION,
    Account,
    AccountType,
    AppState,
    Category,
    Debt,
    DebtAction,
    DebtType,
    PlannedItem,
    PlannedItemType,
    Profile,
    SavingsGoal,
    Subscription,
    SubscriptionPeriod,
    Transaction,
    TransactionDraft,
    TransactionOrigin,
    TransactionType,
    default_accounts,
    default_categories,
    default_state,
    utcnow,
)
from finflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CURRENT_SCHEMA_VERSION",
    "LEGACY_SCHEMA_VERSION",
    "Account",
    "AccountType",
    "AppState",
    "Category",
    "Debt",
    "DebtAction",
    "DebtType",
    "PlannedItem",
    "PlannedItemType",
    "Profile",
    "SavingsGoal",
    "Subscription",
    "SubscriptionPeriod",
    "Transaction",
    "TransactionDraft",
    "TransactionOrigin",
    "TransactionType",
    "default_accounts",
    "default_categories",
    "default_state",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
