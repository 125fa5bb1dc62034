"""
Audit Models for FinFlow

Every ledger mutation and every sync outcome is logged for audit purposes.
This provides:
1. Traceability of balance-affecting side effects (debts, subscriptions)
2. Debugging information when a sync fails
3. A way to reconstruct what happened to a document

DESIGN DECISION: Audit events are append-only structured log lines.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from finflow.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Side effects
    DEBT_CREATED = "debt_created"
    DEBT_ADJUSTED = "debt_adjusted"
    SUBSCRIPTION_ADVANCED = "subscription_advanced"
    SUBSCRIPTION_REGRESSED = "subscription_regressed"

    # Planner
    PLANNED_ITEM_EXECUTED = "planned_item_executed"
    PLANNED_ITEM_CANCELLED = "planned_item_cancelled"

    # Entities
    ENTITY_DELETED = "entity_deleted"
    DATA_RESET = "data_reset"

    # Sync
    STATE_LOADED = "state_loaded"
    STATE_SAVED = "state_saved"
    SYNC_FAILED = "sync_failed"
    LEGACY_STATE_MIGRATED = "legacy_state_migrated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One audit record.

    Emitted for each ledger side effect and each load/save of the
    state document.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Random id of this record"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="Naive UTC time the event was recorded"
    )

    # Classification
    event_type: AuditEventType = Field(
        ...,
        description="What happened"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="How loudly to log it"
    )

    # Subject of the event
    entity_type: Optional[str] = Field(
        default=None,
        description="Kind of entity (e.g., 'transaction', 'debt', 'state')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the transaction, debt, subscription or user"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="One-line summary for humans"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Amounts, dates and other per-event values"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="True when a user tap caused it (not a load or save)"
    )

    def to_log_dict(self) -> dict:
        """Flat dict passed as keyword arguments to the structlog call."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Named constructors, one per event the ledger and the store emit.

    Usage:
        event = AuditEventBuilder.transaction_saved(tx_id, "500", "expense", created=True)
        event = AuditEventBuilder.sync_failed(user_id, "save", "timeout")
    """

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        amount: str,
        kind: str,
        created: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.TRANSACTION_CREATED
                if created
                else AuditEventType.TRANSACTION_UPDATED
            ),
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction {'created' if created else 'updated'}: {kind} {amount}",
            details={"amount": amount, "type": kind},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: str, amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction deleted: {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def debt_created(debt_id: str, person_name: str, amount: str, debt_type: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_CREATED,
            entity_type="debt",
            entity_id=debt_id,
            description=f"Debt created for {person_name}: {amount}",
            details={"person_name": person_name, "amount": amount, "type": debt_type},
        )

    @staticmethod
    def debt_adjusted(
        debt_id: str,
        old_amount: str,
        new_amount: str,
        transaction_id: str,
        clamped: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_ADJUSTED,
            severity=AuditSeverity.WARNING if clamped else AuditSeverity.INFO,
            entity_type="debt",
            entity_id=debt_id,
            description=f"Debt amount {old_amount} -> {new_amount}",
            details={
                "old_amount": old_amount,
                "new_amount": new_amount,
                "transaction_id": transaction_id,
                "clamped": clamped,
            },
        )

    @staticmethod
    def subscription_moved(
        subscription_id: str,
        old_date: str,
        new_date: str,
        forward: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SUBSCRIPTION_ADVANCED
                if forward
                else AuditEventType.SUBSCRIPTION_REGRESSED
            ),
            entity_type="subscription",
            entity_id=subscription_id,
            description=f"Next payment {old_date} -> {new_date}",
            details={"old_date": old_date, "new_date": new_date},
        )

    @staticmethod
    def planned_item(item_id: str, item_type: str, executed: bool) -> AuditEvent:
        action = "executed" if executed else "cancelled"
        return AuditEvent(
            event_type=(
                AuditEventType.PLANNED_ITEM_EXECUTED
                if executed
                else AuditEventType.PLANNED_ITEM_CANCELLED
            ),
            entity_type=item_type,
            entity_id=item_id,
            description=f"Planned {item_type} {action}",
            is_user_action=True,
        )

    @staticmethod
    def entity_deleted(entity_type: str, entity_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} deleted",
            is_user_action=True,
        )

    @staticmethod
    def data_reset(transactions: int, debts: int, goals: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="state",
            description="User data reset",
            details={"transactions": transactions, "debts": debts, "savings": goals},
            is_user_action=True,
        )

    @staticmethod
    def state_loaded(user_id: str, transactions: int, found: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            entity_type="state",
            entity_id=user_id,
            description=(
                f"State loaded with {transactions} transactions"
                if found
                else "No stored state, starting fresh"
            ),
            details={"transactions": transactions, "found": found},
        )

    @staticmethod
    def state_saved(user_id: str, transactions: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_SAVED,
            entity_type="state",
            entity_id=user_id,
            description=f"State saved with {transactions} transactions",
            details={"transactions": transactions},
        )

    @staticmethod
    def sync_failed(user_id: str, operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="state",
            entity_id=user_id,
            description=f"State {operation} failed",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def legacy_state_migrated(from_version: int, to_version: int, changes: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEGACY_STATE_MIGRATED,
            entity_type="state",
            description=f"State migrated from v{from_version} to v{to_version}",
            details={"from": from_version, "to": to_version, "changed_transactions": changes},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(service: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
