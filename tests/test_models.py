"""
Tests for FinFlow

Test strategy:
1. Unit tests for individual components (models, engine, validators)
2. Service tests against an in-memory state store
3. No real API calls in tests (mock transports and fake models)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from pydantic import ValidationError

from finflow.models.ledger import (
    CURRENT_SCHEMA_VERSION,
    LEGACY_SCHEMA_VERSION,
    AppState,
    Debt,
    DebtType,
    Subscription,
    SubscriptionPeriod,
    Transaction,
    TransactionDraft,
    TransactionOrigin,
    TransactionType,
    default_state,
)
from finflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for the persisted entity models."""

    def test_transaction_accepts_camel_case_document(self):
        """Test that stored camelCase keys populate snake_case fields."""
        tx = Transaction.model_validate({
            "id": "t1",
            "amount": 500,
            "categoryId": "1",
            "accountId": "cash",
            "date": "2024-01-15T10:30:00.000Z",
            "note": "Lunch",
            "type": "expense",
            "isPlanned": True,
            "linkedDebtId": "d1",
            "debtAction": "increase",
        })
        assert tx.category_id == "1"
        assert tx.is_planned is True
        assert tx.linked_debt_id == "d1"
        assert tx.amount == Decimal("500")
        assert tx.origin == TransactionOrigin.MANUAL

    def test_transaction_date_is_naive_utc(self):
        """Test that offset-aware timestamps are converted to naive UTC."""
        tx = Transaction(
            id="t1",
            amount=Decimal("1"),
            type=TransactionType.EXPENSE,
            date="2024-01-15T03:00:00+03:00",
        )
        assert tx.date == datetime(2024, 1, 15, 0, 0)
        assert tx.date.tzinfo is None

    def test_transaction_accepts_date_only(self):
        """Test that a bare ISO date becomes midnight."""
        tx = Transaction(id="t1", amount=Decimal("1"), type=TransactionType.INCOME, date="2024-02-29")
        assert tx.date == datetime(2024, 2, 29)
        assert tx.day == date(2024, 2, 29)

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValidationError):
            TransactionDraft(amount=Decimal("0"), type=TransactionType.EXPENSE)
        with pytest.raises(ValidationError):
            TransactionDraft(amount=Decimal("-5"), type=TransactionType.EXPENSE)

    def test_to_draft_drops_id(self):
        """Test that a stored transaction converts back to a draft."""
        tx = Transaction(id="t1", amount=Decimal("10"), type=TransactionType.EXPENSE, note="x")
        draft = tx.to_draft()
        assert not hasattr(draft, "id")
        assert draft.note == "x"

    def test_debt_amount_cannot_be_negative(self):
        """Test the debt remainder invariant at the model boundary."""
        with pytest.raises(ValidationError):
            Debt(id="d1", person_name="Alex", amount=Decimal("-1"), type=DebtType.I_OWE)

    def test_debt_empty_due_date_is_none(self):
        """Test that an empty dueDate string from old documents is treated as absent."""
        debt = Debt.model_validate({
            "id": "d1", "personName": "Alex", "amount": 100, "type": "i_owe", "dueDate": "",
        })
        assert debt.due_date is None

    def test_subscription_billing_day_defaults_to_payment_day(self):
        """Test that billing day is taken from the first payment date."""
        sub = Subscription(
            id="s1", name="Netflix", amount=Decimal("799"),
            next_payment_date=date(2024, 1, 31),
        )
        assert sub.billing_day == 31
        assert sub.period == SubscriptionPeriod.MONTHLY

    def test_subscription_billing_day_must_land_on_payment_date(self):
        """Test an explicit billing day that misses the payment date is replaced."""
        sub = Subscription.model_validate({
            "id": "s1", "name": "Netflix", "amount": 799,
            "nextPaymentDate": "2024-01-15", "billingDay": 31,
        })
        assert sub.billing_day == 15

    def test_subscription_month_end_billing_day_is_kept(self):
        """Test day 31 is a valid anchor for a Feb 29 payment date."""
        sub = Subscription(
            id="s1", name="Gym", amount=Decimal("50"),
            next_payment_date=date(2024, 2, 29), billing_day=31,
        )
        assert sub.billing_day == 31

    def test_subscription_accepts_datetime_string_for_date(self):
        """Test that a full timestamp is truncated to its day."""
        sub = Subscription.model_validate({
            "id": "s1", "name": "Netflix", "amount": 799,
            "nextPaymentDate": "2024-01-15T00:00:00.000Z",
        })
        assert sub.next_payment_date == date(2024, 1, 15)


class TestAppStateDocument:
    """Tests for the persisted JSON document shape."""

    def test_to_document_uses_camel_case_and_numbers(self):
        """Test that money is serialized as JSON numbers and keys are camelCase."""
        state = default_state()
        state = state.model_copy(update={"transactions": [
            Transaction(id="t1", amount=Decimal("200"), type=TransactionType.INCOME, account_id="cash"),
            Transaction(id="t2", amount=Decimal("12.50"), type=TransactionType.EXPENSE, account_id="cash"),
        ]})
        doc = state.to_document()

        assert doc["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert doc["transactions"][0]["accountId"] == "cash"
        assert doc["transactions"][0]["amount"] == 200
        assert isinstance(doc["transactions"][0]["amount"], int)
        assert doc["transactions"][1]["amount"] == 12.5
        assert "linkedDebtId" not in doc["transactions"][0]

    def test_document_round_trip(self):
        """Test that a document parses back into an equal state."""
        state = default_state(profile_name="Аня", currency="$")
        restored = AppState.from_document(state.to_document())
        assert restored == state

    def test_document_without_version_is_legacy(self):
        """Test that pre-versioning documents are marked as version 1."""
        restored = AppState.from_document({"transactions": [], "profile": {"name": "A", "currency": "₽"}})
        assert restored.schema_version == LEGACY_SCHEMA_VERSION

    def test_unknown_keys_are_ignored(self):
        """Test that fields written by other clients do not break parsing."""
        restored = AppState.from_document({"schemaVersion": 2, "somethingNew": [1, 2, 3]})
        assert restored.transactions == []

    def test_default_state_has_categories_and_accounts(self):
        """Test the seed data for a new user."""
        state = default_state()
        assert [a.id for a in state.accounts] == ["cash", "main_card"]
        assert len(state.categories) == 7
        assert state.profile.name == "Гость"
        assert state.profile.currency == "₽"

    def test_find_helpers(self):
        """Test lookups by id return None for unknown ids."""
        state = default_state()
        assert state.find_account("cash").name == "Наличные"
        assert state.find_category("7").type == TransactionType.SAVINGS
        assert state.find_debt(None) is None
        assert state.find_transaction("missing") is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            description="State loaded",
        )
        assert event.event_type == AuditEventType.STATE_LOADED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.transaction_saved("tx_1", "500", "expense", created=True)
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transaction_created"
        assert log_dict["entity_id"] == "tx_1"
        assert log_dict["details"] == {"amount": "500", "type": "expense"}

    def test_clamped_debt_adjustment_is_warning(self):
        """Test that clamping is flagged in the audit trail."""
        event = AuditEventBuilder.debt_adjusted("d1", "100", "0", "tx_1", clamped=True)
        assert event.severity == AuditSeverity.WARNING
        assert event.details["clamped"] is True

    def test_sync_failed_event(self):
        """Test sync failure event carries the error."""
        event = AuditEventBuilder.sync_failed("user-1", "save", "timeout")
        assert event.event_type == AuditEventType.SYNC_FAILED
        assert event.error_message == "timeout"
        assert event.details == {"operation": "save"}
