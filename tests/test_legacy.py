"""Tests for migrating version-1 documents."""

from datetime import date

from finflow.ledger import migrate_legacy_state, strip_marker
from finflow.models.ledger import (
    CURRENT_SCHEMA_VERSION,
    AppState,
    TransactionOrigin,
)


def legacy_document() -> dict:
    return {
        "transactions": [
            {"id": "t1", "amount": 799, "type": "expense", "note": "[ПОДПИСКА] Netflix"},
            {"id": "t2", "amount": 500, "type": "income", "note": "[ДОЛГ] Alex",
             "linkedDebtId": "d1", "debtAction": "decrease"},
            {"id": "t3", "amount": 50, "type": "expense", "note": "Кофе"},
            {"id": "t4", "amount": 299, "type": "expense", "note": "", "subscriptionId": "s2"},
            {"id": "t5", "amount": 10, "type": "expense", "note": "[ПОДПИСКА] Unknown"},
        ],
        "subscriptions": [
            {"id": "s1", "name": "Netflix", "amount": 799, "nextPaymentDate": "2024-02-15"},
            {"id": "s2", "name": "Spotify", "amount": 299, "nextPaymentDate": "2024-02-01"},
            {"id": "s3", "name": "Netflix", "amount": 899, "nextPaymentDate": "2024-02-20"},
        ],
    }


class TestLegacyMigration:
    """Tests for migrate_legacy_state."""

    def test_strip_marker(self):
        """Test only a leading marker is removed."""
        assert strip_marker("[ПОДПИСКА] Netflix") == "Netflix"
        assert strip_marker("[ДОЛГ]Alex") == "Alex"
        assert strip_marker("Купил [ДОЛГ]") == "Купил [ДОЛГ]"

    def test_markers_become_origin(self):
        """Test notes lose their marker and gain an origin."""
        state, _ = migrate_legacy_state(AppState.from_document(legacy_document()))
        t1 = state.find_transaction("t1")
        t2 = state.find_transaction("t2")
        assert (t1.note, t1.origin) == ("Netflix", TransactionOrigin.SUBSCRIPTION)
        assert (t2.note, t2.origin) == ("Alex", TransactionOrigin.DEBT)
        assert t2.linked_debt_id == "d1"

    def test_subscription_linked_by_exact_name(self):
        """Test the first subscription with a matching name is linked."""
        state, _ = migrate_legacy_state(AppState.from_document(legacy_document()))
        assert state.find_transaction("t1").subscription_id == "s1"
        assert state.find_transaction("t5").subscription_id is None

    def test_existing_link_marks_origin(self):
        """Test a transaction that already had a subscription id."""
        state, _ = migrate_legacy_state(AppState.from_document(legacy_document()))
        t4 = state.find_transaction("t4")
        assert t4.origin == TransactionOrigin.SUBSCRIPTION
        assert t4.subscription_id == "s2"

    def test_plain_transactions_untouched(self):
        """Test unmarked transactions are returned unchanged."""
        original = AppState.from_document(legacy_document())
        state, changed = migrate_legacy_state(original)
        assert state.find_transaction("t3") is original.find_transaction("t3")
        assert changed == 4

    def test_version_is_bumped(self):
        """Test the migrated state carries the current schema version."""
        state, _ = migrate_legacy_state(AppState.from_document(legacy_document()))
        assert state.schema_version == CURRENT_SCHEMA_VERSION
        assert state.find_subscription("s1").next_payment_date == date(2024, 2, 15)
