"""Tests for transaction form validation."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from finflow.models.ledger import (
    Debt,
    DebtAction,
    DebtType,
    TransactionOrigin,
    TransactionType,
    default_state,
)
from finflow.validation import TransactionForm, TransactionValidator, parse_amount


TODAY = date(2024, 3, 10)


@pytest.fixture
def validator():
    state = default_state().model_copy(update={"debts": [
        Debt(id="d1", person_name="Alex", amount=Decimal("300"), type=DebtType.THEY_OWE),
    ]})
    return TransactionValidator(state)


def form(**overrides) -> TransactionForm:
    data = {
        "amount": "150",
        "category_id": "1",
        "account_id": "cash",
        "date": datetime(2024, 3, 10, 9, 0),
    }
    data.update(overrides)
    return TransactionForm(**data)


class TestParseAmount:
    """Tests for amount parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("150", Decimal("150")),
        ("1 500,50", Decimal("1500.50")),
        (" 12.5 ", Decimal("12.5")),
        (200, Decimal("200")),
    ])
    def test_accepts_typed_numbers(self, raw, expected):
        """Test commas, spaces and numbers are accepted."""
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "NaN", "Infinity"])
    def test_rejects_non_numbers(self, raw):
        """Test values that are not finite numbers."""
        assert parse_amount(raw) is None


class TestRequiredFields:
    """Stage 1 checks."""

    def test_valid_form(self, validator):
        """Test a complete form passes without issues."""
        result = validator.validate(form(), today=TODAY)
        assert result.is_valid
        assert result.issues == []

    def test_missing_amount(self, validator):
        """Test an empty amount."""
        result = validator.validate(form(amount=""), today=TODAY)
        assert not result.is_valid
        assert result.errors[0].issue_type == "missing"

    def test_invalid_amount(self, validator):
        """Test a non-numeric amount."""
        result = validator.validate(form(amount="12abc"), today=TODAY)
        assert result.errors[0].issue_type == "invalid_format"

    def test_non_positive_amount(self, validator):
        """Test zero amount."""
        result = validator.validate(form(amount="0"), today=TODAY)
        assert result.errors[0].issue_type == "invalid_value"

    def test_category_optional_with_debt(self, validator):
        """Test a debt payment needs no category."""
        result = validator.validate(
            form(category_id="", linked_debt_id="d1", debt_action=DebtAction.DECREASE),
            today=TODAY,
        )
        assert result.is_valid

    def test_missing_category_and_account(self, validator):
        """Test both missing references are reported."""
        result = validator.validate(form(category_id="", account_id=""), today=TODAY)
        assert {e.field for e in result.errors} == {"category_id", "account_id"}

    def test_stage_two_skipped_on_errors(self, validator):
        """Test consistency checks wait for required fields."""
        result = validator.validate(form(amount="", account_id="ghost"), today=TODAY)
        assert [e.field for e in result.errors] == ["amount"]


class TestConsistency:
    """Stage 2 checks."""

    def test_unknown_account_is_error(self, validator):
        """Test a deleted account blocks saving."""
        result = validator.validate(form(account_id="ghost"), today=TODAY)
        assert not result.is_valid

    def test_unknown_category_is_warning(self, validator):
        """Test a deleted category only warns."""
        result = validator.validate(form(category_id="ghost"), today=TODAY)
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_unknown_debt(self, validator):
        """Test a link to a missing debt."""
        result = validator.validate(
            form(linked_debt_id="ghost", debt_action=DebtAction.DECREASE), today=TODAY,
        )
        assert result.errors[0].field == "linked_debt_id"

    def test_debt_without_action(self, validator):
        """Test a debt link requires an action."""
        result = validator.validate(form(linked_debt_id="d1"), today=TODAY)
        assert result.errors[0].field == "debt_action"

    def test_new_debt_requires_increase(self, validator):
        """Test opening a debt with a decrease."""
        result = validator.validate(
            form(new_debt_name="Bob", debt_action=DebtAction.DECREASE), today=TODAY,
        )
        assert result.errors[0].issue_type == "invalid_value"

    def test_action_without_debt(self, validator):
        """Test an action with nothing to act on."""
        result = validator.validate(form(debt_action=DebtAction.INCREASE), today=TODAY)
        assert not result.is_valid

    def test_planned_in_past_warns(self, validator):
        """Test planning something for yesterday."""
        result = validator.validate(
            form(is_planned=True, date=datetime(2024, 3, 9)), today=TODAY,
        )
        assert result.is_valid
        assert result.warnings == ["Planned transaction is dated in the past"]

    def test_future_unplanned_warns(self, validator):
        """Test a settled transaction dated tomorrow."""
        result = validator.validate(form(date=datetime(2024, 3, 11)), today=TODAY)
        assert result.is_valid
        assert len(result.warnings) == 1


class TestToDraft:
    """Tests for converting a valid form to a draft."""

    def test_plain_draft(self):
        """Test field mapping and parsed amount."""
        draft = TransactionValidator.to_draft(form(amount="1 500,50", note="Еда"))
        assert draft.amount == Decimal("1500.50")
        assert draft.type == TransactionType.EXPENSE
        assert draft.origin == TransactionOrigin.MANUAL
        assert draft.note == "Еда"

    def test_origin_from_links(self):
        """Test origin follows debt and subscription links."""
        debt = TransactionValidator.to_draft(form(new_debt_name="Bob", debt_action=DebtAction.INCREASE))
        sub = TransactionValidator.to_draft(form(subscription_id="s1"))
        assert debt.origin == TransactionOrigin.DEBT
        assert sub.origin == TransactionOrigin.SUBSCRIPTION
