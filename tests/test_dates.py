"""Tests for calendar period arithmetic."""

import pytest
from datetime import date

from finflow.ledger.dates import (
    advance,
    last_day_of_month,
    regress,
    shift_months,
    shift_period,
)
from finflow.models.ledger import SubscriptionPeriod


class TestShiftMonths:
    """Tests for month stepping with clamp-to-month-end."""

    def test_plain_month_step(self):
        """Test a step that needs no clamping."""
        assert shift_months(date(2024, 1, 15), 1) == date(2024, 2, 15)

    def test_jan_31_clamps_to_leap_february(self):
        """Test Jan 31 + 1 month in a leap year."""
        assert shift_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_jan_31_clamps_to_short_february(self):
        """Test Jan 31 + 1 month in a common year."""
        assert shift_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_year_rollover_forward(self):
        """Test December rolls into January of the next year."""
        assert shift_months(date(2024, 12, 10), 1) == date(2025, 1, 10)

    def test_year_rollover_backward(self):
        """Test January rolls back into December of the previous year."""
        assert shift_months(date(2024, 1, 10), -1) == date(2023, 12, 10)

    def test_anchor_restores_day_after_short_month(self):
        """Test that an anchor day brings the 31st back after February."""
        assert shift_months(date(2024, 2, 29), 1, anchor_day=31) == date(2024, 3, 31)
        assert shift_months(date(2024, 2, 29), -1, anchor_day=31) == date(2024, 1, 31)

    def test_last_day_of_month(self):
        """Test month lengths including leap February."""
        assert last_day_of_month(2024, 2) == 29
        assert last_day_of_month(2023, 2) == 28
        assert last_day_of_month(2024, 4) == 30


class TestPeriods:
    """Tests for advance/regress by subscription period."""

    def test_weekly_is_seven_days(self):
        """Test weekly step across a month boundary."""
        assert advance(date(2024, 1, 29), SubscriptionPeriod.WEEKLY) == date(2024, 2, 5)
        assert regress(date(2024, 2, 5), SubscriptionPeriod.WEEKLY) == date(2024, 1, 29)

    def test_yearly_from_leap_day(self):
        """Test Feb 29 + 1 year clamps to Feb 28."""
        assert advance(date(2024, 2, 29), SubscriptionPeriod.YEARLY) == date(2025, 2, 28)

    def test_yearly_inverse_with_anchor(self):
        """Test leap day survives a yearly round trip when anchored."""
        forward = advance(date(2024, 2, 29), SubscriptionPeriod.YEARLY, anchor_day=29)
        assert regress(forward, SubscriptionPeriod.YEARLY, anchor_day=29) == date(2024, 2, 29)

    @pytest.mark.parametrize("start", [
        date(2024, 1, 15),
        date(2024, 1, 31),
        date(2023, 1, 31),
        date(2024, 3, 31),
        date(2024, 12, 31),
    ])
    def test_monthly_advance_regress_is_identity(self, start):
        """Test that regress undoes advance when anchored on the billing day."""
        forward = advance(start, SubscriptionPeriod.MONTHLY, anchor_day=start.day)
        assert regress(forward, SubscriptionPeriod.MONTHLY, anchor_day=start.day) == start

    def test_negative_steps(self):
        """Test shifting several periods back."""
        assert shift_period(date(2024, 5, 15), SubscriptionPeriod.MONTHLY, -3) == date(2024, 2, 15)
