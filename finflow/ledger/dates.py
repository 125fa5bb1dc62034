"""
Calendar Arithmetic for Recurring Dates

DESIGN DECISION: Month and year steps clamp to the last day of the
target month (Jan 31 + 1 month = Feb 29 in 2024, Feb 28 in 2023).

A step can optionally be anchored to a day of month. Subscriptions pass
their billing day as the anchor, which makes advance() and regress()
exact inverses:

    Jan 31 --advance--> Feb 29 --regress--> Jan 31

Without an anchor the day of the input date is used, so repeated
unanchored steps from the 31st drift to the shortest month's length.
"""

import calendar
from datetime import date, timedelta
from typing import Optional

from finflow.models.ledger import SubscriptionPeriod


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_months(
    value: date,
    months: int,
    anchor_day: Optional[int] = None,
) -> date:
    """
    Move a date by a whole number of calendar months.

    The resulting day is min(anchor_day, last day of target month).
    """
    day = anchor_day or value.day
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day, last_day_of_month(year, month)))


def shift_period(
    value: date,
    period: SubscriptionPeriod,
    steps: int = 1,
    anchor_day: Optional[int] = None,
) -> date:
    """Move a date by `steps` periods (negative steps move backwards)."""
    if period == SubscriptionPeriod.WEEKLY:
        return value + timedelta(days=7 * steps)
    if period == SubscriptionPeriod.MONTHLY:
        return shift_months(value, steps, anchor_day)
    if period == SubscriptionPeriod.YEARLY:
        return shift_months(value, 12 * steps, anchor_day)
    raise ValueError(f"Unsupported period: {period}")


def advance(
    value: date,
    period: SubscriptionPeriod,
    anchor_day: Optional[int] = None,
) -> date:
    """One period forward."""
    return shift_period(value, period, 1, anchor_day)


def regress(
    value: date,
    period: SubscriptionPeriod,
    anchor_day: Optional[int] = None,
) -> date:
    """One period back. Inverse of advance() for the same anchor."""
    return shift_period(value, period, -1, anchor_day)
