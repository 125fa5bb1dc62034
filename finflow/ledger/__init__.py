"""
Ledger Package

Derived-state engine, transaction mutations with their debt and
subscription side effects, entity management and the planner.
"""

from finflow.ledger.dates import advance, regress, shift_months, shift_period
from finflow.ledger.engine import (
    CategoryTotal,
    DashboardStats,
    DateRange,
    DebtSummary,
    GoalProgress,
    HistoryPeriod,
    PeriodTotals,
    SortOrder,
    account_balances,
    account_running_balance,
    category_breakdown,
    dashboard_stats,
    debt_summary,
    filter_history,
    goal_progress,
    joint_summary,
    joint_transactions,
    lifetime_totals,
    monthly_totals,
    net_debt,
    net_worth,
    period_range,
    period_totals,
    total_balance,
    total_savings_value,
)
from finflow.ledger.entities import (
    EntityNotFoundError,
    EntityService,
    LastAccountError,
    LedgerError,
)
from finflow.ledger.legacy import migrate_legacy_state, strip_marker
from finflow.ledger.mutations import TransactionService, new_id
from finflow.ledger.planner import (
    PlannerService,
    Reminder,
    daily_balance,
    dates_with_events,
    due_reminders,
    items_on,
    project_planned_items,
)

__all__ = [
    # Dates
    "advance",
    "regress",
    "shift_months",
    "shift_period",
    # Engine
    "CategoryTotal",
    "DashboardStats",
    "DateRange",
    "DebtSummary",
    "GoalProgress",
    "HistoryPeriod",
    "PeriodTotals",
    "SortOrder",
    "account_balances",
    "account_running_balance",
    "category_breakdown",
    "dashboard_stats",
    "debt_summary",
    "filter_history",
    "goal_progress",
    "joint_summary",
    "joint_transactions",
    "lifetime_totals",
    "monthly_totals",
    "net_debt",
    "net_worth",
    "period_range",
    "period_totals",
    "total_balance",
    "total_savings_value",
    # Services
    "EntityService",
    "PlannerService",
    "TransactionService",
    "new_id",
    # Planner helpers
    "Reminder",
    "daily_balance",
    "dates_with_events",
    "due_reminders",
    "items_on",
    "project_planned_items",
    # Legacy
    "migrate_legacy_state",
    "strip_marker",
    # Exceptions
    "EntityNotFoundError",
    "LastAccountError",
    "LedgerError",
]
