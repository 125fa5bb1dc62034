"""Validation of user input before it reaches the ledger."""

from finflow.validation.validator import (
    TransactionForm,
    TransactionValidator,
    ValidationIssue,
    ValidationResult,
    parse_amount,
)

__all__ = [
    "TransactionForm",
    "TransactionValidator",
    "ValidationIssue",
    "ValidationResult",
    "parse_amount",
]
