"""
Transaction Form Validation

DESIGN DECISION: The mutation service assumes valid input. This module
is the gate in front of it: the presentation layer runs the form
through TransactionValidator and only enables "save" when the result
has no errors.

Two stages, as for any user input:

STAGE 1 - REQUIRED FIELDS:
- Amount present, numeric and positive
- Category (or a debt context instead), account

STAGE 2 - CONSISTENCY:
- Referenced debt / subscription / account exist
- Debt action makes sense (a new debt can only be opened by an increase)
- Planned vs. date (warnings only)

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the form can show them.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, Field

from finflow.models.ledger import (
    AppState,
    DebtAction,
    TransactionDraft,
    TransactionOrigin,
    TransactionType,
    utcnow,
)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Form field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'unknown_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one transaction form."""

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]


class TransactionForm(BaseModel):
    """
    Raw transaction form as the user filled it in.

    Unlike TransactionDraft nothing here is enforced, so an
    incomplete form can still be inspected.
    """
    amount: Optional[Any] = None
    type: TransactionType = TransactionType.EXPENSE
    category_id: str = ""
    account_id: str = ""
    date: Optional[datetime] = None
    note: str = ""
    is_planned: bool = False
    is_joint: bool = False
    linked_debt_id: Optional[str] = None
    debt_action: Optional[DebtAction] = None
    new_debt_name: Optional[str] = None
    subscription_id: Optional[str] = None


def parse_amount(value: Any) -> Optional[Decimal]:
    """Amount as typed; accepts a comma as decimal separator."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    text = str(value).strip().replace(" ", "").replace(",", ".")
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


class TransactionValidator:
    """Validates transaction forms against the current state."""

    def __init__(self, state: AppState):
        self._state = state

    def _validate_required(self, form: TransactionForm) -> list[ValidationIssue]:
        issues = []

        amount = parse_amount(form.amount)
        if form.amount in (None, ""):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=f"'{form.amount}' is not a number",
                severity="error",
            ))
        elif amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
            ))

        has_debt_context = bool(form.linked_debt_id or (form.new_debt_name or "").strip())
        if not form.category_id and not has_debt_context:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="missing",
                message="Choose a category",
                severity="error",
            ))

        if not form.account_id:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="missing",
                message="Choose an account",
                severity="error",
            ))

        return issues

    def _validate_consistency(
        self,
        form: TransactionForm,
        today: date,
    ) -> list[ValidationIssue]:
        issues = []
        state = self._state

        if form.account_id and state.find_account(form.account_id) is None:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="unknown_reference",
                message="The selected account no longer exists",
                severity="error",
            ))

        if form.category_id and state.find_category(form.category_id) is None:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="unknown_reference",
                message="The selected category no longer exists",
                severity="warning",
            ))

        if form.linked_debt_id:
            if state.find_debt(form.linked_debt_id) is None:
                issues.append(ValidationIssue(
                    field="linked_debt_id",
                    issue_type="unknown_reference",
                    message="The linked debt no longer exists",
                    severity="error",
                ))
            if form.debt_action is None:
                issues.append(ValidationIssue(
                    field="debt_action",
                    issue_type="missing",
                    message="Choose whether the payment increases or decreases the debt",
                    severity="error",
                ))
        elif (form.new_debt_name or "").strip():
            if form.debt_action != DebtAction.INCREASE:
                issues.append(ValidationIssue(
                    field="debt_action",
                    issue_type="invalid_value",
                    message="A new debt can only be opened by an increase",
                    severity="error",
                ))
        elif form.debt_action is not None:
            issues.append(ValidationIssue(
                field="debt_action",
                issue_type="missing",
                message="Choose a debt or enter a name for a new one",
                severity="error",
            ))

        if form.subscription_id and state.find_subscription(form.subscription_id) is None:
            issues.append(ValidationIssue(
                field="subscription_id",
                issue_type="unknown_reference",
                message="The linked subscription no longer exists",
                severity="warning",
            ))

        if form.date is not None:
            day = form.date.date()
            if form.is_planned and day < today:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="suspicious_value",
                    message="Planned transaction is dated in the past",
                    severity="warning",
                ))
            elif not form.is_planned and day > today:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="suspicious_value",
                    message="Date is in the future; did you mean to plan it?",
                    severity="warning",
                ))

        return issues

    def validate(
        self,
        form: TransactionForm,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run both stages.

        Stage 2 only runs when stage 1 found no errors.
        """
        issues = self._validate_required(form)
        if not any(i.severity == "error" for i in issues):
            issues.extend(self._validate_consistency(form, today or date.today()))

        return ValidationResult(
            is_valid=not any(i.severity == "error" for i in issues),
            issues=issues,
        )

    @staticmethod
    def to_draft(form: TransactionForm) -> TransactionDraft:
        """
        Build the draft handed to the mutation service.

        Only call this for a form that validated without errors.
        """
        origin = TransactionOrigin.MANUAL
        if form.subscription_id:
            origin = TransactionOrigin.SUBSCRIPTION
        elif form.linked_debt_id or form.new_debt_name:
            origin = TransactionOrigin.DEBT

        return TransactionDraft(
            amount=parse_amount(form.amount),
            category_id=form.category_id,
            account_id=form.account_id,
            date=form.date or utcnow(),
            note=form.note,
            type=form.type,
            is_planned=form.is_planned,
            is_joint=form.is_joint,
            linked_debt_id=form.linked_debt_id or None,
            debt_action=form.debt_action,
            subscription_id=form.subscription_id or None,
            origin=origin,
        )
