"""
Two-Stage Expense Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Title, amount, payer present
- Amount at least one cent
- Currency, if given, is a three-letter code
- At least one participant

STAGE 2 - SEMANTIC VALIDATION:
- The split method accepts the participants (amounts add up,
  percentages sum to 100, shares are not all zero)
- No member listed twice
- Payer and participants belong to the group
- Unusually large amounts

Stage 2 only runs when stage 1 passes.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the user can correct the draft.
"""

from typing import Iterable, Optional

from smartsplit.config import get_settings
from smartsplit.engine.errors import ValidationError
from smartsplit.engine.money import format_currency, to_minor
from smartsplit.engine.splits import split
from smartsplit.models.ledger import (
    ExpenseDraft,
    Member,
    ValidationIssue,
    ValidationResult,
)


class ExpenseValidator:
    """
    Validates expense drafts before they become Expenses.

    Stage 1: Schema validation
    Stage 2: Semantic validation (optionally against the group's members)
    """

    def __init__(self):
        self._settings = get_settings().ledger

    def _validate_schema(
        self,
        draft: ExpenseDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not draft.title:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Title is required",
                severity="error",
                suggested_fix="Describe what the expense was for",
            ))

        if draft.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif to_minor(draft.amount) <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than 0",
                severity="error",
            ))

        if draft.currency is not None and (len(draft.currency) != 3 or not draft.currency.isalpha()):
            issues.append(ValidationIssue(
                field="currency",
                issue_type="invalid_value",
                message=f"Invalid currency code: {draft.currency}",
                severity="error",
                suggested_fix="Use a three-letter code such as USD",
            ))

        if not draft.paid_by:
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="missing",
                message="Payer is required",
                severity="error",
                suggested_fix="Choose who paid for this expense",
            ))

        if not draft.participants:
            issues.append(ValidationIssue(
                field="participants",
                issue_type="missing",
                message="At least one participant is required",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        draft: ExpenseDraft,
        members: Optional[list[str]],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        try:
            split(draft.amount, draft.split_method, draft.participants)
        except ValidationError as e:
            issues.append(ValidationIssue(
                field=e.field or "participants",
                issue_type="split_mismatch",
                message=e.message,
                severity="error",
                suggested_fix="Adjust the split so it covers the whole amount",
            ))

        if members is not None:
            known = set(members)
            if draft.paid_by not in known:
                issues.append(ValidationIssue(
                    field="paid_by",
                    issue_type="unknown_member",
                    message=f"{draft.paid_by} is not a member of this group",
                    severity="error",
                ))
            for p in draft.participants:
                if p.member_id not in known:
                    issues.append(ValidationIssue(
                        field="participants",
                        issue_type="unknown_member",
                        message=f"{p.member_id} is not a member of this group",
                        severity="error",
                    ))

        if draft.amount > self._settings.max_expense_amount:
            currency = draft.currency or self._settings.default_currency
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({format_currency(draft.amount, currency)}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        draft: ExpenseDraft,
        members: Optional[Iterable[Member | str]] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: The expense draft to validate
            members: Group members; membership is only checked when given

        Returns:
            ValidationResult with all issues found
        """
        member_ids = None
        if members is not None:
            member_ids = [m if isinstance(m, str) else m.id for m in members]

        all_issues = []

        schema_valid, schema_issues = self._validate_schema(draft)
        all_issues.extend(schema_issues)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(draft, member_ids)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            draft_id=draft.draft_id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Generate a summary of validation results to show the user."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)


def ensure_valid(result: ValidationResult) -> None:
    """Raise the first error of a failed validation as a ValidationError."""
    for issue in result.issues:
        if issue.severity == "error":
            raise ValidationError(issue.message, field=issue.field)
