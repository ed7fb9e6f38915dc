"""
Write Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - FIELD VALIDATION (this module, no storage access):
- Required field presence
- Type checking (amount is numeric, date is an instant, enums are known)
- Cross-field consistency (entry type agrees with the sign of amount)

STAGE 2 - REFERENCE VALIDATION (needs what the tenant can see):
- An entry's category must exist with the same type

WHY: a rejected write must report every violated field at once, and must
be rejected before anything is mutated. Validation NEVER silently fixes
a value; it reports it.
"""

import math
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping

from pydantic import ValidationError as PydanticValidationError

from finledger.models.ledger import (
    BudgetPeriod,
    Category,
    EntryType,
    ValidationIssue,
    ValidationResult,
)


ENTRY_FIELDS = {
    "description", "amount", "type", "category", "date",
    "tags", "notes", "budget_rule_id",
}
BUDGET_FIELDS = {"category", "amount", "period", "start_date", "end_date", "is_active"}
CATEGORY_FIELDS = {"name", "color", "icon", "type", "is_default"}
BUDGET_RULE_FIELDS = {"name", "percentage", "color", "icon"}
TENANT_FIELDS = {"email", "password", "name", "is_active"}


def is_number(value: Any) -> bool:
    """int/float/Decimal, finite, and not a bool."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, Decimal)):
        return not (isinstance(value, Decimal) and not value.is_finite())
    if isinstance(value, float):
        return math.isfinite(value)
    return False


def is_instant(value: Any) -> bool:
    if isinstance(value, (datetime, date)):
        return True
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
            return True
        except ValueError:
            return False
    return False


def enum_value(enum_cls: type[Enum], value: Any) -> Any:
    """The enum member for value, or None if value is not a member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    """Turn a pydantic ValidationError into our issue list."""
    issues = []
    for detail in error.errors():
        loc = [str(part) for part in detail.get("loc", ())]
        issues.append(ValidationIssue(
            field=".".join(loc) or "record",
            issue_type=detail.get("type", "invalid"),
            message=detail.get("msg", "Invalid value"),
        ))
    return issues


class _FieldChecker:
    """Collects issues for one write request."""

    def __init__(self, data: Mapping[str, Any], partial: bool):
        self.data = data
        self.partial = partial
        self.issues: list[ValidationIssue] = []

    def add(self, field: str, issue_type: str, message: str) -> None:
        self.issues.append(ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
        ))

    def present(self, field: str, label: str, required: bool = True) -> bool:
        """True if the field should be checked further."""
        if field not in self.data:
            if required and not self.partial:
                self.add(field, "missing", f"{label} is required")
            return False
        if self.data[field] is None:
            if required:
                self.add(field, "missing", f"{label} is required")
            return False
        return True

    def text(self, field: str, label: str, required: bool = True) -> None:
        if not self.present(field, label, required):
            return
        value = self.data[field]
        if not isinstance(value, str):
            self.add(field, "invalid_type", f"{label} must be text")
        elif required and not value.strip():
            self.add(field, "missing", f"{label} is required")

    def number(self, field: str, label: str) -> bool:
        if not self.present(field, label):
            return False
        if not is_number(self.data[field]):
            self.add(field, "invalid_type", f"{label} must be a number")
            return False
        return True

    def instant(self, field: str, label: str, required: bool = True) -> None:
        if not self.present(field, label, required):
            return
        if not is_instant(self.data[field]):
            self.add(field, "invalid_type", f"{label} must be a valid date")

    def choice(self, field: str, label: str, enum_cls: type[Enum], required: bool = True) -> Any:
        if not self.present(field, label, required):
            return None
        member = enum_value(enum_cls, self.data[field])
        if member is None:
            allowed = ", ".join(f"'{m.value}'" for m in enum_cls)
            self.add(field, "invalid_value", f"{label} must be one of {allowed}")
        return member

    def boolean(self, field: str, label: str) -> None:
        if field in self.data and not isinstance(self.data[field], bool):
            self.add(field, "invalid_type", f"{label} must be true or false")

    def only(self, allowed: Iterable[str]) -> None:
        allowed = set(allowed)
        for field in self.data:
            if field not in allowed:
                self.add(field, "unknown_field", f"'{field}' cannot be written")


class EntityValidator:
    """
    Field-level validation for every entity kind.

    Each method returns a ValidationResult holding every issue found.
    With partial=True (updates) only the fields present are checked.
    """

    def validate_entry(self, data: Mapping[str, Any], partial: bool = False) -> ValidationResult:
        check = _FieldChecker(data, partial)
        check.only(ENTRY_FIELDS)
        check.text("description", "Description")
        check.text("category", "Category")
        check.instant("date", "Date")
        entry_type = check.choice("type", "Type", EntryType)

        if check.number("amount", "Amount"):
            amount = Decimal(str(data["amount"]))
            if amount == 0:
                check.add("amount", "invalid_value", "Amount cannot be zero")
            elif entry_type is not None:
                expected = EntryType.EXPENSE if amount < 0 else EntryType.INCOME
                if entry_type != expected:
                    check.add(
                        "type",
                        "inconsistent",
                        f"Type must be '{expected.value}' for an amount of {amount}",
                    )

        if "tags" in data and data["tags"] is not None:
            tags = data["tags"]
            if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
                check.add("tags", "invalid_type", "Tags must be a list of text values")
        check.text("notes", "Notes", required=False)
        if data.get("budget_rule_id") is not None and (
            isinstance(data["budget_rule_id"], bool) or not isinstance(data["budget_rule_id"], int)
        ):
            check.add("budget_rule_id", "invalid_type", "Budget rule id must be an integer")

        return ValidationResult(issues=check.issues)

    def validate_budget(self, data: Mapping[str, Any], partial: bool = False) -> ValidationResult:
        check = _FieldChecker(data, partial)
        check.only(BUDGET_FIELDS)
        check.text("category", "Category")
        if check.number("amount", "Amount") and Decimal(str(data["amount"])) <= 0:
            check.add("amount", "invalid_value", "Amount must be a positive number")
        check.choice("period", "Period", BudgetPeriod, required=False)
        check.instant("start_date", "Start date", required=False)
        check.instant("end_date", "End date", required=False)
        check.boolean("is_active", "Active flag")
        return ValidationResult(issues=check.issues)

    def validate_category(self, data: Mapping[str, Any], partial: bool = False) -> ValidationResult:
        check = _FieldChecker(data, partial)
        check.only(CATEGORY_FIELDS)
        check.text("name", "Name")
        check.text("color", "Color")
        check.text("icon", "Icon")
        check.choice("type", "Type", EntryType)
        check.boolean("is_default", "Default flag")
        return ValidationResult(issues=check.issues)

    def validate_budget_rule(self, data: Mapping[str, Any], partial: bool = False) -> ValidationResult:
        check = _FieldChecker(data, partial)
        check.only(BUDGET_RULE_FIELDS)
        check.text("name", "Name")
        check.text("color", "Color")
        check.text("icon", "Icon")
        if check.number("percentage", "Percentage"):
            if not 0 <= data["percentage"] <= 100:
                check.add("percentage", "invalid_value", "Percentage must be between 0 and 100")
        return ValidationResult(issues=check.issues)

    def validate_tenant(self, data: Mapping[str, Any], partial: bool = False) -> ValidationResult:
        check = _FieldChecker(data, partial)
        check.only(TENANT_FIELDS)
        check.text("email", "Email")
        if isinstance(data.get("email"), str) and data["email"].strip() and "@" not in data["email"]:
            check.add("email", "invalid_format", "Email must contain '@'")
        check.text("password", "Password")
        check.text("name", "Name")
        check.boolean("is_active", "Active flag")
        return ValidationResult(issues=check.issues)

    def check_category_reference(
        self,
        category_name: str,
        entry_type: EntryType,
        visible_categories: Iterable[Category],
    ) -> list[ValidationIssue]:
        """
        Stage 2: the entry's category must exist with the same type.
        """
        for category in visible_categories:
            if category.name == category_name and category.category_type == entry_type:
                return []
        return [ValidationIssue(
            field="category",
            issue_type="unknown_reference",
            message=f"No {entry_type.value} category named '{category_name}'",
        )]
