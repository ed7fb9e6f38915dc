"""
Tests for field-level write validation.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from finledger.models.ledger import Category, EntryType, SharedOwner
from finledger.validation import EntityValidator


@pytest.fixture
def validator():
    return EntityValidator()


def _categories():
    return [
        Category(name="Food & Dining", color="c", icon="i", category_type=EntryType.EXPENSE, owner=SharedOwner()),
        Category(name="Salary", color="c", icon="i", category_type=EntryType.INCOME, owner=SharedOwner()),
    ]


class TestEntryValidation:
    """Tests for validate_entry."""

    def test_valid_entry(self, validator):
        result = validator.validate_entry({
            "description": "Lunch",
            "amount": -12.5,
            "type": "expense",
            "category": "Food & Dining",
            "date": "2024-05-02",
            "tags": ["work"],
        })
        assert result.has_errors is False

    def test_every_problem_is_reported(self, validator):
        result = validator.validate_entry({
            "description": "  ",
            "amount": "twelve",
            "type": "transfer",
            "category": 5,
            "date": "yesterday",
        })
        assert result.fields == ["description", "category", "date", "type", "amount"]

    def test_bool_is_not_a_number(self, validator):
        result = validator.validate_entry({
            "description": "x", "amount": True, "type": "income",
            "category": "Salary", "date": date(2024, 5, 1),
        })
        assert result.fields == ["amount"]

    def test_non_finite_amount(self, validator):
        result = validator.validate_entry({
            "description": "x", "amount": float("nan"), "type": "income",
            "category": "Salary", "date": datetime(2024, 5, 1),
        })
        assert result.fields == ["amount"]

    def test_partial_checks_only_present_fields(self, validator):
        assert validator.validate_entry({"description": "Dinner"}, partial=True).has_errors is False
        assert validator.validate_entry({"description": None}, partial=True).fields == ["description"]

    def test_partial_sign_check_when_both_given(self, validator):
        result = validator.validate_entry({"amount": Decimal("5"), "type": "expense"}, partial=True)
        assert result.issues[0].issue_type == "inconsistent"

    def test_tags_must_be_text(self, validator):
        result = validator.validate_entry({"tags": ["ok", 3]}, partial=True)
        assert result.fields == ["tags"]

    def test_budget_rule_id_must_be_integer(self, validator):
        result = validator.validate_entry({"budget_rule_id": "1"}, partial=True)
        assert result.fields == ["budget_rule_id"]


class TestOtherEntities:
    """Tests for budgets, categories, rules and tenants."""

    def test_budget(self, validator):
        assert validator.validate_budget({"category": "Food & Dining", "amount": 100}).has_errors is False
        result = validator.validate_budget({"category": "Food & Dining", "amount": -1, "period": "daily"})
        assert result.fields == ["amount", "period"]

    def test_budget_flag_must_be_boolean(self, validator):
        result = validator.validate_budget({"is_active": "yes"}, partial=True)
        assert result.fields == ["is_active"]

    def test_category(self, validator):
        result = validator.validate_category({"name": "Pets", "color": "c", "icon": "i"})
        assert result.fields == ["type"]

    def test_budget_rule(self, validator):
        result = validator.validate_budget_rule({"name": "x", "percentage": -5, "color": "c", "icon": "i"})
        assert result.fields == ["percentage"]

    def test_tenant(self, validator):
        result = validator.validate_tenant({"email": "owner.example.com", "password": "", "name": "O"})
        assert result.fields == ["email", "password"]


class TestCategoryReference:
    """Tests for the category reference check."""

    def test_known_category(self, validator):
        assert validator.check_category_reference("Salary", EntryType.INCOME, _categories()) == []

    def test_type_must_match(self, validator):
        issues = validator.check_category_reference("Salary", EntryType.EXPENSE, _categories())
        assert issues[0].issue_type == "unknown_reference"
        assert issues[0].field == "category"

    def test_name_is_exact(self, validator):
        assert validator.check_category_reference("salary", EntryType.INCOME, _categories())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
