"""
Tests for the tenant-scoped repository.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from finledger.models.audit import AuditEventType
from finledger.models.ledger import BudgetPeriod, Collection, CurrentTenant, SettingType
from finledger.repository import TenantScopedRepository
from finledger.services.storage import (
    ConflictError,
    NotFoundError,
    TenantRequiredError,
    ValidationError,
)

from factories import (
    OWNER_EMAIL,
    OWNER_PASSWORD,
    SwitchableResolver,
    expense_data,
    income_data,
)


def _login_second_tenant(store) -> int:
    tenant = asyncio.run(store.add_tenant("second@example.com", "secret", "Second"))
    assert asyncio.run(store.login("second@example.com", "secret")).success
    return tenant.id


class TestTenantScoping:
    """Tests that tenants never see each other's private records."""

    def test_entries_are_private(self, store):
        """Test that a second tenant sees none of the first tenant's entries."""
        entry = asyncio.run(store.add_entry(expense_data()))
        _login_second_tenant(store)

        assert asyncio.run(store.load_entries()) == []
        assert asyncio.run(store.repository.get_entry(entry.id)) is None

    def test_invisible_update_and_delete_raise_not_found(self, store):
        """Test that another tenant's entry cannot be changed or removed."""
        entry = asyncio.run(store.add_entry(expense_data()))
        _login_second_tenant(store)

        with pytest.raises(NotFoundError):
            asyncio.run(store.update_entry(entry.id, {"description": "Hijacked"}))
        with pytest.raises(NotFoundError):
            asyncio.run(store.delete_entry(entry.id))

        asyncio.run(store.login(OWNER_EMAIL, OWNER_PASSWORD))
        assert asyncio.run(store.repository.get_entry(entry.id)).description == "Groceries"

    def test_shared_defaults_visible_to_every_tenant(self, store):
        """Test that seeded shared categories and rules are visible to all."""
        owner_categories = asyncio.run(store.load_categories())
        _login_second_tenant(store)

        assert len(asyncio.run(store.load_categories())) == len(owner_categories) == 9
        assert len(asyncio.run(store.load_budget_rules())) == 3

    def test_custom_category_is_private(self, store):
        """Test that a tenant's own category is hidden from others."""
        asyncio.run(store.add_category({
            "name": "Pets", "color": "#aa0000", "icon": "Dog", "type": "expense",
        }))
        assert [c.name for c in asyncio.run(store.custom_categories())] == ["Pets"]

        _login_second_tenant(store)
        assert asyncio.run(store.custom_categories()) == []
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_entry(expense_data(category="Pets")))
        assert excinfo.value.issues[0].issue_type == "unknown_reference"

    def test_resolver_is_consulted_on_every_call(self, storage, audit, anonymous_store):
        """Test that switching the resolved tenant switches the view."""
        resolver = SwitchableResolver(CurrentTenant(id=1, email=OWNER_EMAIL))
        repo = TenantScopedRepository(storage, resolver, audit)
        asyncio.run(repo.add_entry(expense_data()))

        resolver.tenant = CurrentTenant(id=2, email="other@example.com")
        assert asyncio.run(repo.list_entries()) == []

        resolver.tenant = CurrentTenant(id=1, email=OWNER_EMAIL)
        assert len(asyncio.run(repo.list_entries())) == 1

    def test_inactive_tenant_is_treated_as_logged_out(self, storage, audit, anonymous_store):
        """Test that an inactive resolved tenant cannot read or write."""
        resolver = SwitchableResolver(CurrentTenant(id=1, email=OWNER_EMAIL, is_active=False))
        repo = TenantScopedRepository(storage, resolver, audit)

        assert asyncio.run(repo.list_categories()) == []
        with pytest.raises(TenantRequiredError):
            asyncio.run(repo.add_entry(expense_data()))


class TestNoTenant:
    """Tests for calls made with nobody logged in."""

    def test_reads_are_empty(self, anonymous_store):
        """Test that reads return empty results instead of raising."""
        assert asyncio.run(anonymous_store.load_entries()) == []
        assert asyncio.run(anonymous_store.load_budgets()) == []
        assert asyncio.run(anonymous_store.load_categories()) == []
        assert asyncio.run(anonymous_store.repository.get_entry(1)) is None

    def test_writes_raise_tenant_required(self, anonymous_store, storage):
        """Test that every scoped write needs a tenant."""
        with pytest.raises(TenantRequiredError):
            asyncio.run(anonymous_store.add_entry(expense_data()))
        with pytest.raises(TenantRequiredError):
            asyncio.run(anonymous_store.add_budget({"category": "Food & Dining", "amount": 100}))
        with pytest.raises(TenantRequiredError):
            asyncio.run(anonymous_store.delete_category(1))
        assert asyncio.run(storage.count(Collection.ENTRIES)) == 0


class TestEntryWrites:
    """Tests for entry validation and writes."""

    def test_add_entry_stamps_owner_and_timestamps(self, store):
        """Test that a created entry belongs to the tenant and has timestamps."""
        entry = asyncio.run(store.add_entry(expense_data(amount=12.5)))
        tenant_id = store.session.current().id

        assert entry.id is not None
        assert entry.is_owned_by(tenant_id)
        assert entry.amount == Decimal("-12.5")
        assert entry.created_at == entry.updated_at

    def test_float_amount_keeps_its_decimal_value(self, store):
        """Test that 0.1 is stored as 0.1, not its binary expansion."""
        entry = asyncio.run(store.add_entry({**expense_data(), "amount": -0.1}))
        assert entry.amount == Decimal("-0.1")

    def test_empty_request_lists_every_missing_field(self, store):
        """Test that all violations are reported at once."""
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_entry({}))
        assert set(excinfo.value.fields) == {"description", "category", "date", "type", "amount"}

    def test_sign_mismatch_is_rejected(self, store):
        """Test that type must agree with the sign of the amount."""
        data = expense_data()
        data["amount"] = Decimal("25")
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_entry(data))
        assert excinfo.value.fields == ["type"]

    def test_zero_amount_is_rejected(self, store):
        """Test that a zero amount is refused."""
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_entry({**expense_data(), "amount": 0}))
        assert excinfo.value.fields == ["amount"]

    def test_unknown_category_is_rejected(self, store):
        """Test that the category must exist."""
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_entry(expense_data(category="Yachts")))
        assert excinfo.value.issues[0].issue_type == "unknown_reference"

    def test_category_type_mismatch_is_rejected(self, store):
        """Test that an expense cannot use an income category."""
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_entry(expense_data(category="Salary")))
        assert excinfo.value.fields == ["category"]

    def test_unknown_field_is_rejected(self, store):
        """Test that fields the entry does not have are refused."""
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_entry(expense_data(tenant_id=99)))
        assert excinfo.value.fields == ["tenant_id"]

    def test_rejected_write_is_audited_and_not_stored(self, store, storage, audit):
        """Test that a rejected write leaves storage untouched."""
        with pytest.raises(ValidationError):
            asyncio.run(store.add_entry(expense_data(category="Yachts")))

        assert asyncio.run(storage.count(Collection.ENTRIES)) == 0
        rejected = audit.of_type(AuditEventType.WRITE_REJECTED)
        assert len(rejected) == 1
        assert rejected[0].entity_type == "entry"

    def test_update_refreshes_updated_at_only(self, store):
        """Test that created_at is kept and updated_at moves forward."""
        entry = asyncio.run(store.add_entry(expense_data()))
        updated = asyncio.run(store.update_entry(entry.id, {"description": "Dinner", "amount": -40}))

        assert updated.description == "Dinner"
        assert updated.amount == Decimal("-40")
        assert updated.created_at == entry.created_at
        assert updated.updated_at >= entry.updated_at
        assert updated.is_owned_by(store.session.current().id)

    def test_update_that_breaks_sign_is_rejected(self, store):
        """Test that the merged record must still be consistent."""
        entry = asyncio.run(store.add_entry(expense_data()))
        with pytest.raises(ValidationError):
            asyncio.run(store.update_entry(entry.id, {"amount": 25}))
        assert asyncio.run(store.repository.get_entry(entry.id)).amount == Decimal("-25")

    def test_update_category_is_checked(self, store):
        """Test that changing the category re-checks the reference."""
        entry = asyncio.run(store.add_entry(expense_data()))
        with pytest.raises(ValidationError):
            asyncio.run(store.update_entry(entry.id, {"category": "Freelance"}))

    def test_switch_entry_to_income(self, store):
        """Test that amount, type and category can change together."""
        entry = asyncio.run(store.add_entry(expense_data()))
        updated = asyncio.run(store.update_entry(
            entry.id, {"amount": 300, "type": "income", "category": "Freelance"},
        ))
        assert updated.is_income

    def test_delete_entry(self, store, audit):
        """Test hard delete and its audit event."""
        entry = asyncio.run(store.add_entry(expense_data()))
        asyncio.run(store.delete_entry(entry.id))

        assert asyncio.run(store.load_entries()) == []
        assert len(audit.of_type(AuditEventType.RECORD_DELETED)) == 1
        with pytest.raises(NotFoundError):
            asyncio.run(store.delete_entry(entry.id))


class TestEntryQueries:
    """Tests for entry search and range queries."""

    def _seed(self, store):
        asyncio.run(store.add_entry(expense_data(description="Coffee beans", when=datetime(2024, 5, 1, 8))))
        asyncio.run(store.add_entry(expense_data(
            description="Train ticket", category="Transportation", when=datetime(2024, 5, 20, 18),
        )))
        asyncio.run(store.add_entry(income_data(when=datetime(2024, 6, 1, 9))))

    def test_load_entries_is_newest_first(self, store):
        """Test the display order of the entry list."""
        self._seed(store)
        dates = [e.date for e in asyncio.run(store.load_entries())]
        assert dates == sorted(dates, reverse=True)

    def test_search_matches_description_and_category(self, store):
        """Test case-insensitive search."""
        self._seed(store)
        assert [e.description for e in asyncio.run(store.search_entries("COFFEE"))] == ["Coffee beans"]
        assert [e.description for e in asyncio.run(store.search_entries("transport"))] == ["Train ticket"]

    def test_range_is_inclusive(self, store):
        """Test that both bounds of a range query are included."""
        self._seed(store)
        found = asyncio.run(store.entries_in_range(datetime(2024, 5, 1, 8), "2024-05-20T18:00:00"))
        assert len(found) == 2

    def test_aware_range_bounds_are_read_as_local_time(self, store):
        """Test that timezone-aware bounds compare with stored local dates."""
        self._seed(store)
        found = asyncio.run(store.entries_in_range(
            datetime(2024, 5, 1, 8).astimezone(),
            datetime(2024, 5, 20, 18).astimezone(timezone.utc),
        ))
        assert len(found) == 2

    def test_unparseable_range_bound_is_rejected(self, store):
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.entries_in_range("last week", datetime(2024, 5, 20)))
        assert excinfo.value.fields == ["start"]

    def test_by_category(self, store):
        self._seed(store)
        assert len(asyncio.run(store.entries_by_category("Salary"))) == 1


class TestBudgets:
    """Tests for budget writes and the active-budget rule."""

    def test_add_budget_defaults_to_monthly(self, store):
        budget = asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 500}))
        assert budget.period == BudgetPeriod.MONTHLY
        assert budget.is_active is True

    def test_budget_amount_must_be_positive(self, store):
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 0}))
        assert excinfo.value.fields == ["amount"]

    def test_second_active_budget_conflicts(self, store):
        """Test that the conflicting write leaves the first budget unchanged."""
        first = asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 500}))
        with pytest.raises(ConflictError):
            asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 300}))

        budgets = asyncio.run(store.load_budgets())
        assert [(b.id, b.amount) for b in budgets] == [(first.id, Decimal("500"))]

    def test_inactive_or_other_period_does_not_conflict(self, store):
        """Test the uniqueness key is (category, period) among active budgets."""
        asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 500}))
        asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 300, "is_active": False}))
        asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 100, "period": "weekly"}))
        assert len(asyncio.run(store.active_budgets())) == 2

    def test_reactivating_into_conflict_is_rejected(self, store):
        """Test that an update cannot create a second active budget."""
        asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 500}))
        inactive = asyncio.run(store.add_budget({
            "category": "Food & Dining", "amount": 300, "is_active": False,
        }))
        with pytest.raises(ConflictError):
            asyncio.run(store.update_budget(inactive.id, {"is_active": True}))

    def test_other_tenants_budget_does_not_conflict(self, store):
        asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 500}))
        _login_second_tenant(store)
        asyncio.run(store.add_budget({"category": "Food & Dining", "amount": 200}))
        assert len(asyncio.run(store.load_budgets())) == 1


class TestCategoriesAndRules:
    """Tests for category and budget rule writes."""

    def test_duplicate_visible_category_conflicts(self, store):
        """Test that a name/type already visible cannot be added again."""
        with pytest.raises(ConflictError):
            asyncio.run(store.add_category({
                "name": "Food & Dining", "color": "c", "icon": "i", "type": "expense",
            }))

    def test_same_name_other_type_is_allowed(self, store):
        category = asyncio.run(store.add_category({
            "name": "Shopping", "color": "c", "icon": "i", "type": "income",
        }))
        assert category.category_type.value == "income"

    def test_default_category_can_be_renamed(self, store):
        """Test that a shared default stays shared after an update."""
        food = next(c for c in asyncio.run(store.default_categories()) if c.name == "Food & Dining")
        renamed = asyncio.run(store.update_category(food.id, {"name": "Groceries"}))
        assert renamed.name == "Groceries"
        assert renamed.is_shared is True

    def test_shared_default_changes_are_audited(self, store, audit):
        """Test that editing or deleting a shared default is flagged for every tenant."""
        tenant_id = store.session.current().id
        food = next(c for c in asyncio.run(store.default_categories()) if c.name == "Food & Dining")
        asyncio.run(store.update_category(food.id, {"color": "#ff0000"}))
        wants = next(r for r in asyncio.run(store.load_budget_rules()) if r.name == "Wants")
        asyncio.run(store.delete_budget_rule(wants.id))

        changes = audit.of_type(AuditEventType.SHARED_RECORD_CHANGED)
        assert [(e.entity_type, e.entity_id, e.details["action"]) for e in changes] == [
            ("category", food.id, "updated"),
            ("budget_rule", wants.id, "deleted"),
        ]
        assert all(e.tenant_id == tenant_id for e in changes)

    def test_private_changes_are_not_flagged_as_shared(self, store, audit):
        pets = asyncio.run(store.add_category({
            "name": "Pets", "color": "c", "icon": "i", "type": "expense",
        }))
        asyncio.run(store.update_category(pets.id, {"icon": "Dog"}))
        asyncio.run(store.delete_category(pets.id))
        assert audit.of_type(AuditEventType.SHARED_RECORD_CHANGED) == []

    def test_add_budget_rule(self, store):
        rule = asyncio.run(store.add_budget_rule({
            "name": "Travel", "percentage": 10, "color": "c", "icon": "Plane",
        }))
        assert rule.is_owned_by(store.session.current().id)
        assert len(asyncio.run(store.load_budget_rules())) == 4

    def test_rule_percentage_bounds(self, store):
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(store.add_budget_rule({
                "name": "Too much", "percentage": 120, "color": "c", "icon": "i",
            }))
        assert excinfo.value.fields == ["percentage"]


class TestTenantsAndSettings:
    """Tests for the store-wide collections."""

    def test_duplicate_email_conflicts(self, store):
        with pytest.raises(ConflictError):
            asyncio.run(store.add_tenant(OWNER_EMAIL, "pw", "Impostor"))

    def test_email_is_case_sensitive(self, store):
        tenant = asyncio.run(store.add_tenant(OWNER_EMAIL.upper(), "pw", "Shouting"))
        assert tenant.email == OWNER_EMAIL.upper()
        assert len(asyncio.run(store.load_tenants())) == 2

    def test_invalid_email_is_rejected(self, store):
        with pytest.raises(ValidationError):
            asyncio.run(store.add_tenant("not-an-email", "pw", "Nobody"))

    def test_seeded_settings(self, store):
        settings = asyncio.run(store.get_all_settings())
        assert settings["currency"] == "USD"
        assert settings["showCents"] is True
        assert asyncio.run(store.get_setting("missing", "fallback")) == "fallback"

    def test_set_setting_upserts(self, store, storage, audit):
        """Test that an existing key is overwritten, not duplicated."""
        asyncio.run(store.set_setting("currency", "EUR"))
        created = asyncio.run(store.set_setting("budgetAlerts", {"threshold": 80}))

        assert asyncio.run(store.get_setting("currency")) == "EUR"
        assert created.value_type == SettingType.OBJECT
        assert asyncio.run(storage.count(Collection.SETTINGS)) == 9
        assert len(audit.of_type(AuditEventType.SETTING_UPDATED)) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
