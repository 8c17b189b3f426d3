"""
Tests for the shelf-life estimator — rule priority, category fallbacks and
calendar arithmetic.
"""
import datetime as dt

import pytest

from services.shelf_life_service import ShelfLifeEstimator, estimate_expiry, shelf_life_estimator

PURCHASED = dt.date(2025, 1, 1)


class TestRulePriority:
    def test_poultry_before_generic_meat(self):
        assert estimate_expiry("Chicken breast", "meat", PURCHASED) == dt.date(2025, 1, 3)

    def test_ground_meat_before_fresh_meat(self):
        assert estimate_expiry("Ground beef", "meat", PURCHASED) == dt.date(2025, 1, 3)

    def test_fresh_meat(self):
        assert estimate_expiry("Beef steak", "meat", PURCHASED) == dt.date(2025, 1, 4)

    @pytest.mark.parametrize("name, days", [
        ("Milk 2%", 7),
        ("YOGOURT GREC", 10),
        ("BIO OEUFS", 28),
        ("CERISES", 4),
        ("THON RIOMARE", 365),
        ("GAIN EFL", 9999),
    ])
    def test_named_rules(self, name, days):
        estimator = shelf_life_estimator()
        assert estimator.shelf_life_days(name, "pantry")[0] == days

    def test_rule_label_reported(self):
        assert shelf_life_estimator().shelf_life_days("Poulet entier", "meat") == (2, "poultry")


class TestCategoryFallback:
    def test_unmatched_name_uses_category_default(self):
        # "banan" is a classifier keyword but not a whole word for the banana rule
        assert shelf_life_estimator().shelf_life_days("BIO KT BANAN", "produce") == (7, "produce")

    def test_household_never_expires_in_practice(self):
        assert estimate_expiry("Mystery", "household", PURCHASED) == PURCHASED + dt.timedelta(days=9999)

    def test_unknown_category_gets_thirty_days(self):
        assert estimate_expiry("Mystery", "toys", PURCHASED) == dt.date(2025, 1, 31)


class TestCalendarArithmetic:
    def test_crosses_month_end(self):
        assert estimate_expiry("Chicken", "meat", dt.date(2025, 1, 30)) == dt.date(2025, 2, 1)

    def test_leap_year(self):
        assert estimate_expiry("Chicken", "meat", dt.date(2024, 2, 28)) == dt.date(2024, 3, 1)

    def test_injected_rules(self):
        estimator = ShelfLifeEstimator(
            rules=(("kombucha", r"\bkombucha\b", 21),),
            category_days=(("pantry", 100),),
            fallback_days=1,
        )
        assert estimator.estimate_expiry("Kombucha", "pantry", PURCHASED) == dt.date(2025, 1, 22)
        assert estimator.estimate_expiry("Tea", "pantry", PURCHASED) == dt.date(2025, 4, 11)
        assert estimator.estimate_expiry("Tea", "other", PURCHASED) == dt.date(2025, 1, 2)
