"""
Tests for the categorization service — keyword order, hint aliases, defaults,
and table validation for both the grocery and the health classifier.
"""
import pytest

from services.categorize_service import (
    CategoryClassifier,
    classify_item,
    grocery_classifier,
    health_classifier,
)


# ── Grocery classifier ────────────────────────────────────────────────────────

class TestGroceryKeywords:
    @pytest.mark.parametrize("name, expected", [
        ("BIO KT BANAN", "produce"),
        ("Organic Bananas", "produce"),
        ("CERISES ROUGES", "produce"),
        ("2% MILK", "dairy"),
        ("BIO OEUFS", "dairy"),
        ("YOG GREC", "dairy"),
        ("Chicken breast", "meat"),
        ("PROSCIUTTO", "meat"),
        ("THON RIOMARE", "pantry"),
        ("BAGUETTE", "pantry"),
        ("GAIN EFL", "household"),
        ("Frozen pizza", "frozen"),
        ("Biscuits", "snacks"),
        ("Chips", "snacks"),
    ])
    def test_keyword_matches(self, name, expected):
        assert classify_item(name) == expected

    def test_case_insensitive(self):
        assert classify_item("mIlK") == classify_item("MILK") == "dairy"

    def test_first_match_wins_over_later_categories(self):
        # "cream" (dairy) is tested before "ice cream" (frozen)
        assert classify_item("Ice cream") == "dairy"

    def test_no_match_uses_default(self):
        assert classify_item("Zzzz") == "pantry"

    def test_custom_default(self, tables):
        classifier = grocery_classifier(tables, default="snacks")
        assert classifier.classify("Zzzz") == "snacks"

    def test_empty_name(self):
        assert classify_item("") == "pantry"


class TestGroceryHints:
    def test_exact_category_hint(self):
        assert classify_item("Zzzz", hint="Dairy") == "dairy"

    def test_alias_hint(self):
        assert classify_item("Zzzz", hint="Veggies") == "produce"

    def test_hint_beats_keywords(self):
        assert classify_item("Milk", hint="frozen") == "frozen"

    def test_unknown_hint_falls_back_to_keywords(self):
        assert classify_item("Milk", hint="mystery") == "dairy"

    def test_blank_hint_ignored(self):
        assert classify_item("Milk", hint="  ") == "dairy"


# ── Health classifier ─────────────────────────────────────────────────────────

class TestHealthClassifier:
    @pytest.fixture
    def classifier(self, tables):
        return health_classifier(tables)

    @pytest.mark.parametrize("name, expected", [
        ("Broccoli", "vegetables"),
        ("Apple", "fruits"),
        ("Salmon fillet", "protein"),
        ("Brown rice", "grains"),
        ("Cheddar cheese", "dairy"),
        ("Candy bar", "processed"),
        ("Water", "other"),
    ])
    def test_keyword_matches(self, classifier, name, expected):
        assert classifier.classify(name) == expected

    def test_veggies_hint(self, classifier):
        assert classifier.classify("Mystery item", hint="Veggies") == "vegetables"

    def test_meat_hint_maps_to_protein(self, classifier):
        assert classifier.classify("Mystery item", hint="Meat & Seafood") == "protein"

    def test_pantry_hint_maps_to_grains(self, classifier):
        assert classifier.classify("Mystery item", hint="pantry") == "grains"

    def test_default_is_other(self, classifier):
        assert classifier.default == "other"


# ── Table validation ──────────────────────────────────────────────────────────

class TestClassifierConstruction:
    def test_unknown_keyword_category_rejected(self):
        with pytest.raises(ValueError):
            CategoryClassifier((("bakery", ("bread",)),), ("pantry",), "pantry")

    def test_unknown_default_rejected(self):
        with pytest.raises(ValueError):
            CategoryClassifier((("pantry", ("bread",)),), ("pantry",), "misc")

    def test_unknown_alias_target_rejected(self):
        with pytest.raises(ValueError):
            CategoryClassifier((), ("pantry",), "pantry", (("veg", "produce"),))

    def test_injected_table_order_is_respected(self):
        classifier = CategoryClassifier(
            (("b", ("apple",)), ("a", ("apple pie",))),
            ("a", "b"),
            "a",
        )
        assert classifier.classify("Apple pie") == "b"
