"""
Tests for the health score — breakdown percentages, sub-scores, labels and
recommendations.
"""
import pytest

from models.schemas import HealthItem
from services.health_service import (
    EMPTY_RECOMMENDATION,
    calculate_health_score,
    category_balance_score,
    score_label,
)


def items(*names, used=()):
    return [HealthItem(name=n, used=n in used) for n in names]


class TestEmptyBasket:
    def test_zero_score(self):
        result = calculate_health_score([])
        assert result.total_score == 0
        assert result.label == "Needs Improvement"
        assert result.recommendations == [EMPTY_RECOMMENDATION]
        assert set(result.breakdown) == {
            "vegetables", "fruits", "protein", "grains", "dairy", "processed", "other",
        }
        assert all(v == 0 for v in result.breakdown.values())


class TestBreakdown:
    def test_percentages(self):
        result = calculate_health_score(items("Broccoli", "Apple", "Chicken", "Candy"))
        assert result.breakdown["vegetables"] == 25
        assert result.breakdown["fruits"] == 25
        assert result.breakdown["protein"] == 25
        assert result.breakdown["processed"] == 25
        assert result.breakdown["other"] == 0

    def test_rounding_half_up(self):
        # 1/8 = 12.5% → 13
        basket = items("Broccoli", *[f"Water {i}" for i in range(7)])
        assert calculate_health_score(basket).breakdown["vegetables"] == 13

    def test_stored_category_used_as_hint(self):
        result = calculate_health_score([HealthItem(name="Mystery", category="Veggies")])
        assert result.breakdown["vegetables"] == 100


class TestSubScores:
    def test_all_used_maxes_smart_shopping(self):
        basket = items("Broccoli", "Apple", used=("Broccoli", "Apple"))
        assert calculate_health_score(basket).smart_shopping_score == 30

    def test_nothing_used(self):
        assert calculate_health_score(items("Broccoli", "Apple")).smart_shopping_score == 0

    def test_quality_score(self):
        # 100% fresh produce, no processed, all distinct → 10 + 10 + 10
        assert calculate_health_score(items("Broccoli", "Apple")).quality_score == 30

    def test_quality_penalizes_duplicates(self):
        # fresh 100% → 10, processed 0 → 10, variety 1/2 → 5
        assert calculate_health_score(items("Apple", "apple")).quality_score == 25

    def test_category_score_is_capped(self):
        perfect = {"vegetables": 30, "fruits": 20, "protein": 25, "grains": 20,
                   "dairy": 15, "processed": 0}
        assert category_balance_score(perfect) == 40

    def test_processed_overshoot_penalized(self):
        junk = {"processed": 100}
        # only the processed band contributes: max(0, 40 - 90*2) = 0
        assert category_balance_score(junk) == 0

    def test_total_is_sum(self):
        result = calculate_health_score(items("Broccoli", "Apple", "Chicken", used=("Apple",)))
        assert result.total_score == (
            result.category_score + result.quality_score + result.smart_shopping_score
        )


class TestRecommendations:
    def test_processed_heavy_basket(self):
        recs = calculate_health_score(items("Candy", "Chips", "Pizza")).recommendations
        assert any("processed" in r for r in recs)
        assert any("vegetables" in r for r in recs)
        assert any("fruits" in r for r in recs)

    def test_good_vegetables_praised(self):
        basket = items("Broccoli", "Apple", "Chicken", "Rice")
        recs = calculate_health_score(basket).recommendations
        assert any(r.startswith("Great job on vegetables") for r in recs)

    def test_low_variety(self):
        recs = calculate_health_score(items("Apple", "apple", "APPLE")).recommendations
        assert any("variety" in r for r in recs)


class TestScoreLabel:
    @pytest.mark.parametrize("score, label", [
        (100, "Excellent"),
        (90, "Excellent"),
        (89, "Great"),
        (75, "Great"),
        (50, "Good"),
        (49, "Needs Improvement"),
        (0, "Needs Improvement"),
    ])
    def test_thresholds(self, score, label):
        assert score_label(score) == label
