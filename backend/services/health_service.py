"""
Health score — a 0-100 rating of a basket of groceries.

  category balance  (max 40)  how close each nutrition group's share is to its
                              target band; processed food only counts against
  food quality      (max 30)  fresh-produce share, low processed share, variety
  smart shopping    (max 30)  share of items actually used rather than wasted

Items are mapped to nutrition groups with the health classifier; an item's
stored category (e.g. "Veggies") is passed as the hint.
"""
import logging
import math
from typing import Optional, Sequence

from models.schemas import HealthItem, HealthScore
from services.categorize_service import CategoryClassifier, health_classifier

logger = logging.getLogger("pantryscan.health")

MAX_CATEGORY_SCORE = 40
MAX_QUALITY_SCORE = 30
MAX_SMART_SHOPPING_SCORE = 30

# (group, min %, max %, weight); processed is scored inversely
HEALTH_TARGETS: tuple[tuple[str, int, int, float], ...] = (
    ("vegetables", 25, 40, 1.0),
    ("fruits",     15, 25, 1.0),
    ("protein",    20, 30, 0.9),
    ("grains",     15, 25, 0.8),
    ("dairy",      10, 20, 0.7),
    ("processed",   0, 10, -1.0),
)
OVERSHOOT_PENALTY = 2        # points lost per percentage point above the band
CATEGORY_SCORE_DIVISOR = 5
LOW_VARIETY_RATIO = 0.7

SCORE_LABELS: tuple[tuple[int, str], ...] = (
    (90, "Excellent"),
    (75, "Great"),
    (50, "Good"),
)
EMPTY_RECOMMENDATION = "Add items to your fridge to see your health score"


def _round(value: float) -> int:
    """Round half up, so 12.5% reads as 13% rather than 12%."""
    return int(math.floor(value + 0.5))


def score_label(score: int) -> str:
    for floor, label in SCORE_LABELS:
        if score >= floor:
            return label
    return "Needs Improvement"


def category_breakdown(groups: Sequence[str], categories: Sequence[str]) -> dict[str, int]:
    """Percentage of items per group, every group present (0 when absent)."""
    counts = {cat: 0 for cat in categories}
    for group in groups:
        counts[group] = counts.get(group, 0) + 1
    total = len(groups)
    return {cat: _round(n / total * 100) if total else 0 for cat, n in counts.items()}


def category_balance_score(breakdown: dict[str, int]) -> int:
    score = 0.0
    for group, low, high, weight in HEALTH_TARGETS:
        pct = breakdown.get(group, 0)
        if weight < 0:
            score += MAX_CATEGORY_SCORE if pct <= high else max(
                0, MAX_CATEGORY_SCORE - (pct - high) * OVERSHOOT_PENALTY
            )
        elif low <= pct <= high:
            score += MAX_CATEGORY_SCORE * weight
        elif pct < low:
            score += (pct / low) * MAX_CATEGORY_SCORE * weight
        else:
            score += max(0, MAX_CATEGORY_SCORE - (pct - high) * OVERSHOOT_PENALTY) * weight
    return min(MAX_CATEGORY_SCORE, _round(score / CATEGORY_SCORE_DIVISOR))


def quality_score(breakdown: dict[str, int], variety: int, item_count: int) -> int:
    fresh = (breakdown.get("vegetables", 0) + breakdown.get("fruits", 0)) / 100
    processed = breakdown.get("processed", 0) / 100
    return _round(fresh * 10 + (1 - processed) * 10 + min(variety / item_count, 1) * 10)


def smart_shopping_score(used: int, item_count: int) -> int:
    return _round(used / item_count * MAX_SMART_SHOPPING_SCORE)


def recommendations_for(breakdown: dict[str, int], variety: int, item_count: int) -> list[str]:
    recs = []
    if breakdown.get("fruits", 0) < 15:
        recs.append("Add more fruits - Try bananas, apples, or berries")
    if breakdown.get("vegetables", 0) < 25:
        recs.append("Increase vegetables - Add leafy greens and colorful veggies")
    if breakdown.get("processed", 0) > 10:
        recs.append("Reduce processed foods - Swap for whole ingredients")
    if variety < item_count * LOW_VARIETY_RATIO:
        recs.append("Increase variety - Try different proteins and grains")
    if 25 <= breakdown.get("vegetables", 0) <= 40:
        recs.append("Great job on vegetables! Keep it up!")
    return recs


def calculate_health_score(
    items: Sequence[HealthItem],
    classifier: Optional[CategoryClassifier] = None,
) -> HealthScore:
    classifier = classifier or health_classifier()
    categories = classifier.categories

    if not items:
        return HealthScore(
            total_score=0,
            category_score=0,
            quality_score=0,
            smart_shopping_score=0,
            label=score_label(0),
            breakdown={cat: 0 for cat in categories},
            recommendations=[EMPTY_RECOMMENDATION],
        )

    groups = [classifier.classify(item.name, item.category) for item in items]
    breakdown = category_breakdown(groups, categories)
    n = len(items)
    variety = len({item.name.lower() for item in items})
    used = sum(1 for item in items if item.used)

    cat_score = category_balance_score(breakdown)
    qual_score = quality_score(breakdown, variety, n)
    smart_score = smart_shopping_score(used, n)
    total = min(100, cat_score + qual_score + smart_score)

    logger.debug("Health score for %d items: %d (category=%d quality=%d smart=%d)",
                 n, total, cat_score, qual_score, smart_score)
    return HealthScore(
        total_score=total,
        category_score=cat_score,
        quality_score=qual_score,
        smart_shopping_score=smart_score,
        label=score_label(total),
        breakdown=breakdown,
        recommendations=recommendations_for(breakdown, variety, n),
    )
