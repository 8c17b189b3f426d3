"""
Categorization Service

Keyword classifier mapping free-text item names onto a closed category set.

Two stages, both driven by ordered tables:
  1. If the caller passes a hint (e.g. a category already stored on the
     item), normalize it through the alias table — coarse substring match,
     first alias wins.
  2. Otherwise lowercase the item name and walk the (category, keywords)
     table; the first category with a keyword substring hit wins.  This is
     first-match, not best-match, so table order decides ties.

Nothing matched → the classifier's configured default.  The receipt parser
and the health score use separate classifiers with separate defaults
("pantry" and "other").
"""
import logging
from functools import lru_cache
from typing import Optional

from services.reference_data import (
    GROCERY_DEFAULT_CATEGORY,
    HEALTH_DEFAULT_CATEGORY,
    ReferenceTables,
    load_reference_tables,
)

logger = logging.getLogger("pantryscan.categorize")


class CategoryClassifier:
    def __init__(
        self,
        keywords: tuple[tuple[str, tuple[str, ...]], ...],
        categories: tuple[str, ...],
        default: str,
        hint_aliases: tuple[tuple[str, str], ...] = (),
    ):
        allowed = set(categories)
        unknown = (
            {cat for cat, _ in keywords}
            | {cat for _, cat in hint_aliases}
            | {default}
        ) - allowed
        if unknown:
            raise ValueError(f"Categories outside the allowed set: {sorted(unknown)}")
        self.keywords = keywords
        self.categories = tuple(categories)
        self.default = default
        self.hint_aliases = hint_aliases

    def normalize_hint(self, hint: Optional[str]) -> Optional[str]:
        """Map a free-form category hint onto a known category, or None."""
        if not hint:
            return None
        key = hint.strip().lower()
        if key in self.categories:
            return key
        for fragment, category in self.hint_aliases:
            if fragment in key:
                return category
        return None

    def match_keywords(self, item_name: str) -> Optional[str]:
        lower = item_name.lower()
        for category, words in self.keywords:
            if any(word in lower for word in words):
                return category
        return None

    def classify(self, item_name: str, hint: Optional[str] = None) -> str:
        category = self.normalize_hint(hint)
        if category:
            return category
        category = self.match_keywords(item_name)
        if category is None:
            logger.debug("No keyword match for %r — using %s", item_name, self.default)
            return self.default
        return category


def grocery_classifier(
    tables: Optional[ReferenceTables] = None,
    default: str = GROCERY_DEFAULT_CATEGORY,
) -> CategoryClassifier:
    """Classifier over receipt categories (produce, dairy, meat, …)."""
    tables = tables or load_reference_tables()
    return CategoryClassifier(
        tables.grocery_keywords,
        tables.grocery_categories,
        default,
        tables.grocery_hint_aliases,
    )


def health_classifier(
    tables: Optional[ReferenceTables] = None,
    default: str = HEALTH_DEFAULT_CATEGORY,
) -> CategoryClassifier:
    """Classifier over nutrition groups (vegetables, fruits, protein, …)."""
    tables = tables or load_reference_tables()
    return CategoryClassifier(
        tables.health_keywords,
        tables.health_categories,
        default,
        tables.health_hint_aliases,
    )


@lru_cache(maxsize=1)
def _default_grocery_classifier() -> CategoryClassifier:
    return grocery_classifier()


def classify_item(item_name: str, hint: Optional[str] = None) -> str:
    """Categorize one item with the default grocery tables."""
    return _default_grocery_classifier().classify(item_name, hint)
