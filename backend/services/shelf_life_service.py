"""
Shelf-life estimation — how long a purchased item is expected to stay fresh.

Ordered (label, pattern, days) rules are tried against the lowercased item
name and the first hit wins; rule order encodes spoilage priority (poultry
before generic meat, and so on).  Unmatched names fall back to a per-category
default.  Dates are plain calendar dates; no timezone handling.
"""
import datetime as dt
import logging
import re
from functools import lru_cache
from typing import Optional

from services.reference_data import (
    UNKNOWN_CATEGORY_SHELF_LIFE_DAYS,
    ReferenceTables,
    load_reference_tables,
)

logger = logging.getLogger("pantryscan.shelf_life")


class ShelfLifeEstimator:
    def __init__(
        self,
        rules: tuple[tuple[str, str, int], ...],
        category_days: tuple[tuple[str, int], ...],
        fallback_days: int = UNKNOWN_CATEGORY_SHELF_LIFE_DAYS,
    ):
        self.rules = tuple(
            (label, re.compile(pattern, re.IGNORECASE), days)
            for label, pattern, days in rules
        )
        self.category_days = dict(category_days)
        self.fallback_days = fallback_days

    def shelf_life_days(self, item_name: str, category: str) -> tuple[int, str]:
        """Return (days, label) — label is the matched rule or the category."""
        lower = item_name.lower()
        for label, pattern, days in self.rules:
            if pattern.search(lower):
                return days, label
        return self.category_days.get(category, self.fallback_days), category

    def estimate_expiry(
        self, item_name: str, category: str, reference_date: dt.date
    ) -> dt.date:
        days, label = self.shelf_life_days(item_name, category)
        expiry = reference_date + dt.timedelta(days=days)
        logger.debug("Expiry %r: %s + %dd (%s) = %s",
                     item_name, reference_date, days, label, expiry)
        return expiry


def shelf_life_estimator(tables: Optional[ReferenceTables] = None) -> ShelfLifeEstimator:
    tables = tables or load_reference_tables()
    return ShelfLifeEstimator(tables.shelf_life_rules, tables.category_shelf_life)


@lru_cache(maxsize=1)
def _default_estimator() -> ShelfLifeEstimator:
    return shelf_life_estimator()


def estimate_expiry(item_name: str, category: str, reference_date: dt.date) -> dt.date:
    return _default_estimator().estimate_expiry(item_name, category, reference_date)
