"""
Static reference tables — vendor names, category keywords, shelf-life rules.

Every table that is matched "first hit wins" is an ordered tuple of pairs,
never a dict: the order is part of the data.  Tables are bundled into an
immutable ReferenceTables value built once (load_reference_tables) and
handed to each component's constructor, so tests can substitute their own.

Bump CATALOG_VERSION whenever a table changes.
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import get_args

from models.schemas import GroceryCategory, HealthCategory

CATALOG_VERSION = "2025.1"

# ── Vendors ───────────────────────────────────────────────────────────────────
# keyword (matched case-insensitively on word boundaries) → canonical name
KNOWN_VENDORS: tuple[tuple[str, str], ...] = (
    ("costco",       "COSTCO"),
    ("metro",        "METRO"),
    ("iga",          "IGA"),
    ("maxi",         "MAXI"),
    ("provigo",      "PROVIGO"),
    ("loblaws",      "LOBLAWS"),
    ("loblaw",       "LOBLAWS"),
    ("super c",      "SUPER C"),
    ("walmart",      "WALMART"),
    ("wal-mart",     "WALMART"),
    ("sobeys",       "SOBEYS"),
    ("adonis",       "ADONIS"),
    ("whole foods",  "WHOLE FOODS"),
    ("safeway",      "SAFEWAY"),
)

# ── Grocery categories (receipt parsing) ──────────────────────────────────────
GROCERY_CATEGORIES: tuple[str, ...] = get_args(GroceryCategory)
GROCERY_DEFAULT_CATEGORY = "pantry"

# Order matters: dairy is tested before frozen ("ice cream" lands in dairy via
# "cream"), pantry before snacks.
GROCERY_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("produce", (
        "cerises", "fraises", "bananes", "banan", "pommes", "tomates", "tomato",
        "brocoli", "broccoli", "avocat", "avocado", "salade", "épinards",
        "epinards", "apple", "orange", "lettuce", "spinach", "carrot", "carott",
        "pepper", "cucumber", "concombre", "berries", "strawberr", "cherr",
        "potato", "patate", "onion", "oignon", "fruit", "vegetable", "légume",
        "legume",
    )),
    ("dairy", (
        "yogourt", "yogurt", "babybel", "fromage", "lait", "œufs", "oeufs",
        "beurre", "milk", "cheese", "butter", "cream", "crème", "egg", "yog",
    )),
    ("meat", (
        "poulet", "boeuf", "porc", "jambon", "chicken", "beef", "pork",
        "prosciutto", "turkey", "dinde", "bacon", "sausage", "saucisse", "ground",
        "hach", "steak", "salmon", "saumon", "fish", "poisson",
    )),
    ("pantry", (
        "thon", "rio mare", "riomare", "haricots", "pâtes", "pates", "riz",
        "huile", "céréales", "cereales", "tuna", "beans", "pasta", "rice",
        "olive", "canola", "cereal", "bread", "pain", "baguette", "bagel",
        "flour", "farine", "sugar", "sucre", "sauce", "canned", "conserve",
    )),
    ("household", (
        "gain", "détergent", "detergent", "essuie", "papier", "soap", "savon",
        "cleaner", "towel", "tissue", "trash", "bag", "sac", "nettoyant",
    )),
    ("frozen", (
        "frozen", "congelé", "congele", "ice cream", "glace", "pizza",
    )),
    ("snacks", (
        "chips", "cookie", "biscuit", "candy", "bonbon", "chocolate",
        "chocolat", "snack", "grignotine",
    )),
)

GROCERY_HINT_ALIASES: tuple[tuple[str, str], ...] = (
    ("vegg", "produce"),
    ("veget", "produce"),
    ("fruit", "produce"),
    ("produce", "produce"),
    ("dairy", "dairy"),
    ("meat", "meat"),
    ("protein", "meat"),
    ("pantry", "pantry"),
    ("grain", "pantry"),
    ("household", "household"),
    ("frozen", "frozen"),
    ("snack", "snacks"),
)

# ── Health categories (health scoring) ────────────────────────────────────────
HEALTH_CATEGORIES: tuple[str, ...] = get_args(HealthCategory)
HEALTH_DEFAULT_CATEGORY = "other"

HEALTH_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("vegetables", (
        "lettuce", "spinach", "broccoli", "carrot", "pepper", "tomato",
        "cucumber", "onion", "celery", "kale", "cabbage", "zucchini",
        "eggplant", "cauliflower",
    )),
    ("fruits", (
        "apple", "banana", "berry", "berries", "strawberr", "orange", "grape",
        "melon", "pear", "peach", "mango", "pineapple",
    )),
    ("protein", (
        "chicken", "beef", "pork", "fish", "salmon", "egg", "tofu", "bean",
        "lentil", "turkey", "tuna",
    )),
    ("grains", (
        "bread", "pasta", "rice", "quinoa", "oat", "cereal", "tortilla",
        "bagel", "cracker",
    )),
    ("dairy", ("milk", "cheese", "yogurt", "butter", "cream", "sour cream")),
    ("processed", (
        "pizza", "chip", "soda", "cookie", "candy", "frozen meal", "nugget",
        "fries",
    )),
)

HEALTH_HINT_ALIASES: tuple[tuple[str, str], ...] = (
    ("vegg", "vegetables"),
    ("fruit", "fruits"),
    ("meat", "protein"),
    ("protein", "protein"),
    ("grain", "grains"),
    ("pantry", "grains"),
    ("dairy", "dairy"),
)

# ── Shelf life ────────────────────────────────────────────────────────────────
# (label, regex, days) tested against the lowercased item name, first match
# wins.  Poultry and ground meat must stay ahead of the generic meat rule.
SHELF_LIFE_RULES: tuple[tuple[str, str, int], ...] = (
    ("poultry",       r"\b(poulet|chicken|poultry|volaille)\b", 2),
    ("ground-meat",   r"\b(ground|hach[eé]e?)\b", 2),
    ("deli-ham",      r"\b(jambon|ham|deli)\b", 5),
    ("fresh-meat",    r"\b(boeuf|beef|steak|porc|pork)\b", 3),
    ("yogurt",        r"\b(yogourt|yogurt|yog)\b", 10),
    ("babybel",       r"\bbabybel\b", 25),
    ("eggs",          r"\b(œufs|oeufs|eggs?)\b", 28),
    ("milk",          r"\b(lait|milk)\b", 7),
    ("cheese",        r"\b(fromage|cheese)\b", 14),
    ("butter",        r"\b(beurre|butter)\b", 30),
    ("berries",       r"\b(cerises?|cherr\w*|fraises?|strawberr\w*|berries|baies)\b", 4),
    ("bananas",       r"\b(bananes?|bananas?)\b", 5),
    ("broccoli",      r"\b(brocoli|broccoli)\b", 5),
    ("tomatoes",      r"\b(tomates?|tomatoes?)\b", 5),
    ("leafy-greens",  r"\b(salade|lettuce|épinards|epinards|spinach)\b", 5),
    ("avocado",       r"\b(avocats?|avocados?)\b", 4),
    ("apples",        r"\b(pommes?|apples?)\b", 14),
    ("hardy-produce", r"\b(carott\w*|carrots?|oranges?)\b", 10),
    ("bread",         r"\b(pain|bread)\b", 5),
    ("canned",        r"\b(thon|tuna|conserves?|canned)\b", 365),
    ("dry-goods",     r"\b(pâtes|pates|pasta|riz|rice|céréales|cereales|cereal)\b", 365),
    ("frozen",        r"\b(frozen|congel[ée]e?|ice cream|glace)\b", 90),
    ("household",     r"\b(gain|détergent|detergent|nettoyant|cleaner|savon|soap)\b", 9999),
    ("paper-goods",   r"\b(essuie\w*|papier|towels?|tissues?)\b", 9999),
)

CATEGORY_SHELF_LIFE_DAYS: tuple[tuple[str, int], ...] = (
    ("produce", 7),
    ("dairy", 10),
    ("meat", 3),
    ("frozen", 90),
    ("pantry", 365),
    ("snacks", 60),
    ("household", 9999),
)
UNKNOWN_CATEGORY_SHELF_LIFE_DAYS = 30

# ── Item-name abbreviations ───────────────────────────────────────────────────
# Brand codes are removed from the name and reported as the item's brand.
BRAND_ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    ("KS", "Kirkland Signature"),
    ("PC", "President's Choice"),
    ("GV", "Great Value"),
    ("NN", "No Name"),
)
NAME_ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    ("ORG", "Organic"),
    ("NAT", "Natural"),
)


@dataclass(frozen=True)
class ReferenceTables:
    version: str
    vendors: tuple[tuple[str, str], ...]
    grocery_categories: tuple[str, ...]
    grocery_keywords: tuple[tuple[str, tuple[str, ...]], ...]
    grocery_hint_aliases: tuple[tuple[str, str], ...]
    health_categories: tuple[str, ...]
    health_keywords: tuple[tuple[str, tuple[str, ...]], ...]
    health_hint_aliases: tuple[tuple[str, str], ...]
    shelf_life_rules: tuple[tuple[str, str, int], ...]
    category_shelf_life: tuple[tuple[str, int], ...]
    brand_abbreviations: tuple[tuple[str, str], ...]
    name_abbreviations: tuple[tuple[str, str], ...]


@lru_cache(maxsize=1)
def load_reference_tables() -> ReferenceTables:
    """Return the process-wide reference tables (built on first call)."""
    return ReferenceTables(
        version=CATALOG_VERSION,
        vendors=KNOWN_VENDORS,
        grocery_categories=GROCERY_CATEGORIES,
        grocery_keywords=GROCERY_CATEGORY_KEYWORDS,
        grocery_hint_aliases=GROCERY_HINT_ALIASES,
        health_categories=HEALTH_CATEGORIES,
        health_keywords=HEALTH_CATEGORY_KEYWORDS,
        health_hint_aliases=HEALTH_HINT_ALIASES,
        shelf_life_rules=SHELF_LIFE_RULES,
        category_shelf_life=CATEGORY_SHELF_LIFE_DAYS,
        brand_abbreviations=BRAND_ABBREVIATIONS,
        name_abbreviations=NAME_ABBREVIATIONS,
    )
