"""
Receipt Text Parser — turns an OCR transcript into a ParsedReceipt.

Single pass over the transcript lines, tolerant of OCR noise and of both
English and Quebec French receipts (comma decimals, trailing-minus discounts,
ANNUL. void markers):

  • void lines and the line they cancel are dropped
  • subtotal / tax / total lines feed the totals, never items
  • discount lines become Discount entries (always ≤ 0)
  • any other line with a money token becomes a LineItem, the right-most
    amount being the line total

Items are then categorized, given an expiry estimate, and the extracted
amounts are reconciled against the printed total.  Anything that looks off
is reported through review_reasons — the parser never raises.
"""
import datetime as dt
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

from models.schemas import Discount, LineItem, ParsedReceipt
from services.categorize_service import CategoryClassifier, grocery_classifier
from services.reference_data import ReferenceTables, load_reference_tables
from services.shelf_life_service import ShelfLifeEstimator, shelf_life_estimator

logger = logging.getLogger("pantryscan.parser")

CURRENCY = "CAD"
RELATIVE_TOLERANCE = 0.01     # 1% of the printed amount
ABSOLUTE_TOLERANCE = 0.02     # but never tighter than 2¢
DISCREPANCY_TOLERANCE = 0.01  # qty × unit price vs line total
MIN_NAME_LENGTH = 2
MAX_BARE_QUANTITY = 20        # "25x" is more likely a line number than a quantity
LOW_CONFIDENCE = 0.4

# ── Regexes ───────────────────────────────────────────────────────────────────

# "12.49", "12,49", "$4.99": exactly two decimals, not part of a longer
# digit/separator run (so "15.01.2024" is not money).
_AMOUNT = r'\d{1,4}[.,]\d{2}'
MONEY_RE = re.compile(r'(?<![\d.,])\$?\s?(' + _AMOUNT + r')(?![.,]?\d)')

DISCOUNT_KEYWORD_RE = re.compile(
    r'\b(?:TPR|TPO|COUPON|RABAIS|R[ÉE]DUC\w*|PROMO|ESCOMPTE|DISCOUNT)\b'
    r'.*?(?<![\d.,])([-+]?)\s*\$?\s?(' + _AMOUNT + r')(?![.,]?\d)',
    re.IGNORECASE,
)
# Regional convention: "3,80-FP", the minus trails the amount
DISCOUNT_TRAILING_MINUS_RE = re.compile(r'(?<![\d.,])(' + _AMOUNT + r')-(?!\d)')

VOID_RE = re.compile(r'\b(?:ANNUL[ÉE]?|VOID|CANCEL(?:LED)?)\b', re.IGNORECASE)

SUBTOTAL_RE = re.compile(r'\b(?:SOUS[\s-]?TOTAL|SUB[\s-]?TOTAL)\b', re.IGNORECASE)
TAX_RE = re.compile(r'\b(?:TAXES?|TPS|TVQ|TVH|HST|GST|PST|TAX)\b', re.IGNORECASE)
TOTAL_RE = re.compile(r'\bTOTAL\b', re.IGNORECASE)

# Promotion summaries ("YOU SAVED 1.00", "TOTAL DES ECONOMIES 1,50", points
# balances) repeat amounts already on the receipt; they are never purchases
# and never the grand total
SAVINGS_RE = re.compile(
    r'\b(?:YOU\s+SAVED|SAVED|SAVINGS?|[ÉE]CONOMI(?:E|ES|SEZ|S[ÉE]E?S?)|POINTS?'
    r'|REWARDS?|R[ÉE]COMPENSES?)\b'
    r'|\bTOTAL\b\W*(?:(?:DES?|DU|OF)\s+)?(?:RABAIS|ESCOMPTES?|DISCOUNTS?|COUPONS?)\b',
    re.IGNORECASE,
)

# Payment / tender lines carry amounts but are never purchases
TENDER_RE = re.compile(
    r'\b(?:VISA|MASTERCARD|MASTER|AMEX|INTERAC|D[ÉE]BIT|CR[ÉE]DIT|CASH|COMPTANT'
    r'|CHANGE|MONNAIE|TENDER|PAYMENT|PAIEMENT|BALANCE|SOLDE|APPROVED|APPROUV[ÉE]E?)\b',
    re.IGNORECASE,
)

DATE_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("ymd", re.compile(r'(?<!\d)(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})(?!\d)')),
    ("dmy", re.compile(r'(?<!\d)(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})(?!\d)')),
    ("dmy2", re.compile(r'(?<!\d)(\d{1,2})[-/.](\d{1,2})[-/.](\d{2})(?!\d)')),
)

# "2 @ 3.99" / "2 x 3.99": quantity and unit price
QTY_AT_PRICE_RE = re.compile(
    r'(?<![\w.,])(\d{1,3})\s*[@xX×]\s*\$?\s?(' + _AMOUNT + r')(?![.,]?\d)'
)
# "1.5 kg @ 4.40" or just "3LB"
WEIGHT_RE = re.compile(
    r'(?<![\w.,])(\d+(?:[.,]\d+)?)\s*(kg|lbs?|g|ml|l)\b'
    r'(?:\s*@\s*\$?\s?(' + _AMOUNT + r')(?:\s*/\s*(?:kg|lbs?|g|ml|l)\b)?)?',
    re.IGNORECASE,
)
# "2x MILK" / "MILK x2"
BARE_QTY_RE = re.compile(r'(?<![\w.,])(?:(\d{1,3})\s*[xX×]|[xX×]\s*(\d{1,3}))(?!\w)')

SKU_PATTERNS = (
    re.compile(r'^\s*(?:E\s*|1\s+)(?=#?\d{5,8}\b)'),   # Costco taxable marker
    re.compile(r'\bTP[RO]\s*/\s*\d+', re.IGNORECASE),
    re.compile(r'\bPLU\s*#?\s*\d+', re.IGNORECASE),
    re.compile(r'#?\d{4,}'),
)
TRAILING_FLAGS_RE = re.compile(r'(?:\s+|-)(?:FP|FW|FH|F|P)$', re.IGNORECASE)
EDGE_PUNCT_RE = re.compile(r'^[^\w%]+|[^\w%)]+$')


@dataclass
class QuantityInfo:
    quantity: int = 1
    unit_price: Optional[float] = None
    unit: Optional[str] = None
    measure: Optional[float] = None   # weight / volume for "1.5 kg"-style lines
    span: Optional[tuple[int, int]] = None


# ── Small helpers ─────────────────────────────────────────────────────────────

def normalize_money(token: str) -> float:
    """'12,49' / '12.49' / '$12.49' → 12.49"""
    cleaned = re.sub(r'[\s$]', '', token).replace(',', '.')
    return round(float(cleaned), 2)


def find_money(line: str) -> list[re.Match]:
    return list(MONEY_RE.finditer(line))


def detect_vendor(text: str, vendors: tuple[tuple[str, str], ...]) -> Optional[str]:
    """First vendor-table entry found anywhere in the text, or None."""
    for keyword, name in vendors:
        if re.search(r'\b' + re.escape(keyword) + r'\b', text, re.IGNORECASE):
            return name
    return None


def _to_date(year: int, month: int, day: int) -> Optional[dt.date]:
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def detect_date(text: str) -> Optional[str]:
    """First plausible date in the text as ISO YYYY-MM-DD, or None.

    Year-first is tried before day-first; a day-first reading that is not a
    real date is retried month-first (US receipts).
    """
    for kind, pattern in DATE_PATTERNS:
        for m in pattern.finditer(text):
            a, b, c = (int(g) for g in m.groups())
            if kind == "ymd":
                found = _to_date(a, b, c)
            else:
                year = c if kind == "dmy" else 2000 + c
                found = _to_date(year, b, a) or _to_date(year, a, b)
            if found and found.year >= 2000:
                return found.isoformat()
    return None


def extract_quantity(line: str) -> QuantityInfo:
    m = QTY_AT_PRICE_RE.search(line)
    if m:
        qty = int(m.group(1))
        if qty >= 1:
            return QuantityInfo(quantity=qty, unit_price=normalize_money(m.group(2)),
                                span=m.span())
    m = WEIGHT_RE.search(line)
    if m:
        unit = m.group(2).lower()
        if unit == "lbs":
            unit = "lb"
        unit_price = normalize_money(m.group(3)) if m.group(3) else None
        return QuantityInfo(unit=unit, unit_price=unit_price,
                            measure=float(m.group(1).replace(',', '.')), span=m.span())
    m = BARE_QTY_RE.search(line)
    if m:
        qty = int(m.group(1) or m.group(2))
        if 1 <= qty <= MAX_BARE_QUANTITY:
            return QuantityInfo(quantity=qty, span=m.span())
    return QuantityInfo()


def strip_codes(text: str) -> str:
    """Remove SKU / PLU / TPR codes, trailing receipt flags and edge punctuation."""
    for pattern in SKU_PATTERNS:
        text = pattern.sub(' ', text)
    text = re.sub(r'\s+', ' ', text).strip()
    text = TRAILING_FLAGS_RE.sub('', text)
    return EDGE_PUNCT_RE.sub('', text).strip()


def discount_label(text: str) -> str:
    """Label for a discount line: the leading text minus SKU digit runs."""
    text = re.sub(r'#?\d{3,}', ' ', text)
    text = re.sub(r'\s+', ' ', text)
    return EDGE_PUNCT_RE.sub('', text).strip() or "Discount"


def estimate_ocr_confidence(name: str, known_words: tuple[str, ...] = ()) -> float:
    """Heuristic 0.1–1.0 score of how cleanly OCR read an item name."""
    confidence = 0.9
    if len(name) < 3:
        confidence -= 0.3
    specials = len(re.findall(r"[^a-zA-Z0-9\s\-'%]", name))
    if specials > 2:
        confidence -= 0.1 * specials
    if len(re.findall(r'\d', name)) > 3:
        confidence -= 0.1
    if re.search(r'[A-Z]{4,}', name):
        confidence -= 0.2
    lower = name.lower()
    if any(word in lower for word in known_words):
        confidence += 0.05
    return round(max(0.1, min(1.0, confidence)), 2)


# ── Parser ────────────────────────────────────────────────────────────────────

class ReceiptParser:
    def __init__(
        self,
        tables: Optional[ReferenceTables] = None,
        classifier: Optional[CategoryClassifier] = None,
        estimator: Optional[ShelfLifeEstimator] = None,
        clock: Callable[[], dt.date] = dt.date.today,
    ):
        self.tables = tables or load_reference_tables()
        self.classifier = classifier or grocery_classifier(self.tables)
        self.estimator = estimator or shelf_life_estimator(self.tables)
        self.clock = clock
        self.known_words = tuple(
            word for _, words in self.tables.grocery_keywords for word in words
        )
        self._brand_res = tuple(
            (re.compile(r'\b' + re.escape(abbr) + r'\b'), brand)
            for abbr, brand in self.tables.brand_abbreviations
        )
        self._name_res = tuple(
            (re.compile(r'\b' + re.escape(abbr) + r'\b', re.IGNORECASE), full)
            for abbr, full in self.tables.name_abbreviations
        )

    # -- public ---------------------------------------------------------------

    def parse(self, text: str, vendor_hint: Optional[str] = None) -> ParsedReceipt:
        try:
            return self._parse(text or "", vendor_hint)
        except Exception as e:
            logger.exception("Receipt parsing failed")
            return ParsedReceipt(
                vendor=(vendor_hint or "").strip() or None,
                currency=CURRENCY,
                raw_text=text or "",
                review_reasons=[f"Receipt could not be parsed ({type(e).__name__}: {e})"],
            )

    # -- internals ------------------------------------------------------------

    def _parse(self, text: str, vendor_hint: Optional[str]) -> ParsedReceipt:
        lines = [line.strip() for line in text.splitlines()]
        lines = [line for line in lines if line]
        logger.debug("Parsing %d lines", len(lines))

        vendor = (vendor_hint or "").strip() or detect_vendor(text, self.tables.vendors)
        date = detect_date(text)
        reference = dt.date.fromisoformat(date) if date else self.clock()

        voided: set[int] = set()
        for idx, line in enumerate(lines):
            if VOID_RE.search(line):
                voided.add(idx)
                if idx > 0:
                    voided.add(idx - 1)
                logger.debug("Void marker at line %d — dropping lines %d-%d", idx, idx - 1, idx)

        items: list[LineItem] = []
        discounts: list[Discount] = []
        reasons: list[str] = []
        subtotal: Optional[float] = None
        total: Optional[float] = None
        tax_lines: list[float] = []

        for idx, line in enumerate(lines):
            if idx in voided:
                continue

            if SAVINGS_RE.search(line):
                logger.debug("Skipping savings summary: %r", line)
                continue

            if SUBTOTAL_RE.search(line):
                amount = self._last_amount(line)
                if amount is not None and subtotal is None:
                    subtotal = amount
                continue
            if TOTAL_RE.search(line):
                amount = self._last_amount(line)
                if amount is not None:
                    total = amount   # the last TOTAL line is the grand total
                continue
            if TAX_RE.search(line):
                amount = self._last_amount(line)
                if amount is not None:
                    tax_lines.append(amount)
                continue

            discount = self._parse_discount(line)
            if discount:
                discounts.append(discount)
                logger.debug("Discount: %s %.2f", discount.label, discount.amount)
                continue

            if TENDER_RE.search(line):
                continue

            item = self._parse_item(line, reference)
            if item is None:
                continue
            items.append(item)
            if item.needs_review:
                reasons.append(f"Item needs review: {item.name!r} ({item.total_price:.2f})")

        tax = round(sum(tax_lines), 2) if tax_lines else None
        reasons.extend(self._reconcile(items, discounts, subtotal, tax, total))

        logger.info("Parsed receipt: vendor=%s date=%s items=%d discounts=%d total=%s review=%s",
                    vendor, date, len(items), len(discounts), total, bool(reasons))
        return ParsedReceipt(
            vendor=vendor,
            date=date,
            currency=CURRENCY,
            items=items,
            discounts=discounts,
            subtotal=subtotal,
            tax=tax,
            total=total,
            raw_text=text,
            review_reasons=reasons,
        )

    @staticmethod
    def _last_amount(line: str) -> Optional[float]:
        found = find_money(line)
        return normalize_money(found[-1].group(1)) if found else None

    def _parse_discount(self, line: str) -> Optional[Discount]:
        m = DISCOUNT_KEYWORD_RE.search(line)
        if m:
            amount_start = m.start(1) if m.group(1) else m.start(2)
            label_text = line[:amount_start]
            value = normalize_money(m.group(2))
        else:
            m = DISCOUNT_TRAILING_MINUS_RE.search(line)
            if not m:
                return None
            label_text = line[:m.start(1)]
            value = normalize_money(m.group(1))
        label = discount_label(label_text)
        return Discount(label=label, amount=-abs(value))

    def _clean_name(self, text: str) -> tuple[str, Optional[str]]:
        """Strip codes, pull out a brand abbreviation, expand the rest."""
        name = strip_codes(text)
        brand = None
        for pattern, full in self._brand_res:
            if pattern.search(name):
                brand = brand or full
                name = pattern.sub(' ', name)
        for pattern, full in self._name_res:
            name = pattern.sub(full, name)
        name = re.sub(r'\s+', ' ', name).strip()
        return EDGE_PUNCT_RE.sub('', name).strip(), brand

    def _parse_item(self, line: str, reference: dt.date) -> Optional[LineItem]:
        prices = find_money(line)
        if not prices:
            return None

        line_total = normalize_money(prices[-1].group(1))
        qty = extract_quantity(line)

        # Name: text before the first amount, minus the quantity expression
        name_end = prices[0].start()
        if qty.span and qty.span[0] < name_end:
            name_part = line[:qty.span[0]] + " " + line[qty.span[1]:name_end]
        else:
            name_part = line[:name_end]
        name, brand = self._clean_name(name_part)
        if len(name) < MIN_NAME_LENGTH:
            logger.debug("Dropping line with no usable name: %r", line)
            return None

        unit_price = qty.unit_price
        if qty.measure is not None and unit_price is not None:
            expected = qty.measure * unit_price
        elif unit_price is not None:
            expected = qty.quantity * unit_price
        else:
            expected = None
            if qty.quantity > 1:
                unit_price = round(line_total / qty.quantity, 2)
        if expected is not None and line_total > 0:
            if abs(expected - line_total) > line_total * DISCREPANCY_TOLERANCE:
                logger.warning(
                    "Quantity/price mismatch for %r: computed %.2f vs line total %.2f "
                    "— keeping line total", name, expected, line_total,
                )

        category = self.classifier.classify(name)
        confidence = estimate_ocr_confidence(name, self.known_words)
        needs_review = line_total <= 0 or confidence < LOW_CONFIDENCE

        item = LineItem(
            name=name,
            brand=brand,
            quantity=qty.quantity,
            total_price=line_total,
            unit_price=unit_price,
            unit=qty.unit,
            category=category,
            estimated_expiry_date=self.estimator.estimate_expiry(name, category, reference),
            confidence=confidence,
            needs_review=needs_review,
        )
        logger.debug("Item: %s %.2f (qty=%d, %s)%s", name, line_total, qty.quantity,
                     category, " [REVIEW]" if needs_review else "")
        return item

    @staticmethod
    def _reconcile(
        items: list[LineItem],
        discounts: list[Discount],
        subtotal: Optional[float],
        tax: Optional[float],
        total: Optional[float],
    ) -> list[str]:
        reasons: list[str] = []
        if not items:
            reasons.append("No line items found")

        items_sum = round(sum(i.total_price for i in items), 2)
        discounts_sum = round(sum(d.amount for d in discounts), 2)
        net = round(items_sum + discounts_sum, 2)

        if total is not None:
            computed = round(net + (tax or 0.0), 2)
            diff = round(computed - total, 2)
            if abs(diff) > tolerance(total):
                reasons.append(
                    f"Total mismatch: calculated ${computed:.2f} vs receipt ${total:.2f}"
                    f" (diff: ${diff:.2f})"
                )
        if subtotal is not None and items:
            diff = round(net - subtotal, 2)
            if abs(diff) > tolerance(subtotal):
                reasons.append(
                    f"Subtotal mismatch: calculated ${net:.2f} vs receipt ${subtotal:.2f}"
                )
        return reasons


def tolerance(amount: float) -> float:
    """Allowed reconciliation gap: 1% of the amount, at least 2¢."""
    return max(abs(amount) * RELATIVE_TOLERANCE, ABSOLUTE_TOLERANCE)


@lru_cache(maxsize=1)
def _default_parser() -> ReceiptParser:
    return ReceiptParser()


def parse_receipt_text(text: str, vendor_hint: Optional[str] = None) -> ParsedReceipt:
    """Parse an OCR transcript with the default reference tables."""
    return _default_parser().parse(text, vendor_hint)
