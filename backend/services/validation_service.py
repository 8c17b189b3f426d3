"""
Receipt validation — cheap sanity checks on an OCR transcript, run alongside
parsing so the client can tell the user to retake a bad photo.

Each check contributes at most one issue.  Issues come back in a fixed order
(LOW_QUALITY, PARTIAL_RECEIPT, NO_PRICES, MULTIPLE_RECEIPTS, NON_GROCERY);
only "error" issues make a transcript invalid.  The validator never raises.
"""
import logging
import re
from functools import lru_cache
from typing import Optional

from models.schemas import ValidationIssue, ValidationResult
from services.parse_service import MONEY_RE
from services.reference_data import ReferenceTables, load_reference_tables

logger = logging.getLogger("pantryscan.validation")

MIN_TEXT_LENGTH = 20
MIN_PRICES = 2
MAX_TOTAL_MENTIONS = 2
MIN_FRENCH_HITS = 3

HEADER_KEYWORDS = ("store", "market", "receipt", "magasin", "marché", "marche", "reçu", "facture")
FOOTER_KEYWORDS = ("total", "thank", "balance", "change", "merci", "solde", "monnaie")
PHONE_RE = re.compile(r'\d{3}[-\s]\d{3}[-\s]\d{4}')
TOTAL_WORD_RE = re.compile(r'\btotal\b', re.IGNORECASE)

RESTAURANT_RE = re.compile(
    r'\b(?:server|serveur|serveuse|tips?|gratuity|pourboire)\b', re.IGNORECASE
)
GAS_STATION_RE = re.compile(
    r'\b(?:gallons?|gal|pump|fuel|diesel|octane)\b', re.IGNORECASE
)

FRENCH_KEYWORDS = (
    "épicerie", "epicerie", "épicier", "marché", "prix", "sous-total",
    "tps", "tvq", "merci", "bonjour", "montant",
)
ENGLISH_KEYWORDS = (
    "grocery", "store", "market", "price", "subtotal",
    "tax", "total", "thank", "change", "amount",
)


def _issue(severity: str, code: str, message: str, suggestion: str) -> ValidationIssue:
    return ValidationIssue(severity=severity, code=code, message=message, suggestion=suggestion)


class ReceiptValidator:
    def __init__(self, tables: Optional[ReferenceTables] = None):
        self.tables = tables or load_reference_tables()
        self._vendor_res = tuple(
            (re.compile(r'\b' + re.escape(keyword) + r'\b', re.IGNORECASE), name)
            for keyword, name in self.tables.vendors
        )

    # -- individual checks ----------------------------------------------------

    def check_low_quality(self, text: str) -> Optional[ValidationIssue]:
        if len(text.strip()) < MIN_TEXT_LENGTH:
            return _issue(
                "error", "LOW_QUALITY",
                "Image is too blurry or unclear",
                "Please retake the photo with better lighting and ensure the receipt is in focus",
            )
        return None

    def check_partial_receipt(self, text: str) -> Optional[ValidationIssue]:
        lower = text.lower()
        has_header = any(word in lower for word in HEADER_KEYWORDS) or bool(PHONE_RE.search(text))
        has_footer = any(word in lower for word in FOOTER_KEYWORDS)
        if not has_header and not has_footer:
            return _issue(
                "warning", "PARTIAL_RECEIPT",
                "Receipt appears incomplete",
                "Make sure the entire receipt is visible in the photo, including top and bottom",
            )
        return None

    def check_prices(self, text: str) -> Optional[ValidationIssue]:
        if len(MONEY_RE.findall(text)) < MIN_PRICES:
            return _issue(
                "error", "NO_PRICES",
                "Couldn't find prices in the receipt",
                "Please check image quality and ensure all text is visible",
            )
        return None

    def vendors_mentioned(self, text: str) -> set[str]:
        return {name for pattern, name in self._vendor_res if pattern.search(text)}

    def check_multiple_receipts(self, text: str) -> Optional[ValidationIssue]:
        vendors = self.vendors_mentioned(text)
        totals = len(TOTAL_WORD_RE.findall(text))
        if len(vendors) > 1 or totals > MAX_TOTAL_MENTIONS:
            logger.debug("Multiple receipts suspected: vendors=%s totals=%d", sorted(vendors), totals)
            return _issue(
                "warning", "MULTIPLE_RECEIPTS",
                "Multiple receipts detected in image",
                "Please photograph one receipt at a time for best results",
            )
        return None

    def check_non_grocery(self, text: str) -> Optional[ValidationIssue]:
        if RESTAURANT_RE.search(text):
            return _issue(
                "error", "NON_GROCERY",
                "This appears to be a restaurant receipt",
                "This app is designed for grocery receipts. Restaurants and prepared meals "
                "are not supported",
            )
        if GAS_STATION_RE.search(text):
            return _issue(
                "error", "NON_GROCERY",
                "This appears to be a gas station receipt",
                "This app is designed for grocery store receipts. Gas stations are not supported",
            )
        return None

    @staticmethod
    def detect_language(text: str) -> str:
        """'fra' when French keywords clearly dominate, else 'eng'."""
        lower = text.lower()
        french = sum(1 for word in FRENCH_KEYWORDS if word in lower)
        english = sum(1 for word in ENGLISH_KEYWORDS if word in lower)
        if french > english and french >= MIN_FRENCH_HITS:
            return "fra"
        return "eng"

    # -- entry point ----------------------------------------------------------

    def validate(self, text: Optional[str]) -> ValidationResult:
        text = text or ""
        checks = (
            self.check_low_quality,
            self.check_partial_receipt,
            self.check_prices,
            self.check_multiple_receipts,
            self.check_non_grocery,
        )
        issues = [issue for issue in (check(text) for check in checks) if issue]
        result = ValidationResult(issues=issues, detected_language=self.detect_language(text))
        if issues:
            logger.info("Validation: %s (valid=%s)", ", ".join(result.codes), result.is_valid)
        return result


@lru_cache(maxsize=1)
def _default_validator() -> ReceiptValidator:
    return ReceiptValidator()


def validate_receipt_text(text: Optional[str]) -> ValidationResult:
    """Validate an OCR transcript with the default reference tables."""
    return _default_validator().validate(text)
