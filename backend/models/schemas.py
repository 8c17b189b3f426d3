import datetime as dt
from typing import Literal, Optional, List

from pydantic import BaseModel, Field, computed_field


GroceryCategory = Literal[
    "produce", "dairy", "meat", "pantry", "household", "frozen", "snacks",
]
HealthCategory = Literal[
    "vegetables", "fruits", "protein", "grains", "dairy", "processed", "other",
]
Severity = Literal["error", "warning"]


# ── Line Item ──────────────────────────────────────────
class LineItem(BaseModel):
    name: str
    brand: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    total_price: float = Field(ge=0)
    unit_price: Optional[float] = None
    unit: Optional[str] = None
    category: GroceryCategory
    estimated_expiry_date: dt.date
    confidence: float = Field(ge=0, le=1)
    needs_review: bool = False


class Discount(BaseModel):
    label: str
    amount: float = Field(le=0)   # always stored as a non-positive value


# ── Receipt ────────────────────────────────────────────
class ParsedReceipt(BaseModel):
    vendor: Optional[str] = None
    date: Optional[str] = None          # ISO YYYY-MM-DD, None when not found
    currency: str = "CAD"
    items: List[LineItem] = Field(default_factory=list)
    discounts: List[Discount] = Field(default_factory=list)
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    total: Optional[float] = None
    raw_text: str = ""
    review_reasons: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def needs_review(self) -> bool:
        return bool(self.review_reasons)


# ── Validation ─────────────────────────────────────────
class ValidationIssue(BaseModel):
    severity: Severity
    code: str
    message: str
    suggestion: str


class ValidationResult(BaseModel):
    issues: List[ValidationIssue] = Field(default_factory=list)
    detected_language: str = "eng"

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not any(issue.severity == "error" for issue in self.issues)

    @property
    def codes(self) -> list[str]:
        return [issue.code for issue in self.issues]


# ── Requests ───────────────────────────────────────────
class ParseRequest(BaseModel):
    text: str
    vendor_hint: Optional[str] = None


class ValidateRequest(BaseModel):
    text: str


# ── Upload / Processing ────────────────────────────────
class PreprocessSummary(BaseModel):
    width: int
    height: int
    adjustments: List[str]
    threshold: int


class AnalysisResult(BaseModel):
    receipt: ParsedReceipt
    validation: ValidationResult


class ScanResult(AnalysisResult):
    preprocessing: PreprocessSummary
    ocr_engine: str
    ocr_confidence: Optional[float] = None


# ── Health score ───────────────────────────────────────
class HealthItem(BaseModel):
    name: str
    category: Optional[str] = None   # stored category, used as a classifier hint
    used: bool = False


class HealthScoreRequest(BaseModel):
    items: List[HealthItem]


class HealthScore(BaseModel):
    total_score: int
    category_score: int
    quality_score: int
    smart_shopping_score: int
    label: str
    breakdown: dict[str, int]
    recommendations: List[str]
