"""
Scan pipeline — raw upload bytes to a parsed, validated receipt.

    preprocess (worker thread) → OCR (the one external call) →
    parse ‖ validate (both in worker threads, run concurrently)

Parse and validate only read the transcript string, so running them side by
side needs no coordination.
"""
import asyncio
import logging
import time
from typing import Optional

from models.schemas import ParsedReceipt, PreprocessSummary, ScanResult, ValidationResult
from services.ocr_service import extract_text
from services.parse_service import parse_receipt_text
from services.preprocess_service import RawImage, preprocess
from services.validation_service import validate_receipt_text

logger = logging.getLogger("pantryscan.pipeline")


async def analyze_transcript(
    text: str, vendor_hint: Optional[str] = None
) -> tuple[ParsedReceipt, ValidationResult]:
    """Parse and validate a transcript concurrently."""
    receipt, validation = await asyncio.gather(
        asyncio.to_thread(parse_receipt_text, text, vendor_hint),
        asyncio.to_thread(validate_receipt_text, text),
    )
    return receipt, validation


async def scan_receipt(
    image_bytes: bytes,
    vendor_hint: Optional[str] = None,
    engine: Optional[str] = None,
) -> ScanResult:
    """
    Full scan.  Raises DecodeError for unreadable images and
    ExternalServiceError when OCR is unavailable; everything after OCR
    reports problems through review_reasons / validation issues instead.
    """
    start = time.time()

    processed = await asyncio.to_thread(preprocess, RawImage(image_bytes))
    logger.info("Preprocess: %d×%d, threshold=%d (%.0fms)",
                processed.width, processed.height, processed.threshold,
                (time.time() - start) * 1000)

    ocr = await extract_text(processed.to_image(), engine)
    if not ocr.text.strip():
        logger.warning("OCR (%s) returned no text", ocr.engine)

    receipt, validation = await analyze_transcript(ocr.text, vendor_hint)
    logger.info("Scan complete: %d items, valid=%s, review=%s (%.0fms total)",
                len(receipt.items), validation.is_valid, receipt.needs_review,
                (time.time() - start) * 1000)

    return ScanResult(
        receipt=receipt,
        validation=validation,
        preprocessing=PreprocessSummary(
            width=processed.width,
            height=processed.height,
            adjustments=list(processed.adjustments),
            threshold=processed.threshold,
        ),
        ocr_engine=ocr.engine,
        ocr_confidence=ocr.confidence,
    )
