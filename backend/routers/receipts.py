"""
Receipts Router

POST /api/receipts/preprocess  — upload image, return the cleaned-up PNG
POST /api/receipts/parse       — parse + validate an OCR transcript
POST /api/receipts/validate    — validate an OCR transcript only
POST /api/receipts/scan        — upload image, preprocess → OCR → parse + validate
"""
import asyncio
import logging
import os
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from models.schemas import (
    AnalysisResult,
    ParseRequest,
    ScanResult,
    ValidateRequest,
    ValidationResult,
)
from services.ocr_service import ENGINES, ExternalServiceError
from services.pipeline_service import analyze_transcript, scan_receipt
from services.preprocess_service import DecodeError, RawImage, preprocess
from services.validation_service import validate_receipt_text

logger = logging.getLogger("pantryscan.receipts")
router = APIRouter()

MAX_UPLOAD_MB = float(os.environ.get("MAX_UPLOAD_MB", "20"))


async def _read_upload(file: UploadFile) -> bytes:
    contents = await file.read()
    if len(contents) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"Image too large ({len(contents) // 1024} KB); limit is {MAX_UPLOAD_MB:g} MB",
        )
    logger.debug("Received %s (%s, %d KB)", file.filename, file.content_type, len(contents) // 1024)
    return contents


# ── Image ─────────────────────────────────────────────────────────────────────

@router.post("/preprocess")
async def preprocess_receipt_image(file: UploadFile = File(...)):
    """Return the binarized PNG that would be sent to OCR."""
    contents = await _read_upload(file)
    try:
        processed = await asyncio.to_thread(preprocess, RawImage(contents))
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))

    png = await asyncio.to_thread(processed.to_png)
    return Response(
        content=png,
        media_type="image/png",
        headers={
            "X-Adjustments": ",".join(processed.adjustments),
            "X-Threshold": str(processed.threshold),
        },
    )


@router.post("/scan", response_model=ScanResult)
async def scan_receipt_image(
    file: UploadFile = File(...),
    vendor_hint: Optional[str] = Form(None),
    engine: Optional[str] = Form(None),
):
    """
    Run the full pipeline on an uploaded photo.  Nothing is stored; the
    client shows the result on its review screen.
    """
    if engine and engine.strip().lower() not in ENGINES:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown OCR engine {engine!r} (expected one of: {', '.join(ENGINES)})",
        )
    contents = await _read_upload(file)
    try:
        return await scan_receipt(contents, vendor_hint=vendor_hint, engine=engine)
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ExternalServiceError as e:
        logger.error("OCR failed: %s", e)
        raise HTTPException(status_code=502, detail=f"OCR failed: {e}")


# ── Text ──────────────────────────────────────────────────────────────────────

@router.post("/parse", response_model=AnalysisResult)
async def parse_transcript(body: ParseRequest):
    receipt, validation = await analyze_transcript(body.text, body.vendor_hint)
    return AnalysisResult(receipt=receipt, validation=validation)


@router.post("/validate", response_model=ValidationResult)
async def validate_transcript(body: ValidateRequest):
    return validate_receipt_text(body.text)
