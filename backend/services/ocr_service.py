"""
OCR Service — turns a preprocessed receipt image into a plain-text transcript.

Two engines:
  • tesseract — local pytesseract call (eng+fra by default, --psm 6), with a
                mean word confidence taken from image_to_data
  • vision    — Claude Vision transcribes the image verbatim; needs
                ANTHROPIC_API_KEY

The transcript is handed to the parser and validator untouched.  Any engine
problem (missing binary, missing key, API failure) raises ExternalServiceError
rather than returning an empty transcript.
"""
import asyncio
import base64
import io
import logging
import os
import re
import subprocess
from dataclasses import dataclass
from typing import Optional

import anthropic
from PIL import Image

logger = logging.getLogger("pantryscan.ocr")

try:
    import pytesseract
    OCR_AVAILABLE = True
except ImportError:
    OCR_AVAILABLE = False
    logger.warning("pytesseract not available — tesseract OCR disabled")

OCR_ENGINE = os.environ.get("OCR_ENGINE", "tesseract").strip().lower()
OCR_LANG = os.environ.get("OCR_LANG", "eng+fra")
OCR_VISION_MODEL = os.environ.get("OCR_VISION_MODEL", "claude-sonnet-4-5")

ENGINES = ("tesseract", "vision")
TESSERACT_CONFIG = "--psm 6"
VISION_MAX_DIMENSION = 1568   # Claude Vision's optimal long side
VISION_MAX_TOKENS = 4096

VISION_PROMPT = """Transcribe this grocery receipt exactly as printed, line by line.

Rules:
- One receipt line per output line, top to bottom.
- Copy item names, codes, abbreviations and prices character-for-character.
  Do NOT expand abbreviations, translate French, or fix spelling.
- Keep the decimal separator that is printed (12,49 stays 12,49).
- Keep trailing markers such as "-", "FP", "TPO/1234567".
- Output only the transcript: no commentary, no markdown."""


class ExternalServiceError(Exception):
    """Raised when an OCR engine is unavailable, misconfigured or fails."""
    pass


@dataclass(frozen=True)
class OcrResult:
    text: str
    confidence: Optional[float]   # 0..1, None when the engine gives no score
    engine: str


# ── Tesseract ─────────────────────────────────────────────────────────────────

def tesseract_version() -> Optional[str]:
    """First line of `tesseract --version`, or None when the binary is missing."""
    try:
        r = subprocess.run(["tesseract", "--version"], capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if r.returncode != 0:
        return None
    return (r.stdout or r.stderr).split("\n")[0].strip()


def _mean_confidence(data: dict) -> Optional[float]:
    """Average word confidence from image_to_data, scaled to 0..1."""
    scores = []
    for conf, word in zip(data.get("conf", []), data.get("text", [])):
        try:
            value = float(conf)
        except (TypeError, ValueError):
            continue
        # -1 marks layout rows (blocks, lines) rather than words
        if value >= 0 and str(word).strip():
            scores.append(value)
    if not scores:
        return None
    return round(sum(scores) / len(scores) / 100, 3)


def run_tesseract(image: Image.Image, lang: str = OCR_LANG) -> OcrResult:
    """Blocking Tesseract call; run it off the event loop."""
    if not OCR_AVAILABLE:
        raise ExternalServiceError("OCR dependencies not installed (pytesseract)")

    try:
        text = pytesseract.image_to_string(image, lang=lang, config=TESSERACT_CONFIG)
        data = pytesseract.image_to_data(
            image, lang=lang, config=TESSERACT_CONFIG,
            output_type=pytesseract.Output.DICT,
        )
    except Exception as e:
        raise ExternalServiceError(f"Tesseract OCR failed: {e}") from e

    return OcrResult(text=text.strip(), confidence=_mean_confidence(data), engine="tesseract")


# ── Claude Vision ─────────────────────────────────────────────────────────────

def _prepare_image_for_vision(image: Image.Image) -> bytes:
    """
    Resize so the long side is at most 1568px, then PNG-encode.
    Binarized receipts compress far better as PNG than JPEG and stay legible.
    """
    img = image
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    w, h = img.size
    long_side = max(w, h)
    if long_side > VISION_MAX_DIMENSION:
        scale = VISION_MAX_DIMENSION / long_side
        img = img.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.LANCZOS)
        logger.debug("Resized image %d×%d → %d×%d", w, h, img.size[0], img.size[1])

    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def _strip_fences(raw: str) -> str:
    raw = re.sub(r'^```[a-z]*\n?', '', raw.strip())
    return re.sub(r'\n?```$', '', raw).strip()


async def transcribe_with_vision(image: Image.Image) -> OcrResult:
    api_key = os.environ.get("ANTHROPIC_API_KEY", "")
    if not api_key:
        raise ExternalServiceError("ANTHROPIC_API_KEY is not set — vision OCR unavailable")

    png = _prepare_image_for_vision(image)
    b64 = base64.standard_b64encode(png).decode()
    logger.info("Sending %d KB b64 (image/png) to Claude Vision (%s)", len(b64) // 1024, OCR_VISION_MODEL)

    try:
        client = anthropic.AsyncAnthropic(api_key=api_key)
        message = await client.messages.create(
            model=OCR_VISION_MODEL,
            max_tokens=VISION_MAX_TOKENS,
            messages=[{
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {"type": "base64", "media_type": "image/png", "data": b64},
                    },
                    {"type": "text", "text": VISION_PROMPT},
                ],
            }],
        )
    except anthropic.APIError as e:
        raise ExternalServiceError(f"Claude Vision request failed: {e}") from e

    text = "\n".join(
        block.text for block in message.content if getattr(block, "type", None) == "text"
    )
    return OcrResult(text=_strip_fences(text), confidence=None, engine="vision")


# ── Entry point ───────────────────────────────────────────────────────────────

async def extract_text(image: Image.Image, engine: Optional[str] = None) -> OcrResult:
    """Transcribe `image` with the requested engine (default: OCR_ENGINE)."""
    engine = (engine or OCR_ENGINE).strip().lower()
    if engine == "tesseract":
        result = await asyncio.to_thread(run_tesseract, image)
    elif engine == "vision":
        result = await transcribe_with_vision(image)
    else:
        raise ExternalServiceError(
            f"Unknown OCR engine {engine!r} (expected one of: {', '.join(ENGINES)})"
        )

    logger.info("OCR (%s): %d chars, confidence=%s",
                result.engine, len(result.text), result.confidence)
    return result
