from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import time

from routers import receipts, health_score
from services.ocr_service import OCR_ENGINE, OCR_LANG, tesseract_version
from services.reference_data import load_reference_tables

VERSION = "0.1.0"

# ── Logging setup ─────────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
# Quiet noisy libraries unless we're in DEBUG
if LOG_LEVEL != "DEBUG":
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

logger = logging.getLogger("pantryscan")

SLOW_REQUEST_MS = 2000

app = FastAPI(
    title="Pantry Scan — Grocery Receipt Scanner",
    description="Receipt photo → OCR → categorized items with expiry estimates",
    version=VERSION,
)

_cors_origins = os.environ.get("CORS_ORIGINS", "").strip()
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins.split(",") if _cors_origins else ["*"],
    allow_credentials=bool(_cors_origins),  # only send credentials when origins are explicit
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(receipts.router,     prefix="/api/receipts",     tags=["receipts"])
app.include_router(health_score.router, prefix="/api/health-score", tags=["health"])


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    elapsed = (time.time() - start) * 1000
    if LOG_LEVEL == "DEBUG" or response.status_code >= 400 or elapsed > SLOW_REQUEST_MS:
        logger.log(
            logging.WARNING if response.status_code >= 400 or elapsed > SLOW_REQUEST_MS
            else logging.DEBUG,
            "%s %s → %s (%.0fms)",
            request.method, request.url.path, response.status_code, elapsed,
        )
    return response


@app.on_event("startup")
async def on_startup():
    tables = load_reference_tables()
    logger.info("Starting Pantry Scan v%s  LOG_LEVEL=%s  OCR=%s (%s)  catalog=%s",
                VERSION, LOG_LEVEL, OCR_ENGINE, OCR_LANG, tables.version)


@app.get("/api/health")
async def health():
    return {
        "status": "ok",
        "version": VERSION,
        "catalog_version": load_reference_tables().version,
    }


@app.get("/api/diagnose")
async def diagnose():
    """Check that all OCR dependencies are working inside the container."""
    results = {}

    # Tesseract binary
    version = tesseract_version()
    if version:
        results["tesseract"] = {"ok": True, "version": version}
    else:
        results["tesseract"] = {"ok": False, "error": "tesseract binary not found in PATH"}

    # pytesseract
    try:
        import pytesseract  # noqa: F401
        results["pytesseract"] = {"ok": True, "languages": OCR_LANG}
    except ImportError as e:
        results["pytesseract"] = {"ok": False, "error": str(e)}

    # Pillow / numpy
    try:
        import PIL
        results["pillow"] = {"ok": True, "version": PIL.__version__}
    except ImportError as e:
        results["pillow"] = {"ok": False, "error": str(e)}
    try:
        import numpy
        results["numpy"] = {"ok": True, "version": numpy.__version__}
    except ImportError as e:
        results["numpy"] = {"ok": False, "error": str(e)}

    # HEIC/HEIF support
    try:
        from pillow_heif import register_heif_opener  # noqa: F401
        results["heic_support"] = {"ok": True}
    except ImportError:
        results["heic_support"] = {"ok": False, "error": "pillow-heif not installed — HEIC files unsupported"}

    # Anthropic key: report presence only, never key material
    key = os.environ.get("ANTHROPIC_API_KEY", "")
    results["anthropic_key"] = {
        "ok": bool(key and key.startswith("sk-")),
        "set": bool(key),
    }

    return {
        "all_ok": all(v.get("ok") for k, v in results.items() if k not in ("heic_support", "anthropic_key")),
        "ocr_engine": OCR_ENGINE,
        "checks": results,
    }
