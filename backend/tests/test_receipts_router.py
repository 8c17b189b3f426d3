"""
Tests for the receipts router — preprocess, parse, validate and scan endpoints.

OCR is patched at the pipeline seam, so scan tests exercise real
preprocessing, parsing and validation without tesseract or network access.
"""
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from services.ocr_service import ExternalServiceError, OcrResult

TRANSCRIPT = (
    "COSTCO\n2024-01-15\nMILK 2% 4.99\nBANANES 1 x 2.50 2.50\n"
    "RABAIS -1.00\nSOUS-TOTAL 6.49\nTOTAL 6.49"
)


# ── Fixture ──────────────────────────────────────────────────────────────────

@pytest.fixture
def app():
    from fastapi import FastAPI
    from routers.receipts import router

    test_app = FastAPI()
    test_app.include_router(router, prefix="/api/receipts")
    return test_app


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c


# ── POST /api/receipts/parse ─────────────────────────────────────────────────

class TestParse:

    @pytest.mark.asyncio
    async def test_parses_transcript(self, client):
        resp = await client.post("/api/receipts/parse", json={"text": TRANSCRIPT})

        assert resp.status_code == 200
        data = resp.json()
        receipt = data["receipt"]
        assert receipt["vendor"] == "COSTCO"
        assert receipt["date"] == "2024-01-15"
        assert receipt["needs_review"] is False
        assert [i["name"] for i in receipt["items"]] == ["MILK 2%", "BANANES"]
        assert receipt["items"][0]["estimated_expiry_date"] == "2024-01-22"
        assert receipt["discounts"] == [{"label": "RABAIS", "amount": -1.0}]
        assert data["validation"]["is_valid"] is True

    @pytest.mark.asyncio
    async def test_vendor_hint(self, client):
        resp = await client.post("/api/receipts/parse",
                                 json={"text": "BREAD 5.00", "vendor_hint": "Maxi"})
        assert resp.json()["receipt"]["vendor"] == "Maxi"

    @pytest.mark.asyncio
    async def test_garbage_text_is_data_not_error(self, client):
        resp = await client.post("/api/receipts/parse", json={"text": "xyz"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["receipt"]["needs_review"] is True
        assert data["validation"]["is_valid"] is False

    @pytest.mark.asyncio
    async def test_missing_text(self, client):
        resp = await client.post("/api/receipts/parse", json={})
        assert resp.status_code == 422


# ── POST /api/receipts/validate ──────────────────────────────────────────────

class TestValidate:

    @pytest.mark.asyncio
    async def test_low_quality(self, client):
        resp = await client.post("/api/receipts/validate", json={"text": "xyz"})

        assert resp.status_code == 200
        data = resp.json()
        codes = [i["code"] for i in data["issues"]]
        assert "LOW_QUALITY" in codes
        assert "NO_PRICES" in codes
        assert data["is_valid"] is False
        assert data["detected_language"] == "eng"

    @pytest.mark.asyncio
    async def test_restaurant(self, client):
        text = "SERVER: JOHN\nBURGER 12.99\nGRATUITY 2.00\nTOTAL 14.99"
        resp = await client.post("/api/receipts/validate", json={"text": text})
        assert "NON_GROCERY" in [i["code"] for i in resp.json()["issues"]]


# ── POST /api/receipts/preprocess ────────────────────────────────────────────

class TestPreprocess:

    @pytest.mark.asyncio
    async def test_returns_png(self, client, receipt_png):
        resp = await client.post(
            "/api/receipts/preprocess",
            files={"file": ("receipt.png", receipt_png, "image/png")},
        )

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.content[:4] == b"\x89PNG"
        assert resp.headers["x-adjustments"] == "Grayscale+Contrast,Sharpened,Thresholded"
        assert resp.headers["x-threshold"].isdigit()

    @pytest.mark.asyncio
    async def test_undecodable_upload(self, client):
        resp = await client.post(
            "/api/receipts/preprocess",
            files={"file": ("receipt.jpg", b"not an image", "image/jpeg")},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_upload_too_large(self, client):
        with patch("routers.receipts.MAX_UPLOAD_MB", 0.001):
            resp = await client.post(
                "/api/receipts/preprocess",
                files={"file": ("receipt.jpg", b"x" * 4096, "image/jpeg")},
            )
        assert resp.status_code == 413


# ── POST /api/receipts/scan ──────────────────────────────────────────────────

class TestScan:

    @pytest.mark.asyncio
    async def test_scan(self, client, receipt_png):
        ocr = OcrResult(text=TRANSCRIPT, confidence=0.88, engine="tesseract")
        with patch("services.pipeline_service.extract_text",
                   new_callable=AsyncMock, return_value=ocr):
            resp = await client.post(
                "/api/receipts/scan",
                files={"file": ("receipt.png", receipt_png, "image/png")},
            )

        assert resp.status_code == 200
        data = resp.json()
        assert data["ocr_engine"] == "tesseract"
        assert data["ocr_confidence"] == 0.88
        assert data["preprocessing"]["width"] == 40
        assert data["receipt"]["total"] == 6.49
        assert len(data["receipt"]["items"]) == 2
        assert data["validation"]["is_valid"] is True

    @pytest.mark.asyncio
    async def test_form_fields_forwarded(self, client, receipt_png):
        ocr = OcrResult(text="BREAD 5.00", confidence=None, engine="vision")
        with patch("services.pipeline_service.extract_text",
                   new_callable=AsyncMock, return_value=ocr) as mock_ocr:
            resp = await client.post(
                "/api/receipts/scan",
                files={"file": ("receipt.png", receipt_png, "image/png")},
                data={"vendor_hint": "Provigo", "engine": "vision"},
            )

        assert resp.status_code == 200
        assert resp.json()["receipt"]["vendor"] == "Provigo"
        assert mock_ocr.call_args.args[1] == "vision"

    @pytest.mark.asyncio
    async def test_ocr_unavailable(self, client, receipt_png):
        with patch("services.pipeline_service.extract_text",
                   new_callable=AsyncMock,
                   side_effect=ExternalServiceError("tesseract binary not found")):
            resp = await client.post(
                "/api/receipts/scan",
                files={"file": ("receipt.png", receipt_png, "image/png")},
            )

        assert resp.status_code == 502
        assert "tesseract binary not found" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_engine_rejected(self, client, receipt_png):
        with patch("services.pipeline_service.extract_text",
                   new_callable=AsyncMock) as mock_ocr:
            resp = await client.post(
                "/api/receipts/scan",
                files={"file": ("receipt.png", receipt_png, "image/png")},
                data={"engine": "paddle"},
            )

        assert resp.status_code == 422
        assert "paddle" in resp.json()["detail"]
        mock_ocr.assert_not_called()

    @pytest.mark.asyncio
    async def test_undecodable_upload(self, client):
        resp = await client.post(
            "/api/receipts/scan",
            files={"file": ("receipt.heic", b"\x00\x01\x02", "image/heic")},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_file(self, client):
        resp = await client.post("/api/receipts/scan")
        assert resp.status_code == 422
