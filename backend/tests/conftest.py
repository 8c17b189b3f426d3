"""
Shared fixtures for backend tests.

Nothing here touches the network or the tesseract binary: images are built
in memory with Pillow/numpy, and the parser gets a fixed clock so expiry
dates are deterministic when a receipt carries no date.
"""
import datetime as dt
import io

import numpy as np
import pytest
from PIL import Image

from services.parse_service import ReceiptParser
from services.reference_data import load_reference_tables

FIXED_TODAY = dt.date(2025, 3, 1)


@pytest.fixture
def tables():
    return load_reference_tables()


@pytest.fixture
def today():
    return FIXED_TODAY


@pytest.fixture
def parser(tables):
    """Receipt parser whose "today" is always FIXED_TODAY."""
    return ReceiptParser(tables, clock=lambda: FIXED_TODAY)


@pytest.fixture
def make_png():
    """Factory: encode a numpy array (H×W gray or H×W×3 RGB) as PNG bytes."""
    def _make(pixels: np.ndarray) -> bytes:
        pixels = np.asarray(pixels, dtype=np.uint8)
        buf = io.BytesIO()
        Image.fromarray(pixels).save(buf, format="PNG")
        return buf.getvalue()
    return _make


@pytest.fixture
def receipt_png(make_png):
    """A small two-tone "receipt": dark text stripes on a light background."""
    pixels = np.full((60, 40), 220, dtype=np.uint8)
    pixels[10:14, 5:35] = 30
    pixels[30:34, 5:35] = 30
    return make_png(pixels)
