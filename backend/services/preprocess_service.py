"""
Image preprocessing — turns a phone photo of a receipt into a clean black and
white bitmap for OCR.

Steps (each one appends a label to PreprocessedImage.adjustments):
  1. Downscale so neither side exceeds 2000 px              "Resized"
  2. Channel-average grayscale + 1.3× contrast around 128   "Grayscale+Contrast"
  3. 3×3 sharpen, clamp-to-edge borders                     "Sharpened"
  4. Otsu binarization                                      "Thresholded"

Pixel work is done on numpy arrays; Pillow handles decoding and resizing.
"""
import io
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger("pantryscan.preprocess")

# Register HEIC/HEIF support via pillow-heif if available
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    HEIF_AVAILABLE = True
except ImportError:
    HEIF_AVAILABLE = False
    logger.info("pillow-heif not installed — HEIC files will not be supported")

MAX_DIMENSION = 2000
CONTRAST_GAIN = 1.3
CONTRAST_MIDPOINT = 128.0
SHARPEN_KERNEL = np.array(
    [[0, -1, 0],
     [-1, 5, -1],
     [0, -1, 0]],
    dtype=np.int32,
)

LABEL_RESIZED = "Resized"
LABEL_GRAYSCALE = "Grayscale+Contrast"
LABEL_SHARPENED = "Sharpened"
LABEL_THRESHOLDED = "Thresholded"

_RAW_MODES = {1: "L", 3: "RGB", 4: "RGBA"}


class DecodeError(Exception):
    """Raised when the input bytes cannot be interpreted as an image."""
    pass


@dataclass(frozen=True)
class RawImage:
    """Input bytes: an encoded image file, or raw interleaved pixels.

    Raw pixels need width and height; the channel count (1, 3 or 4) is
    inferred from the buffer length.  For encoded files the declared
    dimensions are informational only.
    """
    data: bytes
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class PreprocessedImage:
    pixels: bytes                   # row-major grayscale, one byte per pixel
    width: int
    height: int
    adjustments: tuple[str, ...]
    threshold: int
    channels: int = 1

    def pixel(self, row: int, col: int, channel: int = 0) -> int:
        return self.pixels[(row * self.width + col) * self.channels + channel]

    def to_array(self) -> np.ndarray:
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width)

    def to_image(self) -> Image.Image:
        return Image.frombytes("L", (self.width, self.height), self.pixels)

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self.to_image().save(buf, format="PNG", optimize=True)
        return buf.getvalue()


# ── Decoding ──────────────────────────────────────────────────────────────────

def _decode_raw(raw: RawImage) -> Optional[Image.Image]:
    """Interpret raw.data as interleaved pixels when the size adds up."""
    if not raw.width or not raw.height or raw.width < 0 or raw.height < 0:
        return None
    area = raw.width * raw.height
    if len(raw.data) % area:
        return None
    mode = _RAW_MODES.get(len(raw.data) // area)
    if mode is None:
        return None
    return Image.frombytes(mode, (raw.width, raw.height), raw.data)


def decode_image(raw: RawImage) -> Image.Image:
    """Decode to an RGB Pillow image, or raise DecodeError."""
    if not raw.data:
        raise DecodeError("Empty image data")

    try:
        img = Image.open(io.BytesIO(raw.data))
        img.load()
        # Phone photos are often rotated in EXIF metadata only
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        img = _decode_raw(raw)
        if img is None:
            msg = str(e)
            if ("heif" in msg.lower() or "heic" in msg.lower()) and not HEIF_AVAILABLE:
                raise DecodeError("HEIC/HEIF files require pillow-heif") from e
            raise DecodeError(f"Cannot decode image: {msg}") from e
        logger.debug("Decoded %d bytes as raw %s pixels", len(raw.data), img.mode)

    if img.width == 0 or img.height == 0:
        raise DecodeError("Image has zero width or height")
    if raw.width and raw.height and img.size != (raw.width, raw.height):
        logger.debug("Declared size %dx%d differs from decoded %dx%d",
                     raw.width, raw.height, img.width, img.height)
    return img.convert("RGB")


# ── Pixel operations ──────────────────────────────────────────────────────────

def fit_within(width: int, height: int, max_dim: int = MAX_DIMENSION) -> tuple[int, int]:
    """Scale (width, height) so the long side is max_dim; unchanged if it fits."""
    if width <= max_dim and height <= max_dim:
        return width, height
    if width >= height:
        return max_dim, max(1, round(height * max_dim / width))
    return max(1, round(width * max_dim / height)), max_dim


def to_grayscale_contrast(rgb: np.ndarray) -> np.ndarray:
    """Average the three channels, then stretch contrast around mid-gray."""
    gray = rgb[..., :3].astype(np.float64).mean(axis=2)
    enhanced = (gray - CONTRAST_MIDPOINT) * CONTRAST_GAIN + CONTRAST_MIDPOINT
    return np.rint(np.clip(enhanced, 0, 255)).astype(np.uint8)


def convolve3x3(gray: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """3×3 convolution; pixels outside the image take the nearest edge value."""
    padded = np.pad(gray.astype(np.int32), 1, mode="edge")
    h, w = gray.shape
    out = np.zeros((h, w), dtype=np.int32)
    for ky in range(3):
        for kx in range(3):
            weight = int(kernel[ky, kx])
            if weight:
                out += weight * padded[ky:ky + h, kx:kx + w]
    return np.clip(out, 0, 255).astype(np.uint8)


def sharpen(gray: np.ndarray) -> np.ndarray:
    return convolve3x3(gray, SHARPEN_KERNEL)


def otsu_threshold(gray: np.ndarray) -> int:
    """
    Otsu's method: pick the threshold t maximising the between-class variance
    wB·wF·(meanB − meanF)², where "background" is every level ≤ t.

    Weights and sums are accumulated with cumulative sums over the 256-bin
    histogram.  The first maximum wins; a single-level image gives 0.
    """
    hist = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    levels = np.arange(256, dtype=np.float64)
    total = hist.sum()

    w_b = np.cumsum(hist)
    w_f = total - w_b
    sum_b = np.cumsum(levels * hist)
    sum_all = sum_b[-1]

    valid = (w_b > 0) & (w_f > 0)
    if not valid.any():
        return 0
    with np.errstate(divide="ignore", invalid="ignore"):
        mean_b = sum_b / w_b
        mean_f = (sum_all - sum_b) / w_f
        variance = w_b * w_f * (mean_b - mean_f) ** 2
    variance = np.where(valid, variance, 0.0)
    return int(np.argmax(variance))


def binarize(gray: np.ndarray, threshold: int) -> np.ndarray:
    return np.where(gray > threshold, 255, 0).astype(np.uint8)


# ── Entry point ───────────────────────────────────────────────────────────────

def preprocess(raw: RawImage) -> PreprocessedImage:
    """Run the full preprocessing chain.  Raises DecodeError on bad input."""
    img = decode_image(raw)
    adjustments: list[str] = []

    w, h = img.size
    new_size = fit_within(w, h)
    if new_size != (w, h):
        img = img.resize(new_size, Image.LANCZOS)
        adjustments.append(LABEL_RESIZED)
        logger.debug("Resized image %d×%d → %d×%d", w, h, *new_size)

    gray = to_grayscale_contrast(np.asarray(img))
    adjustments.append(LABEL_GRAYSCALE)

    gray = sharpen(gray)
    adjustments.append(LABEL_SHARPENED)

    threshold = otsu_threshold(gray)
    bw = binarize(gray, threshold)
    adjustments.append(LABEL_THRESHOLDED)

    height, width = bw.shape
    logger.info("Preprocessed %d×%d image (threshold=%d, steps=%s)",
                width, height, threshold, ", ".join(adjustments))
    return PreprocessedImage(
        pixels=bw.tobytes(),
        width=width,
        height=height,
        adjustments=tuple(adjustments),
        threshold=threshold,
    )
