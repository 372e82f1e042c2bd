"""
On-device OCR using Tesseract.

Install:
    sudo apt install tesseract-ocr
    pip install pytesseract pillow
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

# Check if tesseract is available
try:
    import pytesseract
    TESSERACT_AVAILABLE = True
except ImportError:
    TESSERACT_AVAILABLE = False
    logger.warning("pytesseract not installed. Run: pip install pytesseract")


@dataclass
class OCRResult:
    """Text recognized in one image."""
    text: str
    confidence: float = 0.0  # Mean word confidence, 0-100


def preprocess_image(image_bytes: bytes) -> Image.Image:
    """
    Prepare a screenshot or photo of a price sheet for OCR.

    Converts to RGB (handles RGBA, palette, grayscale), then to grayscale
    with auto-contrast, which helps Tesseract on low-contrast screenshots.
    """
    image = Image.open(io.BytesIO(image_bytes))
    if image.mode != "RGB":
        image = image.convert("RGB")
    return ImageOps.autocontrast(ImageOps.grayscale(image))


def _mean_confidence(data: dict) -> float:
    scores = []
    for value in data.get("conf", []):
        try:
            score = float(value)
        except (TypeError, ValueError):
            continue
        if score >= 0:  # -1 marks non-word boxes
            scores.append(score)
    return sum(scores) / len(scores) if scores else 0.0


def ocr_image(image_bytes: bytes, lang: str = "eng") -> Optional[OCRResult]:
    """
    Extract text from image using Tesseract OCR.

    Args:
        image_bytes: Raw image bytes (JPEG, PNG, etc.)
        lang: Tesseract language code

    Returns:
        OCRResult or None if OCR is unavailable or fails
    """
    if not TESSERACT_AVAILABLE:
        logger.error("Tesseract not available")
        return None

    try:
        image = preprocess_image(image_bytes)

        text = pytesseract.image_to_string(image, lang=lang)
        data = pytesseract.image_to_data(image, lang=lang, output_type=pytesseract.Output.DICT)

        return OCRResult(text=text or "", confidence=_mean_confidence(data))

    except Exception as e:
        logger.error(f"OCR error: {e}")
        return None
