"""Text recognition for photographed product labels."""

from __future__ import annotations

import os
from typing import Any, List, Optional

from ..errors import OcrError
from ..logging import get_logger

LOG = get_logger("label-ocr")

# Single uniform block of text; labels are short and mostly one column.
TESSERACT_CONFIG = "--oem 3 --psm 6"


def _read_image(path: str) -> Any:
    """Load image as BGR honoring EXIF orientation (phone photos are often rotated)."""
    import cv2
    import numpy as np
    from PIL import Image, ImageOps

    try:
        with Image.open(path) as im:
            im = ImageOps.exif_transpose(im)
            return cv2.cvtColor(np.array(im.convert("RGB")), cv2.COLOR_RGB2BGR)
    except OSError as exc:
        LOG.debug(f"Pillow could not open {path}: {exc}; falling back to OpenCV")
    data = np.fromfile(path, dtype=np.uint8)
    img = cv2.imdecode(data, cv2.IMREAD_COLOR)
    if img is None:
        raise OcrError(f"Could not read image: {path}")
    return img


def preprocess_label_image(path: str) -> List[Any]:
    """Return OCR-ready variants of the label: enhanced grayscale and a binarized copy.

    Grayscale -> bilateral denoise -> CLAHE contrast -> upscale small images ->
    adaptive threshold. Tesseract sometimes does better on the grayscale
    variant (embossed or dot-matrix prints), so both are returned.
    """
    import cv2

    img = _read_image(path)
    gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    gray = cv2.bilateralFilter(gray, 7, 60, 60)
    clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
    gray = clahe.apply(gray)

    h, w = gray.shape[:2]
    if max(h, w) < 1500:
        gray = cv2.resize(gray, (w * 2, h * 2), interpolation=cv2.INTER_CUBIC)

    th = cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 31, 10
    )
    return [gray, th]


def recognize_text(path: str, *, tesseract_cmd: Optional[str] = None) -> str:
    """Run Tesseract over the preprocessed label and return all recognized text.

    Text from every variant is joined with newlines; the date extractor works
    on the whole pool anyway.
    """
    if not os.path.isfile(path):
        raise OcrError(f"Image not found: {path}")
    try:
        import pytesseract
    except ImportError as exc:
        raise OcrError(f"pytesseract is required for label scanning: {exc}") from exc
    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    try:
        variants = preprocess_label_image(path)
    except ImportError as exc:
        raise OcrError(f"OpenCV/Pillow are required for label scanning: {exc}") from exc

    chunks: List[str] = []
    for idx, variant in enumerate(variants):
        try:
            text = pytesseract.image_to_string(variant, config=TESSERACT_CONFIG) or ""
        except pytesseract.TesseractError as exc:
            LOG.warning(f"Tesseract failed on variant {idx}: {exc}")
            continue
        except pytesseract.TesseractNotFoundError as exc:
            raise OcrError(str(exc)) from exc
        text = text.strip()
        LOG.info(f"Variant {idx} recognized (chars={len(text)})")
        if text:
            chunks.append(text)
    return "\n".join(chunks)
