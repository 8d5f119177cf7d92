"""OCR engine — Tesseract integration producing the token stream for a page."""

from __future__ import annotations

import io
import logging
import shutil
from pathlib import Path

from scanredact.config import config
from scanredact.exceptions import OCRUnavailableError
from scanredact.models.schemas import OCRPage, Rect, Token

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/tiff",
    "image/bmp",
    "image/webp",
    "image/gif",
})

_tesseract_available: bool | None = None


def _check_tesseract() -> bool:
    """Check if Tesseract is available on the system."""
    global _tesseract_available
    if _tesseract_available is not None:
        return _tesseract_available

    try:
        import pytesseract

        if config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = config.tesseract_cmd
        elif shutil.which("tesseract") is None:
            # Try common Windows install path
            common_paths = [
                r"C:\Program Files\Tesseract-OCR\tesseract.exe",
                r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
            ]
            for p in common_paths:
                if Path(p).exists():
                    pytesseract.pytesseract.tesseract_cmd = p
                    break

        # Test it works
        pytesseract.get_tesseract_version()
        _tesseract_available = True
        logger.info("Tesseract OCR is available")
    except Exception as e:
        logger.warning(f"Tesseract OCR not available: {e}")
        _tesseract_available = False

    return _tesseract_available


def is_ocr_available() -> bool:
    return _check_tesseract()


def ocr_page_image(
    image_bytes: bytes,
    mime_type: str = "image/png",
    page_index: int = 0,
) -> OCRPage:
    """
    Run OCR on one page bitmap.

    Tokens are returned in Tesseract reading order (block, paragraph,
    line, word) with pixel bounding boxes in the image's own space.
    ``full_text`` joins the words of a line with a space and lines with
    ``\\n``, so its word order matches the token order.

    Raises:
        OCRUnavailableError: Tesseract or its bindings are missing.
        ValueError: *mime_type* is not a supported raster format.
    """
    if mime_type.lower() not in SUPPORTED_MIME_TYPES:
        raise ValueError(f"Unsupported image type: {mime_type}")
    if not _check_tesseract():
        raise OCRUnavailableError("Tesseract OCR is not installed or not on PATH")

    import pytesseract
    from PIL import Image

    try:
        img = Image.open(io.BytesIO(image_bytes))
    except OSError as e:
        raise ValueError(f"Cannot decode image: {e}") from e
    data = pytesseract.image_to_data(
        img,
        lang=config.ocr_language,
        output_type=pytesseract.Output.DICT,
    )

    tokens: list[Token] = []
    lines: list[list[str]] = []
    current_line: tuple[int, int, int] | None = None

    for i in range(len(data["text"])):
        text = str(data["text"][i]).strip()
        conf = float(data["conf"][i])

        # Skip empty / low-confidence entries
        if not text or conf < config.ocr_min_confidence:
            continue

        line_key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        if line_key != current_line:
            lines.append([])
            current_line = line_key
        lines[-1].append(text)

        tokens.append(Token(
            text=text,
            confidence=min(1.0, conf / 100.0),
            bbox=Rect(
                x=float(data["left"][i]),
                y=float(data["top"][i]),
                w=float(data["width"][i]),
                h=float(data["height"][i]),
            ),
            page_index=page_index,
        ))

    full_text = "\n".join(" ".join(words) for words in lines)
    logger.info(f"OCR extracted {len(tokens)} words on page {page_index}")
    return OCRPage(page_index=page_index, tokens=tokens, full_text=full_text)
