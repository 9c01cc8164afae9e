from __future__ import annotations

import logging
from io import BytesIO

from pypdf import PdfReader

logger = logging.getLogger(__name__)


class PdfExtractionError(Exception):
    """Raised when a PDF cannot be opened or read."""


def extract_text(data: bytes) -> str:
    """Concatenate the text layer of every page, one page per line."""

    if not data:
        raise PdfExtractionError("The PDF file is empty")
    try:
        reader = PdfReader(BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as exc:
        logger.warning("PDF text extraction failed: %s", exc)
        raise PdfExtractionError("PDF text could not be extracted") from exc
    return "\n".join(text.strip() for text in pages if text.strip())
