# src/extraction/pdf_extractor.py
"""PDF text extractor using PyMuPDF (fitz).

Returns the concatenated page text and the page count. Payloads that do
not carry the ``%PDF`` magic bytes are treated as UTF-8 plain text so that
text uploads flow through the same stage.
Requires the 'pymupdf' package.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


class PdfText(BaseModel):
    """Raw text pulled out of a document binary."""

    text: str
    page_count: int


class PdfExtractionError(Exception):
    """Raised when a binary cannot be parsed as a PDF."""


class PdfTextExtractor:
    """Extract plain text and page count from PDF bytes."""

    async def extract(self, content: bytes | Path) -> PdfText:
        """Parse the document off the event loop."""
        if isinstance(content, Path):
            content = content.read_bytes()
        if not content.lstrip()[:4].startswith(PDF_MAGIC):
            logger.debug("Payload is not a PDF, reading as plain text")
            return PdfText(text=content.decode("utf-8", errors="replace"), page_count=1)
        return await asyncio.to_thread(self._extract_pdf, content)

    @staticmethod
    def _extract_pdf(content: bytes) -> PdfText:
        try:
            import fitz  # PyMuPDF
        except ImportError as e:
            raise ImportError(
                "pymupdf package required for PDF extraction: pip install pymupdf"
            ) from e

        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except Exception as e:
            raise PdfExtractionError(f"Invalid PDF structure: {e}") from e

        try:
            if doc.needs_pass:
                raise PdfExtractionError("PDF is encrypted and requires a password")
            parts = [page.get_text("text") for page in doc]
            page_count = len(doc)
        finally:
            doc.close()

        text = "\n".join(parts).strip()
        logger.debug("Parsed %d pages, %d chars", page_count, len(text))
        return PdfText(text=text, page_count=page_count)
