# tests/unit/extraction/test_unit_pdf_extractor.py
"""Tests for extraction/pdf_extractor.py using PDFs generated with PyMuPDF."""

from __future__ import annotations

import fitz
import pytest

from budgetdigest.extraction.pdf_extractor import PdfExtractionError, PdfTextExtractor


def _pdf(pages: list[str], **save_kwargs) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes(**save_kwargs)
    doc.close()
    return data


class TestPdfTextExtractor:
    @pytest.mark.asyncio
    async def test_extracts_text_and_pages(self):
        content = _pdf(["Budget overview", "Health allocation"])
        result = await PdfTextExtractor().extract(content)
        assert result.page_count == 2
        assert "Budget overview" in result.text
        assert "Health allocation" in result.text

    @pytest.mark.asyncio
    async def test_blank_pdf_yields_empty_text(self):
        result = await PdfTextExtractor().extract(_pdf(["", ""]))
        assert result.text == ""
        assert result.page_count == 2

    @pytest.mark.asyncio
    async def test_encrypted(self):
        content = _pdf(
            ["secret"],
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw="owner",
            user_pw="user",
        )
        with pytest.raises(PdfExtractionError, match="encrypted"):
            await PdfTextExtractor().extract(content)

    @pytest.mark.asyncio
    async def test_corrupt(self):
        with pytest.raises(PdfExtractionError, match="Invalid PDF structure"):
            await PdfTextExtractor().extract(b"%PDF-1.7\nnot really a pdf at all")

    @pytest.mark.asyncio
    async def test_plain_text_passthrough(self):
        result = await PdfTextExtractor().extract("Plain budget note.".encode())
        assert result.text == "Plain budget note."
        assert result.page_count == 1

    @pytest.mark.asyncio
    async def test_reads_path(self, tmp_path):
        path = tmp_path / "budget.pdf"
        path.write_bytes(_pdf(["From disk"]))
        result = await PdfTextExtractor().extract(path)
        assert "From disk" in result.text
