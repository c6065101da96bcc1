from __future__ import annotations

from dataclasses import dataclass

import pypdfium2 as pdfium


@dataclass
class PDFDescriptor:
    size_bytes: int
    page_count: int


def _open(data: bytes) -> pdfium.PdfDocument:
    try:
        return pdfium.PdfDocument(data)
    except pdfium.PdfiumError as exc:
        raise ValueError(f"Unreadable PDF document: {exc}") from exc


def describe_pdf(data: bytes) -> PDFDescriptor:
    document = _open(data)
    try:
        return PDFDescriptor(size_bytes=len(data), page_count=len(document))
    finally:
        document.close()


def extract_page_text(data: bytes, page_index: int) -> str:
    document = _open(data)
    try:
        if page_index < 0 or page_index >= len(document):
            raise IndexError(f"Page {page_index + 1} out of range (1-{len(document)})")
        page = document[page_index]
        textpage = page.get_textpage()
        try:
            return textpage.get_text_range().strip()
        finally:
            textpage.close()
            page.close()
    finally:
        document.close()
