import pytest

from examnest.core import pdf_tools


class _TextPage:
    def __init__(self, text: str):
        self.text = text
        self.closed = False

    def get_text_range(self) -> str:
        return self.text

    def close(self) -> None:
        self.closed = True


class _Page:
    def __init__(self, text: str):
        self.textpage = _TextPage(text)

    def get_textpage(self) -> _TextPage:
        return self.textpage

    def close(self) -> None:
        pass


class _Document:
    instances: list["_Document"] = []

    def __init__(self, data: bytes):
        if not data.startswith(b"%PDF-"):
            raise pdf_tools.pdfium.PdfiumError("Failed to load document")
        self.pages = [_Page("  Unit 1: Kinematics \n"), _Page("")]
        self.closed = False
        _Document.instances.append(self)

    def __len__(self) -> int:
        return len(self.pages)

    def __getitem__(self, index: int) -> _Page:
        return self.pages[index]

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def fake_pdfium(monkeypatch) -> None:
    _Document.instances.clear()
    monkeypatch.setattr(pdf_tools.pdfium, "PdfDocument", _Document)


def test_describe_pdf_counts_pages() -> None:
    descriptor = pdf_tools.describe_pdf(b"%PDF-1.7 two pages")
    assert descriptor.page_count == 2
    assert descriptor.size_bytes == len(b"%PDF-1.7 two pages")
    assert _Document.instances[-1].closed


def test_extract_page_text_strips_whitespace() -> None:
    assert pdf_tools.extract_page_text(b"%PDF-1.7", 0) == "Unit 1: Kinematics"
    assert pdf_tools.extract_page_text(b"%PDF-1.7", 1) == ""


def test_extract_page_text_rejects_out_of_range_page() -> None:
    with pytest.raises(IndexError, match="Page 3 out of range"):
        pdf_tools.extract_page_text(b"%PDF-1.7", 2)
    assert _Document.instances[-1].closed


def test_unreadable_document_is_a_value_error() -> None:
    with pytest.raises(ValueError, match="Unreadable PDF document"):
        pdf_tools.describe_pdf(b"<html>")
