"""
Unit tests for document text extraction
"""

import base64
import io

import fitz
import pytest
from docx import Document as DocxDocument

from labtest_api.schemas import DocumentData
from labtest_api.services.document_parser import DocumentParserService, clean_pdf_text


@pytest.fixture
def parser():
    return DocumentParserService()


def build_pdf(*lines: str) -> bytes:
    document = fitz.open()
    page = document.new_page()
    for index, line in enumerate(lines):
        page.insert_text((72, 72 + index * 24), line)
    content = document.tobytes()
    document.close()
    return content


class TestTextDocuments:
    """Test plain text decoding"""

    def test_utf8_text(self, parser):
        """Test UTF-8 text types decode directly"""
        assert parser.extract_text("Glucose 5.4 mmol/L".encode("utf-8"), "TXT") == "Glucose 5.4 mmol/L"

    def test_utf16_fallback(self, parser):
        """Test UTF-16 content when UTF-8 decoding fails"""
        assert parser.extract_text("Ferritin 45".encode("utf-16"), "csv") == "Ferritin 45"

    def test_type_tag_is_normalised(self, parser):
        """Test lower-case and dotted type tags"""
        assert parser.extract_text(b"<p>ok</p>", ".html") == "<p>ok</p>"

    def test_images_and_unknown_types_have_no_text(self, parser):
        """Test unsupported types yield None"""
        assert parser.extract_text(b"\x89PNG\r\n", "PNG") is None
        assert parser.extract_text(b"data", "XYZ") is None
        assert parser.extract_text(b"", "TXT") is None


class TestRtfDocuments:
    """Test RTF markup stripping"""

    def test_simple_rtf(self, parser):
        """Test control words, paragraphs and braces are removed"""
        assert parser.extract_text(rb"{\rtf1 \par Hello\par}", "RTF") == "Hello"

    def test_rtf_paragraphs_and_escapes(self, parser):
        """Test paragraph breaks, hex escapes and escaped backslashes"""
        rtf = rb"{\rtf1\ansi{\fonttbl\f0 Arial;}\f0\fs20 Line one\par Caf\'e9 50\\60\pard Line two}"

        text = parser.extract_text(rtf, "RTF")

        assert "Line one" in text
        assert "Line two" in text
        assert "\\'" not in text
        assert "50\\60" in text
        assert "\\fs20" not in text
        assert "{" not in text and "}" not in text


class TestPdfDocuments:
    """Test PDF extraction and cleanup"""

    def test_pdf_text_without_underscore_lines(self, parser):
        """Test underscore-only form lines are removed"""
        content = build_pdf("Lab Report", "____________", "Result: normal")

        text = parser.extract_text(content, "PDF")

        assert "Lab Report" in text
        assert "Result: normal" in text
        assert "_" not in text
        assert "\n\n\n" not in text

    def test_corrupt_pdf_yields_none(self, parser):
        """Test extraction failure is reported as None"""
        assert parser.extract_text(b"%PDF-1.4 not really", "PDF") is None

    def test_clean_pdf_text(self):
        """Test underscore lines and blank-line runs are collapsed"""
        assert clean_pdf_text("A\n____\n\n\n\nB") == "A\n\nB"
        assert clean_pdf_text("   ") is None


class TestDocxDocuments:
    """Test DOCX extraction"""

    def test_docx_paragraphs_and_tables(self, parser):
        """Test paragraph and table text"""
        document = DocxDocument()
        document.add_paragraph("Discharge letter")
        table = document.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "HbA1c"
        table.rows[0].cells[1].text = "48"
        buffer = io.BytesIO()
        document.save(buffer)

        text = parser.extract_text(buffer.getvalue(), "DOCX")

        assert text == "Discharge letter\nHbA1c | 48"


class TestDocumentResult:
    """Test document result assembly"""

    def test_result_carries_base64_and_text(self, parser):
        """Test base64 content and extracted text on the result"""
        document = DocumentData(document_id=4, document_type="TXT", document_name="note.txt",
                                document_bytes=b"Potassium 4.2")

        result = parser.to_result(document)

        assert result.document_id == 4
        assert base64.b64decode(result.document_base64) == b"Potassium 4.2"
        assert result.document_text == "Potassium 4.2"

    def test_result_without_content(self, parser):
        """Test documents with no stored bytes"""
        result = parser.to_result(DocumentData(document_id=5, document_type="PDF"))

        assert result.document_base64 is None
        assert result.document_text is None
