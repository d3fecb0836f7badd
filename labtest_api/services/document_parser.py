"""
Lab Test API - Document Text Extraction
Best-effort text extraction for stored documents (text, RTF, PDF, DOCX)
"""

import base64
import io
import logging
import re
from typing import Optional

# PDF parsing
import fitz  # PyMuPDF

# DOCX parsing
from docx import Document as DocxDocument

from labtest_api.schemas import DocumentData, DocumentResult

logger = logging.getLogger(__name__)


TEXT_TYPES = {"TXT", "CSV", "XML", "HTML", "HTM", "SVG", "MHT"}
IMAGE_TYPES = {"PNG", "JPG", "JPEG", "GIF", "BMP", "TIFF", "TIF", "SVGZ"}

_RTF_HEX_ESCAPE = re.compile(r"\\'[0-9a-fA-F]{2}")
_RTF_PARAGRAPH = re.compile(r"\\par[d]?", re.IGNORECASE)
_RTF_CONTROL_WORD = re.compile(r"\\[a-zA-Z]+-?\d*\s?")
_UNDERSCORE_LINE = re.compile(r"^_+$", re.MULTILINE)
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


# =============================================================================
# Document Parser Service
# =============================================================================

class DocumentParserService:
    """Converts a binary document plus its type tag into display text"""

    # =========================================================================
    # Main Parsing Methods
    # =========================================================================

    def extract_text(self, content: Optional[bytes], document_type: Optional[str]) -> Optional[str]:
        """
        Extract text from a stored document

        Args:
            content: Raw document bytes
            document_type: Type tag such as PDF, RTF, TXT, PNG

        Returns:
            Extracted text, or None when the type is unsupported, the
            payload is empty, or extraction fails
        """
        if not content:
            return None

        doc_type = (document_type or "").strip().upper().lstrip(".")

        if doc_type in TEXT_TYPES:
            return self.decode_text(content)
        if doc_type == "RTF":
            return self.parse_rtf(content)
        if doc_type == "PDF":
            return self.parse_pdf(content)
        if doc_type == "DOCX":
            return self.parse_docx(content)

        if doc_type not in IMAGE_TYPES:
            logger.debug(f"No text extraction for document type {doc_type or '<none>'}")
        return None

    # =========================================================================
    # Text Parsing
    # =========================================================================

    def decode_text(self, content: bytes) -> Optional[str]:
        """Decode as UTF-8, falling back to UTF-16"""
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError:
            pass
        try:
            return content.decode("utf-16")
        except UnicodeDecodeError:
            logger.warning("Document is neither UTF-8 nor UTF-16 text")
            return None

    # =========================================================================
    # RTF Parsing
    # =========================================================================

    def parse_rtf(self, content: bytes) -> Optional[str]:
        """Strip RTF markup; not a full RTF parser"""
        rtf = self.decode_text(content)
        if not rtf:
            return None

        text = _RTF_HEX_ESCAPE.sub("", rtf)
        text = _RTF_PARAGRAPH.sub("\n", text)
        text = _RTF_CONTROL_WORD.sub("", text)
        text = text.replace("{", "").replace("}", "")
        text = text.replace("\\\\", "\\")
        return text.strip()

    # =========================================================================
    # PDF Parsing
    # =========================================================================

    def parse_pdf(self, content: bytes) -> Optional[str]:
        """Extract page text in reading order and clean form artifacts"""
        try:
            pdf_document = fitz.open(stream=io.BytesIO(content), filetype="pdf")
            try:
                pages = []
                for page in pdf_document:
                    page_text = page.get_text("text", sort=True)
                    if page_text.strip():
                        pages.append(page_text.strip("\n"))
            finally:
                pdf_document.close()
        except Exception as e:
            logger.error(f"PDF parsing failed: {e}")
            return None

        logger.info(f"✓ PDF parsed ({len(pages)} pages with text)")
        return clean_pdf_text("\n\n".join(pages))

    # =========================================================================
    # DOCX Parsing
    # =========================================================================

    def parse_docx(self, content: bytes) -> Optional[str]:
        """Paragraph text followed by table rows"""
        try:
            document = DocxDocument(io.BytesIO(content))
        except Exception as e:
            logger.error(f"DOCX parsing failed: {e}")
            return None

        lines = [para.text for para in document.paragraphs if para.text.strip()]
        for table in document.tables:
            for row in table.rows:
                lines.append(" | ".join(cell.text for cell in row.cells))

        text = "\n".join(lines).strip()
        return text or None

    # =========================================================================
    # Document Results
    # =========================================================================

    def to_result(self, document: DocumentData) -> DocumentResult:
        """Document metadata with base64 content and extracted text"""
        content = document.document_bytes
        return DocumentResult(
            document_id=document.document_id,
            document_type_id=document.document_type_id,
            document_name=document.document_name,
            description=document.description,
            is_deleted=document.is_deleted,
            document_type=document.document_type,
            inbox_folder_item_id=document.inbox_folder_item_id,
            document_base64=base64.b64encode(content).decode("ascii") if content else None,
            document_text=self.extract_text(content, document.document_type),
        )


def clean_pdf_text(text: str) -> Optional[str]:
    """Remove underscore-only lines and collapse runs of blank lines"""
    if not text or not text.strip():
        return None
    cleaned = _UNDERSCORE_LINE.sub("", text)
    cleaned = _EXCESS_NEWLINES.sub("\n\n", cleaned)
    cleaned = cleaned.strip()
    return cleaned or None
