"""Text extraction for uploaded documents (PDF, DOCX, plain text)."""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from pathlib import PurePath

import structlog
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

__all__ = ["ExtractedText", "ExtractionError", "extract_text", "is_supported"]

logger = structlog.get_logger(__name__)

PDF_TYPES = {"application/pdf"}
DOCX_TYPES = {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}
TEXT_TYPES = {"text/plain", "text/markdown", "text/csv"}

# 추출 텍스트 최대 길이 (DB 컬럼 보호)
MAX_TEXT_CHARS = 1_000_000


class ExtractionError(Exception):
    """Raised when a supported file cannot be parsed."""


@dataclass(frozen=True, slots=True)
class ExtractedText:
    text: str
    pages: int | None = None


def _kind(filename: str, mime_type: str | None) -> str | None:
    suffix = PurePath(filename or "").suffix.lower()
    if mime_type in PDF_TYPES or suffix == ".pdf":
        return "pdf"
    if mime_type in DOCX_TYPES or suffix == ".docx":
        return "docx"
    if (mime_type or "").startswith("text/") or suffix in {".txt", ".md", ".csv"}:
        return "text"
    return None


def is_supported(filename: str, mime_type: str | None = None) -> bool:
    return _kind(filename, mime_type) is not None


def _from_pdf(payload: bytes) -> ExtractedText:
    reader = PdfReader(io.BytesIO(payload))
    parts = [(page.extract_text() or "") for page in reader.pages]
    return ExtractedText(text="\n".join(parts).strip(), pages=len(reader.pages))


def _from_docx(payload: bytes) -> ExtractedText:
    document = DocxDocument(io.BytesIO(payload))
    lines = [paragraph.text for paragraph in document.paragraphs]
    return ExtractedText(text="\n".join(lines).strip())


def _from_text(payload: bytes) -> ExtractedText:
    return ExtractedText(text=payload.decode("utf-8", errors="replace").strip())


def extract_text(payload: bytes, filename: str, mime_type: str | None = None) -> ExtractedText | None:
    """Return the text content of *payload*, or ``None`` for unsupported types.

    Raises:
        ExtractionError: the file claims a supported type but cannot be parsed.
    """

    kind = _kind(filename, mime_type)
    if kind is None:
        return None
    try:
        if kind == "pdf":
            result = _from_pdf(payload)
        elif kind == "docx":
            result = _from_docx(payload)
        else:
            result = _from_text(payload)
    except (
        PdfReadError,
        PackageNotFoundError,
        zipfile.BadZipFile,
        ValueError,
        KeyError,
        OSError,
    ) as exc:
        raise ExtractionError(f"Could not extract text from {filename}: {exc}") from exc

    # PostgreSQL TEXT cannot hold NUL
    if "\x00" in result.text:
        result = ExtractedText(text=result.text.replace("\x00", "").strip(), pages=result.pages)
    if len(result.text) > MAX_TEXT_CHARS:
        logger.info("extracted_text_truncated", filename=filename, chars=len(result.text))
        result = ExtractedText(text=result.text[:MAX_TEXT_CHARS], pages=result.pages)
    return result
