from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass

from support_agent.core.errors import EmptyInputError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# Accepted by the document upload endpoint.
DOCUMENT_EXTENSIONS = (".txt", ".doc", ".docx", ".pdf")
# Accepted by the plain-text ingest endpoint and the directory loader.
TEXT_EXTENSIONS = (".txt", ".md", ".json")
SUPPORTED_EXTENSIONS = tuple(dict.fromkeys(DOCUMENT_EXTENSIONS + TEXT_EXTENSIONS))


@dataclass(frozen=True)
class ExtractedDocument:
    text: str
    filetype: str


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def get_file_type(filename: str) -> str:
    return file_extension(filename).lstrip(".")


def is_valid_extension(filename: str, allowed=SUPPORTED_EXTENSIONS) -> bool:
    return file_extension(filename) in allowed


def _extract_plain(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def _extract_docx(content: bytes) -> str:
    from docx import Document

    doc = Document(io.BytesIO(content))
    return "\n".join(p.text for p in doc.paragraphs)


def _extract_pdf(content: bytes) -> str:
    from pypdf import PdfReader

    reader = PdfReader(io.BytesIO(content))
    return "\n".join((page.extract_text() or "") for page in reader.pages)


def extract_text(content: bytes, filename: str) -> ExtractedDocument:
    """
    Pull plain text out of an uploaded file, dispatching on its extension.

    Raises:
        UnsupportedFormatError: unknown extensions, or a file the parser
            cannot read (including binary legacy ``.doc``).
        EmptyInputError: the file parsed but holds no text.
    """
    ext = file_extension(filename)
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"Unsupported file type: {ext or '(none)'}. "
            f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    logger.info("document_parse_started", extra={"file_name": filename, "ext": ext})

    if ext in TEXT_EXTENSIONS:
        text = _extract_plain(content).strip()
        if not text:
            raise EmptyInputError(f"{filename} is empty")
        return ExtractedDocument(text=text, filetype=ext.lstrip("."))

    try:
        if ext == ".pdf":
            text = _extract_pdf(content).strip()
        else:
            text = _extract_docx(content).strip()
    except Exception as exc:
        logger.warning(
            "document_parse_failed",
            extra={"file_name": filename, "ext": ext, "error": str(exc)},
        )
        # Only OOXML content saved under a .doc name is readable.
        if ext == ".doc":
            raise UnsupportedFormatError(
                "Legacy .doc format may not be fully supported. "
                "Please convert to .docx if possible."
            ) from exc
        raise UnsupportedFormatError(f"Failed to parse {filename}: {exc}") from exc

    if not text:
        if ext == ".pdf":
            raise EmptyInputError(
                "PDF appears to be empty or contains only images (OCR not supported)"
            )
        raise EmptyInputError("Document appears to be empty or could not extract text")

    logger.info(
        "document_parsed",
        extra={"file_name": filename, "ext": ext, "text_chars": len(text)},
    )
    return ExtractedDocument(text=text, filetype=ext.lstrip("."))
