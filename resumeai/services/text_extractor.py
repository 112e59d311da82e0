from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Literal
from zipfile import BadZipFile, ZipFile

from resumeai.core.errors import InputValidationError, UnsupportedDocumentError

logger = logging.getLogger(__name__)

SourceType = Literal["pdf", "word", "plain-text"]

CONTENT_TYPE_HINTS: dict[str, SourceType] = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "word",
    "application/msword": "word",
    "text/plain": "plain-text",
    "text/markdown": "plain-text",
}
EXTENSION_HINTS: dict[str, SourceType] = {
    "pdf": "pdf",
    "docx": "word",
    "doc": "word",
    "txt": "plain-text",
    "md": "plain-text",
}

PDF_MAGIC = b"%PDF-"
ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")


@dataclass(frozen=True)
class ExtractedText:
    filename: str
    source_type: SourceType
    text: str
    details: dict[str, Any] = field(default_factory=dict)


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def _is_zip_payload(content: bytes) -> bool:
    return any(content.startswith(prefix) for prefix in ZIP_MAGICS)


def _zip_has_paths(content: bytes, prefixes: tuple[str, ...]) -> bool:
    try:
        with ZipFile(BytesIO(content)) as archive:
            names = archive.namelist()
    except BadZipFile:
        return False
    return any(any(name.startswith(prefix) for prefix in prefixes) for name in names)


def _is_probably_text_payload(content: bytes) -> bool:
    if not content:
        return False
    sample = content[:4096]
    if b"\x00" in sample:
        return False
    printable = 0
    for byte in sample:
        if byte in (9, 10, 13) or 32 <= byte <= 126 or byte >= 128:
            printable += 1
    return (printable / len(sample)) >= 0.75


def resolve_source_type(filename: str, content_type: str | None = None) -> SourceType:
    hint = (content_type or "").split(";", 1)[0].strip().lower()
    if hint in ("pdf", "word", "plain-text"):
        return hint  # type: ignore[return-value]
    if hint in CONTENT_TYPE_HINTS:
        return CONTENT_TYPE_HINTS[hint]
    ext = _extension(filename)
    if ext in EXTENSION_HINTS:
        return EXTENSION_HINTS[ext]
    raise UnsupportedDocumentError(
        f"Unsupported file type '{hint or ext or 'unknown'}'. Supported: PDF, DOCX, TXT."
    )


def _decode_text(content: bytes, details: dict[str, Any]) -> str:
    for encoding in ("utf-8", "utf-16", "latin-1"):
        try:
            text = content.decode(encoding)
            details["encoding"] = encoding
            return text
        except UnicodeDecodeError:
            continue
    return ""


def _extract_pdf(content: bytes, details: dict[str, Any]) -> str:
    from pypdf import PdfReader
    from pypdf.errors import PyPdfError

    try:
        reader = PdfReader(BytesIO(content))
        page_chunks: list[str] = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            if page_text.strip():
                page_chunks.append(page_text)
    except (PyPdfError, ValueError, KeyError) as exc:
        raise InputValidationError("Unable to extract text from this PDF file.", code="pdf_unreadable") from exc
    details["pages"] = len(reader.pages)
    return "\n\n".join(page_chunks)


def _extract_docx(content: bytes, details: dict[str, Any]) -> str:
    from docx import Document
    from docx.opc.exceptions import PackageNotFoundError

    try:
        doc = Document(BytesIO(content))
    except (PackageNotFoundError, BadZipFile, KeyError, ValueError) as exc:
        raise InputValidationError(
            "Unable to extract text from this Word document.", code="docx_unreadable"
        ) from exc
    details["paragraphs"] = len(doc.paragraphs)
    details["tables"] = len(doc.tables)
    return "\n".join(paragraph.text for paragraph in doc.paragraphs if paragraph.text.strip())


def extract_resume_text(filename: str, content: bytes, content_type: str | None = None) -> ExtractedText:
    if not content:
        raise InputValidationError("Uploaded file is empty.", code="empty_upload")

    source_type = resolve_source_type(filename, content_type)
    details: dict[str, Any] = {"extension": _extension(filename)}

    if source_type == "pdf":
        if not content.startswith(PDF_MAGIC):
            raise UnsupportedDocumentError("File signature does not match PDF content.")
        text = _extract_pdf(content, details)
    elif source_type == "word":
        if _extension(filename) == "doc" or not _is_zip_payload(content):
            raise UnsupportedDocumentError("Legacy .doc is not supported. Convert to .docx.")
        if not _zip_has_paths(content, ("word/",)):
            raise UnsupportedDocumentError("File signature does not match .docx content.")
        text = _extract_docx(content, details)
    else:
        if not _is_probably_text_payload(content):
            raise UnsupportedDocumentError("File signature does not match plain-text content.")
        text = _decode_text(content, details)

    text = text.strip()
    logger.info("resume_text_extracted source_type=%s chars=%s", source_type, len(text))
    return ExtractedText(filename=filename, source_type=source_type, text=text, details=details)
