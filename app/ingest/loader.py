# Document loader: file bytes -> text. No embeddings, no vector DB, no chunking.
# Supports .pdf (pypdf), .docx/.doc (python-docx), .txt/.md (utf-8).

import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from app.core.config import ALLOWED_EXTENSIONS

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ALLOWED_EXTENSIONS


class InvalidFileTypeError(Exception):
    """Raised when a file's extension is not one of the supported types."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        self.extension = Path(filename).suffix.lower()
        allowed = ", ".join(sorted(SUPPORTED_EXTENSIONS))
        self.message = f"File type {self.extension or '(none)'} is not allowed. Allowed types: {allowed}"
        super().__init__(self.message)


class DocumentParseError(Exception):
    """Raised when a supported file cannot be parsed (corrupt PDF, legacy binary .doc, bad encoding)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


@dataclass
class LoadedDocument:
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


def file_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower()


def ensure_supported(filename: str) -> str:
    ext = file_extension(filename)
    if ext not in SUPPORTED_EXTENSIONS:
        raise InvalidFileTypeError(filename)
    return ext


def load_from_bytes(raw: bytes, filename: str) -> LoadedDocument:
    """
    Convert raw file bytes to text by extension. Single source of truth for
    .pdf, .docx, .doc, .txt, .md parsing.
    """
    ext = ensure_supported(filename)
    if ext == ".pdf":
        text, pages = _read_pdf(raw)
        doc = LoadedDocument(text=text, metadata={"source": filename, "type": "pdf", "pages": pages})
    elif ext in (".docx", ".doc"):
        doc = LoadedDocument(text=_read_docx(raw), metadata={"source": filename, "type": "docx"})
    else:
        doc = LoadedDocument(text=_read_text(raw), metadata={"source": filename, "type": "txt"})
    logger.info("[loader] parsed %s type=%s bytes=%d text_len=%d", filename, doc.metadata["type"], len(raw), len(doc.text))
    return doc


def _read_pdf(raw: bytes) -> tuple[str, int]:
    from pypdf import PdfReader
    from pypdf.errors import PdfReadError

    try:
        reader = PdfReader(io.BytesIO(raw))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
    except (PdfReadError, ValueError, KeyError) as e:
        raise DocumentParseError(f"Failed to parse PDF: {e}") from e
    return text, len(reader.pages)


def _read_docx(raw: bytes) -> str:
    import docx
    from docx.opc.exceptions import PackageNotFoundError

    try:
        document = docx.Document(io.BytesIO(raw))
    except (PackageNotFoundError, zipfile.BadZipFile, ValueError, KeyError) as e:
        # Legacy binary .doc files are not OOXML packages
        raise DocumentParseError(f"Failed to parse DOCX: {e}") from e
    parts = [p.text for p in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            parts.append("\t".join(cell.text for cell in row.cells))
    return "\n".join(parts)


def _read_text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise DocumentParseError(f"Failed to parse TXT: file is not valid UTF-8 ({e})") from e
