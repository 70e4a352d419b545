"""Plain-text extraction for uploaded files (pdf, docx, csv, txt).

Thin adapters over pypdf and python-docx; the ingestion pipeline only ever
sees the returned text.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path

import docx
import pypdf
import structlog

from tenantkb.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

FILE_KINDS: tuple[str, ...] = ("txt", "csv", "pdf", "docx")

_EXT_TO_KIND: dict[str, str] = {
    ".txt": "txt",
    ".text": "txt",
    ".md": "txt",
    ".csv": "csv",
    ".pdf": "pdf",
    ".docx": "docx",
}

# Tried in order for text and CSV uploads; cp932 covers Shift_JIS exports.
_TEXT_ENCODINGS = ("utf-8-sig", "cp932")


def detect_kind(path: Path | str) -> str:
    """Infer the file kind from its extension.

    Raises:
        ExtractionError: For unsupported extensions.
    """
    ext = Path(path).suffix.lower()
    kind = _EXT_TO_KIND.get(ext)
    if kind is None:
        raise ExtractionError(
            f"Unsupported file type {ext!r}; expected one of: {', '.join(sorted(_EXT_TO_KIND))}"
        )
    return kind


def extract_text(data: bytes, kind: str) -> str:
    """Return the plain text of *data* interpreted as *kind*.

    Raises:
        ExtractionError: For unknown kinds or files the library cannot read.
    """
    kind = kind.lower().lstrip(".")
    if kind not in FILE_KINDS:
        raise ExtractionError(f"Unsupported file kind {kind!r}; expected one of: {', '.join(FILE_KINDS)}")
    try:
        if kind == "pdf":
            text = _extract_pdf(data)
        elif kind == "docx":
            text = _extract_docx(data)
        elif kind == "csv":
            text = _extract_csv(data)
        else:
            text = _decode(data)
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionError(f"Could not read {kind} file: {exc}") from exc
    logger.debug("text_extracted", kind=kind, chars=len(text))
    return text


def _decode(data: bytes) -> str:
    for encoding in _TEXT_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def _extract_pdf(data: bytes) -> str:
    """Page text joined by blank lines; pages without text are skipped."""
    reader = pypdf.PdfReader(io.BytesIO(data))
    parts: list[str] = []
    for page in reader.pages:
        page_text = (page.extract_text() or "").strip()
        if page_text:
            parts.append(page_text)
    return "\n\n".join(parts)


def _extract_docx(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    return "\n".join(p.text for p in document.paragraphs if p.text.strip())


def _extract_csv(data: bytes) -> str:
    """One line per row, non-empty cells joined by ", "."""
    reader = csv.reader(io.StringIO(_decode(data)))
    lines: list[str] = []
    for row in reader:
        cells = [cell.strip() for cell in row if cell.strip()]
        if cells:
            lines.append(", ".join(cells))
    return "\n".join(lines)
