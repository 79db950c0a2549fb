"""Text extraction from linked documents.

Extraction is a pure function of the file: path in, text out, or
ExtractionError. Only files whose extension is supported are passed in.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

import structlog
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from citeindex.core.errors import ExtractionError

logger = structlog.get_logger()


class TextExtractor(Protocol):
    """Collaborator contract consumed by the synchronization engine."""

    def supports(self, path: Path) -> bool: ...

    def extract(self, path: Path) -> str: ...


def extract_pdf_text(path: Path) -> str:
    """Extract the text layer of every page, pages separated by blank lines.

    Pages without a text layer contribute nothing; a fully scanned PDF
    yields an empty string rather than an error.
    """
    try:
        reader = PdfReader(path)
        pages = [page.extract_text() or "" for page in reader.pages]
    except (OSError, PyPdfError, ValueError, KeyError) as e:
        raise ExtractionError.failed(str(path), str(e)) from e
    return "\n\n".join(text for text in pages if text.strip())


def extract_plain_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ExtractionError.failed(str(path), str(e)) from e


_HANDLERS: dict[str, Callable[[Path], str]] = {
    ".pdf": extract_pdf_text,
    ".txt": extract_plain_text,
    ".md": extract_plain_text,
}


class DocumentExtractor:
    """Dispatches on file extension, restricted to the enabled extensions."""

    def __init__(self, extensions: Iterable[str] = (".pdf",)) -> None:
        self.extensions = frozenset(e.lower() for e in extensions)
        unknown = self.extensions - _HANDLERS.keys()
        if unknown:
            raise ValueError(f"No extractor for extensions: {sorted(unknown)}")

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def extract(self, path: Path) -> str:
        suffix = path.suffix.lower()
        if suffix not in self.extensions:
            raise ExtractionError.unsupported(str(path))
        text = _HANDLERS[suffix](path)
        logger.debug("text_extracted", path=str(path), chars=len(text))
        return text
