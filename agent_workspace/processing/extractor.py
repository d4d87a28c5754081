"""
Content Extraction
══════════════════

Turns an uploaded document into a normalised representation the chunker
understands:

  PDF  → ordered page texts        (PyMuPDF native text layer)
  CSV  → ordered row records       (header row → dict per row)

Kind detection looks at magic bytes first, then the declared content type,
then the extension. Anything that is neither PDF nor CSV is rejected by
the caller before extraction starts.

Parsing is blocking work, so both extractors run in the default thread
executor and never stall the event loop.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF"

_CSV_CONTENT_TYPES = frozenset({
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",   # what some browsers send for .csv
})


class DocumentKind(str, Enum):
    PDF = "pdf"
    CSV = "csv"


def detect_kind(filename: str, content_type: str | None, head: bytes) -> DocumentKind | None:
    """Return the document kind, or None when the upload is unsupported."""
    name = (filename or "").lower()
    if head.startswith(_PDF_MAGIC):
        return DocumentKind.PDF
    if (content_type or "").split(";")[0].strip().lower() in _CSV_CONTENT_TYPES:
        return DocumentKind.CSV
    if name.endswith(".csv"):
        return DocumentKind.CSV
    if name.endswith(".pdf") or content_type == "application/pdf":
        # Declared as PDF but without the magic header: let PyMuPDF decide
        return DocumentKind.PDF
    return None


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class PageText:
    """Text of one PDF page (1-based page number)."""
    page_number: int
    text:        str


@dataclass
class ExtractionResult:
    """
    Normalised output of one extractor.

    Exactly one of pages / rows is populated, depending on kind.
    """
    kind:       DocumentKind
    pages:      list[PageText] = field(default_factory=list)
    rows:       list[dict]     = field(default_factory=list)
    elapsed_ms: float          = 0.0

    @property
    def total_chars(self) -> int:
        return sum(len(p.text) for p in self.pages)

    @property
    def is_empty(self) -> bool:
        return not self.rows and not any(p.text.strip() for p in self.pages)


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

class BaseContentExtractor(ABC):

    kind: DocumentKind

    async def extract(self, data: bytes) -> ExtractionResult:
        loop = asyncio.get_event_loop()
        t0   = time.monotonic()
        result = await loop.run_in_executor(None, self._extract_sync, data)
        result.elapsed_ms = (time.monotonic() - t0) * 1000
        return result

    @abstractmethod
    def _extract_sync(self, data: bytes) -> ExtractionResult:
        """Blocking extraction — runs in thread executor."""


class PdfExtractor(BaseContentExtractor):
    """
    Reads the native PDF text layer with PyMuPDF.

    Image-only pages come back as empty strings; an unreadable or encrypted
    file yields no pages instead of an exception.
    """

    kind = DocumentKind.PDF

    async def extract(self, data: bytes) -> ExtractionResult:
        try:
            result = await super().extract(data)
        except Exception as exc:
            logger.warning("PdfExtractor | extraction failed: %s", exc)
            return ExtractionResult(kind=self.kind)

        logger.info(
            "PdfExtractor | pages=%d total_chars=%d elapsed_ms=%.0f",
            len(result.pages), result.total_chars, result.elapsed_ms,
        )
        return result

    def _extract_sync(self, data: bytes) -> ExtractionResult:
        import fitz  # PyMuPDF; imported here to avoid module-level import cost

        pages: list[PageText] = []
        with fitz.open(stream=data, filetype="pdf") as doc:
            for page_num, page in enumerate(doc, start=1):
                raw = page.get_text("text") or ""
                pages.append(PageText(page_number=page_num, text=raw.strip()))
        return ExtractionResult(kind=self.kind, pages=pages)


class CsvExtractor(BaseContentExtractor):
    """Header row → one dict per data row; blank lines are skipped."""

    kind = DocumentKind.CSV

    async def extract(self, data: bytes) -> ExtractionResult:
        result = await super().extract(data)
        logger.info("CsvExtractor | rows=%d elapsed_ms=%.0f", len(result.rows), result.elapsed_ms)
        return result

    def _extract_sync(self, data: bytes) -> ExtractionResult:
        return ExtractionResult(kind=self.kind, rows=parse_csv_text(decode_bytes(data)))


def decode_bytes(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def parse_csv_text(text: str) -> list[dict]:
    """Parse CSV text with a header row, dropping rows that are entirely empty."""
    reader = csv.DictReader(io.StringIO(text))
    rows: list[dict] = []
    for row in reader:
        values = [v for k, v in row.items() if k is not None]
        if not any((v or "").strip() for v in values):
            continue
        rows.append({k: (v if v is not None else "") for k, v in row.items() if k is not None})
    return rows


class ContentExtractor:
    """Dispatches to the extractor registered for a document kind."""

    def __init__(self) -> None:
        self._extractors: dict[DocumentKind, BaseContentExtractor] = {
            DocumentKind.PDF: PdfExtractor(),
            DocumentKind.CSV: CsvExtractor(),
        }

    async def extract(self, data: bytes, kind: DocumentKind) -> ExtractionResult:
        return await self._extractors[kind].extract(data)
