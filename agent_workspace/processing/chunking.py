"""
Context-Preserving Chunker
══════════════════════════

Splits extracted content into bounded context units without cutting
through the structures that make them readable:

  CSV rows      → groups of CSV_ROWS_PER_CHUNK rows, serialised as JSON
  PDF pages     → table-like pages kept whole (consecutive table pages
                  merge into one unit); prose accumulated paragraph by
                  paragraph up to MAX_CHUNK_CHARS
  plain text    → same paragraph accumulation as PDF prose

Paragraph accumulation never splits a paragraph. A paragraph longer than
MAX_CHUNK_CHARS becomes a unit of its own rather than being truncated.
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata

from agent_workspace.processing.extractor import DocumentKind, ExtractionResult, PageText
from agent_workspace.vectorstore.base import ChunkType, ContextUnit

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration constants
# ---------------------------------------------------------------------------

MAX_CHUNK_CHARS    = 1200
CSV_ROWS_PER_CHUNK = 20

# A page is treated as a table when more than this many lines look tabular
TABLE_LINE_THRESHOLD = 2

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_COLUMN_GAP_RE      = re.compile(r"\s{2,}")


def _normalize_text(text: str) -> str:
    """NFC-normalise and unify line endings."""
    text = unicodedata.normalize("NFC", text)
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _is_table_line(line: str) -> bool:
    return "|" in line or len(_COLUMN_GAP_RE.split(line.strip())) > 2


def looks_like_table(page_text: str) -> bool:
    """Heuristic: several lines containing pipes or 3+ whitespace-separated columns."""
    tabular = [ln for ln in page_text.split("\n") if ln.strip() and _is_table_line(ln)]
    return len(tabular) > TABLE_LINE_THRESHOLD


class _ParagraphAccumulator:
    """Collects paragraphs into units no larger than max_chars (unless one paragraph is)."""

    def __init__(self, max_chars: int) -> None:
        self._max     = max_chars
        self._parts:  list[str] = []
        self._length  = 0
        self.page:    int | None = None

    def add(self, paragraph: str, page: int | None, out: list[ContextUnit]) -> None:
        if self._parts and self._length + len(paragraph) >= self._max:
            self.flush(out)
        if not self._parts:
            self.page = page
        self._parts.append(paragraph)
        self._length += len(paragraph) + 2   # "\n\n" joiner

    def flush(self, out: list[ContextUnit]) -> None:
        if not self._parts:
            return
        meta = {"page": self.page} if self.page is not None else {}
        out.append(ContextUnit(
            text="\n\n".join(self._parts),
            chunk_type=ChunkType.TEXT,
            meta=meta,
        ))
        self._parts  = []
        self._length = 0
        self.page    = None


class Chunker:
    """
    Stateless chunker.

    Usage:
        chunker = Chunker()
        units   = chunker.chunk(extraction_result)
        units   = chunker.chunk_text(raw_text)
    """

    def __init__(
        self,
        max_chunk_chars:    int = MAX_CHUNK_CHARS,
        csv_rows_per_chunk: int = CSV_ROWS_PER_CHUNK,
    ) -> None:
        self._max_chars = max_chunk_chars
        self._rows_per  = csv_rows_per_chunk

    def chunk(self, extraction: ExtractionResult) -> list[ContextUnit]:
        if extraction.kind == DocumentKind.CSV:
            units = self.chunk_rows(extraction.rows)
        else:
            units = self.chunk_pages(extraction.pages)
        logger.info("Chunker | kind=%s units=%d", extraction.kind.value, len(units))
        return units

    def chunk_rows(self, rows: list[dict]) -> list[ContextUnit]:
        units: list[ContextUnit] = []
        for start in range(0, len(rows), self._rows_per):
            group = rows[start : start + self._rows_per]
            units.append(ContextUnit(
                text=json.dumps(group, ensure_ascii=False),
                chunk_type=ChunkType.CSV,
                meta={"start_row": start, "end_row": start + len(group)},
            ))
        return units

    def chunk_pages(self, pages: list[PageText]) -> list[ContextUnit]:
        units: list[ContextUnit] = []
        prose = _ParagraphAccumulator(self._max_chars)

        table_pages: list[PageText] = []

        def flush_table() -> None:
            if not table_pages:
                return
            units.append(ContextUnit(
                text="\n".join(p.text for p in table_pages).strip(),
                chunk_type=ChunkType.TABLE,
                meta={
                    "page":        table_pages[0].page_number,
                    "spans_pages": len(table_pages) > 1,
                },
            ))
            table_pages.clear()

        for page in pages:
            text = _normalize_text(page.text)
            if looks_like_table(text):
                prose.flush(units)
                table_pages.append(PageText(page.page_number, text))
                continue

            flush_table()
            for para in _PARAGRAPH_SPLIT_RE.split(text):
                para = para.strip()
                if para:
                    prose.add(para, page.page_number, units)

        flush_table()
        prose.flush(units)
        return units

    def chunk_text(self, text: str) -> list[ContextUnit]:
        units: list[ContextUnit] = []
        prose = _ParagraphAccumulator(self._max_chars)
        for para in _PARAGRAPH_SPLIT_RE.split(_normalize_text(text)):
            para = para.strip()
            if para:
                prose.add(para, None, units)
        prose.flush(units)
        return units
