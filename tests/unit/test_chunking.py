"""
Unit Tests — Content extraction, chunking and embedding
════════════════════════════════════════════════════════
Tests for:
  • detect_kind        — magic bytes, content type, extension, rejection
  • ContentExtractor   — PDF text layer (PyMuPDF), CSV rows, unreadable PDF
  • Chunker            — paragraph packing, oversize paragraphs, table pages, CSV groups
  • EmbeddingPipeline  — fixed windows, partial failure keeps units
"""

from __future__ import annotations

import asyncio
import json

import pytest

from agent_workspace.processing.chunking import Chunker, looks_like_table
from agent_workspace.processing.embeddings import EmbeddingPipeline
from agent_workspace.processing.extractor import (
    ContentExtractor,
    DocumentKind,
    ExtractionResult,
    PageText,
    detect_kind,
    parse_csv_text,
)
from agent_workspace.vectorstore.base import ChunkType, ContextUnit


# ─────────────────────────────────────────────────────────────────────────────
# Extraction
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.ingestion
class TestDetectKind:

    def test_pdf_magic_wins_over_name(self):
        assert detect_kind("notes.txt", "text/plain", b"%PDF-1.7") == DocumentKind.PDF

    def test_csv_by_content_type(self):
        assert detect_kind("export", "text/csv; charset=utf-8", b"a,b") == DocumentKind.CSV

    def test_csv_by_extension(self):
        assert detect_kind("Sales.CSV", "application/octet-stream", b"a,b") == DocumentKind.CSV

    def test_unsupported(self):
        assert detect_kind("notes.txt", "text/plain", b"hello") is None
        assert detect_kind("setup.exe", None, b"MZ\x90\x00") is None


@pytest.mark.unit
@pytest.mark.ingestion
class TestContentExtractor:

    async def test_pdf_pages(self, resume_pdf_bytes):
        result = await ContentExtractor().extract(resume_pdf_bytes, DocumentKind.PDF)

        assert len(result.pages) == 1
        assert result.pages[0].page_number == 1
        assert "Jane Doe" in result.pages[0].text

    async def test_unreadable_pdf_yields_no_pages(self):
        result = await ContentExtractor().extract(b"%PDF-broken", DocumentKind.PDF)

        assert result.pages == []
        assert result.is_empty

    async def test_csv_rows(self, sales_csv_bytes):
        result = await ContentExtractor().extract(sales_csv_bytes, DocumentKind.CSV)

        assert result.rows[0] == {"month": "Jan", "revenue": "100", "region": "north"}
        assert len(result.rows) == 3

    def test_blank_rows_dropped(self):
        assert parse_csv_text("a,b\n1,2\n,\n\n3,4\n") == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}]


# ─────────────────────────────────────────────────────────────────────────────
# Chunking
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.ingestion
class TestChunker:

    def test_paragraphs_packed_without_splitting(self):
        para = "word " * 100            # 500 chars
        text = "\n\n".join([para.strip()] * 5)

        units = Chunker(max_chunk_chars=1200).chunk_text(text)

        assert len(units) == 3
        for unit in units:
            for piece in unit.text.split("\n\n"):
                assert piece == para.strip()

    def test_oversize_paragraph_kept_whole(self):
        huge  = "x" * 3000
        units = Chunker(max_chunk_chars=1200).chunk_text(f"intro\n\n{huge}\n\noutro")

        assert [len(u.text) for u in units] == [5, 3000, 5]

    def test_table_pages_merge_and_flag_spanning(self):
        table = "name | qty\napple | 1\npear | 2\nplum | 3"
        pages = [
            PageText(1, "Intro paragraph."),
            PageText(2, table),
            PageText(3, table),
            PageText(4, "Closing words."),
        ]

        units = Chunker().chunk(ExtractionResult(kind=DocumentKind.PDF, pages=pages))

        assert [u.chunk_type for u in units] == [ChunkType.TEXT, ChunkType.TABLE, ChunkType.TEXT]
        assert units[1].meta == {"page": 2, "spans_pages": True}
        assert units[0].meta == {"page": 1}

    def test_csv_rows_grouped(self):
        rows  = [{"i": str(n)} for n in range(45)]
        units = Chunker(csv_rows_per_chunk=20).chunk(ExtractionResult(kind=DocumentKind.CSV, rows=rows))

        assert [u.meta for u in units] == [
            {"start_row": 0,  "end_row": 20},
            {"start_row": 20, "end_row": 40},
            {"start_row": 40, "end_row": 45},
        ]
        assert json.loads(units[2].text)[0] == {"i": "40"}
        assert all(u.chunk_type == ChunkType.CSV for u in units)

    def test_looks_like_table(self):
        assert looks_like_table("a | b\nc | d\ne | f")
        assert not looks_like_table("Just a sentence.\nAnother one.")

    def test_empty_input(self):
        assert Chunker().chunk_text("   \n\n  ") == []


# ─────────────────────────────────────────────────────────────────────────────
# Embedding
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.ingestion
class TestEmbeddingPipeline:

    async def test_windows_never_exceed_size(self, fake_gateway):
        in_flight = 0
        peak      = 0

        async def _embed(text):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return [1.0]

        fake_gateway.embed.side_effect = _embed
        units = [ContextUnit(text=f"u{i}") for i in range(12)]

        result = await EmbeddingPipeline(fake_gateway, window_size=5).embed_units(units)

        assert peak <= 5
        assert fake_gateway.embed.await_count == 12
        assert all(u.embedding == [1.0] for u in result.units)

    async def test_failed_unit_kept_without_vector(self, fake_gateway):
        async def _embed(text):
            if text == "bad":
                raise RuntimeError("rate limited")
            return [0.5]

        fake_gateway.embed.side_effect = _embed
        units = [ContextUnit(text="good"), ContextUnit(text="bad"), ContextUnit(text="fine")]

        result = await EmbeddingPipeline(fake_gateway).embed_units(units)

        assert [u.text for u in result.units] == ["good", "bad", "fine"]
        assert result.units[1].embedding is None
        assert result.failed_units == [1]
        assert result.success_rate == pytest.approx(2 / 3)

    async def test_no_units(self, fake_gateway):
        result = await EmbeddingPipeline(fake_gateway).embed_units([])

        assert result.units == []
        assert result.success_rate == 1.0
