"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : fake_gateway, memory_store, file_mappings, registry,
                    agent_deps, runner, ingestion_service, async_client

Environment strategy:
  - No database: the in-memory chunk store backs every test.
  - No generation provider: a mocked GenerationGateway answers by prompt.
  - Ingestion is published inline; API tests replace the publisher with a mock.
  - Uploaded files go to a per-test tmp_path.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # ASGI-level tests (no external services)
  pytest tests/unit/test_planner.py
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("DATABASE_URL",      "")
os.environ.setdefault("OPENAI_API_KEY",    "")
os.environ.setdefault("GROQ_API_KEY",      "")
os.environ.setdefault("TOGETHER_API_KEY",  "")
os.environ.setdefault("OLLAMA_ENABLED",    "false")
os.environ.setdefault("INGEST_BACKEND",    "inline")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("ASSISTANT_NAME",    "Karpa AI")
os.environ.setdefault("COMPANY_NAME",      "Synapse AI")
os.environ.setdefault("APP_ENV",           "development")


TEST_NAME        = "Jane Doe"
TEST_EMAIL       = "jane.doe@example.com"
TEST_OPENING     = "Welcome aboard, Jane, your Kafka pipeline work at Acme stood out to all of us!"
TEST_CHAT_REPLY  = "Sure, happy to help with that."
TEST_VECTOR      = [0.1, 0.2, 0.3]

RESUME_TEXT = (
    "Jane Doe\n"
    "Senior Backend Engineer\n"
    "jane.doe@example.com | +91 98765 43210\n\n"
    "Based in Bangalore, India. 6 years of experience building Python, Django "
    "and AWS services. Current CTC: 18 LPA."
)


# ─────────────────────────────────────────────────────────────────────────────
# Mock generation gateway
# ─────────────────────────────────────────────────────────────────────────────

def _prompt_of(messages) -> str:
    return messages[-1].content if messages else ""


async def _reply(messages, temperature=None, max_tokens=None) -> str:
    """Answer like a model would, keyed on which prompt was sent."""
    prompt = _prompt_of(messages)
    if "Candidate Name" in prompt:
        return TEST_NAME
    if "welcoming" in prompt:
        return TEST_OPENING
    return TEST_CHAT_REPLY


@pytest.fixture
def fake_gateway():
    """
    GenerationGateway with every network call mocked.

    complete() → prompt-keyed reply (see _reply)
    embed()    → TEST_VECTOR
    stream()   → two tokens
    """
    from agent_workspace.llm.gateway import GenerationGateway

    gateway = MagicMock(spec=GenerationGateway)
    gateway.build_messages = GenerationGateway.build_messages
    gateway.complete = AsyncMock(side_effect=_reply)
    gateway.embed    = AsyncMock(return_value=list(TEST_VECTOR))

    async def _stream(messages, temperature=None, max_tokens=None):
        for token in ("Hello ", "there!"):
            yield token

    gateway.stream = MagicMock(side_effect=_stream)
    return gateway


@pytest.fixture
def failing_gateway(fake_gateway):
    """Gateway whose providers are all down."""
    from agent_workspace.llm.fallback import ProvidersExhaustedError

    error = ProvidersExhaustedError("complete", ["ollama/llama3.2: ConnectError: refused"])
    fake_gateway.complete = AsyncMock(side_effect=error)
    fake_gateway.embed    = AsyncMock(side_effect=ProvidersExhaustedError("embed", []))

    async def _stream(messages, temperature=None, max_tokens=None):
        raise ProvidersExhaustedError("stream", [])
        yield  # pragma: no cover

    fake_gateway.stream = MagicMock(side_effect=_stream)
    return fake_gateway


@pytest.fixture(autouse=True)
def _closed_circuits():
    """Circuit-breaker state is process-wide; start every test closed."""
    from agent_workspace.llm.fallback import reset_circuits
    reset_circuits()
    yield
    reset_circuits()


# ─────────────────────────────────────────────────────────────────────────────
# Stores
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def memory_store():
    from agent_workspace.vectorstore.memory_store import InMemoryChunkStore
    return InMemoryChunkStore()


@pytest.fixture
def file_mappings():
    from agent_workspace.services.file_mapping import FileMappingStore
    return FileMappingStore()


@pytest.fixture
def make_unit():
    """
    Factory fixture: ContextUnit with a controllable age.

    Usage:
        unit = make_unit("text", document="resume.pdf", age_seconds=10)
    """
    from agent_workspace.vectorstore.base import DOCUMENT_NAME_KEY, ContextUnit

    base = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def _build(
        text:        str,
        document:    str | None = None,
        age_seconds: int = 0,
        embedding:   list[float] | None = None,
    ) -> ContextUnit:
        meta = {DOCUMENT_NAME_KEY: document} if document else {}
        return ContextUnit(
            text=text,
            meta=meta,
            embedding=embedding,
            created_at=base - timedelta(seconds=age_seconds),
        )

    return _build


@pytest.fixture
def resume_units(make_unit):
    return [make_unit(RESUME_TEXT, document="jane_resume.pdf")]


# ─────────────────────────────────────────────────────────────────────────────
# Agent wiring
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def registry():
    from agent_workspace.agent.progress import ProgressRegistry
    return ProgressRegistry()


@pytest.fixture
def agent_deps(fake_gateway, memory_store, file_mappings, tmp_path):
    """AgentDependencies around the fake gateway; only the network is mocked."""
    from agent_workspace.agent.nodes import AgentDependencies
    from agent_workspace.processing.contacts import ContactExtractor
    from agent_workspace.services.answers import AnswerService
    from agent_workspace.services.offers import OfferDrafter
    from agent_workspace.services.tabular import TabularAnalyzer

    return AgentDependencies(
        answers=AnswerService(fake_gateway, "Karpa AI"),
        store=memory_store,
        gateway=fake_gateway,
        mappings=file_mappings,
        contacts=ContactExtractor(fake_gateway),
        drafter=OfferDrafter(fake_gateway, "Synapse AI"),
        analyzer=TabularAnalyzer(),
        uploads_dir=str(tmp_path),
    )


@pytest.fixture
def runner(agent_deps, registry):
    from agent_workspace.agent.runner import AgentRunner
    return AgentRunner(agent_deps, registry)


@pytest.fixture
def write_csv(tmp_path):
    """Factory fixture: write CSV text under tmp_path and return its path."""
    def _write(name: str, content: str) -> str:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)
    return _write


# ─────────────────────────────────────────────────────────────────────────────
# Ingestion
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_publisher():
    """Mocked TaskPublisher — records calls without scheduling any work."""
    from agent_workspace.services.ingestion import TaskPublisher
    publisher = MagicMock(spec=TaskPublisher)
    publisher.publish = AsyncMock(return_value=None)
    publisher.drain   = AsyncMock(return_value=None)
    return publisher


@pytest.fixture
def ingestion_service(file_mappings, mock_publisher, tmp_path):
    from agent_workspace.services.ingestion import IngestionService
    return IngestionService(
        mappings=file_mappings,
        publisher=mock_publisher,
        uploads_dir=str(tmp_path / "uploads"),
        max_bytes=1024 * 1024,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Sample file bytes
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def resume_pdf_bytes() -> bytes:
    """One-page PDF with a real text layer (built with PyMuPDF)."""
    import fitz

    doc = fitz.open()
    page = doc.new_page()
    y = 72
    for line in RESUME_TEXT.split("\n"):
        page.insert_text((72, y), line, fontsize=10)
        y += 16
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def sales_csv_bytes() -> bytes:
    return b"month,revenue,region\nJan,100,north\nFeb,150,south\nMar,250,north\n"


@pytest.fixture
def txt_bytes() -> bytes:
    return b"Just some plain text notes.\n"


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client with dependency overrides
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_with_overrides(runner, registry, ingestion_service):
    """
    FastAPI app with every process-wide collaborator overridden:
      - get_runner            → runner over the fake gateway + in-memory store
      - get_registry          → the same registry the runner publishes to
      - get_ingestion_service → service with a mocked publisher, tmp uploads dir
    """
    from agent_workspace.api.dependencies import get_ingestion_service, get_registry, get_runner
    from agent_workspace.main import app

    app.dependency_overrides[get_runner]            = lambda: runner
    app.dependency_overrides[get_registry]          = lambda: registry
    app.dependency_overrides[get_ingestion_service] = lambda: ingestion_service

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app_with_overrides) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client using the overridden app.

    httpx >= 0.28 removed the 'app=' shortcut; use ASGITransport explicitly.
    """
    from httpx import ASGITransport
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
