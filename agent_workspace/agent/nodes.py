"""
Agent graph nodes.

Every node is an async function (state, deps) -> dict of changed keys.
Collaborator faults are caught here and turned into a terminal answer or
a degraded route; nothing a collaborator raises leaves a node.

`thought` is a user-visible progress note. Nodes that end the run with an
answer leave it None so only real progress steps are shown.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from agent_workspace.agent.planner import classify_message
from agent_workspace.agent.state import AgentState, ExtractedFacts, NodeName
from agent_workspace.llm.gateway import GenerationGateway
from agent_workspace.processing.contacts import FALLBACK_NAME, ContactExtractor
from agent_workspace.processing.details import (
    DEFAULT_EXPERIENCE,
    DEFAULT_LOCATION,
    DEFAULT_POSITION,
    CandidateDetails,
    extract_candidate_details,
)
from agent_workspace.services.answers import FAULT_REPLY, AnswerService
from agent_workspace.services.file_mapping import FileMapping, FileMappingStore
from agent_workspace.services.offers import OfferDrafter, OfferRequest
from agent_workspace.services.tabular import TabularAnalyzer
from agent_workspace.vectorstore.base import ChunkStoreBase, DurableRecord

logger = logging.getLogger(__name__)

OFFER_RETRIEVAL_LIMIT = 5
QA_RETRIEVAL_LIMIT    = 20
EXTRACTION_UNITS      = 3

END = NodeName.TERMINAL.value

UPLOAD_RESUME_REPLY = (
    "Please upload the required resume file to proceed with generating an offer letter."
)
EMAIL_NOT_FOUND_REPLY = (
    "I couldn't find an email address in the resume. Please provide the candidate's "
    "email address to generate the offer letter."
)
EXTRACTION_FAILED_REPLY = (
    "I encountered an issue extracting information from the resume. Please provide the "
    "candidate's email address to generate the offer letter."
)
EMAIL_REQUIRED_REPLY = (
    "I need an email address to generate the offer letter. Please provide the "
    "candidate's email address."
)
EMPTY_DRAFT_REPLY = (
    "I encountered an issue generating the offer letter. Please try again or provide "
    "more details about the candidate."
)
UPLOAD_CSV_REPLY    = "Please upload the required CSV file to proceed with analysis."
CSV_NOT_FOUND_REPLY = (
    "The CSV file could not be found. Please upload the CSV file again and try the analysis."
)
CSV_DONE_REPLY = "CSV analysis completed. Here's the chart visualization."

_PLANNER_THOUGHTS = {
    "email with offer request": (
        "Planner: User wants an offer letter. Email detected in message. Proceeding to retrieval..."
    ),
    "email follow-up": (
        "Planner: User provided an email. Assuming follow-up for offer letter. Proceeding to retrieval..."
    ),
    "greeting":              "Planner: Detected casual greeting. Routing to simple answer...",
    "data analysis request": "Planner: Detected request for data analysis. Routing to CSV Analyzer...",
    "offer request":         "Planner: Detected offer letter request. Routing to Retriever...",
    "general question":      "Planner: General query detected. Routing to Simple Answer...",
}


@dataclass
class AgentDependencies:
    """Collaborators shared by all nodes of a graph."""
    answers:     AnswerService
    store:       ChunkStoreBase
    gateway:     GenerationGateway
    mappings:    FileMappingStore
    contacts:    ContactExtractor
    drafter:     OfferDrafter
    analyzer:    TabularAnalyzer
    uploads_dir: str = "uploads"


def _finish(answer: str, **extra) -> dict:
    return {"answer": answer, "next": END, "thought": None, **extra}


# ---------------------------------------------------------------------------
# planner
# ---------------------------------------------------------------------------

async def planner_node(state: AgentState, deps: AgentDependencies) -> dict:
    decision = classify_message(state.get("user_message") or "")
    logger.info(
        "Planner | next=%s flow=%s reason=%s",
        decision.next.value, decision.flow.value, decision.reason,
    )
    update = {
        "is_offer_flow": decision.is_offer_flow,
        "is_data_flow":  decision.is_data_flow,
        "next":          decision.next.value,
        "thought":       _PLANNER_THOUGHTS[decision.reason],
    }
    if decision.email:
        update["candidate_email"] = decision.email
    return update


# ---------------------------------------------------------------------------
# retrieve
# ---------------------------------------------------------------------------

async def retrieve_node(state: AgentState, deps: AgentDependencies) -> dict:
    offer_flow  = bool(state.get("is_offer_flow"))
    text_filter = state.get("resume_file_name") or None

    try:
        if offer_flow:
            # Draft quality depends on freshness more than on semantic match
            chunks = await deps.store.query(
                text_filter=text_filter, limit=OFFER_RETRIEVAL_LIMIT, recency_only=True,
            )
        else:
            vector = await _embed_query(deps.gateway, state.get("user_message") or "")
            chunks = await deps.store.query(
                vector=vector, text_filter=text_filter, limit=QA_RETRIEVAL_LIMIT,
            )
    except Exception:
        logger.warning("Retrieve | store query failed offer_flow=%s", offer_flow, exc_info=True)
        if offer_flow:
            return _finish(UPLOAD_RESUME_REPLY)
        return {"chunks": [], "next": NodeName.GENERATE_ANSWER.value, "thought": None}

    chunks = list(chunks or [])
    if offer_flow and not chunks:
        return _finish(UPLOAD_RESUME_REPLY)

    next_node = NodeName.EXTRACT if offer_flow else NodeName.GENERATE_ANSWER
    logger.info("Retrieve | chunks=%d next=%s", len(chunks), next_node.value)
    return {
        "chunks":  chunks,
        "next":    next_node.value,
        "thought": f"Retriever: Fetched {len(chunks)} relevant chunks. Proceeding to {next_node.value}...",
    }


async def _embed_query(gateway: GenerationGateway, text: str) -> list[float] | None:
    if not text.strip():
        return None
    try:
        return await gateway.embed(text)
    except Exception as exc:
        logger.warning("Retrieve | query embedding failed, using metadata lookup: %s", exc)
        return None


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------

async def extract_node(state: AgentState, deps: AgentDependencies) -> dict:
    units         = list(state.get("chunks") or [])[:EXTRACTION_UNITS]
    carried_email = state.get("candidate_email")

    name, email = None, None
    contact_failed = False
    if units:
        try:
            contact = await deps.contacts.extract(units)
            name, email = contact.name, contact.email
        except Exception:
            contact_failed = True
            logger.warning("Extract | contact extraction failed", exc_info=True)

    try:
        details = extract_candidate_details(units)
    except Exception:
        logger.warning("Extract | detail extraction failed, using defaults", exc_info=True)
        details = CandidateDetails()

    final_email = carried_email or email
    facts = _facts(name or FALLBACK_NAME, final_email, details)

    if not final_email:
        reply = EXTRACTION_FAILED_REPLY if contact_failed else EMAIL_NOT_FOUND_REPLY
        return _finish(reply, details=facts)

    return {
        "details": facts,
        "next":    NodeName.DRAFT.value,
        "thought": (
            f'Extractor: Found name "{facts["name"]}" and email "{final_email}". '
            "Proceeding to draft offer..."
        ),
    }


def _facts(name: str, email: str | None, details: CandidateDetails) -> ExtractedFacts:
    return ExtractedFacts(
        name=name,
        email=email,
        position=details.position,
        experience_years=details.experience_years,
        skills=list(details.skills),
        location=details.location,
        current_salary=details.current_salary,
    )


# ---------------------------------------------------------------------------
# draft
# ---------------------------------------------------------------------------

async def draft_node(state: AgentState, deps: AgentDependencies) -> dict:
    facts = state.get("details") or {}
    email = facts.get("email")
    if not email:
        return _finish(EMAIL_REQUIRED_REPLY)

    offer = OfferRequest(
        name=facts.get("name") or FALLBACK_NAME,
        email=email,
        position=facts.get("position") or DEFAULT_POSITION,
        experience_years=facts.get("experience_years", DEFAULT_EXPERIENCE),
        skills=list(facts.get("skills") or []),
        location=facts.get("location") or DEFAULT_LOCATION,
        current_salary=facts.get("current_salary"),
    )
    try:
        html = await deps.drafter.draft(offer, state.get("chunks") or [])
    except Exception as exc:
        logger.error("Draft | offer generation failed", exc_info=True)
        return _finish(
            f"I encountered an error while generating the offer letter: {exc}. "
            "Please try again or provide the candidate's information."
        )

    if not html or not html.strip():
        return _finish(EMPTY_DRAFT_REPLY)

    return {
        "offer_html": html,
        "next":       NodeName.FINALIZE.value,
        "thought":    "Drafting: Generated HTML offer letter. Finalizing...",
    }


# ---------------------------------------------------------------------------
# analyze_data
# ---------------------------------------------------------------------------

def tabular_mappings(mappings: FileMappingStore) -> list[FileMapping]:
    return [m for m in mappings.all() if m.is_tabular]


def pick_tabular_file(candidates: Sequence[FileMapping], message: str) -> FileMapping:
    """A file named in the message wins; otherwise the most recent upload."""
    lowered = (message or "").lower()
    for mapping in candidates:
        name = mapping.original_name.lower()
        stem = Path(name).stem
        if name in lowered or (stem and stem in lowered):
            return mapping
    return max(candidates, key=lambda m: m.timestamp)


def resolve_tabular_path(
    file_ref:    str,
    mappings:    FileMappingStore,
    uploads_dir: str,
) -> Path | None:
    """
    Absolute path → mapping by original name → uploads_dir/<name> →
    first uploads_dir entry whose name partially matches.
    """
    if os.path.isabs(file_ref):
        path = Path(file_ref)
        return path if path.exists() else None

    name    = Path(file_ref).name
    mapping = mappings.find_by_original_name(name)
    if mapping is not None and Path(mapping.stored_path).exists():
        return Path(mapping.stored_path)

    directory = Path(uploads_dir)
    direct    = directory / name
    if direct.exists():
        return direct

    try:
        entries = sorted(p.name for p in directory.iterdir() if p.is_file())
    except OSError:
        return None
    for entry in entries:
        stem = Path(entry).stem
        if name in entry or (stem and stem in name):
            return directory / entry
    return None


async def analyze_data_node(state: AgentState, deps: AgentDependencies) -> dict:
    try:
        file_ref = state.get("file_url")
        if not file_ref:
            candidates = tabular_mappings(deps.mappings)
            if not candidates:
                return _finish(UPLOAD_CSV_REPLY)
            file_ref = pick_tabular_file(candidates, state.get("user_message") or "").stored_path

        loop = asyncio.get_event_loop()
        path = await loop.run_in_executor(
            None, resolve_tabular_path, file_ref, deps.mappings, deps.uploads_dir,
        )
        if path is None:
            logger.info("AnalyzeData | file not found ref=%s", file_ref)
            return _finish(CSV_NOT_FOUND_REPLY)

        result = await deps.analyzer.analyze(str(path))
    except Exception as exc:
        logger.error("AnalyzeData | analysis failed", exc_info=True)
        return _finish(
            f"I encountered an error while analyzing the CSV file: {exc}. "
            "Please ensure the file is properly formatted and try again."
        )

    if result.error:
        return _finish(
            f"I encountered an issue analyzing the CSV file: {result.error}. "
            "Please check the file format and try again."
        )

    return {
        "chart":    result.chart,
        "insights": result.insights or CSV_DONE_REPLY,
        "next":     END,
        "thought":  "Analyzer: Generated chart and insights. Sending response...",
    }


# ---------------------------------------------------------------------------
# simple_answer / generate_answer
# ---------------------------------------------------------------------------

async def answer_node(state: AgentState, deps: AgentDependencies, has_context: bool) -> dict:
    units = list(state.get("chunks") or []) if has_context else []
    try:
        answer = await deps.answers.answer(state.get("user_message") or "", units)
    except Exception:
        logger.warning("Answer | generation failed has_context=%s", has_context, exc_info=True)
        answer = FAULT_REPLY
    return _finish(answer or FAULT_REPLY)


async def simple_answer_node(state: AgentState, deps: AgentDependencies) -> dict:
    return await answer_node(state, deps, has_context=False)


async def generate_answer_node(state: AgentState, deps: AgentDependencies) -> dict:
    return await answer_node(state, deps, has_context=True)


# ---------------------------------------------------------------------------
# finalize
# ---------------------------------------------------------------------------

async def finalize_node(state: AgentState, deps: AgentDependencies) -> dict:
    html  = state.get("offer_html")
    facts = state.get("details") or {}
    if not html:
        return {"next": END, "thought": None}

    try:
        await deps.store.persist_record(DurableRecord(
            kind="email_draft",
            text=html,
            meta={
                "candidate_name":  facts.get("name"),
                "candidate_email": facts.get("email"),
            },
        ))
    except Exception as exc:
        logger.error("Finalize | persisting draft failed", exc_info=True)
        return {"error": f"Finalization error: {exc}", "next": END, "thought": None}

    return {"next": END, "thought": "Finalize: Saved draft. Task complete."}


NODE_FUNCTIONS = {
    NodeName.PLANNER:         planner_node,
    NodeName.RETRIEVE:        retrieve_node,
    NodeName.EXTRACT:         extract_node,
    NodeName.DRAFT:           draft_node,
    NodeName.ANALYZE_DATA:    analyze_data_node,
    NodeName.SIMPLE_ANSWER:   simple_answer_node,
    NodeName.GENERATE_ANSWER: generate_answer_node,
    NodeName.FINALIZE:        finalize_node,
}
