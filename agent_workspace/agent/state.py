"""
Agent run state, node identifiers and the transition table.

Node names are verbs or verb_noun ("retrieve", "draft", "analyze_data")
while state keys are nouns ("chunks", "offer_html"); LangGraph rejects a
node whose name is already a state key.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TypedDict

from langgraph.graph import END


class NodeName(str, Enum):
    PLANNER         = "planner"
    SIMPLE_ANSWER   = "simple_answer"
    ANALYZE_DATA    = "analyze_data"
    RETRIEVE        = "retrieve"
    EXTRACT         = "extract"
    DRAFT           = "draft"
    GENERATE_ANSWER = "generate_answer"
    FINALIZE        = "finalize"
    TERMINAL        = END


class ExtractedFacts(TypedDict, total=False):
    name:             str
    email:            Optional[str]
    position:         str
    experience_years: int
    skills:           list[str]
    location:         str
    current_salary:   Optional[str]


class AgentState(TypedDict, total=False):
    """
    State threaded through every node of one run.

    Nodes never mutate the dict they receive; each returns only the keys
    it changes and LangGraph merges them into the next snapshot.
    """
    # inputs
    user_message:     str
    resume_file_name: Optional[str]
    candidate_email:  Optional[str]
    file_url:         Optional[str]

    # accumulated
    chunks:     list[Any]              # ContextUnit
    details:    ExtractedFacts
    offer_html: Optional[str]
    chart:      Optional[dict]
    insights:   Optional[str]
    answer:     Optional[str]

    # flow
    is_offer_flow: bool
    is_data_flow:  bool
    next:          Optional[str]
    error:         Optional[str]
    thought:       Optional[str]


def initial_state(
    user_message:     str,
    resume_file_name: str | None = None,
    candidate_email:  str | None = None,
    file_url:         str | None = None,
) -> AgentState:
    return AgentState(
        user_message=user_message,
        resume_file_name=resume_file_name,
        candidate_email=candidate_email,
        file_url=file_url,
        chunks=[],
        details={},
        offer_html=None,
        chart=None,
        insights=None,
        answer=None,
        is_offer_flow=False,
        is_data_flow=False,
        next=None,
        error=None,
        thought=None,
    )


# ---------------------------------------------------------------------------
# Transition table: every node's only legal successors
# ---------------------------------------------------------------------------

TRANSITIONS: dict[NodeName, frozenset[NodeName]] = {
    NodeName.PLANNER:         frozenset({NodeName.RETRIEVE, NodeName.SIMPLE_ANSWER, NodeName.ANALYZE_DATA}),
    NodeName.RETRIEVE:        frozenset({NodeName.EXTRACT, NodeName.GENERATE_ANSWER, NodeName.TERMINAL}),
    NodeName.EXTRACT:         frozenset({NodeName.DRAFT, NodeName.TERMINAL}),
    NodeName.DRAFT:           frozenset({NodeName.FINALIZE, NodeName.TERMINAL}),
    NodeName.ANALYZE_DATA:    frozenset({NodeName.TERMINAL}),
    NodeName.SIMPLE_ANSWER:   frozenset({NodeName.TERMINAL}),
    NodeName.GENERATE_ANSWER: frozenset({NodeName.TERMINAL}),
    NodeName.FINALIZE:        frozenset({NodeName.TERMINAL}),
}


def validate_transitions(table: dict[NodeName, frozenset[NodeName]] = TRANSITIONS) -> None:
    """
    Every non-terminal node needs an entry, every successor must be a known
    node, and the terminal node has no successors.

    Raises:
        ValueError: On the first inconsistency found.
    """
    runnable = {n for n in NodeName if n is not NodeName.TERMINAL}
    missing  = runnable - set(table)
    if missing:
        raise ValueError(f"Nodes without a transition entry: {sorted(n.value for n in missing)}")
    if NodeName.TERMINAL in table:
        raise ValueError("The terminal node cannot have successors")
    for node, successors in table.items():
        if not successors:
            raise ValueError(f"Node '{node.value}' has no successors")
        unknown = [s for s in successors if not isinstance(s, NodeName)]
        if unknown:
            raise ValueError(f"Node '{node.value}' routes to unknown nodes: {unknown}")


def is_terminal(state: AgentState) -> bool:
    return state.get("next") == NodeName.TERMINAL.value
