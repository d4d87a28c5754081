"""LangGraph workflow for one agent run.

    planner ─┬─► simple_answer ─────────────────────────────► END
             ├─► analyze_data ──────────────────────────────► END
             └─► retrieve ─┬─► generate_answer ─────────────► END
                           └─► extract ─► draft ─► finalize ► END
                               (each may also end early with an answer)

Every node writes `next`; a per-node router checks it against
TRANSITIONS. A proposal outside the table is logged and redirected to
simple_answer (or END when simple_answer itself misbehaves), so a run
always terminates with some answer.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Mapping

from langgraph.graph import END, StateGraph

from agent_workspace.agent.nodes import NODE_FUNCTIONS, AgentDependencies
from agent_workspace.agent.state import TRANSITIONS, AgentState, NodeName, validate_transitions

logger = logging.getLogger(__name__)

NodeFunction = Callable[[AgentState, AgentDependencies], Awaitable[dict]]


def route_next(node: NodeName, state: AgentState) -> str:
    """Resolve the successor `node` proposed in state["next"]."""
    proposed = state.get("next")
    legal    = TRANSITIONS[node]

    try:
        target = NodeName(proposed)
    except ValueError:
        target = None

    if target is not None and target in legal:
        return END if target is NodeName.TERMINAL else target.value

    fallback = END if node is NodeName.SIMPLE_ANSWER else NodeName.SIMPLE_ANSWER.value
    logger.error(
        "Graph | invalid route node=%s proposed=%r legal=%s, falling back to %s",
        node.value, proposed, sorted(n.value for n in legal), fallback,
    )
    return fallback


def _path_map(node: NodeName) -> dict[str, str]:
    targets = {n.value for n in TRANSITIONS[node] if n is not NodeName.TERMINAL}
    if node is not NodeName.SIMPLE_ANSWER:
        targets.add(NodeName.SIMPLE_ANSWER.value)
    path_map = {t: t for t in targets}
    path_map[END] = END
    return path_map


def _bind(fn: NodeFunction, deps: AgentDependencies):
    """Wrapper to inject the shared dependencies into a node function."""
    async def node(state: AgentState) -> dict:
        return await fn(state, deps)
    node.__name__ = getattr(fn, "__name__", "node")
    return node


def _router(node: NodeName):
    def route(state: AgentState) -> str:
        return route_next(node, state)
    return route


def build_agent_graph(
    deps:  AgentDependencies,
    nodes: Mapping[NodeName, NodeFunction] | None = None,
):
    """
    Build and compile the agent workflow.

    Args:
        deps:  Collaborators handed to every node.
        nodes: Optional replacements for individual node functions (tests).

    Raises:
        ValueError: If the transition table is inconsistent.
    """
    validate_transitions()

    functions = {**NODE_FUNCTIONS, **(nodes or {})}
    unknown   = set(functions) - set(TRANSITIONS)
    if unknown:
        raise ValueError(f"No transitions defined for nodes: {sorted(n.value for n in unknown)}")

    workflow = StateGraph(AgentState)
    for name, fn in functions.items():
        workflow.add_node(name.value, _bind(fn, deps))

    workflow.set_entry_point(NodeName.PLANNER.value)
    for name in functions:
        workflow.add_conditional_edges(name.value, _router(name), _path_map(name))

    compiled = workflow.compile()
    logger.info("Agent graph built | nodes=%d", len(functions))
    return compiled
