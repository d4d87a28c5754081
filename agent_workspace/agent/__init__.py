"""
Agent Package
═════════════

The conversational workflow: a LangGraph state machine that routes each
message to chat, offer drafting or CSV analysis, plus the progress channel
that streams its notes to SSE subscribers.

Modules
───────
  state.py     AgentState, NodeName, transition table
  planner.py   Ordered keyword routing rules
  nodes.py     Node functions and AgentDependencies
  graph.py     StateGraph construction and routing guard
  progress.py  Per-request progress channels and SSE framing
  runner.py    One request → one run → one RunResult
"""

from agent_workspace.agent.graph import build_agent_graph
from agent_workspace.agent.nodes import AgentDependencies
from agent_workspace.agent.planner import RouteDecision, classify_message
from agent_workspace.agent.progress import ProgressRegistry
from agent_workspace.agent.runner import AgentRunner, build_run_result
from agent_workspace.agent.state import AgentState, NodeName

__all__ = [
    "AgentDependencies",
    "AgentRunner",
    "AgentState",
    "NodeName",
    "ProgressRegistry",
    "RouteDecision",
    "build_agent_graph",
    "build_run_result",
    "classify_message",
]
