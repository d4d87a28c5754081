"""
Agent Runner — one inbound request → one graph run

  run()
    │ publish "Thinking..." / "Generating offer letter..."
    ▼
  compiled graph (astream, stream_mode="updates")
    │ merge each node delta into the final state
    │ publish each non-empty `thought` as a progress note
    ▼
  build_run_result()  ──► RESULT_READY on the progress channel
                      ──► returned to the synchronous caller

A fault escaping the graph never reaches the caller: the runner streams a
plain conversational answer instead, and if that fails too, substitutes a
fixed reply. Either way the result carries the error note.
"""

from __future__ import annotations

import logging
import time

from agent_workspace.agent.graph import build_agent_graph
from agent_workspace.agent.nodes import AgentDependencies
from agent_workspace.agent.planner import mentions_offer
from agent_workspace.agent.progress import ProgressRegistry
from agent_workspace.agent.state import AgentState, initial_state
from agent_workspace.schemas.agent import ResultKind, RunRequest, RunResult
from agent_workspace.services.answers import workspace_fallback_reply

logger = logging.getLogger(__name__)

OFFER_ACK    = "Generating offer letter..."
THINKING_ACK = "Thinking..."


def has_output(state: AgentState) -> bool:
    return bool(state.get("answer") or state.get("offer_html") or state.get("chart"))


def build_run_result(state: AgentState) -> RunResult:
    """Map the final state onto exactly one result kind (offer > chart > answer)."""
    error = state.get("error")
    if state.get("offer_html"):
        facts = state.get("details") or {}
        return RunResult(
            kind=ResultKind.OFFER,
            offer_html=state["offer_html"],
            candidate_name=facts.get("name"),
            candidate_email=facts.get("email"),
            error=error,
        )
    if state.get("chart"):
        return RunResult(
            kind=ResultKind.CHART,
            chart=state["chart"],
            insights=state.get("insights"),
            error=error,
        )
    return RunResult(kind=ResultKind.ANSWER, answer=state.get("answer"), error=error)


class AgentRunner:
    """
    Usage:
        runner = AgentRunner(deps, registry)
        result = await runner.run(RunRequest(message="hi"), req_id="abc")
    """

    def __init__(
        self,
        deps:     AgentDependencies,
        registry: ProgressRegistry,
        graph=None,
    ) -> None:
        self._deps      = deps
        self._registry  = registry
        self._graph     = graph or build_agent_graph(deps)
        self._assistant = deps.answers.assistant_name

    async def run(self, request: RunRequest, req_id: str | None = None) -> RunResult:
        message = request.message.strip()
        t0      = time.perf_counter()

        self._registry.publish(req_id, OFFER_ACK if mentions_offer(message) else THINKING_ACK)

        state = initial_state(
            user_message=message,
            resume_file_name=request.resume_file_name,
            candidate_email=request.candidate_email,
            file_url=request.file_url,
        )
        try:
            final = await self._execute(state, req_id)
        except Exception as exc:
            logger.exception("AgentRunner | graph run failed req_id=%s", req_id)
            final = await self._recover(state, req_id, exc)

        if not has_output(final):
            logger.warning("AgentRunner | run produced no output req_id=%s", req_id)
            final["answer"] = workspace_fallback_reply(self._assistant)

        result = build_run_result(final)
        self._registry.publish_result(req_id, result.model_dump(mode="json"))
        logger.info(
            "AgentRunner | done req_id=%s kind=%s error=%s latency_ms=%.1f",
            req_id, result.kind.value, result.error is not None,
            (time.perf_counter() - t0) * 1000,
        )
        return result

    async def _execute(self, state: AgentState, req_id: str | None) -> AgentState:
        final: AgentState = dict(state)
        async for update in self._graph.astream(state, stream_mode="updates"):
            for node_name, delta in update.items():
                if not delta:
                    continue
                final.update(delta)
                thought = delta.get("thought")
                if thought:
                    self._registry.publish(req_id, thought)
                logger.debug("AgentRunner | node=%s next=%s", node_name, delta.get("next"))
        return final

    async def _recover(self, state: AgentState, req_id: str | None, exc: Exception) -> AgentState:
        """Best-effort streamed answer after a failed run."""
        parts: list[str] = []
        try:
            async for token in self._deps.answers.stream(state.get("user_message") or ""):
                parts.append(token)
                self._registry.publish(req_id, token)
        except Exception:
            logger.warning("AgentRunner | recovery answer failed req_id=%s", req_id, exc_info=True)

        answer = "".join(parts).strip() or workspace_fallback_reply(self._assistant)
        return {**state, "answer": answer, "error": str(exc) or type(exc).__name__}
