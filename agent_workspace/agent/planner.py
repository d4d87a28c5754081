"""
Message routing for the planner node.

Ordered keyword rules; the first rule that matches decides the route:

  1. email + offer/draft/letter            → retrieve (offer flow, carry email)
  2. message is mostly an email, no data   → retrieve (offer follow-up)
     keyword
  3. bare greeting                         → simple_answer
  4. data-analysis keyword                 → analyze_data
  5. offer intent                          → retrieve (offer flow)
  6. anything else                         → simple_answer

The keyword sets and the 0.7 ratio are part of the routing contract;
changing them changes which flow existing messages take.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from agent_workspace.agent.state import NodeName

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

EMAIL_ONLY_RATIO = 0.7

GREETINGS = ("hi", "hello", "hey", "howdy", "greetings", "what's up", "sup")

# Rule 2 only looks at these three; rule 4 uses the full set
FOLLOW_UP_DATA_KEYWORDS = ("csv", "analyze", "chart")
DATA_KEYWORDS = ("csv", "analyze", "chart", "plot", "trend", "sales", "data", "visualize")

OFFER_KEYWORDS = ("offer", "draft", "letter")


class Flow(str, Enum):
    OFFER        = "offer"
    DATA         = "data"
    CONVERSATION = "conversation"


@dataclass(frozen=True)
class RouteDecision:
    next:   NodeName
    flow:   Flow
    reason: str
    email:  str | None = None

    @property
    def is_offer_flow(self) -> bool:
        return self.flow == Flow.OFFER

    @property
    def is_data_flow(self) -> bool:
        return self.flow == Flow.DATA


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(k in text for k in keywords)


def is_greeting(message: str) -> bool:
    text = message.strip().lower()
    return any(text in (g, f"{g}.", f"{g}!") for g in GREETINGS)


def mentions_offer(message: str) -> bool:
    return _contains_any(message.lower(), OFFER_KEYWORDS)


def classify_message(message: str) -> RouteDecision:
    """Pure routing decision for one message; never raises."""
    text    = (message or "").strip()
    lowered = text.lower()

    email_match = EMAIL_RE.search(text)
    email       = email_match.group(0) if email_match else None

    if email and _contains_any(lowered, OFFER_KEYWORDS):
        return RouteDecision(NodeName.RETRIEVE, Flow.OFFER, "email with offer request", email)

    if (
        email
        and len(email) >= EMAIL_ONLY_RATIO * len(text)
        and not _contains_any(lowered, FOLLOW_UP_DATA_KEYWORDS)
    ):
        return RouteDecision(NodeName.RETRIEVE, Flow.OFFER, "email follow-up", email)

    if is_greeting(text):
        return RouteDecision(NodeName.SIMPLE_ANSWER, Flow.CONVERSATION, "greeting")

    if _contains_any(lowered, DATA_KEYWORDS):
        return RouteDecision(NodeName.ANALYZE_DATA, Flow.DATA, "data analysis request")

    if _contains_any(lowered, OFFER_KEYWORDS) or (
        "resume" in lowered and ("candidate" in lowered or "for" in lowered)
    ):
        return RouteDecision(NodeName.RETRIEVE, Flow.OFFER, "offer request")

    return RouteDecision(NodeName.SIMPLE_ANSWER, Flow.CONVERSATION, "general question")
