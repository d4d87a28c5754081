"""
Candidate contact extraction (name + email) from resume chunks.

Email comes from regexes only. The name is asked of the generation
gateway first (low temperature, a handful of tokens) and validated; when
the model is unavailable or answers with something that is not a name,
the first pair of consecutive capitalised words is used instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from agent_workspace.llm.gateway import GenerationGateway
from agent_workspace.vectorstore.base import ContextUnit

logger = logging.getLogger(__name__)

HEADER_CHUNKS    = 2
HEADER_MAX_CHARS = 1500
EVIDENCE_CHARS   = 300
FALLBACK_NAME    = "Candidate"

_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# PDF text layers sometimes break addresses with stray spaces ("jane.doe @ co .com")
_SPACED_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+\s*@\s*[a-zA-Z0-9.-]+\s*\.\s*[a-zA-Z]{2,}")
_NAME_RE  = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)\b")
_DIGIT_RE = re.compile(r"\d")

_NAME_PROMPT = (
    "Extract the Candidate Name from this resume header.\n"
    "Return ONLY the name, nothing else. "
    'If not found, return "Candidate".\n\n'
    "Resume header:\n{header}"
)


@dataclass
class ContactDetails:
    name:     str | None = None
    email:    str | None = None
    evidence: str = ""


def find_email(text: str) -> str | None:
    match = _EMAIL_RE.search(text)
    if match:
        return match.group(0)
    match = _SPACED_EMAIL_RE.search(text)
    if match:
        return re.sub(r"\s+", "", match.group(0))
    return None


def clean_model_name(raw: str | None) -> str | None:
    """Strip quotes/whitespace and reject anything that does not look like a name."""
    if not raw:
        return None
    name = raw.strip().strip("\"'`").strip()
    if not 2 < len(name) < 50:
        return None
    if FALLBACK_NAME.lower() in name.lower() or _DIGIT_RE.search(name):
        return None
    return name


def find_name_by_pattern(text: str) -> str | None:
    match = _NAME_RE.search(text)
    return match.group(1) if match else None


class ContactExtractor:
    """
    Usage:
        extractor = ContactExtractor(gateway)
        contact   = await extractor.extract(units)
    """

    def __init__(self, gateway: GenerationGateway) -> None:
        self._gateway = gateway

    async def extract(self, units: Sequence[ContextUnit]) -> ContactDetails:
        header = "\n".join(u.text or "" for u in units[:HEADER_CHUNKS])[:HEADER_MAX_CHARS]
        if not header.strip():
            return ContactDetails()

        email = find_email(header)
        name  = await self._ask_name(header) or find_name_by_pattern(header)

        logger.info(
            "ContactExtractor | name_found=%s email_found=%s",
            name is not None, email is not None,
        )
        return ContactDetails(name=name, email=email, evidence=header[:EVIDENCE_CHARS])

    async def _ask_name(self, header: str) -> str | None:
        messages = self._gateway.build_messages(None, _NAME_PROMPT.format(header=header))
        try:
            raw = await self._gateway.complete(messages, temperature=0.1, max_tokens=20)
        except Exception as exc:
            logger.warning("ContactExtractor | name generation failed: %s", exc)
            return None
        return clean_model_name(raw)
