"""
Candidate attribute detection from resume text.

Pure pattern matching, no I/O. Each detector returns None (or an empty
list) when nothing matches; extract_candidate_details() applies the
defaults so callers always get a complete CandidateDetails.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

from agent_workspace.vectorstore.base import ContextUnit

DEFAULT_POSITION   = "Software Engineer"
DEFAULT_EXPERIENCE = 2
DEFAULT_LOCATION   = "India"
MAX_SKILLS         = 10

_ROLE_NOUNS = r"(?:engineer|developer|manager|analyst|designer|specialist|consultant|architect)"

_POSITION_PATTERNS = (
    re.compile(
        r"(?:position|title|role|job title|current role)[\s:]+"
        r"([a-z\s]+?(?:engineer|developer|manager|analyst|designer|specialist|consultant|architect|lead|senior|junior))",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:senior|junior|lead|principal)\s+[a-z\s]+?" + _ROLE_NOUNS, re.IGNORECASE),
    re.compile(
        r"\b(?:full\s*stack|frontend|backend|software|data|ml|ai|devops|cloud|product|project)\s+[a-z\s]*?"
        + _ROLE_NOUNS,
        re.IGNORECASE,
    ),
)

_EXPERIENCE_PATTERNS = (
    re.compile(r"(\d+)\+?\s*(?:years?|yrs?)\s*(?:of\s*)?(?:experience|exp)", re.IGNORECASE),
    re.compile(r"experience[\s:]+(\d+)\+?\s*(?:years?|yrs?)", re.IGNORECASE),
    re.compile(r"(\d+)\+?\s*(?:years?|yrs?)\s*(?:in|of)", re.IGNORECASE),
)

_PLACES = (
    "india|usa|uk|canada|australia|germany|france|andhra pradesh|karnataka|maharashtra|"
    "tamil nadu|delhi|mumbai|bangalore|hyderabad|chennai|pune|kolkata"
)

# Bare mentions omit germany/france; those match only after a prefix like "based in"
_BARE_PLACES = (
    "india|usa|uk|canada|australia|andhra pradesh|karnataka|maharashtra|"
    "tamil nadu|delhi|mumbai|bangalore|hyderabad|chennai|pune|kolkata"
)

_LOCATION_PATTERNS = (
    re.compile(
        r"(?:location|based in|from|residing in)[\s:]+([a-z\s,]+?(?:" + _PLACES + r"))",
        re.IGNORECASE,
    ),
    re.compile(r"\b(" + _BARE_PLACES + r")\b", re.IGNORECASE),
)

SKILL_KEYWORDS = (
    "javascript", "python", "java", "react", "node", "angular", "vue",
    "typescript", "sql", "mongodb", "postgresql", "aws", "azure", "docker",
    "kubernetes", "git", "html", "css", "express", "django", "flask",
    "spring", "redux", "graphql", "machine learning", "ml", "ai",
    "data science", "tensorflow", "pytorch", "pandas", "numpy", "devops",
    "ci/cd",
)

_SALARY_PATTERNS = (
    re.compile(
        r"(?:salary|ctc|package|compensation)[\s:]+(?:₹|rs\.?|inr|\$|usd)?\s*"
        r"(\d+(?:,\d+)*(?:\.\d+)?)\s*(?:lakh|lpa|per annum|pa|annually|yearly)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:₹|rs\.?|inr|\$|usd)\s*(\d+(?:,\d+)*(?:\.\d+)?)\s*(?:lakh|lpa|per annum|pa)",
        re.IGNORECASE,
    ),
)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class CandidateDetails:
    position:         str = DEFAULT_POSITION
    experience_years: int = DEFAULT_EXPERIENCE
    skills:           list[str] = field(default_factory=list)
    location:         str = DEFAULT_LOCATION
    current_salary:   str | None = None


def detect_position(text: str) -> str | None:
    for i, pattern in enumerate(_POSITION_PATTERNS):
        match = pattern.search(text)
        if match:
            title = match.group(1) if i == 0 else match.group(0)
            return _WHITESPACE_RE.sub(" ", title.strip())
    return None


def detect_experience(text: str) -> int | None:
    for pattern in _EXPERIENCE_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def detect_location(text: str) -> str | None:
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return None


def detect_skills(text: str) -> list[str]:
    lowered = text.lower()
    return [s for s in SKILL_KEYWORDS if s in lowered][:MAX_SKILLS]


def detect_salary(text: str) -> str | None:
    for pattern in _SALARY_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).replace(",", "")
    return None


def extract_candidate_details(units: Sequence[ContextUnit]) -> CandidateDetails:
    """Run every detector over the joined unit text and fill in defaults."""
    if not units:
        return CandidateDetails()

    text = "\n".join(u.text or "" for u in units).lower()
    experience = detect_experience(text)
    return CandidateDetails(
        position=detect_position(text) or DEFAULT_POSITION,
        experience_years=DEFAULT_EXPERIENCE if experience is None else experience,
        skills=detect_skills(text),
        location=detect_location(text) or DEFAULT_LOCATION,
        current_salary=detect_salary(text),
    )
