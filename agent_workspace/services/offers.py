"""
Offer Letter Drafting

Builds the HTML offer letter for a candidate from the facts the extract
step produced:

  1. Estimate an offered salary (location decides currency and unit)
  2. Ask the generation gateway for one personalised opening sentence
     (short, bounded output); any failure keeps the fixed opening
  3. Render the letter template

The template is fixed; only the opening sentence is generated, so a
draft is produced even when every provider is down.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Sequence

from agent_workspace.core.config import settings
from agent_workspace.llm.gateway import GenerationGateway
from agent_workspace.processing.details import (
    DEFAULT_EXPERIENCE,
    DEFAULT_LOCATION,
    DEFAULT_POSITION,
)
from agent_workspace.vectorstore.base import ContextUnit

logger = logging.getLogger(__name__)

START_DATE_OFFSET_DAYS = 14
OPENING_CONTEXT_CHARS  = 300
OPENING_MIN_CHARS      = 10
TOP_SKILLS             = 5


@dataclass
class OfferRequest:
    name:             str
    email:            str
    position:         str = DEFAULT_POSITION
    experience_years: int = DEFAULT_EXPERIENCE
    skills:           list[str] = field(default_factory=list)
    location:         str = DEFAULT_LOCATION
    current_salary:   str | None = None


# ---------------------------------------------------------------------------
# Salary estimation
# ---------------------------------------------------------------------------

def _is_india(location: str | None) -> bool:
    return not location or "india" in location.lower()


def _format_amount(amount: float, india: bool) -> str:
    if india:
        value = round(amount, 1)
        text  = f"{value:g}"
        return f"₹{text} LPA"
    return f"${int(round(amount / 1000.0) * 1000):,} per annum"


def estimate_salary(
    position:         str | None,
    experience_years: int | None,
    location:         str | None,
    current_salary:   str | None = None,
) -> str:
    """
    Offered salary as display text, e.g. "₹18 LPA" or "$108,000 per annum".

    A parseable current salary is bumped by 15%. Otherwise a base figure is
    picked from the seniority words in the title and scaled by experience.
    """
    india = _is_india(location)

    if current_salary:
        try:
            current = float(str(current_salary).replace(",", ""))
        except ValueError:
            current = 0.0
        if current > 0:
            return _format_amount(current * 1.15, india)

    title = (position or "").lower()
    if any(word in title for word in ("senior", "lead", "principal")):
        base = 15.0 if india else 120_000.0
    elif "mid" in title or "experienced" in title:
        base = 10.0 if india else 90_000.0
    else:
        base = 6.0 if india else 70_000.0

    years = DEFAULT_EXPERIENCE if experience_years is None else experience_years
    if years >= 5:
        base *= 1.5
    elif years >= 3:
        base *= 1.2
    elif years < 1:
        base = max(4.0 if india else 40_000.0, base * 0.7)

    return _format_amount(base, india)


# ---------------------------------------------------------------------------
# Drafting
# ---------------------------------------------------------------------------

_OPENING_PROMPT = (
    "Write a single, enthusiastic sentence welcoming {name} to {company} as a "
    "{position}, mentioning one specific skill or experience from their resume context.\n\n"
    "Resume Context: {context}\n\n"
    "Output ONLY the sentence. No quotes."
)

_FIXED_OPENING = (
    "We are absolutely thrilled to offer you the position of <strong>{position}</strong> "
    "at {company}. Your skills and experience impressed us deeply, and we believe you "
    "will be a transformative addition to our team."
)

_LETTER_TEMPLATE = """
<div class="offer-letter" style="font-family: Helvetica, Arial, sans-serif; max-width: 700px; margin: 0 auto; padding: 40px; color: #334155; line-height: 1.6;">
  <div style="display: flex; justify-content: space-between; border-bottom: 2px solid #f1f5f9; padding-bottom: 20px;">
    <h1 style="margin: 0; color: #2563eb;">{company}</h1>
    <span style="color: #64748b;">{today}</span>
  </div>
  <p><strong>Dear {name},</strong></p>
  <p>{opening}</p>
  <h3>Position Details</h3>
  <table style="width: 100%; border-collapse: collapse;">
    <tr><td><strong>Position</strong></td><td>{position}</td></tr>
    <tr><td><strong>Location</strong></td><td>{location}</td></tr>
    <tr><td><strong>Annual Base Salary</strong></td><td>{salary}</td></tr>
    <tr><td><strong>Key Skills</strong></td><td>{skills}</td></tr>
  </table>
  <p><strong>Start Date:</strong> We anticipate your start date to be <strong>{start_date}</strong>.</p>
  <p>Please reply to this offer at <a href="mailto:{email}">{email}</a> to confirm your acceptance.</p>
  <div style="margin-top: 60px;">
    <p style="margin: 0;"><strong>Hiring Manager</strong></p>
    <p style="margin: 0; color: #64748b;">{company}</p>
  </div>
</div>
""".strip()


def _long_date(d: date) -> str:
    return f"{d.strftime('%B')} {d.day}, {d.year}"


class OfferDrafter:
    """
    Usage:
        drafter = OfferDrafter(gateway)
        html    = await drafter.draft(OfferRequest(...), units)
    """

    def __init__(self, gateway: GenerationGateway, company_name: str | None = None) -> None:
        self._gateway = gateway
        self._company = company_name or settings.company_name

    async def draft(
        self,
        offer: OfferRequest,
        units: Sequence[ContextUnit] = (),
        today: date | None = None,
    ) -> str:
        today    = today or date.today()
        salary   = estimate_salary(
            offer.position, offer.experience_years, offer.location, offer.current_salary,
        )
        opening  = await self._opening(offer, units)
        skills   = ", ".join(offer.skills[:TOP_SKILLS]) or "To be discussed"

        logger.info(
            "OfferDrafter | position=%s location=%s salary=%s",
            offer.position, offer.location, salary,
        )
        return _LETTER_TEMPLATE.format(
            company=html.escape(self._company),
            today=_long_date(today),
            name=html.escape(offer.name or "Candidate"),
            opening=opening,
            position=html.escape(offer.position),
            location=html.escape(offer.location),
            salary=html.escape(salary),
            skills=html.escape(skills),
            start_date=_long_date(today + timedelta(days=START_DATE_OFFSET_DAYS)),
            email=html.escape(offer.email),
        )

    async def _opening(self, offer: OfferRequest, units: Sequence[ContextUnit]) -> str:
        fixed = _FIXED_OPENING.format(
            position=html.escape(offer.position), company=html.escape(self._company),
        )
        if not units:
            return fixed

        context = " ".join(u.text for u in units[:2])[:OPENING_CONTEXT_CHARS]
        prompt  = _OPENING_PROMPT.format(
            name=offer.name or "the candidate",
            company=self._company,
            position=offer.position,
            context=context,
        )
        try:
            generated = await self._gateway.complete(
                self._gateway.build_messages(None, prompt),
                temperature=0.7,
                max_tokens=60,
            )
        except Exception as exc:
            logger.warning("OfferDrafter | opening generation failed, using fixed text: %s", exc)
            return fixed

        generated = (generated or "").strip().strip('"')
        if len(generated) <= OPENING_MIN_CHARS:
            return fixed
        return (
            f"{html.escape(generated)} "
            "We believe you will be a transformative addition to our team."
        )
