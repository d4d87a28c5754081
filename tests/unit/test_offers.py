"""
Unit Tests — Offer drafting
════════════════════════════
Tests for:
  • estimate_salary — currency by location, seniority bands, experience scaling,
                      current-salary bump
  • OfferDrafter    — template fields, generated vs fixed opening, HTML escaping
"""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest

from agent_workspace.services.offers import OfferDrafter, OfferRequest, estimate_salary
from tests.conftest import TEST_OPENING


@pytest.mark.unit
class TestEstimateSalary:

    @pytest.mark.parametrize("position,years,location,expected", [
        ("Software Engineer",        2, "India",       "₹6 LPA"),
        ("Senior Backend Engineer",  6, "Bangalore, India", "₹22.5 LPA"),
        ("Senior Backend Engineer",  4, "",            "₹18 LPA"),
        ("Mid-level Developer",      2, "india",       "₹10 LPA"),
        ("Software Engineer",        0, "India",       "₹4.2 LPA"),
        ("Software Engineer",        2, "USA",         "$70,000 per annum"),
        ("Lead Data Engineer",       5, "Canada",      "$180,000 per annum"),
        ("Experienced Analyst",      3, "UK",          "$108,000 per annum"),
        ("Software Engineer",        0, "USA",         "$49,000 per annum"),
    ])
    def test_bands(self, position, years, location, expected):
        assert estimate_salary(position, years, location) == expected

    def test_current_salary_bumped_by_fifteen_percent(self):
        assert estimate_salary("Software Engineer", 2, "India", "18") == "₹20.7 LPA"
        assert estimate_salary("Software Engineer", 2, "USA", "100,000") == "$115,000 per annum"

    def test_unparseable_current_salary_uses_bands(self):
        assert estimate_salary("Software Engineer", 2, "India", "negotiable") == "₹6 LPA"

    def test_missing_experience_defaults_to_two_years(self):
        assert estimate_salary("Software Engineer", None, None) == "₹6 LPA"


@pytest.mark.unit
class TestOfferDrafter:

    async def test_letter_contains_all_fields(self, fake_gateway, resume_units):
        drafter = OfferDrafter(fake_gateway, "Synapse AI")
        offer   = OfferRequest(
            name="Jane Doe",
            email="jane@co.com",
            position="Backend Engineer",
            skills=["python", "aws", "docker", "sql", "git", "react"],
        )

        html = await drafter.draft(offer, resume_units, today=date(2026, 3, 1))

        assert "Dear Jane Doe," in html
        assert "Synapse AI"     in html
        assert "March 1, 2026"  in html
        assert "March 15, 2026" in html     # start date two weeks out
        assert "python, aws, docker, sql, git" in html
        assert "react" not in html
        assert TEST_OPENING.replace("'", "&#x27;") in html
        assert 'href="mailto:jane@co.com"' in html

    async def test_no_units_uses_fixed_opening(self, fake_gateway):
        drafter = OfferDrafter(fake_gateway, "Synapse AI")

        html = await drafter.draft(OfferRequest(name="Jane", email="j@co.com"))

        assert "We are absolutely thrilled to offer you the position" in html
        assert "To be discussed" in html
        fake_gateway.complete.assert_not_awaited()

    async def test_generation_failure_uses_fixed_opening(self, fake_gateway, resume_units):
        fake_gateway.complete = AsyncMock(side_effect=RuntimeError("down"))
        drafter = OfferDrafter(fake_gateway, "Synapse AI")

        html = await drafter.draft(OfferRequest(name="Jane", email="j@co.com"), resume_units)

        assert "We are absolutely thrilled" in html

    async def test_short_generation_uses_fixed_opening(self, fake_gateway, resume_units):
        fake_gateway.complete = AsyncMock(return_value='"Welcome!"')
        drafter = OfferDrafter(fake_gateway, "Synapse AI")

        html = await drafter.draft(OfferRequest(name="Jane", email="j@co.com"), resume_units)

        assert "We are absolutely thrilled" in html

    async def test_fields_are_escaped(self, fake_gateway):
        drafter = OfferDrafter(fake_gateway, "Synapse AI")

        html = await drafter.draft(OfferRequest(name="<script>x</script>", email="j@co.com"))

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
