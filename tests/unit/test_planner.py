"""
Unit Tests — Planner routing
═════════════════════════════
Tests for classify_message() and planner_node():
  • Rule order: email+offer → email follow-up → greeting → data → offer → general
  • Email carried into state when present in the message
  • Progress thought per routing reason
"""

from __future__ import annotations

import pytest

from agent_workspace.agent.planner import Flow, classify_message, is_greeting, mentions_offer
from agent_workspace.agent.state import NodeName


@pytest.mark.unit
@pytest.mark.agent
class TestClassifyMessage:

    def test_email_with_offer_keyword_routes_to_offer_retrieval(self):
        decision = classify_message("Draft an offer letter for jane@co.com")

        assert decision.next   == NodeName.RETRIEVE
        assert decision.flow   == Flow.OFFER
        assert decision.email  == "jane@co.com"
        assert decision.reason == "email with offer request"

    def test_bare_email_is_an_offer_follow_up(self):
        """A message that is mostly an email address continues the offer flow."""
        decision = classify_message("jane@co.com")

        assert decision.next   == NodeName.RETRIEVE
        assert decision.is_offer_flow
        assert decision.email  == "jane@co.com"
        assert decision.reason == "email follow-up"

    def test_email_with_surrounding_words_below_ratio_is_not_follow_up(self):
        decision = classify_message("can you tell me who owns the address jane@co.com")

        assert decision.next == NodeName.SIMPLE_ANSWER
        assert decision.flow == Flow.CONVERSATION

    def test_email_mentioned_in_data_request_routes_to_analysis(self):
        decision = classify_message("please check jane@co.com for budget csv analysis")

        assert decision.next == NodeName.ANALYZE_DATA
        assert decision.is_data_flow
        assert decision.email is None

    def test_mostly_email_with_csv_keyword_skips_follow_up_rule(self):
        decision = classify_message("jane.doe@company.com csv")

        assert decision.next == NodeName.ANALYZE_DATA

    @pytest.mark.parametrize("message", ["hi", "Hello!", "hey.", "  what's up  ", "SUP"])
    def test_bare_greetings_route_to_simple_answer(self, message):
        decision = classify_message(message)

        assert decision.next   == NodeName.SIMPLE_ANSWER
        assert decision.reason == "greeting"

    def test_greeting_with_extra_words_is_a_general_question(self):
        decision = classify_message("hi there")

        assert decision.next   == NodeName.SIMPLE_ANSWER
        assert decision.reason == "general question"

    @pytest.mark.parametrize("message", [
        "analyze the upload",
        "show me a chart",
        "plot revenue",
        "what is the sales trend",
        "visualize this data",
    ])
    def test_data_keywords_route_to_analysis(self, message):
        assert classify_message(message).next == NodeName.ANALYZE_DATA

    def test_offer_intent_without_email(self):
        decision = classify_message("Please draft an offer for the new hire")

        assert decision.next   == NodeName.RETRIEVE
        assert decision.flow   == Flow.OFFER
        assert decision.email  is None
        assert decision.reason == "offer request"

    def test_resume_for_candidate_is_offer_intent(self):
        assert classify_message("use the resume for this candidate").is_offer_flow

    def test_general_question(self):
        decision = classify_message("What is the capital of France?")

        assert decision.next == NodeName.SIMPLE_ANSWER
        assert decision.flow == Flow.CONVERSATION

    def test_empty_message_never_raises(self):
        assert classify_message("").next == NodeName.SIMPLE_ANSWER


@pytest.mark.unit
@pytest.mark.agent
class TestPlannerHelpers:

    def test_is_greeting_requires_whole_message(self):
        assert is_greeting("hello")
        assert not is_greeting("hello world")

    def test_mentions_offer_case_insensitive(self):
        assert mentions_offer("Generate the OFFER")
        assert not mentions_offer("analyze my csv")


@pytest.mark.unit
@pytest.mark.agent
class TestPlannerNode:

    async def test_sets_flags_next_and_thought(self, agent_deps):
        from agent_workspace.agent.nodes import planner_node

        update = await planner_node({"user_message": "Draft an offer for jane@co.com"}, agent_deps)

        assert update["next"]            == "retrieve"
        assert update["is_offer_flow"]   is True
        assert update["is_data_flow"]    is False
        assert update["candidate_email"] == "jane@co.com"
        assert update["thought"].startswith("Planner: User wants an offer letter")

    async def test_no_email_leaves_candidate_email_untouched(self, agent_deps):
        from agent_workspace.agent.nodes import planner_node

        update = await planner_node({"user_message": "chart the sales"}, agent_deps)

        assert "candidate_email" not in update
        assert update["next"]         == "analyze_data"
        assert update["is_data_flow"] is True
