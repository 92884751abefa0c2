"""Tests for the action planner."""

import itertools

import pytest
from agents.action_planner import ActionPlanner
from config.settings import Settings
from memory.models import ConversationTurn, Session
from schemas.context import Intent


def session_with(*user_messages) -> Session:
    return Session(
        conversation_id="c1",
        turns=[ConversationTurn(role="user", content=m) for m in user_messages],
    )


class TestPlanActions:
    """Disclosure decision table."""

    def setup_method(self):
        self.planner = ActionPlanner(Settings(embedding_provider="none"))

    def test_donate_without_amount_prompts_for_amount(self, case_facts):
        plan = self.planner.plan_actions(Intent.DONATE, None, case_facts, "Quiero donar")

        assert plan.show_amount_prompt
        assert not plan.shows_alias
        assert plan.suggested_amounts == list(Settings().suggested_donation_amounts)

    def test_amount_in_message_shows_primary_alias(self, case_facts):
        plan = self.planner.plan_actions(Intent.DONATE, None, case_facts, "Quiero donar $500")

        assert plan.show_primary_alias
        assert not plan.show_alternate_alias
        assert not plan.show_amount_prompt
        assert plan.suggested_amounts is None

    def test_amount_in_history_counts(self, case_facts):
        session = session_with("Quiero donar 1000 pesos")
        plan = self.planner.plan_actions(Intent.DONATE, session, case_facts, "Dale")
        assert plan.show_primary_alias

    def test_amount_flag_counts_after_turns_are_trimmed(self, case_facts):
        session = session_with("Dale", "ok")
        session.amount_stated = True
        plan = self.planner.plan_actions(Intent.DONATE, session, case_facts, "Dale")
        assert plan.show_primary_alias
        assert not plan.show_amount_prompt

    def test_missing_alias_uses_alternate(self, case_facts_without_alias):
        plan = self.planner.plan_actions(Intent.DONATE, None, case_facts_without_alias, "Quiero donar $1000")
        assert plan.show_alternate_alias
        assert not plan.show_primary_alias

    def test_alternatives_requested(self, case_facts):
        plan = self.planner.plan_actions(
            Intent.DONATE, None, case_facts, "Quiero donar $1000, hay otra forma?"
        )
        assert plan.show_alternate_alias
        assert not plan.show_primary_alias

    def test_share_shows_social_links(self, case_facts):
        plan = self.planner.plan_actions(Intent.SHARE, None, case_facts, "Quiero compartir")
        assert plan.show_social_links
        assert not plan.show_amount_prompt

    def test_guardian_contact_needs_request_and_guardian(self, case_facts):
        plan = self.planner.plan_actions(Intent.ADOPT, None, case_facts, "Puedo ser hogar de tránsito?")
        assert plan.show_guardian_contact

        no_guardian = case_facts.model_copy(update={"guardian_id": None})
        plan = self.planner.plan_actions(Intent.ADOPT, None, no_guardian, "Quiero adoptar")
        assert not plan.show_guardian_contact

        plan = self.planner.plan_actions(Intent.HELP, None, case_facts, "Quiero ayudar")
        assert not plan.show_guardian_contact

    @pytest.mark.parametrize("intent", [Intent.SHARE, Intent.ADOPT, Intent.CONTACT, Intent.HELP, Intent.GENERAL])
    def test_non_donation_never_discloses_alias(self, intent, case_facts):
        plan = self.planner.plan_actions(intent, None, case_facts, "Quiero donar $500")
        assert not plan.shows_alias
        assert not plan.show_amount_prompt

    def test_donation_flags_are_mutually_exclusive(self, case_facts, case_facts_without_alias):
        messages = ["Quiero donar", "Quiero donar $500", "otra forma", "$500 por otro alias"]
        for intent, facts, message in itertools.product(
            list(Intent), [case_facts, case_facts_without_alias], messages
        ):
            plan = self.planner.plan_actions(intent, None, facts, message)
            flags = [plan.show_amount_prompt, plan.show_primary_alias, plan.show_alternate_alias]
            assert sum(flags) <= 1, (intent, facts.guardian_alias, message)
            if intent == Intent.DONATE:
                assert sum(flags) == 1


class TestBuildStage:
    """Governance flags follow the plan."""

    def setup_method(self):
        self.settings = Settings(embedding_provider="none")
        self.planner = ActionPlanner(self.settings)

    def test_stage_matches_plan(self, case_facts):
        plan = self.planner.plan_actions(Intent.DONATE, None, case_facts, "Quiero donar $500")
        stage = self.planner.build_stage(plan, None, case_facts, "Quiero donar $500", "es")

        assert stage.amount_stated
        assert stage.alias_shown
        assert not stage.user_requested_restricted
        assert "luna.rescate" in stage.alias_terms
        assert "Luna" in stage.case_terms

    def test_restricted_request_detected(self, case_facts):
        plan = self.planner.plan_actions(Intent.HELP, None, case_facts, "Quiero adoptar")
        stage = self.planner.build_stage(plan, None, case_facts, "Quiero adoptar", "es")
        assert stage.user_requested_restricted

    def test_language_is_carried(self, case_facts):
        plan = self.planner.plan_actions(Intent.GENERAL, None, case_facts, "Hello")
        stage = self.planner.build_stage(plan, None, case_facts, "Hello", "en")
        assert stage.language == "en"
        assert not stage.amount_stated
