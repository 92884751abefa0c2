"""End-to-end tests for the case assistant pipeline."""

import asyncio

import pytest
from config.settings import Settings
from memory.session_store import ProfileStore, SessionStore
from orchestrator import CaseAssistantOrchestrator
from schemas.context import ConversationContext, ConversationMessage, Intent, UserContext
from schemas.knowledge import KnowledgeChunk, KnowledgeResult
from utils.messages import get_message_catalog
from utils.rate_limiter import RateLimitService

from conftest import FailingLLMClient, FakeKnowledgeClient, FakeLLMClient

TRANSLATION_MARKER = "Translate the following"


def scripted(draft: str, translation: str = "Hello"):
    """Reply with `draft`, except for translation requests."""
    def reply(messages):
        if messages[-1].content.startswith(TRANSLATION_MARKER):
            return translation
        return draft
    return reply


def make_orchestrator(llm=None, knowledge=None, rate_limiter=None, **settings):
    settings.setdefault("embedding_provider", "none")
    return CaseAssistantOrchestrator(
        settings=Settings(**settings),
        llm_client=llm or FakeLLMClient(),
        knowledge_client=knowledge or FakeKnowledgeClient(),
        session_store=SessionStore(),
        profile_store=ProfileStore(),
        rate_limiter=rate_limiter,
    )


class TestDonationFlow:
    """Amount before alias, alias before verification."""

    @pytest.mark.asyncio
    async def test_donate_without_amount_asks_for_amount(self, case_facts, user_context):
        llm = FakeLLMClient(
            "¡Gracias por querer ayudar a Luna! Podés transferir al alias luna.rescate. ¿Cuánto te gustaría donar?"
        )
        orchestrator = make_orchestrator(llm)

        response = await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)

        assert response.success
        assert response.metadata.intent == Intent.DONATE
        assert response.metadata.confidence == 0.8
        assert response.actions.show_amount_prompt
        assert not response.actions.shows_alias
        assert "luna.rescate" not in response.message
        assert response.message.endswith("¿Cuánto te gustaría donar?")

    @pytest.mark.asyncio
    async def test_affirmation_after_amount_in_history_shows_alias(self, case_facts, user_context):
        llm = FakeLLMClient("¡Genial! Podés transferir al alias luna.rescate.")
        orchestrator = make_orchestrator(llm)
        context = ConversationContext(
            conversation_id="conv-b",
            history=[ConversationMessage(role="user", content="Quiero donar $500")],
        )

        response = await orchestrator.process_inquiry("Dale", case_facts, user_context, context)

        assert response.success
        assert response.metadata.intent == Intent.DONATE
        assert response.metadata.confidence == 0.9
        assert response.actions.show_primary_alias
        assert not response.actions.show_alternate_alias
        assert "luna.rescate" in response.message
        assert response.message.endswith(get_message_catalog().get("verification_followup", "es"))

    @pytest.mark.asyncio
    async def test_missing_alias_uses_alternate_fund(self, case_facts_without_alias, user_context):
        llm = FakeLLMClient("¡Gracias! Podés transferir al alias toto.fondo.rescate.")
        orchestrator = make_orchestrator(llm)

        response = await orchestrator.process_inquiry("Quiero donar $1000", case_facts_without_alias, user_context)

        assert response.actions.show_alternate_alias
        assert not response.actions.show_primary_alias
        assert response.message.endswith(get_message_catalog().get("verification_followup", "es"))

    @pytest.mark.asyncio
    async def test_amount_prompt_in_user_language(self, case_facts):
        orchestrator = make_orchestrator(FakeLLMClient("Thank you for caring about Luna."))
        user = UserContext(user_id="user-en", language="en")

        response = await orchestrator.process_inquiry("I want to donate", case_facts, user)

        assert response.message == "Thank you for caring about Luna. How much would you like to donate?"

    @pytest.mark.asyncio
    async def test_amount_in_earlier_turn_carries_forward(self, case_facts, user_context):
        llm = FakeLLMClient("Gracias por tu aporte.")
        orchestrator = make_orchestrator(llm)

        await orchestrator.process_inquiry("Quiero donar $500", case_facts, user_context)
        response = await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)

        assert response.actions.show_primary_alias
        assert not response.actions.show_amount_prompt


class TestFailures:
    """Failures come back as localized, categorized responses."""

    @pytest.mark.asyncio
    async def test_empty_message(self, case_facts, user_context):
        llm = FakeLLMClient()
        orchestrator = make_orchestrator(llm)

        response = await orchestrator.process_inquiry("   ", case_facts, user_context)

        assert not response.success
        assert response.error.category == "validation"
        assert not response.error.retryable
        assert response.message == get_message_catalog().get("errors.validation", "es")
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_invalid_case_facts(self, user_context):
        orchestrator = make_orchestrator()
        response = await orchestrator.process_inquiry("Hola", {"case_id": "c1"}, user_context)
        assert response.error.category == "validation"

    @pytest.mark.asyncio
    async def test_rate_limited(self, case_facts, user_context):
        limiter = RateLimitService(user_requests=1, admin_requests=10, global_requests=100, window_seconds=60)
        orchestrator = make_orchestrator(rate_limiter=limiter)

        first = await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)
        second = await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)

        assert first.success
        assert not second.success
        assert second.error.category == "rate_limit"
        assert second.error.retryable
        assert second.error.retry_after_ms > 0

    @pytest.mark.asyncio
    async def test_generation_failure_leaves_no_partial_state(self, case_facts, user_context):
        orchestrator = make_orchestrator(FailingLLMClient())

        response = await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)

        assert not response.success
        assert response.error.category == "generation_failed"
        assert response.message == get_message_catalog().get("errors.generation_failed", "es")
        assert "completion service exploded" not in response.message
        assert len(orchestrator.session_store) == 0
        assert len(orchestrator.profile_store) == 0

    @pytest.mark.asyncio
    async def test_empty_completion(self, case_facts, user_context):
        orchestrator = make_orchestrator(FakeLLMClient("   "))
        response = await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)
        assert response.error.category == "generation_failed"

    @pytest.mark.asyncio
    async def test_no_completion_client(self, case_facts, user_context, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        orchestrator = CaseAssistantOrchestrator(
            settings=Settings(embedding_provider="none"),
            knowledge_client=FakeKnowledgeClient(),
        )

        response = await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)

        assert response.error.category == "generation_failed"

    @pytest.mark.asyncio
    async def test_knowledge_failure_degrades(self, case_facts, user_context):
        orchestrator = make_orchestrator(knowledge=FakeKnowledgeClient(fail=True))
        response = await orchestrator.process_inquiry("Quiero compartir el caso", case_facts, user_context)

        assert response.success
        assert response.actions.show_social_links


class TestGrounding:
    """Knowledge retrieval and prompt construction."""

    @pytest.mark.asyncio
    async def test_help_seeking_hint_limits_reply(self, case_facts, user_context):
        knowledge = FakeKnowledgeClient(KnowledgeResult(chunks=[
            KnowledgeChunk(id="k1", title="Ayudar", content="Formas de ayudar", rule_hints=["help_seeking"]),
        ]))
        llm = FakeLLMClient(scripted("Luna está en Córdoba. Podés compartir el caso."))
        orchestrator = make_orchestrator(llm, knowledge)

        response = await orchestrator.process_inquiry("Hola, buen día", case_facts, user_context)

        assert response.message == "Podés compartir el caso."
        assert knowledge.calls[0]["agent_type"] == "case_agent"
        assert knowledge.calls[0]["audience"] == "donors"

    @pytest.mark.asyncio
    async def test_prompt_carries_language_and_knowledge(self, case_facts, user_context):
        knowledge = FakeKnowledgeClient(KnowledgeResult(chunks=[
            KnowledgeChunk(id="k1", title="Donaciones", content="Las donaciones se verifican con comprobante."),
        ]))
        llm = FakeLLMClient("Gracias.")
        orchestrator = make_orchestrator(llm, knowledge)

        await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)

        system_prompt = llm.calls[-1][0].content
        assert "Always reply in Spanish" in system_prompt
        assert "Las donaciones se verifican con comprobante." in system_prompt
        assert "Luna" in system_prompt


class TestSessions:
    """Memory across turns."""

    @pytest.mark.asyncio
    async def test_turns_are_recorded(self, case_facts, user_context):
        orchestrator = make_orchestrator(FakeLLMClient("¿Cuánto te gustaría donar?"))

        response = await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)

        session = orchestrator.session_store.get(response.metadata.conversation_id)
        assert response.metadata.conversation_id == "user-1_case-1"
        assert [t.role for t in session.turns] == ["user", "assistant"]
        assert session.turns[0].intent == Intent.DONATE
        assert session.turns[0].timestamp < session.turns[1].timestamp

    @pytest.mark.asyncio
    async def test_affirmation_follows_assistant_question(self, case_facts, user_context):
        orchestrator = make_orchestrator(FakeLLMClient(scripted("¿Querés compartir el caso en tus redes sociales?")))

        await orchestrator.process_inquiry("Hola, buen día", case_facts, user_context)
        response = await orchestrator.process_inquiry("Sí", case_facts, user_context)

        assert response.metadata.intent == Intent.SHARE
        assert response.actions.show_social_links

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_serialized(self, case_facts, user_context):
        orchestrator = make_orchestrator(FakeLLMClient(scripted("Gracias por escribir.")))
        messages = ["Mensaje uno", "Mensaje dos", "Mensaje tres", "Mensaje cuatro"]

        responses = await asyncio.gather(*(
            orchestrator.process_inquiry(m, case_facts, user_context) for m in messages
        ))

        assert all(r.success for r in responses)
        session = orchestrator.session_store.get("user-1_case-1")
        assert session.user_messages() == messages
        assert len(session.turns) == 8
        assert len(orchestrator.session_locks) == 0

    @pytest.mark.asyncio
    async def test_analytics(self, case_facts, user_context):
        orchestrator = make_orchestrator(FakeLLMClient("Gracias."))

        await orchestrator.process_inquiry("Quiero donar", case_facts, user_context)
        await orchestrator.process_inquiry("Quiero compartir el caso", case_facts, user_context)
        await orchestrator.process_inquiry("", case_facts, user_context)

        analytics = orchestrator.get_analytics()
        assert analytics.total_interactions == 3
        assert analytics.successful_interactions == 2
        assert analytics.total_sessions == 1
        assert analytics.total_users == 1
        assert analytics.engagement_distribution["medium"] == 1
        assert dict(analytics.top_actions)["donate"] == 2
