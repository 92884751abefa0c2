"""Main orchestrator for the case assistant."""

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional, Union

from config.settings import Settings
from schemas.context import CaseFacts, ConversationContext, UserContext
from schemas.knowledge import KnowledgeResult
from schemas.responses import (
    AgentAnalytics,
    ErrorInfo,
    InquiryMetadata,
    InquiryResponse,
)

# LLM components
from llm.base_client import BaseLLMClient
from llm.factory import create_llm_client_from_settings

# Retrieval components
from retrieval.embeddings_manager import EmbeddingsManager, create_embeddings_manager
from retrieval.knowledge_client import BaseKnowledgeClient, audience_for_role, create_knowledge_client

# Memory components
from memory.context_manager import ConversationContextManager
from memory.models import ConversationTurn, InteractionRecord
from memory.session_locks import SessionLockRegistry
from memory.session_store import ProfileStore, SessionStore

# Agents
from agents.action_planner import ActionPlanner
from agents.intent_resolver import IntentResolver
from agents.prompt_builder import PromptBuilder
from agents.response_governor import ResponseGovernor

from utils.errors import AppError, ErrorCategory, GenerationFailed
from utils.messages import MessageCatalog
from utils.rate_limiter import RateLimitService
from utils.validation import parse_case_facts, parse_user_context, validate_message

logger = logging.getLogger(__name__)

CLEANUP_EVERY = 100


class CaseAssistantOrchestrator:
    """Runs one inquiry through admission, intent, knowledge, generation and governance."""

    AGENT_TYPE = "case_agent"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm_client: Optional[BaseLLMClient] = None,
        embeddings: Optional[EmbeddingsManager] = None,
        knowledge_client: Optional[BaseKnowledgeClient] = None,
        session_store: Optional[SessionStore] = None,
        profile_store: Optional[ProfileStore] = None,
        rate_limiter: Optional[RateLimitService] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings
            llm_client: Completion client; built from settings when omitted
            embeddings: Embeddings manager; built from settings when omitted
            knowledge_client: Knowledge retrieval client; built from settings when omitted
            session_store: Conversation memory store
            profile_store: User profile store
            rate_limiter: Admission control
        """
        self.settings = settings or Settings()

        self.llm_client = llm_client
        if self.llm_client is None:
            self._init_llm_client()

        self.embeddings = embeddings if embeddings is not None else create_embeddings_manager(self.settings)
        self.knowledge_client = knowledge_client or create_knowledge_client(self.settings)

        self.session_store = session_store or SessionStore.from_settings(self.settings)
        self.profile_store = profile_store or ProfileStore.from_settings(self.settings)
        self.session_locks = SessionLockRegistry()
        self.rate_limiter = rate_limiter or RateLimitService.from_settings(self.settings)
        self.messages = MessageCatalog(self.settings.messages_path, self.settings.default_language)

        self._init_agents()

        self._total_interactions = 0
        self._successful_interactions = 0
        self._total_processing_ms = 0

    def _init_llm_client(self):
        """Initialize LLM client based on settings."""
        if not self.settings.get_llm_api_key():
            logger.warning(
                f"No API key for {self.settings.llm_provider}. "
                "Inquiries will fail with a localized apology until one is configured."
            )
            return

        self.llm_client = create_llm_client_from_settings(self.settings)
        logger.info(
            f"LLM client initialized: {self.settings.llm_provider} "
            f"({self.llm_client.get_model_name()})"
        )

    def _init_agents(self):
        # Translation is only a last resort when no embedding model is configured
        translator = self.llm_client if self.embeddings is None else None
        self.intent_resolver = IntentResolver(self.settings, self.embeddings, translator)
        self.governor = ResponseGovernor(self.messages, self.settings.intent_keywords_path)
        self.action_planner = ActionPlanner(self.settings)
        self.prompt_builder = PromptBuilder(self.settings, ConversationContextManager())
        logger.info(
            f"Case assistant ready (embeddings: {'on' if self.embeddings else 'off'}, "
            f"llm: {self.llm_client.get_provider_name() if self.llm_client else 'none'})"
        )

    async def warm_up(self) -> bool:
        """Pre-compute intent example embeddings."""
        return await self.intent_resolver.warm_up()

    @staticmethod
    def conversation_id_for(
        case_facts: CaseFacts,
        user_context: UserContext,
        conversation_context: Optional[ConversationContext] = None,
    ) -> str:
        """Stable id for a logical conversation, whatever the transport."""
        if conversation_context and conversation_context.conversation_id:
            return conversation_context.conversation_id
        return f"{user_context.user_id}_{case_facts.case_id}"

    async def process_inquiry(
        self,
        message: str,
        case_facts: Union[CaseFacts, dict],
        user_context: Union[UserContext, dict],
        conversation_context: Optional[ConversationContext] = None,
    ) -> InquiryResponse:
        """
        Process a user inquiry end-to-end.

        Args:
            message: User message
            case_facts: Case facts (model or raw dict)
            user_context: Who is asking (model or raw dict)
            conversation_context: Optional transport context and prior history

        Returns:
            InquiryResponse; failures come back with success=False and a
            localized message rather than as exceptions
        """
        start = time.perf_counter()
        self._total_interactions += 1
        language = self.settings.default_language
        conversation_id = None

        try:
            user_context = parse_user_context(user_context)
            language = user_context.language
            self.rate_limiter.enforce(user_context.user_id, user_context.user_role)

            case_facts = parse_case_facts(case_facts)
            message = validate_message(message, self.settings.max_message_length)
            conversation_id = self.conversation_id_for(case_facts, user_context, conversation_context)

            async with self.session_locks.hold(conversation_id):
                response = await self._run_pipeline(
                    message, case_facts, user_context, conversation_context, conversation_id, start
                )

            self._successful_interactions += 1
            self._total_processing_ms += response.metadata.processing_time_ms
            return response

        except AppError as e:
            if e.category == ErrorCategory.GENERATION_FAILED:
                logger.error(f"Inquiry failed: {e.to_dict()}")
            else:
                logger.warning(f"Inquiry rejected: {e.to_dict()}")
            return self._error_response(e, language, start, conversation_id)
        except Exception as e:
            logger.error(f"Unexpected error processing inquiry: {e}", exc_info=True)
            return self._error_response(AppError(str(e)), language, start, conversation_id)
        finally:
            if self._total_interactions % CLEANUP_EVERY == 0:
                self.rate_limiter.cleanup()

    async def _run_pipeline(
        self,
        message: str,
        case_facts: CaseFacts,
        user_context: UserContext,
        conversation_context: Optional[ConversationContext],
        conversation_id: str,
        start: float,
    ) -> InquiryResponse:
        language = user_context.language
        session = self.session_store.get_or_create(
            conversation_id,
            user_id=user_context.user_id,
            case_id=case_facts.case_id,
            history=conversation_context.history if conversation_context else None,
        )
        profile = self.profile_store.get_or_create(user_context.user_id, language)

        analysis = await self.intent_resolver.resolve_intent(message, session, profile)
        knowledge = await self._retrieve_knowledge(message, user_context)

        plan = self.action_planner.plan_actions(analysis.intent, session, case_facts, message)
        stage = self.action_planner.build_stage(plan, session, case_facts, message, language)

        system_prompt = self.prompt_builder.build_system_prompt(
            case_facts, user_context, analysis, plan, knowledge, session, profile
        )
        draft = await self._generate(system_prompt, message)
        final = self.governor.govern(draft, analysis.intent, stage, knowledge.rule_hints)

        # Commit only once the whole turn succeeded
        now = datetime.now()
        self.session_store.commit(session, [
            ConversationTurn(role="user", content=message, timestamp=now, intent=analysis.intent),
            ConversationTurn(role="assistant", content=final, timestamp=now),
        ])
        profile = self.profile_store.record_interaction(profile, InteractionRecord(
            case_id=case_facts.case_id,
            intent=analysis.intent,
            actions=list(analysis.suggested_actions),
        ))

        processing_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"Inquiry {conversation_id}: intent={analysis.intent.value} "
            f"({analysis.source}, {analysis.confidence:.2f}) in {processing_ms}ms"
        )
        return InquiryResponse(
            success=True,
            message=final,
            actions=plan,
            metadata=InquiryMetadata(
                intent=analysis.intent,
                confidence=analysis.confidence,
                processing_time_ms=processing_ms,
                conversation_id=conversation_id,
                emotional_tone=analysis.emotional_tone,
                urgency=analysis.urgency,
                engagement_level=profile.engagement_level,
            ),
        )

    async def _retrieve_knowledge(self, message: str, user_context: UserContext) -> KnowledgeResult:
        """Knowledge for grounding; failures degrade to no knowledge."""
        audience = audience_for_role(user_context.user_role, self.settings.default_audience)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self.knowledge_client.retrieve,
                    message,
                    self.AGENT_TYPE,
                    audience,
                    self.settings.max_knowledge_results,
                ),
                timeout=self.settings.knowledge_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Knowledge retrieval timed out after {self.settings.knowledge_timeout_seconds}s")
        except Exception as e:
            logger.warning(f"Knowledge retrieval failed, continuing without it: {e}")
        return KnowledgeResult()

    async def _generate(self, system_prompt: str, message: str) -> str:
        if self.llm_client is None or not self.llm_client.is_available():
            raise GenerationFailed("No completion client configured")

        messages = self.prompt_builder.build_messages(system_prompt, message)
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.llm_client.chat,
                    messages,
                    self.settings.llm_temperature,
                    self.settings.llm_max_tokens,
                ),
                timeout=self.settings.generation_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailed(
                f"Timed out after {self.settings.generation_timeout_seconds}s"
            ) from e
        except Exception as e:
            raise GenerationFailed(str(e), {"provider": self.llm_client.get_provider_name()}) from e

        if not response.content.strip():
            raise GenerationFailed("Empty completion")
        return response.content

    def _error_response(
        self,
        error: AppError,
        language: str,
        start: float,
        conversation_id: Optional[str],
    ) -> InquiryResponse:
        return InquiryResponse(
            success=False,
            message=self.messages.get(f"errors.{error.category.value}", language),
            metadata=InquiryMetadata(
                processing_time_ms=int((time.perf_counter() - start) * 1000),
                conversation_id=conversation_id,
            ),
            error=ErrorInfo(
                category=error.category.value,
                retryable=error.retryable,
                retry_after_ms=getattr(error, "retry_after_ms", None),
            ),
        )

    def get_analytics(self) -> AgentAnalytics:
        """Snapshot of runtime statistics."""
        average = (
            self._total_processing_ms / self._successful_interactions
            if self._successful_interactions else 0.0
        )
        return AgentAnalytics(
            total_interactions=self._total_interactions,
            successful_interactions=self._successful_interactions,
            average_processing_time_ms=round(average, 2),
            total_sessions=len(self.session_store),
            total_users=len(self.profile_store),
            engagement_distribution=self.profile_store.engagement_distribution(),
            top_actions=self.profile_store.top_actions(),
        )
