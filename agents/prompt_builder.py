"""Prompt assembly for the case assistant."""

from typing import List, Optional

from config.settings import Settings
from llm.base_client import Message
from memory.context_manager import ConversationContextManager
from memory.models import Session, UserProfile
from schemas.context import CaseFacts, UserContext
from schemas.knowledge import KnowledgeResult
from schemas.responses import IntentAnalysis, QuickActionPlan
from utils.amount_detection import format_amount

LANGUAGE_NAMES = {"es": "Spanish", "en": "English", "pt": "Portuguese"}


class PromptBuilder:
    """
    Builds the system prompt and message list sent to the generator.

    Stage instructions come from the QuickActionPlan, so the generator is
    told up front what may be disclosed. The governor still enforces it.
    """

    SYSTEM_PROMPT = """You are Toto, a warm and empathetic assistant for an animal rescue platform.
You help people understand a rescue case and find a way to support it.

## Ground Rules
1. Only state facts about the case that appear in the Case Information section
2. Never invent medical details, amounts, dates or contact data
3. If you don't know something, say so and offer what you can do
4. Write plain sentences: no markdown, no bullet points, no bold text
5. Keep replies short: two to four sentences
6. Thank the user at most once per reply

## Donation Flow
- Ask how much the user would like to donate before sharing any payment detail
- Never write a bank alias or account unless the Stage Instructions allow it
- After sharing an alias, the platform asks for the transfer receipt; do not ask for it yourself"""

    def __init__(self, settings: Optional[Settings] = None, context_manager: Optional[ConversationContextManager] = None):
        self.settings = settings or Settings()
        self.context_manager = context_manager or ConversationContextManager()

    def build_case_context(self, case_facts: CaseFacts) -> str:
        lines = [
            "## Case Information",
            f"- Name: {case_facts.name} ({case_facts.case_id})",
            f"- Status: {case_facts.status.value}",
        ]
        if case_facts.species:
            lines.append(f"- Animal Type: {case_facts.species}")
        if case_facts.location:
            lines.append(f"- Location: {case_facts.location}")
        if case_facts.condition:
            lines.append(f"- Condition: {case_facts.condition}")
        if case_facts.guardian_name:
            lines.append(f"- Guardian: {case_facts.guardian_name}")
        if case_facts.description:
            lines.append(f"- Description: {case_facts.description}")
        if case_facts.target_amount:
            raised = case_facts.current_amount or 0
            pct = raised / case_facts.target_amount * 100
            lines.append(
                f"- Funding Progress: {format_amount(raised)} of {format_amount(case_facts.target_amount)} ({pct:.1f}%)"
            )
        return "\n".join(lines)

    def build_intent_context(self, analysis: IntentAnalysis) -> str:
        return "\n".join([
            "## Intent Analysis",
            f"- Detected Intent: {analysis.intent.value}",
            f"- Confidence: {analysis.confidence * 100:.1f}%",
            f"- Emotional Tone: {analysis.emotional_tone.value}",
            f"- Urgency: {analysis.urgency.value}",
            f"- Suggested Actions: {', '.join(analysis.suggested_actions) or 'None'}",
        ])

    def build_stage_instructions(self, plan: QuickActionPlan, case_facts: CaseFacts) -> str:
        lines = ["## Stage Instructions"]
        if plan.show_amount_prompt:
            lines.append("- The user wants to donate but has not said how much. Ask for the amount. Do not mention any alias.")
        if plan.show_primary_alias:
            lines.append(f"- The donation alias of the guardian is {case_facts.guardian_alias}. You may mention it.")
        if plan.show_alternate_alias:
            lines.append(
                f"- Donations go to {self.settings.alternate_fund_name} "
                f"(alias {self.settings.alternate_fund_alias}). You may mention it."
            )
        if plan.show_social_links:
            lines.append("- Encourage sharing; the share links are shown as buttons.")
        if plan.show_guardian_contact:
            lines.append("- The guardian's contact is shown as a button; point the user to it.")
        if len(lines) == 1:
            lines.append("- Do not mention payment aliases or contact details.")
        return "\n".join(lines)

    def build_system_prompt(
        self,
        case_facts: CaseFacts,
        user_context: UserContext,
        analysis: IntentAnalysis,
        plan: QuickActionPlan,
        knowledge: KnowledgeResult,
        session: Session,
        profile: UserProfile,
    ) -> str:
        sections = [self.SYSTEM_PROMPT, self.build_case_context(case_facts)]

        if knowledge.chunks:
            sections.append("## Knowledge Base\n" + knowledge.as_prompt_context())

        sections.append(self.context_manager.get_user_context_string(profile))
        history = self.context_manager.get_conversation_context_string(session)
        if history:
            sections.append(history)

        sections.append(self.build_intent_context(analysis))
        sections.append(self.build_stage_instructions(plan, case_facts))

        language = LANGUAGE_NAMES.get(user_context.language, user_context.language)
        sections.append(f"## Language\nAlways reply in {language}.")
        return "\n\n".join(sections)

    def build_messages(self, system_prompt: str, message: str) -> List[Message]:
        return [
            Message(role="system", content=system_prompt),
            Message(role="user", content=message),
        ]
