"""Action Planner: decides which quick actions are disclosed this turn."""

import logging
from typing import Optional

from config.settings import Settings
from memory.models import Session
from schemas.context import CaseFacts, Intent
from schemas.responses import QuickActionPlan
from utils.amount_detection import has_amount, has_amount_in_history
from utils.text_normalization import compile_patterns, load_keyword_tables, matches_any, normalize_text
from .response_governor import GovernanceStage

logger = logging.getLogger(__name__)


class ActionPlanner:
    """
    Computes the QuickActionPlan from intent, session and case facts only.

    Generated text never influences what is disclosed; the governor is
    then told what the plan shows so the text agrees with it.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        patterns = load_keyword_tables(self.settings.intent_keywords_path).get("patterns", {})
        self.alternative_patterns = compile_patterns(patterns.get("alternatives", []))
        self.foster_adoption_patterns = compile_patterns(patterns.get("foster_adoption", []))
        self.restricted_patterns = compile_patterns(patterns.get("help_restricted", []))

    def amount_stated(self, message: str, session: Optional[Session]) -> bool:
        """Amount in the current message or any prior user turn, trimmed ones included."""
        if has_amount(message):
            return True
        if session is None:
            return False
        return session.amount_stated or has_amount_in_history(session.user_messages())

    def wants_alternatives(self, message: str) -> bool:
        return matches_any(normalize_text(message), self.alternative_patterns)

    def mentions_foster_adoption(self, message: str) -> bool:
        return matches_any(normalize_text(message), self.foster_adoption_patterns)

    def plan_actions(
        self,
        intent: Intent,
        session: Optional[Session],
        case_facts: CaseFacts,
        message: str,
    ) -> QuickActionPlan:
        """
        Evaluate the disclosure table.

        Args:
            intent: Resolved intent of the current message
            session: Session state before this turn
            case_facts: Externally supplied case facts
            message: Current user message

        Returns:
            QuickActionPlan for this turn
        """
        donating = intent == Intent.DONATE
        amount_stated = self.amount_stated(message, session)
        wants_alternatives = self.wants_alternatives(message)

        show_amount_prompt = donating and not amount_stated
        show_primary_alias = (
            donating and amount_stated and case_facts.has_guardian_alias and not wants_alternatives
        )
        show_alternate_alias = (
            donating and amount_stated and (not case_facts.has_guardian_alias or wants_alternatives)
        )

        plan = QuickActionPlan(
            show_amount_prompt=show_amount_prompt,
            show_primary_alias=show_primary_alias,
            show_alternate_alias=show_alternate_alias,
            show_social_links=intent == Intent.SHARE,
            show_guardian_contact=self.mentions_foster_adoption(message) and case_facts.has_guardian_id,
            suggested_amounts=list(self.settings.suggested_donation_amounts) if show_amount_prompt else None,
        )
        logger.debug(f"Planned actions for {intent.value}: {plan.model_dump(exclude_none=True)}")
        return plan

    def build_stage(
        self,
        plan: QuickActionPlan,
        session: Optional[Session],
        case_facts: CaseFacts,
        message: str,
        language: str,
    ) -> GovernanceStage:
        """Governance flags consistent with the plan."""
        normalized = normalize_text(message)
        alias_terms = tuple(
            t for t in (
                case_facts.guardian_alias,
                self.settings.alternate_fund_alias,
                self.settings.alternate_fund_name,
            ) if t
        )
        return GovernanceStage(
            amount_stated=self.amount_stated(message, session),
            alias_shown=plan.shows_alias,
            user_requested_restricted=matches_any(normalized, self.restricted_patterns)
            or matches_any(normalized, self.foster_adoption_patterns),
            language=language,
            case_terms=tuple(case_facts.fact_terms()),
            alias_terms=alias_terms,
        )
