"""Agents for the case assistant."""

from .intent_resolver import IntentResolver
from .response_governor import ResponseGovernor, GovernanceStage
from .action_planner import ActionPlanner
from .prompt_builder import PromptBuilder

__all__ = [
    "IntentResolver",
    "ResponseGovernor",
    "GovernanceStage",
    "ActionPlanner",
    "PromptBuilder",
]
