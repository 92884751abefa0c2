"""In-memory bounded stores for sessions and user profiles."""

import logging
from collections import Counter, OrderedDict
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from schemas.context import ConversationMessage
from utils.amount_detection import has_amount
from .models import ConversationTurn, InteractionRecord, Session, UserProfile

logger = logging.getLogger(__name__)

SUMMARY_TURNS = 4
SUMMARY_PREVIEW_CHARS = 50


def build_context_summary(turns: List[ConversationTurn]) -> str:
    """Rolling summary of the most recent turns."""
    return " | ".join(
        f"{turn.role}: {turn.content[:SUMMARY_PREVIEW_CHARS]}..."
        for turn in turns[-SUMMARY_TURNS:]
    )


class SessionStore:
    """
    Conversation memory keyed by conversation_id.

    Reads hand out detached copies; nothing reaches the store until
    `commit` (or `update`) is called, so a failed pipeline leaves no
    partial turns behind. Sessions expire `ttl_seconds` after their last
    interaction and the least recently used one is evicted once
    `max_sessions` is exceeded.
    """

    def __init__(
        self,
        ttl_seconds: float = 24 * 60 * 60,
        max_sessions: int = 10000,
        max_turns: int = 100,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_sessions = max_sessions
        self.max_turns = max_turns
        self._clock = clock
        self._sessions: "OrderedDict[str, Session]" = OrderedDict()

    @classmethod
    def from_settings(cls, settings) -> "SessionStore":
        return cls(settings.session_ttl_seconds, settings.max_sessions, settings.max_turns_per_session)

    def _is_expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_interaction > self.ttl

    def get(self, conversation_id: str) -> Optional[Session]:
        """Detached copy of a live session, or None."""
        session = self._sessions.get(conversation_id)
        if session is None:
            return None
        if self._is_expired(session, self._clock()):
            del self._sessions[conversation_id]
            logger.debug(f"Session {conversation_id} expired")
            return None
        return session.model_copy(deep=True)

    def get_or_create(
        self,
        conversation_id: str,
        user_id: Optional[str] = None,
        case_id: Optional[str] = None,
        history: Optional[Iterable[ConversationMessage]] = None,
    ) -> Session:
        """
        Fetch a session, or start a new one.

        A new session is seeded from `history` (transport-provided prior
        messages) so that facts stated elsewhere, such as a donation amount,
        still count. The new session is not stored until committed.
        """
        session = self.get(conversation_id)
        if session is not None:
            return session

        now = self._clock()
        session = Session(
            conversation_id=conversation_id,
            user_id=user_id,
            case_id=case_id,
            created_at=now,
            last_interaction=now,
        )
        if history:
            messages = sorted(
                (m for m in history if m.role in ("user", "assistant") and m.content.strip()),
                key=lambda m: m.timestamp,
            )
            for message in messages:
                self._append(session, ConversationTurn(
                    role=message.role,
                    content=message.content,
                    timestamp=message.timestamp,
                ))
            session.context_summary = build_context_summary(session.turns)
            logger.info(f"Created session {conversation_id} from {len(messages)} prior messages")
        else:
            logger.info(f"Created session {conversation_id}")
        return session

    def _append(self, session: Session, turn: ConversationTurn) -> None:
        # Turns stay strictly time-ordered even if the clock stalls
        if session.turns and turn.timestamp <= session.turns[-1].timestamp:
            turn = turn.model_copy(
                update={"timestamp": session.turns[-1].timestamp + timedelta(microseconds=1)}
            )
        session.turns.append(turn)
        if turn.role == "user" and has_amount(turn.content):
            session.amount_stated = True
        if len(session.turns) > self.max_turns:
            del session.turns[: len(session.turns) - self.max_turns]

    def commit(self, session: Session, turns: Iterable[ConversationTurn] = ()) -> Session:
        """Append turns and store the session as the live copy."""
        for turn in turns:
            self._append(session, turn)
        session.context_summary = build_context_summary(session.turns)
        session.last_interaction = self._clock()

        self._sessions[session.conversation_id] = session.model_copy(deep=True)
        self._sessions.move_to_end(session.conversation_id)
        self._evict()
        return session

    def update(self, session: Session, turn: ConversationTurn) -> Session:
        return self.commit(session, [turn])

    def _evict(self) -> None:
        now = self._clock()
        expired = [cid for cid, s in self._sessions.items() if self._is_expired(s, now)]
        for cid in expired:
            del self._sessions[cid]

        while len(self._sessions) > self.max_sessions:
            cid, _ = self._sessions.popitem(last=False)
            logger.debug(f"Evicted session {cid} (capacity {self.max_sessions})")

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def average_session_length(self) -> float:
        if not self._sessions:
            return 0.0
        return sum(len(s.turns) for s in self._sessions.values()) / len(self._sessions)


class ProfileStore:
    """Per-user profiles with engagement levels."""

    def __init__(
        self,
        max_profiles: int = 10000,
        history_window: int = 50,
        engagement_window_days: int = 7,
        high_threshold: int = 5,
        medium_threshold: int = 2,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.max_profiles = max_profiles
        self.history_window = history_window
        self.engagement_window = timedelta(days=engagement_window_days)
        self.high_threshold = high_threshold
        self.medium_threshold = medium_threshold
        self._clock = clock
        self._profiles: "OrderedDict[str, UserProfile]" = OrderedDict()

    @classmethod
    def from_settings(cls, settings) -> "ProfileStore":
        return cls(
            max_profiles=settings.max_profiles,
            history_window=settings.profile_history_window,
            engagement_window_days=settings.engagement_window_days,
            high_threshold=settings.high_engagement_interactions,
            medium_threshold=settings.medium_engagement_interactions,
        )

    def get(self, user_id: str) -> Optional[UserProfile]:
        profile = self._profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    def get_or_create(self, user_id: str, language: Optional[str] = None) -> UserProfile:
        profile = self.get(user_id)
        if profile is not None:
            return profile

        now = self._clock()
        profile = UserProfile(user_id=user_id, created_at=now, last_active=now)
        if language:
            profile.preferences.language = language
        return profile

    def engagement_level(self, profile: UserProfile) -> str:
        """low / medium / high from the number of interactions in the window."""
        cutoff = self._clock() - self.engagement_window
        recent = sum(1 for r in profile.interaction_history if r.timestamp >= cutoff)
        if recent >= self.high_threshold:
            return "high"
        if recent >= self.medium_threshold:
            return "medium"
        return "low"

    def record_interaction(self, profile: UserProfile, record: InteractionRecord) -> UserProfile:
        """Append an interaction, refresh engagement and store the profile."""
        profile.interaction_history.append(record)
        if len(profile.interaction_history) > self.history_window:
            del profile.interaction_history[: len(profile.interaction_history) - self.history_window]

        for action in record.actions:
            if action not in profile.preferences.preferred_actions:
                profile.preferences.preferred_actions.append(action)

        profile.last_active = self._clock()
        profile.engagement_level = self.engagement_level(profile)

        self._profiles[profile.user_id] = profile.model_copy(deep=True)
        self._profiles.move_to_end(profile.user_id)
        while len(self._profiles) > self.max_profiles:
            self._profiles.popitem(last=False)
        return profile

    def engagement_distribution(self) -> dict[str, int]:
        distribution = {"low": 0, "medium": 0, "high": 0}
        for profile in self._profiles.values():
            distribution[profile.engagement_level] += 1
        return distribution

    def top_actions(self, limit: int = 5) -> list[tuple[str, int]]:
        counts: Counter = Counter()
        for profile in self._profiles.values():
            for record in profile.interaction_history:
                counts.update(record.actions)
        return counts.most_common(limit)

    def __len__(self) -> int:
        return len(self._profiles)
