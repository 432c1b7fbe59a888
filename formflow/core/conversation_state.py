"""
Conversation State - Per-conversation progress through a form

Responsibilities:
- Track the current field (key + index), attempt counters and accepted answers
- Track abandonment metadata and last activity
- Track the conversation phase
- Serialize to / restore from a JSON-compatible snapshot

Design principles:
- Dumb container: no flow logic (the flow controller owns every transition)
- Not concurrency-safe: the caller serialises turns per conversation
- Lossless snapshot round trip for the caller's storage
- Fail fast on corrupted snapshots

CRITICAL: Field index vs attempt keys
- current_field_index is the 0-based position in the form's field list
- attempts and answers are keyed by field KEY, never by index
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from formflow.utils.conversation_modes import ConversationPhase, VALID_PHASES

logger = logging.getLogger(__name__)

VALID_ABANDON_REASONS = {"max_attempts", "user_quit"}


@dataclass
class ConversationMeta:
    """
    Conversation metadata

    Attributes:
        abandoned: True once the conversation ended before completion
        abandoned_reason: 'max_attempts' | 'user_quit' | None
        last_activity: ISO-8601 timestamp of the last processed turn
    """
    abandoned: bool = False
    abandoned_reason: Optional[str] = None
    last_activity: Optional[str] = None


@dataclass
class ConversationState:
    """Mutable state of one conversation"""
    current_field_key: Optional[str]
    current_field_index: int = 0
    attempts: Dict[str, int] = field(default_factory=dict)
    answers: Dict[str, Any] = field(default_factory=dict)
    meta: ConversationMeta = field(default_factory=ConversationMeta)
    phase: ConversationPhase = ConversationPhase.PHASE_QUESTIONS
    conversation_id: Optional[str] = None

    def get_attempts(self, field_key: str) -> int:
        """Attempt count for a field (0 if never attempted)"""
        return self.attempts.get(field_key, 0)

    @property
    def is_finished(self) -> bool:
        return self.current_field_key is None

    def copy(self) -> "ConversationState":
        """Deep copy (answers may hold lists)"""
        return copy.deepcopy(self)

    # ========================
    # Serialization
    # ========================

    def snapshot(self) -> Dict[str, Any]:
        """
        Export state as a JSON-compatible dict

        Returns:
            dict: Lossless snapshot, restore with from_snapshot()
        """
        return {
            'conversation_id': self.conversation_id,
            'current_field_key': self.current_field_key,
            'current_field_index': self.current_field_index,
            'attempts': dict(self.attempts),
            'answers': copy.deepcopy(self.answers),
            'phase': ConversationPhase(self.phase).value,
            'meta': {
                'abandoned': self.meta.abandoned,
                'abandoned_reason': self.meta.abandoned_reason,
                'last_activity': self.meta.last_activity,
            },
        }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any]) -> "ConversationState":
        """
        Restore state from snapshot()

        Args:
            snapshot: Dict produced by snapshot()

        Returns:
            ConversationState

        Raises:
            ValueError: If snapshot is malformed
        """
        if not isinstance(snapshot, dict):
            raise ValueError(f"snapshot must be dict, got {type(snapshot).__name__}")

        phase = snapshot.get('phase', ConversationPhase.PHASE_QUESTIONS.value)
        if phase not in VALID_PHASES:
            raise ValueError(f"Invalid phase in snapshot: '{phase}'. Must be one of: {sorted(VALID_PHASES)}")

        index = snapshot.get('current_field_index', 0)
        if not isinstance(index, int) or isinstance(index, bool) or index < 0:
            raise ValueError(f"Invalid current_field_index in snapshot: {index!r}")

        attempts = snapshot.get('attempts') or {}
        if not isinstance(attempts, dict) or not all(
            isinstance(v, int) and not isinstance(v, bool) and v >= 0 for v in attempts.values()
        ):
            raise ValueError("attempts must map field keys to non-negative ints")

        answers = snapshot.get('answers') or {}
        if not isinstance(answers, dict):
            raise ValueError("answers must be a dict")

        meta_data = snapshot.get('meta') or {}
        reason = meta_data.get('abandoned_reason')
        if reason is not None and reason not in VALID_ABANDON_REASONS:
            raise ValueError(f"Invalid abandoned_reason in snapshot: '{reason}'")

        state = cls(
            current_field_key=snapshot.get('current_field_key'),
            current_field_index=index,
            attempts=dict(attempts),
            answers=copy.deepcopy(answers),
            meta=ConversationMeta(
                abandoned=bool(meta_data.get('abandoned', False)),
                abandoned_reason=reason,
                last_activity=meta_data.get('last_activity'),
            ),
            phase=ConversationPhase(phase),
            conversation_id=snapshot.get('conversation_id'),
        )
        logger.debug(f"Restored conversation {state.conversation_id} at field '{state.current_field_key}'")
        return state
