"""
Result types returned by the flow controller.

These are the ONLY return types of a processed turn.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from formflow.contracts import Reason


class FlowAction(str, Enum):
    """
    Per-turn decision.

    COMPLETE and END are terminal for the current field sequence.
    """
    ADVANCE = "advance"
    REPROMPT = "reprompt"
    SKIP = "skip"
    END = "end"
    COMPLETE = "complete"


class AbandonReason(str, Enum):
    """Why a conversation ended before completion"""
    MAX_ATTEMPTS = "max_attempts"
    USER_QUIT = "user_quit"


@dataclass(frozen=True)
class FlowDecision:
    """
    Decision for one respondent turn.

    Computed before any state is touched; applied afterwards by
    update_conversation_state().

    Attributes:
        action: What happens next
        message: Text to show (reprompts and forced ends)
        next_field_key: Field asked next (advance/skip), None when none left
        should_save_answer: Whether normalized_value is stored
        normalized_value: Accepted value (advance/complete)
        abandon_reason: Set on END only
        reason: Rejection reason behind a REPROMPT or MAX_ATTEMPTS end
    """
    action: FlowAction
    message: Optional[str] = None
    next_field_key: Optional[str] = None
    should_save_answer: bool = False
    normalized_value: Any = None
    abandon_reason: Optional[AbandonReason] = None
    reason: Optional[Reason] = None

    @property
    def is_terminal(self) -> bool:
        return self.action in (FlowAction.END, FlowAction.COMPLETE)


@dataclass(frozen=True)
class TurnResult:
    """
    Outcome of FlowController.handle_turn().

    Attributes:
        system_output: Text to display (reprompt, next question or closing)
        decision: Decision taken this turn (None for welcome/start turns)
        state: Updated conversation state (pass to next turn)
        debug: Validation verdict and turn details
        conversation_complete: Whether no further turns are expected
    """
    system_output: str
    decision: Optional[FlowDecision]
    state: Any  # ConversationState, kept opaque here to avoid a cycle
    debug: Dict[str, Any] = field(default_factory=dict)
    conversation_complete: bool = False
