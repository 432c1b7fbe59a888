"""
Conversation phase enum for the form flow.

Invariants:
- Exactly one phase is active per conversation
- Phases only move forward: welcome -> questions -> submitting -> done
- A conversation ended early (user quit, max attempts) jumps straight to done

Design:
- ConversationPhase is a string-based enum for JSON serialization
- ConversationState validates phase strings against VALID_PHASES
- The flow controller owns all phase transitions
"""

from enum import Enum


class ConversationPhase(str, Enum):
    """
    Lifecycle phase of one conversation.

    PHASE_WELCOME:
        Welcome message shown, no question asked yet.
        Entry: Conversation start with a welcome screen enabled
        Exit: Respondent starts -> PHASE_QUESTIONS

    PHASE_QUESTIONS:
        Fields are asked one at a time.
        Entry: Start (welcome disabled) or after welcome
        Exit: Last field answered or skipped -> PHASE_SUBMITTING
              Conversation ended -> PHASE_DONE

    PHASE_SUBMITTING:
        All fields processed; caller is persisting the answers.
        Exit: Caller confirms submission -> PHASE_DONE

    PHASE_DONE:
        Terminal. No further turns are processed.
    """
    PHASE_WELCOME = "welcome"
    PHASE_QUESTIONS = "questions"
    PHASE_SUBMITTING = "submitting"
    PHASE_DONE = "done"


# Single source of truth for valid phase strings
# Used by ConversationState.from_snapshot (fail-fast on corruption)
VALID_PHASES = {phase.value for phase in ConversationPhase}

# Allowed forward moves
PHASE_TRANSITIONS = {
    ConversationPhase.PHASE_WELCOME: {ConversationPhase.PHASE_QUESTIONS, ConversationPhase.PHASE_DONE},
    ConversationPhase.PHASE_QUESTIONS: {ConversationPhase.PHASE_SUBMITTING, ConversationPhase.PHASE_DONE},
    ConversationPhase.PHASE_SUBMITTING: {ConversationPhase.PHASE_DONE},
    ConversationPhase.PHASE_DONE: set(),
}


def can_transition(current: ConversationPhase, target: ConversationPhase) -> bool:
    """Check whether moving from current to target phase is allowed"""
    return target in PHASE_TRANSITIONS[ConversationPhase(current)]
