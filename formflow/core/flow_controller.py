"""
Flow Controller - Turn-by-turn decisions for a conversational form

Responsibilities:
- Recognise skip and end requests
- Validate answers (validator, or sufficiency evaluator when injected)
- Decide: advance, reprompt, skip, end or complete
- Enforce the attempt limit (anti-stuck guarantee)
- Apply decisions to conversation state
- Drive phases: welcome -> questions -> submitting -> done

Design principles:
- Decide first, then apply: process_user_response() never touches state,
  update_conversation_state() returns a new state and never mutates its input
- Deterministic given (field, text, attempt count, tone)
- Tone only reaches message wording, never a decision
- Stateless controller: all conversation state is passed in and out
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Sequence, Union

from formflow.contracts import FieldDefinition, Reason, ToneConfig, ToneContract, ValidationResult
from formflow.core.conversation_state import ConversationMeta, ConversationState
from formflow.core.field_validator import validate_answer
from formflow.core.form_loader import FormDefinition, validate_field_sequence
from formflow.core.tone_compiler import compile_tone_contract
from formflow.results import AbandonReason, FlowAction, FlowDecision, TurnResult
from formflow.utils.clarification_templates import (
    generate_closing_message,
    generate_escalated_clarification,
    generate_reprompt_message,
    get_example_value,
)
from formflow.utils.conversation_modes import ConversationPhase, can_transition
from formflow.utils.helpers import generate_conversation_id, parse_iso, utc_now, utc_now_iso
from formflow.utils.phrasing import (
    apply_tone_phrasing,
    apply_tone_to_end,
    apply_tone_to_welcome,
    user_quit_message,
)

logger = logging.getLogger(__name__)

ATTEMPT_LIMIT = 3
STALE_AFTER_HOURS = 24

SKIP_PHRASES = {"skip", "skip it", "skip this", "pass", "next"}
END_PHRASES = {
    "end",
    "quit",
    "exit",
    "stop",
    "cancel",
    "nevermind",
    "never mind",
    "i'm done",
    "im done",
}

ToneInput = Union[ToneConfig, ToneContract, Dict[str, Any], None]


def _normalize_command(text: str) -> str:
    return (text or "").strip().lower().replace("’", "'")


def is_skip_request(text: str) -> bool:
    """Exact (case-insensitive) skip phrase"""
    return _normalize_command(text) in SKIP_PHRASES


def is_end_request(text: str) -> bool:
    """Exact (case-insensitive) end phrase"""
    return _normalize_command(text) in END_PHRASES


def get_attempt_limit(required: bool) -> int:
    """
    Failed attempts allowed on a field before the limit policy applies

    Returns 3 for required and optional fields alike. The parameter is
    kept for callers; whether the limit should differ by requiredness is an
    open product question (see DESIGN.md).
    """
    return ATTEMPT_LIMIT


def _resolve_tone(tone: ToneInput) -> ToneContract:
    if isinstance(tone, ToneContract):
        return tone
    return compile_tone_contract(tone)


def get_next_field_key(current_index: int, fields: Sequence[FieldDefinition]) -> Optional[str]:
    """Key of the field after current_index, None if it was the last"""
    next_index = current_index + 1
    if next_index < len(fields):
        return fields[next_index].key
    return None


# =========================================================================
# Decision
# =========================================================================

def process_user_response(
    user_text: str,
    current_field: FieldDefinition,
    state: ConversationState,
    fields: Sequence[FieldDefinition],
    tone_config: ToneInput = None,
    evaluator=None
) -> FlowDecision:
    """
    Decide what happens after the respondent's answer to current_field.

    Rules, in order:
    1. Skip phrase: optional field -> SKIP; required field -> REPROMPT
       (refusal wording, standard attempt increment)
    2. End phrase -> END (user_quit), whatever the field or attempt count
    3. Accepted answer -> ADVANCE, or COMPLETE on the last field
    4. Rejected answer, attempt count reaches the limit:
       optional -> REPROMPT offering skip; required -> END (max_attempts)
    5. Rejected answer below the limit -> REPROMPT with escalated message

    Args:
        user_text: Raw respondent text
        current_field: Field being answered
        state: Current conversation state (read only)
        fields: All fields of the form, in order
        tone_config: ToneConfig, raw dict, compiled ToneContract or None
        evaluator: Optional SufficiencyEvaluator; validator used when None

    Returns:
        FlowDecision
    """
    tone = _resolve_tone(tone_config)
    field_key = current_field.key
    current_attempts = state.get_attempts(field_key)
    example = get_example_value(current_field.field_type, current_field.examples, current_field.options)

    if is_skip_request(user_text):
        if not current_field.required:
            logger.info(f"[{field_key}] Skipped optional field")
            return FlowDecision(
                action=FlowAction.SKIP,
                next_field_key=get_next_field_key(state.current_field_index, fields),
                should_save_answer=False,
            )

        logger.info(f"[{field_key}] Skip refused on required field")
        return FlowDecision(
            action=FlowAction.REPROMPT,
            message=generate_reprompt_message(
                current_field.label,
                current_field.field_type,
                current_attempts + 1,
                Reason.REFUSAL,
                required=True,
                tone=tone,
                example=example,
            ),
            reason=Reason.REFUSAL,
        )

    if is_end_request(user_text):
        logger.info(f"[{field_key}] Respondent ended the conversation")
        return FlowDecision(
            action=FlowAction.END,
            message=user_quit_message(tone),
            abandon_reason=AbandonReason.USER_QUIT,
        )

    if evaluator is not None:
        validation: ValidationResult = evaluator.evaluate_field(current_field, user_text)
    else:
        validation = validate_answer(current_field.field_type, user_text, current_field.options)

    if validation.ok:
        next_field_key = get_next_field_key(state.current_field_index, fields)
        action = FlowAction.ADVANCE if next_field_key else FlowAction.COMPLETE
        logger.info(f"[{field_key}] Answer accepted -> {action.value}")
        return FlowDecision(
            action=action,
            next_field_key=next_field_key,
            should_save_answer=True,
            normalized_value=validation.normalized_value,
        )

    new_attempt_count = current_attempts + 1
    attempt_limit = get_attempt_limit(current_field.required)
    logger.info(
        f"[{field_key}] Answer rejected ({validation.reason.value}), "
        f"attempt {new_attempt_count}/{attempt_limit}"
    )

    if new_attempt_count >= attempt_limit and current_field.required:
        logger.warning(f"[{field_key}] Attempt limit reached on required field, ending")
        return FlowDecision(
            action=FlowAction.END,
            message=generate_closing_message(current_field.label, tone),
            abandon_reason=AbandonReason.MAX_ATTEMPTS,
            reason=validation.reason,
        )

    # Optional fields at the limit get the skip offer from the final template
    return FlowDecision(
        action=FlowAction.REPROMPT,
        message=generate_escalated_clarification(
            current_field.label,
            current_field.field_type,
            new_attempt_count,
            validation.reason,
            required=current_field.required,
            tone=tone,
            example=example,
            model_clarification=validation.clarification,
        ),
        reason=validation.reason,
    )


# =========================================================================
# State application
# =========================================================================

def initialize_conversation_state(
    fields: Sequence[FieldDefinition],
    welcome_enabled: bool = False,
    conversation_id: Optional[str] = None
) -> ConversationState:
    """
    Fresh state: first field current, no attempts, no answers

    Args:
        fields: Form fields, in order
        welcome_enabled: Start in the welcome phase instead of questions
        conversation_id: Identifier (generated when None)
    """
    first_key = fields[0].key if fields else None
    phase = ConversationPhase.PHASE_WELCOME if welcome_enabled else ConversationPhase.PHASE_QUESTIONS
    if first_key is None:
        phase = ConversationPhase.PHASE_SUBMITTING

    return ConversationState(
        current_field_key=first_key,
        current_field_index=0,
        attempts={},
        answers={},
        meta=ConversationMeta(last_activity=utc_now_iso()),
        phase=phase,
        conversation_id=conversation_id or generate_conversation_id(short=True),
    )


def _move_phase(state: ConversationState, target: ConversationPhase) -> None:
    if state.phase == target:
        return
    if not can_transition(state.phase, target):
        raise ValueError(f"Illegal phase transition: {state.phase.value} -> {target.value}")
    state.phase = target


def update_conversation_state(
    state: ConversationState,
    decision: FlowDecision,
    current_field_key: str,
    normalized_value: Any = None
) -> ConversationState:
    """
    Apply a decision, returning a NEW state (input is not mutated)

    - ADVANCE: store value, move to next field, reset attempts
    - SKIP: move to next field without storing, reset attempts
    - REPROMPT: increment attempts for the field
    - END: mark abandoned with the decision's reason, phase done
    - COMPLETE: store value, clear current field, phase submitting

    Args:
        state: State the decision was computed from
        decision: FlowDecision from process_user_response()
        current_field_key: Field the decision was about
        normalized_value: Value to store (defaults to decision.normalized_value)

    Returns:
        ConversationState
    """
    new_state = state.copy()
    if normalized_value is None:
        normalized_value = decision.normalized_value

    if decision.action != FlowAction.END and new_state.phase == ConversationPhase.PHASE_WELCOME:
        _move_phase(new_state, ConversationPhase.PHASE_QUESTIONS)

    action = decision.action

    if action in (FlowAction.ADVANCE, FlowAction.COMPLETE):
        if decision.should_save_answer and normalized_value is not None:
            new_state.answers[current_field_key] = normalized_value

    if action == FlowAction.REPROMPT:
        new_state.attempts[current_field_key] = state.get_attempts(current_field_key) + 1

    elif action == FlowAction.END:
        new_state.meta.abandoned = True
        reason = decision.abandon_reason or AbandonReason.USER_QUIT
        new_state.meta.abandoned_reason = AbandonReason(reason).value
        _move_phase(new_state, ConversationPhase.PHASE_DONE)

    elif action in (FlowAction.ADVANCE, FlowAction.SKIP):
        new_state.attempts[current_field_key] = 0
        if decision.next_field_key:
            new_state.current_field_key = decision.next_field_key
            new_state.current_field_index = state.current_field_index + 1
        else:
            # Skipping the last field finishes the form
            new_state.current_field_key = None
            new_state.current_field_index = state.current_field_index + 1
            _move_phase(new_state, ConversationPhase.PHASE_SUBMITTING)

    elif action == FlowAction.COMPLETE:
        new_state.attempts[current_field_key] = 0
        new_state.current_field_key = None
        new_state.current_field_index = state.current_field_index + 1
        _move_phase(new_state, ConversationPhase.PHASE_SUBMITTING)

    new_state.meta.last_activity = utc_now_iso()
    return new_state


def start_questions(state: ConversationState) -> ConversationState:
    """Leave the welcome phase"""
    new_state = state.copy()
    _move_phase(new_state, ConversationPhase.PHASE_QUESTIONS)
    new_state.meta.last_activity = utc_now_iso()
    return new_state


def mark_submitted(state: ConversationState) -> ConversationState:
    """Caller persisted the answers: submitting -> done"""
    new_state = state.copy()
    _move_phase(new_state, ConversationPhase.PHASE_DONE)
    new_state.meta.last_activity = utc_now_iso()
    return new_state


def is_conversation_complete(state: ConversationState, fields: Sequence[FieldDefinition]) -> bool:
    return state.is_finished or state.current_field_index >= len(fields)


def is_conversation_abandoned(state: ConversationState) -> bool:
    return state.meta.abandoned is True


def is_conversation_stale(
    state: ConversationState,
    now=None,
    idle_hours: float = STALE_AFTER_HOURS
) -> bool:
    """
    Whether an unfinished conversation has been idle for idle_hours or more

    Read-only: marking it abandoned is the caller's storage concern.
    """
    if state.phase == ConversationPhase.PHASE_DONE or state.meta.abandoned:
        return False
    if not state.meta.last_activity:
        return True
    now = now or utc_now()
    return now - parse_iso(state.meta.last_activity) >= timedelta(hours=idle_hours)


def generate_initial_prompt(field: FieldDefinition, tone_config: ToneInput = None) -> str:
    """Prompt for asking a field"""
    return apply_tone_phrasing(field.message, field.label, _resolve_tone(tone_config))


# =========================================================================
# Controller
# =========================================================================

class FlowController:
    """
    Runs a form's conversations turn by turn

    Functional core design:
    - Caches the form, compiled tone and evaluator (no conversation state)
    - handle_turn() maps (text, state) to (output, new state) deterministically
    """

    def __init__(
        self,
        fields: Sequence[FieldDefinition],
        tone_config: ToneInput = None,
        evaluator=None,
        welcome_enabled: bool = False,
        welcome_message: str = "",
        end_message: str = ""
    ):
        """
        Initialize controller

        Args:
            fields: Ordered field definitions
            tone_config: Tone settings (compiled once here)
            evaluator: Optional SufficiencyEvaluator
            welcome_enabled: Start conversations in the welcome phase
            welcome_message: Welcome text
            end_message: Text after the last field (tone default when empty)

        Raises:
            FormDefinitionError: If fields are empty or keys repeat
            TypeError: If evaluator lacks a callable evaluate_field()
        """
        validate_field_sequence(fields)
        if evaluator is not None and not callable(getattr(evaluator, 'evaluate_field', None)):
            raise TypeError("evaluator must have callable evaluate_field() method")

        self.fields = tuple(fields)
        self.tone = _resolve_tone(tone_config)
        self.evaluator = evaluator
        self.welcome_enabled = welcome_enabled
        self.welcome_message = welcome_message
        self.end_message = end_message

        logger.info(
            f"Flow controller initialized ({len(self.fields)} fields, "
            f"tone={self.tone.preset}/{self.tone.verbosity_tier}, "
            f"evaluator={'on' if evaluator is not None else 'off'})"
        )

    @classmethod
    def from_form(cls, form: FormDefinition, evaluator=None) -> "FlowController":
        return cls(
            fields=form.fields,
            tone_config=form.tone,
            evaluator=evaluator,
            welcome_enabled=form.welcome_enabled,
            welcome_message=form.welcome_message,
            end_message=form.end_message,
        )

    def current_field(self, state: ConversationState) -> FieldDefinition:
        """
        Field the state is waiting on

        Raises:
            ValueError: If the state is finished or out of sync with the form
        """
        if state.current_field_key is None:
            raise ValueError("Conversation has no current field")
        if state.current_field_index >= len(self.fields):
            raise ValueError(f"current_field_index {state.current_field_index} out of range")
        field = self.fields[state.current_field_index]
        if field.key != state.current_field_key:
            raise ValueError(
                f"State out of sync: index {state.current_field_index} is '{field.key}', "
                f"state says '{state.current_field_key}'"
            )
        return field

    def start_conversation(self, conversation_id: Optional[str] = None) -> TurnResult:
        """Initial state plus the welcome message or first question"""
        state = initialize_conversation_state(self.fields, self.welcome_enabled, conversation_id)
        output = generate_initial_prompt(self.fields[0], self.tone)
        if state.phase == ConversationPhase.PHASE_WELCOME:
            output = apply_tone_to_welcome(self.welcome_message, self.tone) or output

        logger.info(f"Started conversation {state.conversation_id}")
        return TurnResult(
            system_output=output,
            decision=None,
            state=state,
            debug={'phase': state.phase.value},
            conversation_complete=False,
        )

    def process_user_response(self, user_text: str, state: ConversationState) -> FlowDecision:
        """Decision only (state untouched)"""
        return process_user_response(
            user_text,
            self.current_field(state),
            state,
            self.fields,
            tone_config=self.tone,
            evaluator=self.evaluator,
        )

    def handle_turn(self, user_text: str, state: ConversationState) -> TurnResult:
        """
        Process one respondent turn

        Args:
            user_text: Raw respondent text
            state: State returned by the previous turn

        Returns:
            TurnResult with the text to show and the new state

        Raises:
            ValueError: If the conversation is already submitting or done,
                or the state does not match this form
        """
        if state.phase in (ConversationPhase.PHASE_SUBMITTING, ConversationPhase.PHASE_DONE):
            raise ValueError(f"Conversation is {state.phase.value}; no further turns")

        if state.phase == ConversationPhase.PHASE_WELCOME:
            new_state = start_questions(state)
            return TurnResult(
                system_output=generate_initial_prompt(self.current_field(new_state), self.tone),
                decision=None,
                state=new_state,
                debug={'phase': new_state.phase.value, 'started': True},
                conversation_complete=False,
            )

        field = self.current_field(state)
        logger.debug(f"[{field.key}] Respondent text: '{user_text}'")

        decision = self.process_user_response(user_text, state)
        new_state = update_conversation_state(state, decision, field.key)

        if decision.action in (FlowAction.REPROMPT, FlowAction.END):
            output = decision.message
        elif new_state.current_field_key is not None:
            output = generate_initial_prompt(self.current_field(new_state), self.tone)
        else:
            output = apply_tone_to_end(self.end_message, self.tone)

        return TurnResult(
            system_output=output,
            decision=decision,
            state=new_state,
            debug={
                'field_key': field.key,
                'action': decision.action.value,
                'reason': decision.reason.value if decision.reason else None,
                'attempts': new_state.get_attempts(field.key),
                'phase': new_state.phase.value,
            },
            conversation_complete=new_state.current_field_key is None or new_state.meta.abandoned,
        )
