"""
Test Flow Controller - decisions, escalation ladder and state application

Run with: pytest tests/test_flow_controller.py
"""

from datetime import timedelta

import pytest

from formflow.contracts import FieldDefinition, Reason, ToneConfig, ValidationResult
from formflow.core.flow_controller import (
    FlowController,
    generate_initial_prompt,
    get_attempt_limit,
    initialize_conversation_state,
    is_conversation_abandoned,
    is_conversation_complete,
    is_conversation_stale,
    is_end_request,
    is_skip_request,
    mark_submitted,
    process_user_response,
    update_conversation_state,
)
from formflow.core.form_loader import FormDefinitionError
from formflow.results import AbandonReason, FlowAction, FlowDecision
from formflow.utils.conversation_modes import ConversationPhase
from formflow.utils.helpers import utc_now


@pytest.fixture
def fields():
    return (
        FieldDefinition(key='name', field_type='short_text', label='Name', required=True),
        FieldDefinition(key='email', field_type='email', label='Email', required=True),
        FieldDefinition(key='company', field_type='short_text', label='Company'),
        FieldDefinition(key='website', field_type='url', label='Website'),
    )


def state_at(fields, index, attempts=None):
    state = initialize_conversation_state(fields)
    state.current_field_index = index
    state.current_field_key = fields[index].key
    state.attempts = dict(attempts or {})
    return state


class StubEvaluator:
    """Evaluator returning a fixed verdict"""

    def __init__(self, result):
        self.result = result
        self.calls = []

    def evaluate_field(self, field, user_text):
        self.calls.append((field.key, user_text))
        return self.result


# ========== Command phrases ==========

def test_skip_and_end_phrases_are_exact():
    assert is_skip_request("  SKIP ") is True
    assert is_skip_request("skip this one, I have no idea") is False
    assert is_end_request("Stop") is True
    assert is_end_request("I’m done") is True
    assert is_end_request("stop sign") is False


def test_attempt_limit_is_three_for_both():
    assert get_attempt_limit(True) == 3
    assert get_attempt_limit(False) == 3


# ========== Accept ==========

def test_valid_answer_advances(fields):
    state = state_at(fields, 1)
    decision = process_user_response("Jane@Example.com", fields[1], state, fields)

    assert decision.action == FlowAction.ADVANCE
    assert decision.next_field_key == 'company'
    assert decision.should_save_answer is True
    assert decision.normalized_value == "jane@example.com"
    assert decision.message is None


def test_valid_answer_on_last_field_completes(fields):
    state = state_at(fields, 3)
    decision = process_user_response("https://example.com", fields[3], state, fields)

    assert decision.action == FlowAction.COMPLETE
    assert decision.next_field_key is None
    assert decision.is_terminal


# ========== Required field ladder ==========

def test_required_field_escalates_then_ends(fields):
    field = fields[1]
    state = state_at(fields, 1)

    first = process_user_response("nope@", field, state, fields)
    assert first.action == FlowAction.REPROMPT
    assert first.reason == Reason.INVALID_FORMAT
    state = update_conversation_state(state, first, field.key)
    assert state.get_attempts('email') == 1

    second = process_user_response("still wrong", field, state, fields)
    assert second.action == FlowAction.REPROMPT
    assert "name@example.com" in second.message
    state = update_conversation_state(state, second, field.key)
    assert state.get_attempts('email') == 2

    third = process_user_response("nope", field, state, fields)
    assert third.action == FlowAction.END
    assert third.abandon_reason == AbandonReason.MAX_ATTEMPTS
    assert "email" in third.message

    state = update_conversation_state(state, third, field.key)
    assert is_conversation_abandoned(state)
    assert state.meta.abandoned_reason == "max_attempts"
    assert state.phase == ConversationPhase.PHASE_DONE


def test_required_field_refusal_never_advances(fields):
    state = state_at(fields, 0)
    decision = process_user_response("not telling", fields[0], state, fields)
    assert decision.action == FlowAction.REPROMPT
    assert decision.reason == Reason.REFUSAL
    assert "name" in decision.message


# ========== Optional field ladder ==========

def test_optional_field_offers_skip_at_limit(fields):
    field = fields[3]
    state = state_at(fields, 3, attempts={'website': 2})
    decision = process_user_response("my site", field, state, fields)

    assert decision.action == FlowAction.REPROMPT
    assert "skip" in decision.message.lower()


def test_optional_field_never_ends_on_attempts(fields):
    field = fields[3]
    state = state_at(fields, 3, attempts={'website': 7})
    decision = process_user_response("my site", field, state, fields)
    assert decision.action == FlowAction.REPROMPT


# ========== Skip ==========

def test_skip_optional_field(fields):
    state = state_at(fields, 2, attempts={'company': 1})
    decision = process_user_response("skip", fields[2], state, fields)

    assert decision.action == FlowAction.SKIP
    assert decision.next_field_key == 'website'
    assert decision.should_save_answer is False

    new_state = update_conversation_state(state, decision, 'company')
    assert 'company' not in new_state.answers
    assert new_state.current_field_key == 'website'
    assert new_state.current_field_index == 3
    assert new_state.get_attempts('company') == 0


def test_skip_required_field_reprompts(fields):
    state = state_at(fields, 0)
    decision = process_user_response("skip", fields[0], state, fields)

    assert decision.action == FlowAction.REPROMPT
    assert decision.reason == Reason.REFUSAL
    new_state = update_conversation_state(state, decision, 'name')
    assert new_state.get_attempts('name') == 1


def test_skip_required_field_at_limit_does_not_end(fields):
    state = state_at(fields, 0, attempts={'name': 2})
    decision = process_user_response("skip", fields[0], state, fields)
    assert decision.action == FlowAction.REPROMPT


def test_skip_last_optional_field_finishes(fields):
    state = state_at(fields, 3)
    decision = process_user_response("skip", fields[3], state, fields)
    assert decision.action == FlowAction.SKIP
    assert decision.next_field_key is None

    new_state = update_conversation_state(state, decision, 'website')
    assert new_state.current_field_key is None
    assert new_state.phase == ConversationPhase.PHASE_SUBMITTING
    assert is_conversation_complete(new_state, fields)


# ========== End ==========

def test_quit_on_first_attempt(fields):
    state = state_at(fields, 0)
    decision = process_user_response("quit", fields[0], state, fields)

    assert decision.action == FlowAction.END
    assert decision.abandon_reason == AbandonReason.USER_QUIT

    new_state = update_conversation_state(state, decision, 'name')
    assert new_state.meta.abandoned is True
    assert new_state.meta.abandoned_reason == "user_quit"


# ========== Tone ==========

@pytest.mark.parametrize("preset", ["energetic", "sassy", "witty", "casual", "professional", "concise"])
def test_tone_does_not_change_decisions(fields, preset):
    state = state_at(fields, 1, attempts={'email': 1})
    baseline = process_user_response("bad email", fields[1], state, fields)
    toned = process_user_response("bad email", fields[1], state, fields,
                                  tone_config=ToneConfig(preset=preset, chattiness=0.1))

    assert toned.action == baseline.action
    assert toned.reason == baseline.reason
    assert toned.next_field_key == baseline.next_field_key


def test_tone_changes_wording(fields):
    state = state_at(fields, 1)
    formal = process_user_response("bad", fields[1], state, fields, tone_config={'preset': 'professional'})
    brief = process_user_response("bad", fields[1], state, fields, tone_config={'preset': 'concise'})
    assert formal.message != brief.message


# ========== Evaluator ==========

def test_evaluator_verdict_used(fields):
    evaluator = StubEvaluator(ValidationResult.reject(Reason.VAGUE, clarification="Which company exactly?"))
    state = state_at(fields, 2)
    decision = process_user_response("a startup", fields[2], state, fields, evaluator=evaluator)

    assert evaluator.calls == [('company', 'a startup')]
    assert decision.action == FlowAction.REPROMPT
    assert decision.message == "Which company exactly?"


def test_evaluator_not_called_for_commands(fields):
    evaluator = StubEvaluator(ValidationResult.accept("x"))
    state = state_at(fields, 2)
    process_user_response("skip", fields[2], state, fields, evaluator=evaluator)
    process_user_response("exit", fields[2], state, fields, evaluator=evaluator)
    assert evaluator.calls == []


# ========== State application ==========

def test_update_does_not_mutate_input(fields):
    state = state_at(fields, 0)
    decision = FlowDecision(action=FlowAction.ADVANCE, next_field_key='email',
                            should_save_answer=True, normalized_value="Jane")
    new_state = update_conversation_state(state, decision, 'name')

    assert new_state.answers == {'name': "Jane"}
    assert state.answers == {}
    assert state.current_field_key == 'name'
    assert new_state.current_field_key == 'email'
    assert new_state.current_field_index == 1


def test_complete_stores_value_and_moves_to_submitting(fields):
    state = state_at(fields, 3)
    decision = FlowDecision(action=FlowAction.COMPLETE, should_save_answer=True,
                            normalized_value="https://example.com")
    new_state = update_conversation_state(state, decision, 'website')

    assert new_state.answers['website'] == "https://example.com"
    assert new_state.current_field_key is None
    assert new_state.phase == ConversationPhase.PHASE_SUBMITTING

    done = mark_submitted(new_state)
    assert done.phase == ConversationPhase.PHASE_DONE


def test_stale_conversation(fields):
    state = initialize_conversation_state(fields)
    assert is_conversation_stale(state) is False
    assert is_conversation_stale(state, now=utc_now() + timedelta(hours=25)) is True


def test_initial_prompt_uses_authored_message():
    field = FieldDefinition(key='n', field_type='short_text', label='Name', message="What should we call you?")
    assert generate_initial_prompt(field) == "What should we call you?"
    assert generate_initial_prompt(FieldDefinition(key='n', field_type='short_text', label='Name'),
                                   ToneConfig(preset='energetic')) == "Great! Name"


# ========== Controller ==========

def test_controller_full_run(fields):
    controller = FlowController(fields, tone_config={'preset': 'professional'})
    turn = controller.start_conversation()
    assert turn.system_output == "Name"
    assert turn.decision is None

    state = turn.state
    for text in ["Jane Doe", "jane@example.com", "skip", "https://jane.dev"]:
        turn = controller.handle_turn(text, state)
        state = turn.state

    assert turn.conversation_complete is True
    assert turn.decision.action == FlowAction.COMPLETE
    assert state.answers == {
        'name': "Jane Doe",
        'email': "jane@example.com",
        'website': "https://jane.dev",
    }
    assert turn.system_output == "Thank you!"

    with pytest.raises(ValueError):
        controller.handle_turn("more", state)


def test_controller_welcome_phase(fields):
    controller = FlowController(fields, welcome_enabled=True, welcome_message="Welcome aboard")
    turn = controller.start_conversation()
    assert turn.system_output == "Welcome aboard"
    assert turn.state.phase == ConversationPhase.PHASE_WELCOME

    turn = controller.handle_turn("ready", turn.state)
    assert turn.state.phase == ConversationPhase.PHASE_QUESTIONS
    assert turn.system_output == "Name"


def test_controller_rejects_bad_fields():
    with pytest.raises(FormDefinitionError):
        FlowController([])
    duplicate = FieldDefinition(key='a', field_type='short_text', label='A')
    with pytest.raises(FormDefinitionError):
        FlowController([duplicate, duplicate])


def test_controller_rejects_bad_evaluator(fields):
    with pytest.raises(TypeError):
        FlowController(fields, evaluator=object())
