"""
Test clarification templates and tone phrasing

Every (template, register) pair must exist, and tone must only pick wording.
"""

import pytest

from formflow.contracts import FieldType, Reason, ToneConfig
from formflow.core.tone_compiler import compile_tone_contract
from formflow.utils.clarification_templates import (
    TEMPLATE_TEXT,
    ClarificationTemplateID,
    Register,
    generate_closing_message,
    generate_escalated_clarification,
    generate_reprompt_message,
    get_example_value,
    resolve_register,
    select_template,
)
from formflow.utils.phrasing import apply_tone_to_end, get_placeholder_text, user_quit_message


def test_registry_complete():
    for template_id in ClarificationTemplateID:
        for register in Register:
            assert (template_id, register) in TEMPLATE_TEXT, f"Missing {template_id.value}/{register.value}"


def test_register_resolution():
    assert resolve_register(None) == Register.FRIENDLY
    assert resolve_register(compile_tone_contract(ToneConfig(preset="professional"))) == Register.FORMAL
    assert resolve_register(compile_tone_contract(ToneConfig(preset="concise"))) == Register.BRIEF
    assert resolve_register(compile_tone_contract(ToneConfig(preset="witty"))) == Register.FRIENDLY
    # Low tier is brief whatever the preset
    assert resolve_register(compile_tone_contract(ToneConfig(preset="witty", chattiness=0.2))) == Register.BRIEF


def test_ladder_selection():
    assert select_template(FieldType.EMAIL, 1, Reason.INVALID_FORMAT, True) == \
        ClarificationTemplateID.GENTLE_FORMAT_EMAIL
    assert select_template(FieldType.SHORT_TEXT, 1, Reason.INVALID_FORMAT, True) == \
        ClarificationTemplateID.GENTLE_FORMAT_GENERIC
    assert select_template(FieldType.SHORT_TEXT, 1, Reason.TOO_SHORT, True) == \
        ClarificationTemplateID.GENTLE_DETAIL
    assert select_template(FieldType.LONG_TEXT, 1, Reason.OFFTOPIC, False) == \
        ClarificationTemplateID.GENTLE_OFFTOPIC
    assert select_template(FieldType.EMAIL, 2, Reason.REFUSAL, True) == \
        ClarificationTemplateID.DIRECT_REFUSAL
    assert select_template(FieldType.EMAIL, 3, Reason.INVALID_FORMAT, True) == \
        ClarificationTemplateID.FINAL_REQUIRED
    assert select_template(FieldType.EMAIL, 5, Reason.INVALID_FORMAT, False) == \
        ClarificationTemplateID.FINAL_OPTIONAL


def test_second_attempt_quotes_example():
    message = generate_reprompt_message("Email", "email", 2, "invalid_format", True)
    assert message == "Let's try once more. Please enter your email like this: name@example.com"


def test_example_priority():
    assert get_example_value("short_text", examples=("Acme Ltd",)) == "\"Acme Ltd\""
    assert get_example_value("phone") == "(555) 123-4567"
    assert get_example_value("single_select", select_options=("A", "B")) == "A, B"
    assert get_example_value("long_text") == "a short sentence with the specifics"


def test_final_messages_differ_by_requiredness():
    optional = generate_reprompt_message("Website", "url", 3, "invalid_format", required=False)
    required = generate_reprompt_message("Website", "url", 3, "invalid_format", required=True)
    assert "skip" in optional
    assert "end" in required
    assert "skip" not in required


@pytest.mark.parametrize("preset", ["energetic", "casual", "professional", "concise"])
def test_every_tone_renders(preset):
    tone = compile_tone_contract(ToneConfig(preset=preset))
    for attempt in (1, 2, 3):
        message = generate_reprompt_message("Company", "short_text", attempt, "vague", True, tone)
        assert message
        assert "{" not in message


def test_model_clarification_only_on_first_attempt():
    first = generate_escalated_clarification("Goals", "long_text", 1, "vague",
                                             model_clarification="Which goals specifically?")
    second = generate_escalated_clarification("Goals", "long_text", 2, "vague",
                                              model_clarification="Which goals specifically?")
    assert first == "Which goals specifically?"
    assert second != first


def test_closing_message_names_field():
    assert generate_closing_message("Email") == "I'm unable to continue without your email. Thanks for your time!"


def test_end_and_quit_phrasing_by_tier():
    concise = compile_tone_contract(ToneConfig(preset="concise"))
    energetic = compile_tone_contract(ToneConfig(preset="energetic"))

    assert apply_tone_to_end("", concise) == "Done!"
    assert apply_tone_to_end("", energetic) == "Thank you for your response!"
    assert apply_tone_to_end("  See you there!  ", concise) == "See you there!"
    assert user_quit_message(concise) == "Ended."


def test_placeholders():
    concise = compile_tone_contract(ToneConfig(preset="concise"))
    casual = compile_tone_contract(ToneConfig(preset="casual"))
    assert get_placeholder_text("email", concise) == "email@example.com"
    assert get_placeholder_text("email", casual) == "Your email"
    assert get_placeholder_text("long_text", casual) == "Type your answer here"
