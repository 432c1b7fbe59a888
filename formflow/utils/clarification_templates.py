"""
Clarification Template Registry

Defines the reprompt escalation ladder and its wording per register.

Escalation ladder (attempt number = failed attempts on the field so far):
- Attempt 1: Gentle nudge specific to the rejection reason
- Attempt 2: Directive message quoting a concrete example value
- Attempt 3+: Final notice. Optional fields offer the "skip" keyword;
  required fields say the conversation ends without the answer

Registers:
- friendly: casual, witty, sassy and energetic presets
- formal: professional preset
- brief: concise preset, or any tone compiled to the 'low' verbosity tier

Tone only selects the register. It never changes which template family is
used, so the semantic content of a reprompt is the same for every tone.

Template Text:
- TEMPLATE_TEXT maps (template_id, register) to a pattern with {label} and
  {example} placeholders
- {label} is the lower-cased field label
"""

from enum import Enum
from typing import Dict, Optional, Sequence, Tuple, Union

from formflow.contracts import FieldType, Reason, ToneContract

FINAL_ATTEMPT = 3

SKIP_KEYWORD = "skip"


class Register(str, Enum):
    """Phrasing register derived from the tone contract"""
    FRIENDLY = "friendly"
    FORMAL = "formal"
    BRIEF = "brief"


FRIENDLY_PRESETS = {"casual", "witty", "sassy", "energetic"}
FORMAL_PRESETS = {"professional"}
BRIEF_PRESETS = {"concise"}


class ClarificationTemplateID(str, Enum):
    """
    Template identifiers for reprompt messages.

    Naming convention: <ATTEMPT>_<TOPIC>
    """
    # Attempt 1
    GENTLE_REFUSAL = "gentle_refusal"
    GENTLE_FORMAT_EMAIL = "gentle_format_email"
    GENTLE_FORMAT_PHONE = "gentle_format_phone"
    GENTLE_FORMAT_DATE = "gentle_format_date"
    GENTLE_FORMAT_URL = "gentle_format_url"
    GENTLE_FORMAT_NUMBER = "gentle_format_number"
    GENTLE_FORMAT_SELECT = "gentle_format_select"
    GENTLE_FORMAT_GENERIC = "gentle_format_generic"
    GENTLE_DETAIL = "gentle_detail"
    GENTLE_OFFTOPIC = "gentle_offtopic"

    # Attempt 2
    DIRECT_REFUSAL = "direct_refusal"
    DIRECT_FORMAT = "direct_format"
    DIRECT_DETAIL = "direct_detail"

    # Attempt 3+
    FINAL_OPTIONAL = "final_optional"
    FINAL_REQUIRED = "final_required"

    # Forced end after max attempts
    CLOSING_MAX_ATTEMPTS = "closing_max_attempts"


# Example values quoted on attempt 2
EXAMPLE_VALUES: Dict[FieldType, str] = {
    FieldType.EMAIL: "name@example.com",
    FieldType.PHONE: "(555) 123-4567",
    FieldType.DATE: "2024-12-31",
    FieldType.URL: "https://example.com",
    FieldType.NUMBER: "42",
}

GENERIC_TEXT_EXAMPLE = "a short sentence with the specifics"

GENTLE_FORMAT_BY_TYPE: Dict[FieldType, ClarificationTemplateID] = {
    FieldType.EMAIL: ClarificationTemplateID.GENTLE_FORMAT_EMAIL,
    FieldType.PHONE: ClarificationTemplateID.GENTLE_FORMAT_PHONE,
    FieldType.DATE: ClarificationTemplateID.GENTLE_FORMAT_DATE,
    FieldType.URL: ClarificationTemplateID.GENTLE_FORMAT_URL,
    FieldType.NUMBER: ClarificationTemplateID.GENTLE_FORMAT_NUMBER,
    FieldType.SINGLE_SELECT: ClarificationTemplateID.GENTLE_FORMAT_SELECT,
    FieldType.MULTI_SELECT: ClarificationTemplateID.GENTLE_FORMAT_SELECT,
}

# Template text patterns: (template_id, register) -> pattern
TEMPLATE_TEXT: Dict[Tuple[ClarificationTemplateID, Register], str] = {
    # Attempt 1 - refusal
    (ClarificationTemplateID.GENTLE_REFUSAL, Register.FRIENDLY): (
        "I understand, but I do need your {label} to continue. Could you share it?"
    ),
    (ClarificationTemplateID.GENTLE_REFUSAL, Register.FORMAL): (
        "I require your {label} to proceed. Please provide this information."
    ),
    (ClarificationTemplateID.GENTLE_REFUSAL, Register.BRIEF): (
        "I need your {label} to continue."
    ),

    # Attempt 1 - format
    (ClarificationTemplateID.GENTLE_FORMAT_EMAIL, Register.FRIENDLY): (
        "That doesn't look like a valid email address. Could you double-check and try again?"
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_EMAIL, Register.FORMAL): (
        "That does not appear to be a valid email address. Please check it and try again."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_EMAIL, Register.BRIEF): (
        "That email address looks invalid."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_PHONE, Register.FRIENDLY): (
        "That doesn't seem to be a complete phone number. Can you share your full number?"
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_PHONE, Register.FORMAL): (
        "That does not appear to be a complete phone number. Please provide your full number."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_PHONE, Register.BRIEF): (
        "That phone number looks incomplete."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_DATE, Register.FRIENDLY): (
        "I couldn't read that as a date. Could you try a format like YYYY-MM-DD?"
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_DATE, Register.FORMAL): (
        "I was unable to read that as a date. Please use a format such as YYYY-MM-DD."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_DATE, Register.BRIEF): (
        "That date looks invalid. Use YYYY-MM-DD."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_URL, Register.FRIENDLY): (
        "That doesn't look like a web address. Could you include the full link, starting with https://?"
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_URL, Register.FORMAL): (
        "That does not appear to be a valid web address. Please include the full link, starting with https://."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_URL, Register.BRIEF): (
        "That link looks invalid. Start it with https://."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_NUMBER, Register.FRIENDLY): (
        "I was expecting a number there. Could you try again with just the number?"
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_NUMBER, Register.FORMAL): (
        "Please provide your {label} as a number."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_NUMBER, Register.BRIEF): (
        "Numbers only, please."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_SELECT, Register.FRIENDLY): (
        "Hmm, that isn't one of the options. Could you pick one of them?"
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_SELECT, Register.FORMAL): (
        "That is not one of the available options. Please choose one of the listed options."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_SELECT, Register.BRIEF): (
        "Pick one of the options."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_GENERIC, Register.FRIENDLY): (
        "That doesn't look quite right. Could you try again?"
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_GENERIC, Register.FORMAL): (
        "That does not appear to be valid. Please try again."
    ),
    (ClarificationTemplateID.GENTLE_FORMAT_GENERIC, Register.BRIEF): (
        "That looks invalid. Try again."
    ),

    # Attempt 1 - detail
    (ClarificationTemplateID.GENTLE_DETAIL, Register.FRIENDLY): (
        "Could you share a bit more detail about your {label}?"
    ),
    (ClarificationTemplateID.GENTLE_DETAIL, Register.FORMAL): (
        "Could you please provide more detail regarding your {label}?"
    ),
    (ClarificationTemplateID.GENTLE_DETAIL, Register.BRIEF): (
        "A bit more detail on your {label}, please."
    ),
    (ClarificationTemplateID.GENTLE_OFFTOPIC, Register.FRIENDLY): (
        "I think we drifted a little. Could you tell me about your {label}?"
    ),
    (ClarificationTemplateID.GENTLE_OFFTOPIC, Register.FORMAL): (
        "That does not seem related to the question. Please tell me about your {label}."
    ),
    (ClarificationTemplateID.GENTLE_OFFTOPIC, Register.BRIEF): (
        "Please answer about your {label}."
    ),

    # Attempt 2
    (ClarificationTemplateID.DIRECT_REFUSAL, Register.FRIENDLY): (
        "I get it, but this one is needed to finish the form. Please share your {label}, "
        "for example: {example}"
    ),
    (ClarificationTemplateID.DIRECT_REFUSAL, Register.FORMAL): (
        "This information is necessary. Please provide your {label} to continue, "
        "for example: {example}"
    ),
    (ClarificationTemplateID.DIRECT_REFUSAL, Register.BRIEF): (
        "This is needed. Example: {example}"
    ),
    (ClarificationTemplateID.DIRECT_FORMAT, Register.FRIENDLY): (
        "Let's try once more. Please enter your {label} like this: {example}"
    ),
    (ClarificationTemplateID.DIRECT_FORMAT, Register.FORMAL): (
        "Please enter a valid {label}, for example: {example}"
    ),
    (ClarificationTemplateID.DIRECT_FORMAT, Register.BRIEF): (
        "Format: {example}"
    ),
    (ClarificationTemplateID.DIRECT_DETAIL, Register.FRIENDLY): (
        "I need a more specific answer for your {label}. For example: {example}"
    ),
    (ClarificationTemplateID.DIRECT_DETAIL, Register.FORMAL): (
        "I require a more specific answer for your {label}. For example: {example}"
    ),
    (ClarificationTemplateID.DIRECT_DETAIL, Register.BRIEF): (
        "Be more specific. Example: {example}"
    ),

    # Attempt 3+
    (ClarificationTemplateID.FINAL_OPTIONAL, Register.FRIENDLY): (
        "This one is optional. Want to move on? Just say \"skip\", or give it one more try."
    ),
    (ClarificationTemplateID.FINAL_OPTIONAL, Register.FORMAL): (
        "This field is optional. You may type \"skip\" to move on, or provide an answer to continue."
    ),
    (ClarificationTemplateID.FINAL_OPTIONAL, Register.BRIEF): (
        "Optional. Type \"skip\" to move on."
    ),
    (ClarificationTemplateID.FINAL_REQUIRED, Register.FRIENDLY): (
        "I really can't continue without your {label}. This is the last try: "
        "without a valid answer, the conversation will end here."
    ),
    (ClarificationTemplateID.FINAL_REQUIRED, Register.FORMAL): (
        "I cannot proceed without your {label}. This is the final attempt: "
        "without a valid answer, this conversation will end."
    ),
    (ClarificationTemplateID.FINAL_REQUIRED, Register.BRIEF): (
        "Last try: without your {label}, the conversation will end."
    ),

    # Forced end
    (ClarificationTemplateID.CLOSING_MAX_ATTEMPTS, Register.FRIENDLY): (
        "I'm unable to continue without your {label}. Thanks for your time!"
    ),
    (ClarificationTemplateID.CLOSING_MAX_ATTEMPTS, Register.FORMAL): (
        "I'm unable to continue without your {label}. Thank you for your time."
    ),
    (ClarificationTemplateID.CLOSING_MAX_ATTEMPTS, Register.BRIEF): (
        "Can't continue without your {label}. Thank you."
    ),
}


def resolve_register(tone: Optional[ToneContract]) -> Register:
    """
    Pick the phrasing register for a tone contract

    Args:
        tone: Compiled tone, or None (casual default)

    Returns:
        Register
    """
    if tone is None:
        return Register.FRIENDLY
    if tone.preset in BRIEF_PRESETS or tone.verbosity_tier == "low":
        return Register.BRIEF
    if tone.preset in FORMAL_PRESETS:
        return Register.FORMAL
    return Register.FRIENDLY


def get_example_value(
    field_type: Union[FieldType, str],
    examples: Sequence[str] = (),
    select_options: Optional[Sequence[str]] = None
) -> str:
    """
    Concrete example quoted on attempt 2

    Priority: the field's own first example, then a type example
    (options for select fields), then a generic text hint.
    """
    if examples:
        return f"\"{examples[0]}\""
    field_type = FieldType.coerce(field_type)
    if field_type in EXAMPLE_VALUES:
        return EXAMPLE_VALUES[field_type]
    if select_options:
        return ", ".join(select_options)
    return GENERIC_TEXT_EXAMPLE


def select_template(
    field_type: FieldType,
    attempt_number: int,
    reason: Optional[Reason],
    required: bool
) -> ClarificationTemplateID:
    """Choose the template family for an attempt; tone plays no part here"""
    if attempt_number >= FINAL_ATTEMPT:
        if required:
            return ClarificationTemplateID.FINAL_REQUIRED
        return ClarificationTemplateID.FINAL_OPTIONAL

    if attempt_number == 2:
        if reason == Reason.REFUSAL:
            return ClarificationTemplateID.DIRECT_REFUSAL
        if reason == Reason.INVALID_FORMAT:
            return ClarificationTemplateID.DIRECT_FORMAT
        return ClarificationTemplateID.DIRECT_DETAIL

    if reason == Reason.REFUSAL:
        return ClarificationTemplateID.GENTLE_REFUSAL
    if reason == Reason.INVALID_FORMAT:
        return GENTLE_FORMAT_BY_TYPE.get(field_type, ClarificationTemplateID.GENTLE_FORMAT_GENERIC)
    if reason == Reason.OFFTOPIC:
        return ClarificationTemplateID.GENTLE_OFFTOPIC
    return ClarificationTemplateID.GENTLE_DETAIL


def get_template_text(template_id: ClarificationTemplateID, register: Register) -> str:
    """
    Get template text pattern

    Raises:
        KeyError: If (template_id, register) not found in registry
    """
    return TEMPLATE_TEXT[(ClarificationTemplateID(template_id), Register(register))]


def render_template(
    template_id: ClarificationTemplateID,
    register: Register,
    field_label: str,
    example: str = GENERIC_TEXT_EXAMPLE
) -> str:
    return get_template_text(template_id, register).format(
        label=field_label.strip().lower(),
        example=example,
    )


def generate_reprompt_message(
    field_label: str,
    field_type: Union[FieldType, str],
    attempt_number: int,
    reason: Optional[Union[Reason, str]],
    required: bool = True,
    tone: Optional[ToneContract] = None,
    example: Optional[str] = None
) -> str:
    """
    Generate the reprompt for a failed attempt

    Args:
        field_label: Field label, e.g. 'Work email'
        field_type: Declared field type
        attempt_number: Failed attempts so far, including this one (>= 1)
        reason: Why the answer was rejected
        required: Whether the field is required
        tone: Compiled tone (register only)
        example: Example value for attempt 2 (defaults by field type)

    Returns:
        str: Message to show

    Examples:
        >>> generate_reprompt_message('Email', 'email', 2, 'invalid_format', True)
        "Let's try once more. Please enter your email like this: name@example.com"
    """
    field_type = FieldType.coerce(field_type)
    reason = Reason(reason) if reason is not None else None
    attempt_number = max(1, attempt_number)

    template_id = select_template(field_type, attempt_number, reason, required)
    return render_template(
        template_id,
        resolve_register(tone),
        field_label,
        example or get_example_value(field_type),
    )


def generate_escalated_clarification(
    field_label: str,
    field_type: Union[FieldType, str],
    attempt_number: int,
    reason: Optional[Union[Reason, str]],
    required: bool = True,
    tone: Optional[ToneContract] = None,
    example: Optional[str] = None,
    model_clarification: Optional[str] = None
) -> str:
    """
    Reprompt that prefers the model's own clarification on the first attempt

    Later attempts always use the ladder so the escalation (example, then
    skip offer or end notice) is guaranteed.
    """
    if attempt_number <= 1 and model_clarification:
        return model_clarification
    return generate_reprompt_message(
        field_label, field_type, attempt_number, reason, required, tone, example
    )


def generate_closing_message(field_label: str, tone: Optional[ToneContract] = None) -> str:
    """Message shown when a required field runs out of attempts"""
    return render_template(
        ClarificationTemplateID.CLOSING_MAX_ATTEMPTS,
        resolve_register(tone),
        field_label,
    )
