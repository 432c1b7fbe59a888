"""
Tone-aware phrasing for question prompts, welcome and end messages.

Only wording changes here. Nothing in this module can add, remove or
reorder questions, or influence a flow decision.
"""

from typing import Dict, Optional, Union

from formflow.contracts import FieldType, ToneContract

DEFAULT_PROMPT = "Please provide your answer"

# (preset, tier) -> prefix added to question prompts
PROMPT_PREFIXES: Dict[str, Dict[str, str]] = {
    "energetic": {"low": "", "medium": "", "high": "Great! "},
}

DEFAULT_END_MESSAGES = {
    "low": "Done!",
    "medium": "Thank you!",
    "high": "Thank you for your response!",
}

USER_QUIT_MESSAGES = {
    "low": "Ended.",
    "medium": "No problem, we'll stop here.",
    "high": "No problem at all, we'll stop here. Thanks for your time!",
}


def apply_tone_phrasing(message: Optional[str], label: str, tone: ToneContract) -> str:
    """
    Phrase the prompt for a question

    An authored message is used as-is (the form author has full control);
    otherwise the label gets a tone-dependent prefix.
    """
    if message and message.strip():
        return message.strip()

    base_text = label or DEFAULT_PROMPT
    prefix = PROMPT_PREFIXES.get(tone.preset, {}).get(tone.verbosity_tier, "")
    return f"{prefix}{base_text}".strip()


def apply_tone_to_welcome(welcome_message: Optional[str], tone: ToneContract) -> str:
    """Welcome text is the author's own; empty stays empty"""
    if not welcome_message or not welcome_message.strip():
        return ""
    return welcome_message.strip()


def apply_tone_to_end(end_message: Optional[str], tone: ToneContract) -> str:
    """Authored end message, or a default sized by verbosity tier"""
    if end_message and end_message.strip():
        return end_message.strip()
    return DEFAULT_END_MESSAGES[tone.verbosity_tier]


def user_quit_message(tone: ToneContract) -> str:
    return USER_QUIT_MESSAGES[tone.verbosity_tier]


def get_placeholder_text(field_type: Union[FieldType, str], tone: ToneContract) -> str:
    """Input placeholder for a field type"""
    field_type = FieldType.coerce(field_type)
    low = tone.verbosity_tier == "low"

    if field_type == FieldType.EMAIL:
        return "email@example.com" if low else "Your email"
    if field_type == FieldType.PHONE:
        return "+1 234 567 8900" if low else "Your phone number"
    if field_type == FieldType.NUMBER:
        return "0" if low else "Enter a number"
    if field_type == FieldType.DATE:
        return "Select date" if low else "Choose a date"
    if field_type == FieldType.URL:
        return "https://" if low else "Paste a link"
    return "Type here" if low else "Type your answer here"
