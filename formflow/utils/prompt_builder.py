"""
Prompt Builder - Construct sufficiency-judgement prompts

Responsibilities:
- Convert a sufficiency request (field context + answer) into chat messages
- Validate semantic completeness (label, intent)
- Enforce prompt structure and ordering

NOT responsible for:
- Model calls
- Parsing model output
- Flow decisions

Design principles:
- Fail-fast validation (no partial builds)
- Deterministic: same input, same messages
- Tone never enters the judgement prompt (it must not sway the verdict)
"""

import logging
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

ROLE_SYSTEM = "system"
ROLE_USER = "user"

DEFAULT_INTENT = "Collect this information"

SYSTEM_RULES = """Rules:
1. The answer must be SPECIFIC and INFORMATIVE enough to satisfy the intent
2. Reject vague, off-topic, or refusal answers
3. Accept answers that give useful, relevant information even if brief
4. Do NOT mention schema, validation, or internal rules
5. Return exactly ONE clarification question if insufficient

Examples of insufficient answers:
- Too vague: "planning", "thinking about it", "stuff"
- Off-topic: User talks about something unrelated
- Refusal: "none of your business", "not telling"

Examples of sufficient answers:
- Specific: "Lead capture for inbound marketing"
- Concrete: "We need it for customer onboarding"
- Brief but clear: "Event registration"

Return JSON only with these fields:
{
  "sufficient": true or false,
  "reason": "vague" | "offtopic" | "refusal" (only if insufficient),
  "clarification": "ONE question to ask" (only if insufficient, natural and conversational)
}"""


class PromptBuildError(Exception):
    """Raised when a prompt cannot be built due to missing field context"""
    pass


def build_system_prompt(
    field_label: str,
    intent: Optional[str],
    examples: Sequence[str] = ()
) -> str:
    """
    Build the system message describing the field being judged

    Args:
        field_label: Human-readable field name
        intent: What the field is for (falls back to a generic intent)
        examples: Example acceptable answers

    Returns:
        str: System prompt

    Raises:
        PromptBuildError: If field_label is empty
    """
    if not field_label or not field_label.strip():
        raise PromptBuildError("field_label missing or empty")

    lines = [
        "You are a form assistant evaluating if a user's answer is sufficiently specific for a field.",
        "",
        "Field context:",
        f"- Label: {field_label.strip()}",
        f"- Intent: {(intent or '').strip() or DEFAULT_INTENT}",
    ]
    cleaned_examples = [e.strip() for e in examples if e and e.strip()]
    if cleaned_examples:
        lines.append(f"- Good examples: {'; '.join(cleaned_examples)}")
    lines.append("")
    lines.append(SYSTEM_RULES)

    return "\n".join(lines)


def build_user_prompt(user_text: str) -> str:
    """User message carrying the answer under judgement"""
    return (
        f'User\'s answer: "{user_text.strip()}"\n\n'
        "Is this sufficiently specific for the field intent? Respond with JSON only."
    )


def build_sufficiency_messages(
    field_label: str,
    intent: Optional[str],
    user_text: str,
    examples: Sequence[str] = ()
) -> List[Dict[str, str]]:
    """
    Build chat messages for a sufficiency judgement

    Returns:
        list: [{'role': 'system', ...}, {'role': 'user', ...}]
    """
    messages = [
        {"role": ROLE_SYSTEM, "content": build_system_prompt(field_label, intent, examples)},
        {"role": ROLE_USER, "content": build_user_prompt(user_text)},
    ]
    logger.debug(f"Built sufficiency prompt for '{field_label}'")
    return messages
