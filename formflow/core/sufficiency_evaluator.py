"""
Sufficiency Evaluator - Is this answer specific enough for the field?

Responsibilities:
- Run deterministic checks first (empty, vague lists, typed formats, select options)
- Ask a language model about free-text answers to fields that declare an intent
- Parse and validate the model's strict-JSON verdict
- Fall back deterministically when the model is unavailable or fails

Design principles:
- Ordered chain, first verdict wins: deterministic -> model -> fallback
- Model client is injected (no module-level client), fakes in tests
- Model failures are inconclusive, never errors: logged, never propagated
- Single model attempt per answer (no retry), bounding latency
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from formflow.contracts import (
    FieldDefinition,
    FieldType,
    Reason,
    ValidationResult,
    FREE_TEXT_TYPES,
    SELECT_TYPES,
)
from formflow.core.field_validator import is_refusal, validate_answer
from formflow.utils.json_repair import repair_json
from formflow.utils.prompt_builder import build_sufficiency_messages

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.0
DEFAULT_MAX_TOKENS = 200

# Shortest free-text answer accepted when the model cannot decide
FALLBACK_MIN_LENGTH = 3

DEFAULT_VAGUE_ANSWERS = (
    "idk", "i dont know", "i don't know", "not sure", "dunno", "maybe",
    "nothing", "none", "n/a", "na", "planning", "thinking", "undecided",
    "whatever", "anything", "everything", "something", "stuff", "things",
    "later", "soon", "eventually", "tbd", "to be determined", "?", "??", "???",
)

# Reasons the model may give; anything else collapses to VAGUE
MODEL_REASONS = {Reason.VAGUE, Reason.OFFTOPIC, Reason.REFUSAL}


class ModelResponseError(ValueError):
    """Raised when model output is not a usable sufficiency verdict"""
    pass


@dataclass(frozen=True)
class SufficiencyInput:
    """
    Everything the evaluator needs about one answer.

    Attributes:
        field_key: Field identifier (for logs)
        field_label: Human-readable field name
        field_type: Declared field type
        required: Whether the field is required
        user_text: Raw respondent text
        intent: What the field is for (enables model judgement)
        examples: Example acceptable answers
        vague_answers: Field-specific answers to reject as vague
        select_options: Allowed values for select fields
    """
    field_key: str
    field_label: str
    field_type: FieldType
    required: bool
    user_text: str
    intent: Optional[str] = None
    examples: Tuple[str, ...] = ()
    vague_answers: Tuple[str, ...] = ()
    select_options: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        object.__setattr__(self, 'field_type', FieldType.coerce(self.field_type))

    @classmethod
    def from_field(cls, field: FieldDefinition, user_text: str) -> "SufficiencyInput":
        return cls(
            field_key=field.key,
            field_label=field.label,
            field_type=field.field_type,
            required=field.required,
            user_text=user_text,
            intent=field.intent,
            examples=field.examples,
            vague_answers=field.vague_answers,
            select_options=field.options,
        )

    @property
    def has_intent(self) -> bool:
        return bool(self.intent and self.intent.strip())


def _fuzzy_select(text: str, select_options: Sequence[str], multi: bool) -> ValidationResult:
    """Substring match in either direction against the options"""
    lowered = text.lower()
    matched = [
        option for option in select_options
        if option.lower() in lowered or lowered in option.lower()
    ]
    if not matched:
        return ValidationResult.reject(Reason.INVALID_FORMAT)
    return ValidationResult.accept(matched if multi else matched[0])


def deterministic_check(data: SufficiencyInput) -> Optional[ValidationResult]:
    """
    Deterministic stage of the chain

    Returns:
        ValidationResult if a verdict was reached, None if inconclusive
        (only free text that passed every rule is inconclusive)
    """
    trimmed = data.user_text.strip()
    lowered = trimmed.lower()

    if not trimmed:
        return ValidationResult.reject(Reason.EMPTY)

    vague = set(DEFAULT_VAGUE_ANSWERS)
    vague.update(v.strip().lower() for v in data.vague_answers)
    if lowered in vague:
        return ValidationResult.reject(Reason.VAGUE)

    if data.field_type in SELECT_TYPES and data.select_options:
        if is_refusal(trimmed):
            return ValidationResult.reject(Reason.REFUSAL)
        return _fuzzy_select(
            trimmed,
            data.select_options,
            multi=data.field_type == FieldType.MULTI_SELECT,
        )

    result = validate_answer(data.field_type, trimmed, data.select_options)
    if data.field_type in FREE_TEXT_TYPES and result.ok:
        return None
    return result


def parse_model_verdict(raw_output: Any, user_text: str) -> ValidationResult:
    """
    Turn raw model output into a ValidationResult

    Expected JSON: {"sufficient": bool, "reason"?: str, "clarification"?: str|null}

    Raises:
        ModelResponseError: If output is not JSON or 'sufficient' is not a boolean
    """
    if not isinstance(raw_output, str):
        raise ModelResponseError(f"Model output must be str, got {type(raw_output).__name__}")

    try:
        parsed = json.loads(repair_json(raw_output))
    except json.JSONDecodeError as e:
        raise ModelResponseError(f"Invalid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise ModelResponseError("Model output is not a JSON object")

    sufficient = parsed.get("sufficient")
    if not isinstance(sufficient, bool):
        raise ModelResponseError(f"'sufficient' must be boolean, got {sufficient!r}")

    if sufficient:
        return ValidationResult.accept(user_text.strip())

    raw_reason = parsed.get("reason")
    try:
        reason = Reason(raw_reason)
    except ValueError:
        reason = Reason.VAGUE
    if reason not in MODEL_REASONS:
        reason = Reason.VAGUE

    clarification = parsed.get("clarification")
    if not isinstance(clarification, str) or not clarification.strip():
        clarification = None
    else:
        clarification = clarification.strip()

    return ValidationResult.reject(reason, clarification=clarification)


def fallback_verdict(user_text: str) -> ValidationResult:
    """Accept any answer of 3+ characters; infrastructure never blocks a respondent"""
    trimmed = user_text.strip()
    if len(trimmed) >= FALLBACK_MIN_LENGTH:
        return ValidationResult.accept(trimmed)
    return ValidationResult.reject(Reason.VAGUE)


class SufficiencyEvaluator:
    """Hybrid deterministic + model sufficiency judgement"""

    def __init__(
        self,
        llm_client=None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS
    ) -> None:
        """
        Initialize evaluator

        Args:
            llm_client: Object with generate_json(messages, max_tokens, temperature)
                returning a JSON string, e.g. HuggingFaceClient. None disables
                model judgement (deterministic fallback only).
            temperature: Sampling temperature for the model (default 0.0)
            max_tokens: Max tokens to generate (default 200)

        Raises:
            TypeError: If llm_client lacks a callable generate_json()
        """
        if llm_client is not None and not callable(getattr(llm_client, 'generate_json', None)):
            raise TypeError("llm_client must have callable generate_json() method")

        self.llm_client = llm_client
        self.temperature = temperature
        self.max_tokens = max_tokens

        logger.info(
            f"Sufficiency evaluator initialized "
            f"(model={'on' if llm_client is not None else 'off'}, "
            f"temp={temperature}, max_tokens={max_tokens})"
        )

    def evaluate(self, data: SufficiencyInput) -> ValidationResult:
        """
        Judge one answer.

        Chain:
        1. Deterministic check -> any verdict returned at once
        2. Free text + intent + client -> model verdict
        3. Otherwise, or if the model fails -> fallback verdict

        Never raises for model or parse failures.

        Args:
            data: SufficiencyInput

        Returns:
            ValidationResult
        """
        result = deterministic_check(data)
        if result is not None:
            logger.debug(
                f"[{data.field_key}] Deterministic verdict: ok={result.ok}, reason={result.reason}"
            )
            return result

        if data.has_intent and self.llm_client is not None:
            model_result = self._model_check(data)
            if model_result is not None:
                return model_result

        return fallback_verdict(data.user_text)

    def evaluate_field(self, field: FieldDefinition, user_text: str) -> ValidationResult:
        """Convenience wrapper taking a FieldDefinition"""
        return self.evaluate(SufficiencyInput.from_field(field, user_text))

    def _model_check(self, data: SufficiencyInput) -> Optional[ValidationResult]:
        """
        Ask the model; None means inconclusive (caller falls back)
        """
        try:
            messages = build_sufficiency_messages(
                field_label=data.field_label,
                intent=data.intent,
                user_text=data.user_text,
                examples=data.examples,
            )
            raw_output = self.llm_client.generate_json(
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            result = parse_model_verdict(raw_output, data.user_text)
        except Exception as e:
            logger.warning(
                f"[{data.field_key}] Model sufficiency check failed, using fallback: "
                f"{type(e).__name__} - {e}"
            )
            return None

        logger.info(
            f"[{data.field_key}] Model verdict: sufficient={result.ok}, reason={result.reason}"
        )
        return result


def evaluate_sufficiency(data: SufficiencyInput, llm_client=None) -> ValidationResult:
    """
    Module-level entry point

    Args:
        data: SufficiencyInput
        llm_client: Optional model client (see SufficiencyEvaluator)

    Returns:
        ValidationResult
    """
    return SufficiencyEvaluator(llm_client=llm_client).evaluate(data)


async def evaluate_sufficiency_async(data: SufficiencyInput, llm_client=None) -> ValidationResult:
    """
    Async entry point for callers running an event loop

    The model call blocks, so it runs on a worker thread.
    """
    return await asyncio.to_thread(evaluate_sufficiency, data, llm_client)
