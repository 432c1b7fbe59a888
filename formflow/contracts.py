"""
Semantic contracts for the conversational form engine.

This module defines immutable data structures shared between modules:
what a field is, how an answer was judged, and how a form wants to sound.

Design principles:
- Frozen dataclasses (immutable after creation)
- Fail-fast construction checks for definitions authored by humans
- No dependencies on other formflow modules

Contents:
- FieldType: Closed set of declared answer types
- Reason: Closed set of rejection reasons
- FieldDefinition: One question in a form
- ValidationResult: Verdict of the validator or the sufficiency evaluator
- ToneConfig / ToneContract: Tone input and its compiled form

Usage:
    from formflow.contracts import FieldDefinition, FieldType, ValidationResult
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class FieldDefinitionError(ValueError):
    """Raised when a field definition is malformed or names an unknown type"""
    pass


class FieldType(str, Enum):
    """
    Declared answer type of a field.

    Canonical set for this system. New types added deliberately.
    """
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    DATE = "date"
    URL = "url"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"

    @classmethod
    def coerce(cls, value: Any) -> "FieldType":
        """
        Convert a string (or FieldType) to FieldType.

        Raises:
            FieldDefinitionError: If value is not a known field type
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = [t.value for t in cls]
            raise FieldDefinitionError(
                f"Unknown field type: '{value}'. Must be one of: {valid}"
            ) from None


FREE_TEXT_TYPES = frozenset({FieldType.SHORT_TEXT, FieldType.LONG_TEXT})
SELECT_TYPES = frozenset({FieldType.SINGLE_SELECT, FieldType.MULTI_SELECT})


class Reason(str, Enum):
    """Why an answer was not accepted. Drives reprompt phrasing only."""
    EMPTY = "empty"
    REFUSAL = "refusal"
    NONSENSE = "nonsense"
    INVALID_FORMAT = "invalid_format"
    TOO_SHORT = "too_short"
    VAGUE = "vague"
    OFFTOPIC = "offtopic"


@dataclass(frozen=True)
class FieldDefinition:
    """
    Immutable definition of one question in a form.

    Created once when a form is authored and never mutated during a
    conversation. The flow controller reads it; nothing writes it.

    Attributes:
        key: Identifier of the field, unique within the form.
            Used as the key in collected answers and attempt counters.
        field_type: Declared answer type (FieldType or its string value).
        label: Human-readable name, e.g. 'Work email'.
            Used in reprompt messages and model prompts.
        required: Whether the conversation may continue without an answer.
        message: Optional prompt text shown when the field is asked.
            Falls back to the label.
        intent: What the answer is for, e.g. 'Understand the main use case'.
            Only free-text fields with an intent are judged by the model.
        examples: Example acceptable answers. The first one is quoted in
            second-attempt reprompts.
        vague_answers: Field-specific answers to reject as vague, on top of
            the global vague list.
        options: Allowed values for select fields. Tuple for immutability.

    Examples:
        >>> f = FieldDefinition(key='email', field_type='email',
        ...                     label='Email', required=True)
        >>> f.field_type
        <FieldType.EMAIL: 'email'>
    """
    key: str
    field_type: FieldType
    label: str
    required: bool = False
    message: Optional[str] = None
    intent: Optional[str] = None
    examples: Tuple[str, ...] = ()
    vague_answers: Tuple[str, ...] = ()
    options: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        """Validate definition invariants. Fail-fast on any violation."""
        if not self.key or not isinstance(self.key, str):
            raise FieldDefinitionError(f"key must be non-empty string, got: {self.key!r}")

        if not self.label or not isinstance(self.label, str):
            raise FieldDefinitionError(f"label missing or empty for field '{self.key}'")

        # Frozen: normalise through object.__setattr__
        object.__setattr__(self, 'field_type', FieldType.coerce(self.field_type))
        object.__setattr__(self, 'examples', tuple(self.examples or ()))
        object.__setattr__(self, 'vague_answers', tuple(self.vague_answers or ()))
        if self.options is not None:
            object.__setattr__(self, 'options', tuple(self.options))

        if self.field_type in SELECT_TYPES:
            if not self.options:
                raise FieldDefinitionError(
                    f"Select field '{self.key}' missing options"
                )
        elif self.options:
            raise FieldDefinitionError(
                f"Field '{self.key}' of type '{self.field_type.value}' cannot declare options"
            )

    @property
    def prompt_text(self) -> str:
        """Text shown when asking this field"""
        if self.message and self.message.strip():
            return self.message.strip()
        return self.label

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDefinition":
        """
        Build a definition from an authored dict (form JSON).

        Accepts 'type' as an alias of 'field_type' and option dicts of the
        form {'value': ..., 'label': ...} as well as plain strings.
        """
        options = data.get('options')
        if options is not None:
            options = tuple(
                opt['value'] if isinstance(opt, dict) else opt
                for opt in options
            )
        return cls(
            key=data.get('key'),
            field_type=data.get('field_type', data.get('type')),
            label=data.get('label'),
            required=bool(data.get('required', False)),
            message=data.get('message'),
            intent=data.get('intent'),
            examples=tuple(data.get('examples') or ()),
            vague_answers=tuple(data.get('vague_answers') or ()),
            options=options or None,
        )


@dataclass(frozen=True)
class ValidationResult:
    """
    Verdict on one answer, from the validator or the sufficiency evaluator.

    Ephemeral, never persisted.

    Invariant (enforced at construction):
    - ok=True never carries a reason or clarification
    - ok=False carries exactly one reason

    Attributes:
        ok: Whether the answer is accepted.
        normalized_value: Value to store when accepted (str, float or list).
        reason: Why the answer was rejected.
        clarification: Model-written follow-up question (rejections only).
    """
    ok: bool
    normalized_value: Any = None
    reason: Optional[Reason] = None
    clarification: Optional[str] = None

    def __post_init__(self):
        if self.ok:
            if self.reason is not None:
                raise ValueError("Accepted result cannot carry a reason")
            if self.clarification is not None:
                raise ValueError("Accepted result cannot carry a clarification")
        else:
            if self.reason is None:
                raise ValueError("Rejected result must carry a reason")
            object.__setattr__(self, 'reason', Reason(self.reason))

    @property
    def sufficient(self) -> bool:
        return self.ok

    @classmethod
    def accept(cls, normalized_value: Any) -> "ValidationResult":
        return cls(ok=True, normalized_value=normalized_value)

    @classmethod
    def reject(cls, reason: Reason, clarification: Optional[str] = None) -> "ValidationResult":
        return cls(ok=False, reason=reason, clarification=clarification)


@dataclass(frozen=True)
class ToneConfig:
    """
    Tone settings authored on a form.

    Attributes:
        preset: One of TONE_PRESETS (see tone_compiler).
        custom: Free-text style description, e.g. 'Friendly+Professional'.
        chattiness: Override 0..1, None means use the preset default.
    """
    preset: str = "professional"
    custom: str = "Friendly+Professional"
    chattiness: Optional[float] = None


@dataclass(frozen=True)
class ToneContract:
    """
    Compiled tone, consumed by message generation only.

    Attributes:
        preset: Preset name
        custom: Custom style description
        effective_chattiness: Final chattiness 0..1
        verbosity_tier: 'low' | 'medium' | 'high'
        style_rules: Style directives, in order
    """
    preset: str
    custom: str
    effective_chattiness: float
    verbosity_tier: str
    style_rules: Tuple[str, ...]
