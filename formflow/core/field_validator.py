"""
Field Validator - Deterministic answer checks per field type

Responsibilities:
- Reject empty answers
- Detect refusals ("not your business", "idk", ...) before any format rule
- Validate and normalize typed answers (email, phone, date, url, number, select)
- Detect too-short and nonsense free text

Design principles:
- Pure and synchronous (no I/O, no model calls)
- Refusal detection takes priority over format validation
- One verdict per call: a ValidationResult with exactly one reason on rejection
- Unknown field types fail loudly (programming error, not respondent error)
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Union
from urllib.parse import urlparse

from dateutil import parser as date_parser

from formflow.contracts import FieldType, Reason, ValidationResult, FREE_TEXT_TYPES

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 2
MIN_PHONE_DIGITS = 7

# Nonsense heuristics
NONSENSE_MAX_NO_VOWEL_LENGTH = 4
NONSENSE_MAX_PUNCTUATION_RATIO = 0.5
VOWELS = set("aeiou")
PUNCTUATION_CHARS = set("!?.,:;")

# Refusals that only count when they are the whole answer.
# Short or ambiguous words ("no", "na", "pass") appear inside real answers.
REFUSAL_EXACT = {
    "n/a",
    "na",
    "none",
    "no",
    "nope",
    "nothing",
    "pass",
    "skip",
    "private",
    "confidential",
}

# Refusals that count wherever they appear as whole words
REFUSAL_CONTAINED = [
    "n/a",
    "not your business",
    "none of your business",
    "not your concern",
    "mind your business",
    "mind your own business",
    "myob",
    "idk",
    "i dont know",
    "i don't know",
    "dont know",
    "don't know",
    "dunno",
    "whatever",
    "not telling",
    "not saying",
    "refuse",
    "refused",
    "decline",
    "declined",
    "rather not say",
    "prefer not to say",
]

_REFUSAL_PATTERNS = [
    re.compile(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)")
    for phrase in REFUSAL_CONTAINED
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NON_DIGIT_PATTERN = re.compile(r"\D")
MULTI_SELECT_SEPARATOR = re.compile(r"\s*(?:,|;|&|\band\b)\s*", re.IGNORECASE)
URL_SCHEMES = ("http", "https")


def _normalize_for_matching(text: str) -> str:
    # Curly apostrophes from phone keyboards
    return text.strip().lower().replace("’", "'")


# =========================================================================
# Individual checks
# =========================================================================

def is_refusal(text: str) -> bool:
    """
    Check if text is a refusal or junk answer

    Args:
        text: Respondent text (any case, untrimmed)

    Returns:
        bool: True if the whole answer is a refusal word, or a refusal
        phrase appears in it as whole words
    """
    normalized = _normalize_for_matching(text)
    if not normalized:
        return False
    if normalized in REFUSAL_EXACT or normalized in REFUSAL_CONTAINED:
        return True
    return any(pattern.search(normalized) for pattern in _REFUSAL_PATTERNS)


def is_too_short(text: str, min_length: int = MIN_TEXT_LENGTH) -> bool:
    return len(text.strip()) < min_length


def is_nonsense(text: str) -> bool:
    """
    Check if text is likely keyboard spam

    Nonsense when any of:
    - One character repeated across the whole string ("aaaa", "!!!")
    - At most 4 characters and no vowel ("xyz", "qwrt")
    - Punctuation makes up more than half of the string ("?!?.")
    """
    trimmed = text.strip()
    if not trimmed:
        return False

    lowered = trimmed.lower()

    if len(trimmed) > 1 and len(set(lowered)) == 1:
        return True

    if len(trimmed) <= NONSENSE_MAX_NO_VOWEL_LENGTH and not (set(lowered) & VOWELS):
        return True

    punctuation_count = sum(1 for ch in trimmed if ch in PUNCTUATION_CHARS)
    if punctuation_count / len(trimmed) > NONSENSE_MAX_PUNCTUATION_RATIO:
        return True

    return False


def is_valid_email(text: str) -> bool:
    return bool(EMAIL_PATTERN.match(text))


def is_valid_phone(text: str) -> bool:
    """At least 7 digits once everything else is stripped"""
    digits = NON_DIGIT_PATTERN.sub("", text)
    return len(digits) >= MIN_PHONE_DIGITS


def is_valid_url(text: str) -> bool:
    """http(s) URL with a host"""
    try:
        parsed = urlparse(text)
    except ValueError:
        return False
    return parsed.scheme.lower() in URL_SCHEMES and bool(parsed.netloc)


def parse_date_value(text: str, reference: Optional[datetime] = None) -> Optional[str]:
    """
    Parse a date/time answer into an ISO-8601 UTC string

    Missing parts are filled from reference (midnight of today when None),
    so a partial answer like 'March 15' depends on the day it is processed;
    pass reference to pin it. Naive results are read as UTC.

    Args:
        text: Trimmed respondent text, e.g. '2024-03-15', 'March 15, 2024'
        reference: Date supplying missing parts

    Returns:
        str: ISO-8601 string, or None if text is not a date
    """
    default = (reference or datetime.now()).replace(
        hour=0, minute=0, second=0, microsecond=0, tzinfo=None
    )
    try:
        parsed = date_parser.parse(text, default=default)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Date parse failed for '{text}': {e}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    else:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.isoformat()


def parse_number(text: str) -> Optional[float]:
    """
    Parse a finite number, tolerating thousands separators

    Returns:
        float, or None if text is not a finite number
    """
    candidate = text.replace(",", "").replace(" ", "")
    try:
        value = float(candidate)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def match_select_option(text: str, select_options: Sequence[str]) -> Optional[str]:
    """Case-insensitive exact match, returning the declared option"""
    lowered = _normalize_for_matching(text)
    for option in select_options:
        if option.strip().lower() == lowered:
            return option
    return None


def match_multi_select_options(text: str, select_options: Sequence[str]) -> Optional[List[str]]:
    """
    Match a multi-select answer like 'Email, Phone and SMS'

    Every part must match an option exactly (case-insensitive). An answer
    equal to a single option that itself contains 'and' is matched whole.

    Returns:
        list of declared options (deduplicated, answer order), or None
    """
    whole = match_select_option(text, select_options)
    if whole is not None:
        return [whole]

    parts = [part for part in MULTI_SELECT_SEPARATOR.split(text) if part and part.strip()]
    if not parts:
        return None

    matched: List[str] = []
    for part in parts:
        option = match_select_option(part, select_options)
        if option is None:
            return None
        if option not in matched:
            matched.append(option)
    return matched


# =========================================================================
# Public API
# =========================================================================

def validate_typed_answer(
    field_type: FieldType,
    trimmed: str,
    select_options: Optional[Sequence[str]] = None
) -> ValidationResult:
    """
    Apply format rules for a typed (non free-text) field

    Expects trimmed, non-empty text that already passed refusal detection.
    """
    if field_type == FieldType.EMAIL:
        if not is_valid_email(trimmed):
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        return ValidationResult.accept(trimmed.lower())

    if field_type == FieldType.PHONE:
        if not is_valid_phone(trimmed):
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        return ValidationResult.accept(trimmed)

    if field_type == FieldType.DATE:
        iso_value = parse_date_value(trimmed)
        if iso_value is None:
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        return ValidationResult.accept(iso_value)

    if field_type == FieldType.URL:
        if not is_valid_url(trimmed):
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        return ValidationResult.accept(trimmed)

    if field_type == FieldType.NUMBER:
        number = parse_number(trimmed)
        if number is None:
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        return ValidationResult.accept(number)

    if field_type == FieldType.SINGLE_SELECT:
        if not select_options:
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        option = match_select_option(trimmed, select_options)
        if option is None:
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        return ValidationResult.accept(option)

    if field_type == FieldType.MULTI_SELECT:
        if not select_options:
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        options = match_multi_select_options(trimmed, select_options)
        if options is None:
            return ValidationResult.reject(Reason.INVALID_FORMAT)
        return ValidationResult.accept(options)

    raise ValueError(f"Not a typed field: {field_type}")


def validate_free_text(trimmed: str) -> ValidationResult:
    """Length and nonsense rules for short/long text"""
    if is_too_short(trimmed):
        return ValidationResult.reject(Reason.TOO_SHORT)
    if is_nonsense(trimmed):
        return ValidationResult.reject(Reason.NONSENSE)
    return ValidationResult.accept(trimmed)


def validate_answer(
    field_type: Union[FieldType, str],
    user_text: str,
    select_options: Optional[Sequence[str]] = None
) -> ValidationResult:
    """
    Validate one answer against a field's declared type.

    Order of checks:
    1. Empty (after trim) -> 'empty', for every field type
    2. Refusal blocklist -> 'refusal', before any format rule
    3. Type-specific rules -> 'invalid_format' / 'too_short' / 'nonsense'

    Args:
        field_type: FieldType or its string value
        user_text: Raw respondent text
        select_options: Allowed values for select fields

    Returns:
        ValidationResult: ok with normalized_value, or rejection with reason

    Raises:
        FieldDefinitionError: If field_type is unknown

    Examples:
        >>> validate_answer('email', 'User@Example.COM').normalized_value
        'user@example.com'
        >>> validate_answer('email', 'not your business').reason
        <Reason.REFUSAL: 'refusal'>
    """
    field_type = FieldType.coerce(field_type)
    trimmed = (user_text or "").strip()

    if not trimmed:
        return ValidationResult.reject(Reason.EMPTY)

    if is_refusal(trimmed):
        return ValidationResult.reject(Reason.REFUSAL)

    if field_type in FREE_TEXT_TYPES:
        return validate_free_text(trimmed)

    return validate_typed_answer(field_type, trimmed, select_options)

