"""
Form Loader - Load and validate authored form definitions

Responsibilities:
- Load a form definition from JSON
- Build immutable FieldDefinition objects
- Validate the field sequence (non-empty, unique keys)
- Sanitise tone settings

Design principles:
- Fail fast: a malformed form never reaches the flow controller
- The loaded form is read-only; conversations never change it
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple, Union

from formflow.contracts import FieldDefinition, FieldDefinitionError, ToneConfig
from formflow.core.tone_compiler import validate_tone_config

logger = logging.getLogger(__name__)


class FormDefinitionError(ValueError):
    """Raised when a form definition is missing or structurally invalid"""
    pass


@dataclass(frozen=True)
class FormDefinition:
    """
    Authored form: ordered fields plus presentation settings

    Attributes:
        name: Form name
        fields: Ordered field definitions (the sequence is never changed)
        tone: Sanitised tone settings
        welcome_enabled: Whether a welcome message precedes the questions
        welcome_message: Welcome text
        end_message: Text shown after the last field
    """
    name: str
    fields: Tuple[FieldDefinition, ...]
    tone: ToneConfig = ToneConfig()
    welcome_enabled: bool = False
    welcome_message: str = ""
    end_message: str = ""

    def get_field(self, key: str) -> FieldDefinition:
        for field in self.fields:
            if field.key == key:
                return field
        raise KeyError(f"Unknown field key: '{key}'")


def validate_field_sequence(fields: Sequence[FieldDefinition]) -> None:
    """
    Validate an ordered field list

    Raises:
        FormDefinitionError: If empty, not FieldDefinitions, or keys repeat
    """
    if not fields:
        raise FormDefinitionError("Form must define at least one field")

    seen = set()
    for field in fields:
        if not isinstance(field, FieldDefinition):
            raise FormDefinitionError(
                f"fields must be FieldDefinition instances, got {type(field).__name__}"
            )
        if field.key in seen:
            raise FormDefinitionError(f"Duplicate field key: '{field.key}'")
        seen.add(field.key)


def parse_form_definition(data: Dict[str, Any]) -> FormDefinition:
    """
    Build a FormDefinition from a dict

    Expected structure:
        {
            "name": "...",
            "fields": [{"key": ..., "type": ..., "label": ..., ...}, ...],
            "tone": {"preset": ..., "custom": ..., "chattiness": ...},
            "welcome_enabled": false,
            "welcome_message": "...",
            "end_message": "..."
        }

    Raises:
        FormDefinitionError: If structure is invalid
    """
    if not isinstance(data, dict):
        raise FormDefinitionError(f"Form definition must be an object, got {type(data).__name__}")

    raw_fields = data.get("fields")
    if not isinstance(raw_fields, list):
        raise FormDefinitionError("Form definition missing 'fields' list")

    fields = []
    for position, raw_field in enumerate(raw_fields):
        if not isinstance(raw_field, dict):
            raise FormDefinitionError(f"Field #{position} must be an object")
        try:
            fields.append(FieldDefinition.from_dict(raw_field))
        except FieldDefinitionError as e:
            raise FormDefinitionError(f"Field #{position}: {e}") from e

    validate_field_sequence(fields)

    return FormDefinition(
        name=str(data.get("name") or "Untitled form"),
        fields=tuple(fields),
        tone=validate_tone_config(data.get("tone")),
        welcome_enabled=bool(data.get("welcome_enabled", False)),
        welcome_message=str(data.get("welcome_message") or ""),
        end_message=str(data.get("end_message") or ""),
    )


def load_form_definition(path: Union[str, Path]) -> FormDefinition:
    """
    Load a form definition from a JSON file

    Args:
        path: Path to form JSON

    Returns:
        FormDefinition

    Raises:
        FileNotFoundError: If file doesn't exist
        FormDefinitionError: If JSON is invalid or structure is wrong
    """
    form_path = Path(path)
    if not form_path.exists():
        raise FileNotFoundError(f"Form definition not found: {path}")

    with open(form_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise FormDefinitionError(f"Invalid JSON in {path}: {e}") from e

    form = parse_form_definition(data)
    logger.info(f"Loaded form '{form.name}' with {len(form.fields)} fields from {path}")
    return form
