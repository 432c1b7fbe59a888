"""
Tone Compiler - Turn a form's tone settings into a tone contract

Responsibilities:
- Resolve effective chattiness (preset default or clamped override)
- Map chattiness to a verbosity tier
- Produce style directives for message generation
- Sanitise tone settings coming from authored form JSON

Design principles:
- Pure functions, no module state touched at call time
- Tone affects phrasing and verbosity only, never what is collected,
  field order or any flow decision
"""

import logging
import math
from typing import Any, Dict, List, Optional, Union

from formflow.contracts import ToneConfig, ToneContract

logger = logging.getLogger(__name__)

TIER_LOW = "low"
TIER_MEDIUM = "medium"
TIER_HIGH = "high"

# Tier boundaries (inclusive upper bounds)
LOW_TIER_MAX = 0.33
MEDIUM_TIER_MAX = 0.66

DEFAULT_PRESET = "professional"
DEFAULT_CUSTOM = "Friendly+Professional"
FALLBACK_CHATTINESS = 0.45

# More chattiness = more "bars" in the builder UI
TONE_PRESETS: Dict[str, Dict[str, Any]] = {
    "energetic": {
        "label": "Energetic",
        "description": "Upbeat and enthusiastic",
        "default_chattiness": 0.85,
    },
    "sassy": {
        "label": "Sassy",
        "description": "Bold and confident",
        "default_chattiness": 0.70,
    },
    "witty": {
        "label": "Witty",
        "description": "Clever and engaging",
        "default_chattiness": 0.60,
    },
    "casual": {
        "label": "Casual",
        "description": "Relaxed and friendly",
        "default_chattiness": 0.55,
    },
    "professional": {
        "label": "Professional",
        "description": "Business-appropriate and clear",
        "default_chattiness": 0.45,
    },
    "concise": {
        "label": "Concise",
        "description": "Brief and to the point",
        "default_chattiness": 0.25,
    },
}

PRESET_STYLE_RULES: Dict[str, List[str]] = {
    "energetic": [
        "Use upbeat language",
        "Add enthusiasm without overusing exclamation marks",
        "Keep energy consistent throughout",
    ],
    "sassy": [
        "Be confident and direct",
        "Use personality without being unprofessional",
        "Keep it bold but appropriate",
    ],
    "witty": [
        "Add subtle cleverness",
        "Use light humor where appropriate",
        "Keep it smart, not silly",
    ],
    "casual": [
        "Use conversational language",
        "Keep it relaxed and approachable",
        "Avoid overly formal phrasing",
    ],
    "professional": [
        "Use clear, business-appropriate language",
        "Maintain professionalism throughout",
        "No emojis or casual slang",
    ],
    "concise": [
        "Keep every question as brief as possible",
        "Eliminate unnecessary words",
        "Get straight to the point",
    ],
}

DEFAULT_TONE_CONFIG = ToneConfig(
    preset=DEFAULT_PRESET,
    custom=DEFAULT_CUSTOM,
    chattiness=None,
)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


def get_verbosity_tier(chattiness: float) -> str:
    """
    Convert chattiness to verbosity tier

    Args:
        chattiness: Value 0..1

    Returns:
        str: 'low' (<= 0.33), 'medium' (<= 0.66) or 'high'
    """
    if chattiness <= LOW_TIER_MAX:
        return TIER_LOW
    if chattiness <= MEDIUM_TIER_MAX:
        return TIER_MEDIUM
    return TIER_HIGH


def generate_style_rules(preset: str, custom: str) -> List[str]:
    """Style directives for a preset, plus the custom description if any"""
    rules = list(PRESET_STYLE_RULES.get(preset, []))
    if custom and custom.strip():
        rules.append(f"Overall tone: {custom}")
    return rules


def compile_tone_contract(tone_config: Optional[Union[ToneConfig, Dict[str, Any]]] = None) -> ToneContract:
    """
    Compile a tone configuration into a contract

    Pure function: identical input gives an identical contract.

    Args:
        tone_config: ToneConfig, raw dict from form JSON, or None for defaults

    Returns:
        ToneContract: Effective chattiness, verbosity tier and style rules

    Examples:
        >>> compile_tone_contract(ToneConfig(preset='concise')).verbosity_tier
        'low'
        >>> compile_tone_contract(ToneConfig(preset='concise', chattiness=0.9)).verbosity_tier
        'high'
    """
    if tone_config is None:
        config = DEFAULT_TONE_CONFIG
    elif isinstance(tone_config, ToneConfig):
        config = tone_config
    else:
        config = validate_tone_config(tone_config)

    preset = config.preset or DEFAULT_PRESET
    custom = config.custom or DEFAULT_CUSTOM

    preset_definition = TONE_PRESETS.get(preset)
    preset_default = (
        preset_definition["default_chattiness"] if preset_definition else FALLBACK_CHATTINESS
    )

    if config.chattiness is not None and math.isfinite(config.chattiness):
        effective = _clamp(float(config.chattiness))
    else:
        effective = preset_default

    return ToneContract(
        preset=preset,
        custom=custom,
        effective_chattiness=effective,
        verbosity_tier=get_verbosity_tier(effective),
        style_rules=tuple(generate_style_rules(preset, custom)),
    )


def validate_tone_config(raw: Any) -> ToneConfig:
    """
    Sanitise tone settings from untrusted form JSON

    - Unknown preset -> 'professional'
    - Non-string custom -> default description
    - Non-numeric or non-finite chattiness -> None (use preset default),
      numbers clamped

    Args:
        raw: Anything (usually a dict)

    Returns:
        ToneConfig
    """
    if not isinstance(raw, dict):
        return DEFAULT_TONE_CONFIG

    preset = raw.get("preset")
    if preset not in TONE_PRESETS:
        if preset is not None:
            logger.warning(f"Unknown tone preset '{preset}', using '{DEFAULT_PRESET}'")
        preset = DEFAULT_PRESET

    custom = raw.get("custom")
    if not isinstance(custom, str):
        custom = DEFAULT_CUSTOM

    chattiness = raw.get("chattiness")
    # bool is an int subclass; never a chattiness
    if isinstance(chattiness, bool) or not isinstance(chattiness, (int, float)):
        chattiness = None
    elif not math.isfinite(chattiness):
        logger.warning(f"Non-finite chattiness {chattiness!r}, using preset default")
        chattiness = None
    else:
        chattiness = _clamp(float(chattiness))

    return ToneConfig(preset=preset, custom=custom, chattiness=chattiness)


def get_chattiness_percentage(contract: ToneContract) -> int:
    """Chattiness as a whole percentage (for display)"""
    return int(round(contract.effective_chattiness * 100))


def get_chattiness_bars(chattiness: float) -> int:
    """Number of bars (0-4) shown for a chattiness value"""
    return math.ceil(_clamp(chattiness) * 4)
