"""
Test Tone Compiler - presets, chattiness and verbosity tiers

Run with: python3 tests/test_tone_compiler.py
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

from formflow.contracts import ToneConfig
from formflow.core.tone_compiler import (
    TONE_PRESETS,
    compile_tone_contract,
    get_chattiness_bars,
    get_chattiness_percentage,
    get_verbosity_tier,
    validate_tone_config,
)


def test_preset_defaults():
    """Each preset compiles to its default chattiness"""
    expected = {
        "energetic": "high",
        "sassy": "high",
        "witty": "medium",
        "casual": "medium",
        "professional": "medium",
        "concise": "low",
    }
    for preset, tier in expected.items():
        contract = compile_tone_contract(ToneConfig(preset=preset))
        assert contract.effective_chattiness == TONE_PRESETS[preset]["default_chattiness"]
        assert contract.verbosity_tier == tier, f"{preset}: expected {tier}, got {contract.verbosity_tier}"

    print("✓ Preset defaults test passed")


def test_tier_boundaries():
    assert get_verbosity_tier(0.0) == "low"
    assert get_verbosity_tier(0.33) == "low"
    assert get_verbosity_tier(0.34) == "medium"
    assert get_verbosity_tier(0.66) == "medium"
    assert get_verbosity_tier(0.67) == "high"
    assert get_verbosity_tier(1.0) == "high"

    print("✓ Tier boundaries test passed")


def test_chattiness_override_and_clamp():
    """Explicit chattiness wins over preset default, clamped to 0..1"""
    contract = compile_tone_contract(ToneConfig(preset="concise", chattiness=0.9))
    assert contract.verbosity_tier == "high"

    contract = compile_tone_contract({"preset": "energetic", "chattiness": -3})
    assert contract.effective_chattiness == 0.0
    assert contract.verbosity_tier == "low"

    contract = compile_tone_contract({"preset": "casual", "chattiness": 7})
    assert contract.effective_chattiness == 1.0

    print("✓ Chattiness override test passed")


def test_defaults_when_missing():
    contract = compile_tone_contract()
    assert contract.preset == "professional"
    assert contract.custom == "Friendly+Professional"
    assert contract.effective_chattiness == 0.45
    assert contract.verbosity_tier == "medium"

    print("✓ Defaults test passed")


def test_style_rules_include_custom():
    contract = compile_tone_contract(ToneConfig(preset="witty", custom="Warm but precise"))
    assert contract.style_rules[-1] == "Overall tone: Warm but precise"
    assert len(contract.style_rules) == 4
    assert isinstance(contract.style_rules, tuple)

    print("✓ Style rules test passed")


def test_compile_is_deterministic():
    config = ToneConfig(preset="sassy", chattiness=0.5)
    assert compile_tone_contract(config) == compile_tone_contract(config)

    print("✓ Deterministic compile test passed")


def test_validate_tone_config_sanitises():
    config = validate_tone_config({"preset": "grumpy", "custom": 12, "chattiness": True})
    assert config.preset == "professional"
    assert config.custom == "Friendly+Professional"
    assert config.chattiness is None

    config = validate_tone_config({"preset": "witty", "chattiness": "0.8"})
    assert config.chattiness is None

    assert validate_tone_config(None) == ToneConfig()
    assert validate_tone_config("casual") == ToneConfig()

    print("✓ Tone config sanitising test passed")


def test_non_finite_chattiness_ignored():
    """NaN / Infinity from form JSON fall back to the preset default"""
    raw = json.loads('{"preset": "concise", "chattiness": NaN}')
    config = validate_tone_config(raw)
    assert config.chattiness is None

    contract = compile_tone_contract(config)
    assert contract.effective_chattiness == 0.25
    assert contract.verbosity_tier == "low"
    assert compile_tone_contract(config) == contract

    assert validate_tone_config({"preset": "witty", "chattiness": float("inf")}).chattiness is None

    # Compiled directly, bypassing sanitising
    contract = compile_tone_contract(ToneConfig(preset="concise", chattiness=float("nan")))
    assert contract.effective_chattiness == 0.25

    print("✓ Non-finite chattiness test passed")


def test_display_helpers():
    contract = compile_tone_contract(ToneConfig(preset="casual"))
    assert get_chattiness_percentage(contract) == 55
    assert get_chattiness_bars(0.0) == 0
    assert get_chattiness_bars(0.25) == 1
    assert get_chattiness_bars(0.55) == 3
    assert get_chattiness_bars(1.0) == 4

    print("✓ Display helpers test passed")


if __name__ == '__main__':
    print("\n" + "="*60)
    print("TESTING TONE COMPILER")
    print("="*60 + "\n")

    test_preset_defaults()
    test_tier_boundaries()
    test_chattiness_override_and_clamp()
    test_defaults_when_missing()
    test_style_rules_include_custom()
    test_compile_is_deterministic()
    test_validate_tone_config_sanitises()
    test_non_finite_chattiness_ignored()
    test_display_helpers()

    print("\n" + "="*60)
    print("ALL TONE COMPILER TESTS PASSED ✓")
    print("="*60 + "\n")
