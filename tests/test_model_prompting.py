"""
Test prompt building, chat formatting and JSON repair for the model stage

No model is loaded: PromptFormatter works without torch and a fake
tokenizer stands in for the chat template.
"""

import json

import pytest

from formflow.utils.json_repair import repair_json, strip_code_fences
from formflow.utils.prompt_builder import (
    DEFAULT_INTENT,
    PromptBuildError,
    build_sufficiency_messages,
    build_system_prompt,
)
from formflow.utils.prompt_formatter import PromptFormatter, merge_messages


class FakeTokenizer:
    """Tokenizer with a chat template"""

    chat_template = "{{ messages }}"

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = 0

    def apply_chat_template(self, messages, tokenize=False, add_generation_prompt=True):
        self.calls += 1
        if self.fail:
            raise ValueError("Conversation roles must alternate user/assistant/user/assistant/...")
        return "|".join(f"{m['role']}:{m['content']}" for m in messages) + "|assistant:"


MESSAGES = [
    {"role": "system", "content": "Judge the answer."},
    {"role": "user", "content": "User's answer: \"Event registration\""},
]


# ========== Prompt builder ==========

def test_system_prompt_contains_field_context():
    prompt = build_system_prompt("Use case", "Understand the main use case", ["Lead capture"])
    assert "- Label: Use case" in prompt
    assert "- Intent: Understand the main use case" in prompt
    assert "- Good examples: Lead capture" in prompt
    assert '"sufficient"' in prompt


def test_system_prompt_default_intent():
    assert f"- Intent: {DEFAULT_INTENT}" in build_system_prompt("Use case", None)


def test_system_prompt_requires_label():
    with pytest.raises(PromptBuildError):
        build_system_prompt("  ", "intent")


def test_sufficiency_messages_shape():
    messages = build_sufficiency_messages("Use case", "Why", "  Event registration ")
    assert [m["role"] for m in messages] == ["system", "user"]
    assert 'User\'s answer: "Event registration"' in messages[1]["content"]


# ========== Formatter ==========

def test_formatter_uses_chat_template():
    tokenizer = FakeTokenizer()
    formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2", tokenizer)
    formatted = formatter.format_chat(MESSAGES)
    assert formatted.startswith("system:Judge the answer.")
    assert formatter.get_info()["formatting_method"] == "tokenizer_template"


def test_formatter_falls_back_when_template_rejects_system_role():
    formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2", FakeTokenizer(fail=True))
    formatted = formatter.format_chat(MESSAGES)
    assert formatted == f"[INST] {merge_messages(MESSAGES)} [/INST]"


def test_formatter_manual_families():
    assert PromptFormatter("meta-llama/Meta-Llama-3-8B-Instruct").model_family == "llama-3"
    assert PromptFormatter("HuggingFaceH4/zephyr-7b-beta").format_chat(MESSAGES).startswith("<|user|>")


def test_formatter_generic_passthrough():
    formatter = PromptFormatter("gpt2")
    assert formatter.format_chat(MESSAGES) == "Judge the answer.\n\nUser's answer: \"Event registration\""
    assert formatter.get_info()["formatting_method"] == "none"


# ========== JSON repair ==========

def test_strip_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'


@pytest.mark.parametrize("raw, expected", [
    ('{"sufficient": true}', {"sufficient": True}),
    ('Sure! Here you go: {"sufficient": false, "reason": "vague"} Hope that helps.',
     {"sufficient": False, "reason": "vague"}),
    ('```json\n{"sufficient": true}\n```', {"sufficient": True}),
    ('{"sufficient": false', {"sufficient": False}),
])
def test_repair_json(raw, expected):
    assert json.loads(repair_json(raw)) == expected


def test_repair_json_without_braces_left_alone():
    assert repair_json("I cannot answer that") == "I cannot answer that"
    assert repair_json(None) == ""
