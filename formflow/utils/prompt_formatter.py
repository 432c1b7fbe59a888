"""
Prompt Formatter - Model-specific chat formatting

Responsibilities:
- Detect model family from model name
- Render [system, user] messages with the tokenizer chat template
- Fallback to manual formatting for known families

Design principles:
- Tokenizer template priority (most robust)
- Manual fallback for known families (system text folded into the user turn)
- Generic passthrough for unknown models
- Stateless formatting (no side effects)
"""

import logging
from typing import Dict, List

logger = logging.getLogger(__name__)


def merge_messages(messages: List[Dict[str, str]]) -> str:
    """Join message contents into one instruction (system first)"""
    parts = [m.get("content", "").strip() for m in messages if m.get("content", "").strip()]
    return "\n\n".join(parts)


class PromptFormatter:
    """Format chat messages for specific model families"""

    MANUAL_FORMATS = {
        "mistral": lambda prompt: f"[INST] {prompt} [/INST]",
        "mixtral": lambda prompt: f"[INST] {prompt} [/INST]",
        "llama": lambda prompt: f"[INST] {prompt} [/INST]",
        "llama-3": lambda prompt: f"<|begin_of_text|><|start_header_id|>user<|end_header_id|>\n\n{prompt}<|eot_id|><|start_header_id|>assistant<|end_header_id|>\n\n",
        "zephyr": lambda prompt: f"<|user|>\n{prompt}\n<|assistant|>\n",
        "phi": lambda prompt: f"<|user|>\n{prompt}<|end|>\n<|assistant|>\n",
    }

    def __init__(self, model_name: str, tokenizer=None):
        """
        Initialize formatter

        Args:
            model_name: HuggingFace model identifier
            tokenizer: Optional tokenizer with chat_template attribute
        """
        self.model_name = model_name
        self.tokenizer = tokenizer
        self.model_family = self._detect_model_family(model_name)

        self.has_chat_template = (
            tokenizer is not None and
            getattr(tokenizer, 'chat_template', None) is not None
        )

        if self.has_chat_template:
            logger.info(f"Using tokenizer chat template for {model_name}")
        elif self.model_family in self.MANUAL_FORMATS:
            logger.info(f"Using manual formatting for {self.model_family} family")
        else:
            logger.warning(f"No chat template or known format for {model_name}. Using generic (no formatting)")

    def _detect_model_family(self, model_name: str) -> str:
        name_lower = model_name.lower()

        # Most specific first
        if "llama-3" in name_lower or "llama3" in name_lower:
            return "llama-3"
        elif "llama" in name_lower:
            return "llama"
        elif "mixtral" in name_lower:
            return "mixtral"
        elif "mistral" in name_lower:
            return "mistral"
        elif "zephyr" in name_lower:
            return "zephyr"
        elif "phi" in name_lower:
            return "phi"
        return "generic"

    def format_chat(self, messages: List[Dict[str, str]]) -> str:
        """
        Render chat messages into a single prompt string

        Priority:
        1. Tokenizer chat template (if available)
        2. Manual formatting for known family
        3. Generic passthrough (merged message text)

        Args:
            messages: [{'role': 'system'|'user', 'content': str}, ...]

        Returns:
            str: Formatted prompt ready for model

        Examples:
            >>> formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2")
            >>> formatter.format_chat([{"role": "user", "content": "Hi"}])
            '[INST] Hi [/INST]'
        """
        if self.has_chat_template:
            try:
                return self.tokenizer.apply_chat_template(
                    messages,
                    tokenize=False,
                    add_generation_prompt=True
                )
            except Exception as e:
                # Some templates (Mistral) reject a system role
                logger.warning(f"Tokenizer chat template failed: {e}. Falling back to manual formatting")

        merged = merge_messages(messages)
        if self.model_family in self.MANUAL_FORMATS:
            return self.MANUAL_FORMATS[self.model_family](merged)

        logger.debug("No formatting applied (generic model)")
        return merged

    def get_info(self) -> dict:
        return {
            "model_name": self.model_name,
            "model_family": self.model_family,
            "has_chat_template": self.has_chat_template,
            "formatting_method": (
                "tokenizer_template" if self.has_chat_template
                else "manual" if self.model_family in self.MANUAL_FORMATS
                else "none"
            )
        }
