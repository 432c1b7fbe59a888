"""
HuggingFace Client - Local model loading and inference

Responsibilities:
- Load model (optional 4-bit quantization on CUDA)
- Format chat messages for the model family
- Generate text completions
- Generate JSON-formatted completions with repair
- Optional diagnostics (token counts, latency)

Design principles:
- Dependency injection (no singleton); the sufficiency evaluator takes any
  object with generate_json(messages, max_tokens, temperature)
- Fail fast on critical errors (CUDA OOM)
"""

import logging
import time

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

from formflow.utils.json_repair import repair_json
from formflow.utils.prompt_formatter import PromptFormatter

logger = logging.getLogger(__name__)


class HuggingFaceClient:
    """Wrapper for HuggingFace model inference"""

    def __init__(self, model_name, load_in_4bit=True, device=None):
        """
        Initialize model and tokenizer

        Args:
            model_name (str): HuggingFace model identifier
            load_in_4bit (bool): Use 4-bit quantization (CUDA only, needs bitsandbytes)
            device (str): "cuda" or "cpu" (auto-detected when None)

        Raises:
            RuntimeError: If CUDA requested but not available
            Exception: If model loading fails
        """
        self.model_name = model_name
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")

        if self.device == "cuda" and not torch.cuda.is_available():
            raise RuntimeError("CUDA requested but not available. Check nvidia-smi.")

        logger.info(f"Loading model: {model_name} (device={self.device}, 4-bit={load_in_4bit})")

        quantization_config = None
        if load_in_4bit and self.device == "cuda":
            from transformers import BitsAndBytesConfig
            quantization_config = BitsAndBytesConfig(
                load_in_4bit=True,
                bnb_4bit_quant_type="nf4",
                bnb_4bit_compute_dtype=torch.bfloat16,
                bnb_4bit_use_double_quant=True
            )
            logger.info("Using NF4 quantization with bfloat16 compute")

        try:
            self.tokenizer = AutoTokenizer.from_pretrained(model_name)
        except Exception as e:
            logger.error(f"Failed to load tokenizer: {e}")
            raise

        try:
            self.model = AutoModelForCausalLM.from_pretrained(
                model_name,
                quantization_config=quantization_config,
                device_map="auto" if self.device == "cuda" else None,
                torch_dtype=torch.bfloat16 if self.device == "cuda" else torch.float32
            )
        except torch.cuda.OutOfMemoryError:
            logger.error("CUDA Out of Memory during model loading")
            raise
        except Exception as e:
            logger.error(f"Failed to load model: {e}")
            raise

        self.model.eval()
        self.formatter = PromptFormatter(model_name, self.tokenizer)
        logger.info("HuggingFace client initialized successfully")

    def is_loaded(self):
        return self.model is not None and self.tokenizer is not None

    def generate(self, messages, max_tokens=256, temperature=0.3, return_diagnostics=False):
        """
        Generate text completion from chat messages

        Args:
            messages (list): [{'role': ..., 'content': ...}, ...]
            max_tokens (int): Maximum tokens to generate
            temperature (float): Sampling temperature (0.0 = deterministic)
            return_diagnostics (bool): Include token counts and timing

        Returns:
            str: Generated text (if return_diagnostics=False)
            dict: {'text': str, 'diagnostics': {...}} (if return_diagnostics=True)

        Raises:
            torch.cuda.OutOfMemoryError: If GPU runs out of memory
        """
        if not self.is_loaded():
            raise RuntimeError("Model not loaded")

        start_time = time.time()
        prompt = self.formatter.format_chat(messages)

        inputs = self.tokenizer(prompt, return_tensors="pt")
        if self.device == "cuda":
            inputs = inputs.to("cuda")
        prompt_tokens = inputs.input_ids.shape[1]

        try:
            with torch.no_grad():
                outputs = self.model.generate(
                    inputs.input_ids,
                    attention_mask=inputs.attention_mask,
                    max_new_tokens=max_tokens,
                    temperature=temperature if temperature > 0 else None,
                    do_sample=temperature > 0,
                    pad_token_id=self.tokenizer.eos_token_id
                )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"CUDA OOM during generation (prompt tokens: {prompt_tokens}, max new: {max_tokens})")
            raise

        generated_ids = outputs[0][prompt_tokens:]
        generated_text = self.tokenizer.decode(generated_ids, skip_special_tokens=True)

        elapsed_ms = (time.time() - start_time) * 1000
        completion_tokens = len(generated_ids)
        logger.debug(f"Generated {completion_tokens} tokens in {elapsed_ms:.0f}ms")

        if return_diagnostics:
            return {
                "text": generated_text,
                "diagnostics": {
                    "prompt_tokens": prompt_tokens,
                    "completion_tokens": completion_tokens,
                    "total_tokens": prompt_tokens + completion_tokens,
                    "latency_ms": elapsed_ms
                }
            }
        return generated_text

    def generate_json(self, messages, max_tokens=200, temperature=0.0):
        """
        Generate JSON-formatted completion with repair

        Returns:
            str: JSON string (possibly repaired). Caller must json.loads().
        """
        text = self.generate(messages=messages, max_tokens=max_tokens, temperature=temperature)
        return repair_json(text)

    def get_model_info(self):
        info = {
            "model_name": self.model_name,
            "device": self.device,
            "is_loaded": self.is_loaded(),
            "formatting": self.formatter.get_info(),
        }
        if self.device == "cuda" and torch.cuda.is_available():
            info["gpu_memory_allocated_gb"] = torch.cuda.memory_allocated() / 1e9
        return info
