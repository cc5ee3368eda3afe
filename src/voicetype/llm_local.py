"""Local generation with a Hugging Face causal LM.

The default model is small enough to run on a laptop CPU. Files are cached
under MODELS_DIR; the model is loaded lazily through ``load`` so the
readiness tracker can follow download and load progress.
"""

from __future__ import annotations

import logging
from pathlib import Path
import threading

from .errors import DownloadFailed, LoadFailed, ModelNotLoaded
from .llm_provider import LLMProvider

try:
    from huggingface_hub import snapshot_download
    import torch
    from transformers import AutoModelForCausalLM, AutoTokenizer

    HAS_TRANSFORMERS = True
except ImportError:
    HAS_TRANSFORMERS = False

logger = logging.getLogger(__name__)


class LocalLLMProvider(LLMProvider):
    """transformers backend; also the ModelLoader for its model."""

    def __init__(self, model_id: str, models_dir: Path | None = None, device: str = "cpu"):
        self.model_id = model_id
        self.models_dir = models_dir
        self.device = device
        self._model = None
        self._tokenizer = None
        # One generation at a time; the model is not re-entrant.
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return f"Local ({self.model_id})"

    def is_available(self) -> bool:
        return HAS_TRANSFORMERS and bool(self.model_id)

    def is_ready(self) -> bool:
        return self._model is not None

    def needs_model(self) -> bool:
        return True

    def _cache_dir(self) -> str | None:
        return str(self.models_dir / "llm") if self.models_dir else None

    def is_cached(self) -> bool:
        if not HAS_TRANSFORMERS:
            return False
        try:
            snapshot_download(self.model_id, cache_dir=self._cache_dir(), local_files_only=True)
            return True
        except Exception:
            return False

    def load(self, model_id: str, on_progress) -> None:
        if not HAS_TRANSFORMERS:
            raise LoadFailed("transformers is not installed")

        with self._lock:
            on_progress("downloading", 0.0)
            try:
                path = snapshot_download(model_id, cache_dir=self._cache_dir())
            except Exception as e:
                raise DownloadFailed(str(e)) from e
            on_progress("downloading", 1.0)

            on_progress("loading", 0.0)
            try:
                tokenizer = AutoTokenizer.from_pretrained(path)
                on_progress("loading", 0.3)
                model = AutoModelForCausalLM.from_pretrained(path, torch_dtype="auto")
                model.to(self.device)
                model.eval()
            except Exception as e:
                raise LoadFailed(str(e)) from e
            on_progress("loading", 1.0)

            self.model_id = model_id
            self._tokenizer = tokenizer
            self._model = model
            logger.info("Local LLM %s loaded on %s", model_id, self.device)

    def unload(self) -> None:
        with self._lock:
            self._model = None
            self._tokenizer = None

    def generate(self, prompt: str, system_prompt: str | None = None, max_tokens: int = 2048) -> str:
        with self._lock:
            model, tokenizer = self._model, self._tokenizer
            if model is None or tokenizer is None:
                raise ModelNotLoaded(self.model_id)

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            # enable_thinking is read by Qwen3 templates and ignored by others.
            text = tokenizer.apply_chat_template(
                messages,
                tokenize=False,
                add_generation_prompt=True,
                enable_thinking=False,
            )
            inputs = tokenizer(text, return_tensors="pt").to(model.device)
            with torch.inference_mode():
                output = model.generate(**inputs, max_new_tokens=max_tokens, do_sample=False)

            new_tokens = output[0][inputs["input_ids"].shape[1]:]
            return tokenizer.decode(new_tokens, skip_special_tokens=True).strip()
