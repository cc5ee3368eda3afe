"""Remote generation over OpenAI- or Anthropic-compatible HTTP APIs.

OpenAI format:    POST {base}/chat/completions, "Authorization: Bearer <key>"
Anthropic format: POST {base}/messages, "x-api-key" + "anthropic-version"
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging

import requests

from .errors import RemoteLLMError
from .llm_provider import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 2048
REQUEST_TIMEOUT = 60
ANTHROPIC_VERSION = "2023-06-01"


class APIFormat(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass(frozen=True)
class ProviderPreset:
    label: str
    base_url: str
    default_model: str
    api_format: APIFormat = APIFormat.OPENAI
    api_version: str | None = None


class RemoteProvider(str, Enum):
    CUSTOM = "custom"
    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    SILICONFLOW = "siliconflow"
    DOUBAO = "doubao"
    BAILIAN = "bailian"
    MINIMAX = "minimax"
    MINIMAX_GLOBAL = "minimax_global"

    @property
    def preset(self) -> ProviderPreset:
        return PRESETS[self]

    @classmethod
    def parse(cls, value: str) -> "RemoteProvider":
        try:
            return cls(value)
        except ValueError:
            logger.warning("Unknown remote provider %r, using custom", value)
            return cls.CUSTOM


PRESETS = {
    RemoteProvider.CUSTOM: ProviderPreset("Custom", "", ""),
    RemoteProvider.OPENAI: ProviderPreset("OpenAI", "https://api.openai.com/v1", "gpt-4.1-mini"),
    RemoteProvider.CLAUDE: ProviderPreset(
        "Claude",
        "https://api.anthropic.com/v1",
        "claude-sonnet-4-6-20251001",
        api_format=APIFormat.ANTHROPIC,
        api_version=ANTHROPIC_VERSION,
    ),
    RemoteProvider.GEMINI: ProviderPreset(
        "Gemini", "https://generativelanguage.googleapis.com/v1beta/openai", "gemini-2.5-flash"
    ),
    RemoteProvider.OPENROUTER: ProviderPreset(
        "OpenRouter", "https://openrouter.ai/api/v1", "google/gemini-2.5-flash"
    ),
    RemoteProvider.SILICONFLOW: ProviderPreset(
        "SiliconFlow", "https://api.siliconflow.cn/v1", "Qwen/Qwen3-30B-A3B"
    ),
    RemoteProvider.DOUBAO: ProviderPreset(
        "Doubao", "https://ark.cn-beijing.volces.com/api/v3", "doubao-pro-32k-250428"
    ),
    RemoteProvider.BAILIAN: ProviderPreset(
        "Bailian", "https://dashscope.aliyuncs.com/compatible-mode/v1", "qwen-plus"
    ),
    RemoteProvider.MINIMAX: ProviderPreset("MiniMax", "https://api.minimax.chat/v1", "MiniMax-Text-01"),
    RemoteProvider.MINIMAX_GLOBAL: ProviderPreset(
        "MiniMax Global", "https://api.minimaxi.chat/v1", "MiniMax-Text-01"
    ),
}


class RemoteLLMProvider(LLMProvider):
    """HTTP backend. Empty base URL or model fall back to the preset's."""

    def __init__(
        self,
        provider: RemoteProvider = RemoteProvider.CUSTOM,
        api_key: str = "",
        base_url: str = "",
        model: str = "",
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.provider = provider
        self.api_key = api_key
        self.base_url = base_url or provider.preset.base_url
        self.model = model or provider.preset.default_model
        self.temperature = temperature
        self.timeout = timeout

    @property
    def name(self) -> str:
        return f"{self.provider.preset.label} ({self.model})"

    def is_available(self) -> bool:
        return bool(self.api_key and self.base_url and self.model)

    def generate(self, prompt: str, system_prompt: str | None = None, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
        if not self.api_key:
            raise RemoteLLMError("API key not configured")
        if not self.base_url:
            raise RemoteLLMError("Base URL not configured")

        if self.provider.preset.api_format is APIFormat.ANTHROPIC:
            return self._generate_anthropic(prompt, system_prompt, max_tokens)
        return self._generate_openai(prompt, system_prompt, max_tokens)

    def _endpoint(self, path: str) -> str:
        return self.base_url.strip("/") + path

    def _generate_openai(self, prompt: str, system_prompt: str | None, max_tokens: int) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        data = self._post(
            self._endpoint("/chat/completions"),
            headers={"Authorization": f"Bearer {self.api_key}"},
            body={
                "model": self.model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": self.temperature,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise RemoteLLMError("Invalid response from server") from e
        if not isinstance(content, str):
            raise RemoteLLMError("Invalid response from server")
        return content.strip()

    def _generate_anthropic(self, prompt: str, system_prompt: str | None, max_tokens: int) -> str:
        body = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            body["system"] = system_prompt

        data = self._post(
            self._endpoint("/messages"),
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": self.provider.preset.api_version or ANTHROPIC_VERSION,
            },
            body=body,
        )
        blocks = data.get("content") if isinstance(data, dict) else None
        for block in blocks or []:
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
                return block["text"].strip()
        raise RemoteLLMError("Invalid response from server")

    def _post(self, url: str, headers: dict, body: dict):
        try:
            resp = requests.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteLLMError(f"Request failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise RemoteLLMError(f"Request failed: HTTP {resp.status_code}: {resp.text}")
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteLLMError("Invalid response from server") from e
