"""Text transformation pipeline for VoiceType.

Deterministic cleanup (no model involved):
    filler removal -> dictionary replacement -> whitespace normalization

Rewriting path:
    prompt construction -> generation -> thinking-tag stripping
    -> dictionary replacement -> whitespace normalization

Any generation failure returns the deterministic cleanup instead.
"""

from __future__ import annotations

import logging
import re

from .core.ports import GenerationEngine
from .dictionary import PersonalDictionary
from .prompt_builder import build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)

# Pure filler sounds and unambiguous filler phrases, safe to always remove.
# Longer phrases come first so they are removed before their parts.
FILLER_WORDS: dict[str, list[str]] = {
    "zh": [
        "嗯嗯", "啊啊", "哦哦", "呃呃",
        "嗯", "啊", "哦", "呃",
        "那个啥", "就是那个", "怎么说呢", "怎么说",
        "你知道吗", "我跟你说", "那什么",
    ],
    "en": ["um", "umm", "uh", "uhh", "erm", "hmm"],
}

# Words that can be filler but also appear in real sentences; only removed
# at clause boundaries.
AMBIGUOUS_FILLERS: dict[str, list[str]] = {
    "zh": ["这个", "那个", "就是", "然后", "的话", "呀", "呢", "嘛", "哈"],
    "en": ["so", "well", "like", "basically"],
}

SENTENCE_PUNCTUATION = "，,。.！!？?"

THINK_TAG_NAMES = [
    "think", "thinking", "thought",
    "reason", "reasoning",
    "reflect", "reflection",
    "inner_monologue", "scratchpad",
]

_UNCLOSED_THINK_TAG = re.compile(
    r"<(?:%s)>.*\Z" % "|".join(THINK_TAG_NAMES), re.DOTALL
)
_CLOSED_THINK_TAGS = [
    re.compile(rf"<{tag}>.*?</{tag}>", re.DOTALL) for tag in THINK_TAG_NAMES
]


def remove_fillers(text: str, language: str = "zh") -> str:
    if language == "zh":
        # No word boundaries in Chinese: plain substring removal.
        for word in FILLER_WORDS["zh"]:
            text = text.replace(word, "")
    else:
        words = "|".join(re.escape(w) for w in FILLER_WORDS.get(language, []))
        if words:
            text = re.sub(rf"\b(?:{words})\b[,，]?", "", text, flags=re.IGNORECASE)
    return remove_ambiguous_fillers(text, AMBIGUOUS_FILLERS.get(language, []))


def remove_ambiguous_fillers(text: str, words: list[str]) -> str:
    """Remove ``words`` only at the start of the text or right after
    sentence punctuation, and only when followed by punctuation, whitespace
    or the end of the text."""
    punct = re.escape(SENTENCE_PUNCTUATION)
    boundary_after = rf"(?=[{punct}\s]|$)"
    for word in words:
        w = re.escape(word)
        text = re.sub(rf"^(\s*){w}{boundary_after}", r"\1", text, flags=re.IGNORECASE)
        text = re.sub(
            rf"([{punct}]\s*){w}{boundary_after}", r"\1", text, flags=re.IGNORECASE
        )
    return text


def normalize_whitespace(text: str, keep_newlines: bool = False) -> str:
    if not keep_newlines:
        return re.sub(r"\s+", " ", text).strip()
    # Generated text may carry lists and paragraphs; keep line structure.
    lines = [re.sub(r"[^\S\n]+", " ", line).strip() for line in text.split("\n")]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def strip_thinking_tags(text: str) -> str:
    """Drop reasoning wrappers emitted by some models.

    Closed pairs are removed with their content; an opening tag without a
    closing one discards everything from the tag to the end.
    """
    for pattern in _CLOSED_THINK_TAGS:
        text = pattern.sub("", text)
    return _UNCLOSED_THINK_TAG.sub("", text)


class TextProcessor:
    """Cleans transcripts and, when an engine is configured, rewrites them."""

    def __init__(
        self,
        dictionary: PersonalDictionary,
        engine: GenerationEngine | None = None,
        language: str = "zh",
        max_tokens: int = 2048,
    ):
        self.dictionary = dictionary
        self.engine = engine
        self.language = language
        self.max_tokens = max_tokens

    def basic_clean(self, text: str) -> str:
        result = remove_fillers(text, self.language)
        result = self.dictionary.apply_replacements(result)
        return normalize_whitespace(result)

    def sanitize(self, generated: str) -> str:
        result = strip_thinking_tags(generated)
        result = self.dictionary.apply_replacements(result)
        return normalize_whitespace(result, keep_newlines=True)

    def build_prompts(
        self, text: str, style_prompt: str = "", screen_context: str = "", recent_history: str = ""
    ) -> tuple[str, str]:
        system_prompt = build_system_prompt(
            language=self.language,
            style_prompt=style_prompt,
            rules=self.dictionary.active_rules_description(),
            screen_context=screen_context,
            recent_history=recent_history,
        )
        return build_user_prompt(text), system_prompt

    async def process(
        self,
        text: str,
        style_prompt: str = "",
        screen_context: str = "",
        recent_history: str = "",
    ) -> str:
        if self.engine is None:
            return self.basic_clean(text)

        prompt, system_prompt = self.build_prompts(
            text, style_prompt, screen_context, recent_history
        )
        try:
            generated = await self.engine.generate(prompt, system_prompt, self.max_tokens)
        except Exception as e:
            logger.error("Generation failed, falling back to basic cleanup: %s", e)
            return self.basic_clean(text)

        result = self.sanitize(generated)
        if not result:
            logger.info("Generation returned nothing usable, falling back to basic cleanup")
            return self.basic_clean(text)
        return result
