"""System/user prompt construction for the rewriting step.

Blocks are joined by blank lines in a fixed order: base instructions,
style, edit rules, screen context, recent history. Untrusted content
(screen text, earlier inputs) is fenced with ``---`` lines so the model
reads it as reference material rather than instructions.
"""

from __future__ import annotations

FENCE = "---"

_BASE_INSTRUCTIONS = {
    "zh": """你是语音输入的后处理引擎。输入是语音识别的原始文本（口语），你要输出整理后的书面文字。

核心规则：
1. 删除所有口语填充词：嗯、啊、呃、哦、那个、就是、然后、的话、对吧、你知道吗、怎么说呢、我跟你说
2. 识别自我纠正：当说话人说"不对"、"不是"、"应该是"、"我是说"、"换句话说"时，只保留纠正后的内容，删除被纠正的部分
3. 去除重复：连续说两遍相同或相似的内容，只保留一次
4. 修正语音识别错误：根据上下文修正同音字、谐音错误
5. 结构化排版：
   - 当内容包含并列项目、步骤或要点时，使用编号列表（1. 2. 3.）
   - 每个要点独占一行
   - 段落之间用空行分隔
6. 标点符号：确保句号、逗号、问号等正确使用

输出要求：
- 只输出整理后的文本，不加任何解释、前缀或后缀
- 保持原意，不添加原文没有的内容
- 宁可精简也不要冗余，去掉所有不影响表意的废话
- 如果原文本身很短（一两句话），不要强行加编号""",
    "en": """You are the post-processing engine for voice input. The input is raw speech-recognition text (spoken language); output it as clean written text.

Core rules:
1. Remove all verbal fillers: um, uh, er, like, you know, I mean, basically, so
2. Resolve self-corrections: when the speaker says "no", "I mean", "actually", "rather", keep only the corrected content
3. Remove repetition: if the same thing is said twice in a row, keep it once
4. Fix recognition errors: correct homophones and misheard words from context
5. Structure:
   - Use a numbered list (1. 2. 3.) for parallel items, steps or points
   - One point per line
   - Separate paragraphs with a blank line
6. Punctuation: make sure periods, commas and question marks are correct

Output requirements:
- Output only the cleaned text, with no explanation, prefix or suffix
- Keep the original meaning and add nothing that was not said
- Prefer concise over verbose
- If the input is short (one or two sentences), do not force a list""",
}

_LABELS = {
    "zh": {
        "style": "风格要求：",
        "rules": "额外编辑规则：",
        "screen": "以下是用户当前屏幕上的文字，仅供纠错参考（理解语境、修正专有名词），不要混入输出：",
        "history": "以下是用户最近的输入，仅供理解上下文，不要混入输出：",
    },
    "en": {
        "style": "Style: ",
        "rules": "Additional editing rules:",
        "screen": "Text currently on the user's screen, for reference only (context, proper nouns). Do not include it in the output:",
        "history": "The user's recent inputs, for context only. Do not include them in the output:",
    },
}

STYLE_PRESETS = {
    "zh": {
        "concise": "简洁精炼，去除冗余表达，保留核心信息，用最少的文字表达完整意思。",
        "formal": "正式书面语风格，适合商务邮件或学术场景，语句通顺规范。",
        "casual": "保持日常口语的自然感，仅修正错误和去除语气词，不要过度书面化。",
    },
    "en": {
        "concise": "Concise: drop redundant phrasing, keep the core information, use as few words as possible.",
        "formal": "Formal written style suitable for business email or academic writing.",
        "casual": "Keep the natural feel of everyday speech; only fix errors and remove fillers.",
    },
}


def _lang(language: str) -> str:
    return language if language in _BASE_INSTRUCTIONS else "en"


def style_prompt_for(style: str, language: str = "zh", custom: str = "") -> str:
    """Custom prompt if given, else the preset for ``style``."""
    if custom:
        return custom
    return STYLE_PRESETS[_lang(language)].get(style, "")


def _fenced(header: str, content: str) -> str:
    return f"{header}\n{FENCE}\n{content}\n{FENCE}"


def build_system_prompt(
    language: str = "zh",
    style_prompt: str = "",
    rules: str = "",
    screen_context: str = "",
    recent_history: str = "",
) -> str:
    lang = _lang(language)
    labels = _LABELS[lang]
    parts = [_BASE_INSTRUCTIONS[lang]]

    if style_prompt:
        parts.append(f"{labels['style']}{style_prompt}")
    if rules:
        parts.append(f"{labels['rules']}\n{rules}")
    if screen_context:
        parts.append(_fenced(labels["screen"], screen_context))
    if recent_history:
        parts.append(_fenced(labels["history"], recent_history))

    return "\n\n".join(parts)


def build_user_prompt(text: str) -> str:
    return text
