"""User-facing status and error messages (zh / en)."""

from __future__ import annotations

MESSAGES: dict[str, dict[str, str]] = {
    "zh": {
        "status.ready": "就绪",
        "status.done": "完成",
        "pipeline.busy": "正在处理上一段语音，请稍候",
        "pipeline.recording": "录音中…",
        "pipeline.transcribing": "识别中…",
        "pipeline.formatting": "整理中…",
        "pipeline.inserting": "输入中…",
        "pipeline.preparing_model": "正在准备语音模型…",
        "pipeline.downloading": "下载模型",
        "pipeline.compiling": "编译模型…",
        "pipeline.loading_model": "加载模型…",
        "pipeline.loading_llm": "加载语言模型…",
        "pipeline.model_not_ready": "语音模型未就绪",
        "pipeline.mic_failed": "无法启动麦克风，请检查权限",
        "pipeline.download_failed": "模型下载失败",
        "pipeline.compile_failed": "模型编译失败",
        "pipeline.load_failed": "模型加载失败",
        "pipeline.error_prefix": "出错：",
        "pipeline.insert_failed_title": "文字可能未能输入",
        "pipeline.insert_failed_body": "文字已复制到剪贴板，可手动粘贴。原因：",
        "pipeline.speech_unloaded": "语音模型已卸载",
        "pipeline.llm_unloaded": "语言模型已卸载",
    },
    "en": {
        "status.ready": "Ready",
        "status.done": "Done",
        "pipeline.busy": "Still processing the previous input, please wait",
        "pipeline.recording": "Recording…",
        "pipeline.transcribing": "Transcribing…",
        "pipeline.formatting": "Formatting…",
        "pipeline.inserting": "Inserting…",
        "pipeline.preparing_model": "Preparing speech model…",
        "pipeline.downloading": "Downloading model",
        "pipeline.compiling": "Compiling model…",
        "pipeline.loading_model": "Loading model…",
        "pipeline.loading_llm": "Loading language model…",
        "pipeline.model_not_ready": "Speech model is not ready",
        "pipeline.mic_failed": "Could not start the microphone, check permissions",
        "pipeline.download_failed": "Model download failed",
        "pipeline.compile_failed": "Model compilation failed",
        "pipeline.load_failed": "Model load failed",
        "pipeline.error_prefix": "Error: ",
        "pipeline.insert_failed_title": "Text may not have been inserted",
        "pipeline.insert_failed_body": "The text is on the clipboard, paste it manually. Reason: ",
        "pipeline.speech_unloaded": "Speech model unloaded",
        "pipeline.llm_unloaded": "Language model unloaded",
    },
}


def message(key: str, language: str = "zh") -> str:
    """Look up a message, falling back to English and then to the key."""
    table = MESSAGES.get(language) or MESSAGES["en"]
    return table.get(key) or MESSAGES["en"].get(key, key)
