"""
app.prompts.translation
~~~~~~~~~~~~~~~~~~~~~~~

翻译引擎的系统 Prompt 与 Prompt 构建工具。

将 Prompt 独立管理，方便在不修改 LLM 连接代码的前提下调整输出格式和翻译风格。
"""
from app.core.languages import get_language_name

# ---------------------------------------------------------------------------
# 系统 Prompt —— 约束模型只输出固定结构的 JSON
# ---------------------------------------------------------------------------
TRANSLATION_SYSTEM_PROMPT: str = """\
You are a translation engine. Detect the source language and translate the given \
text into the requested target languages. Respond ONLY with valid JSON in this exact format:
{"detectedLanguage":"<iso-code>","translations":{"<lang-code>":"<translated text>"},"confidence":<0.0-1.0>}
Do not add any explanation. Keep the translation natural and context-aware.\
"""


def build_translation_prompt(text: str, target_languages: list[str]) -> str:
    """组装发送给模型的用户 Prompt。

    Args:
        text: 待翻译的原文。
        target_languages: 目标语言代码列表。

    Returns:
        形如 ``Translate ... into these languages: "es" (Spanish), ...`` 的 Prompt。
    """
    language_list = ", ".join(
        f'"{code}" ({get_language_name(code)})' for code in target_languages
    )
    return (
        f"Translate the following text into these languages: {language_list}\n\n"
        f'Text: "{text}"'
    )
