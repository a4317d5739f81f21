"""
app.core.languages
~~~~~~~~~~~~~~~~~~

支持的语言目录（ISO 639-1 代码 → 英文名称）。

翻译 Prompt 用英文名称提示模型，``GET /api/languages`` 直接返回此目录。
"""
from __future__ import annotations

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese (Simplified)",
    "ar": "Arabic",
    "hi": "Hindi",
    "tr": "Turkish",
    "nl": "Dutch",
    "pl": "Polish",
    "sv": "Swedish",
    "da": "Danish",
    "no": "Norwegian",
    "fi": "Finnish",
    "th": "Thai",
    "vi": "Vietnamese",
    "id": "Indonesian",
    "ms": "Malay",
    "tl": "Filipino",
    "uk": "Ukrainian",
    "cs": "Czech",
    "ro": "Romanian",
    "hu": "Hungarian",
    "el": "Greek",
    "he": "Hebrew",
    "bn": "Bengali",
    "ta": "Tamil",
    "te": "Telugu",
    "ur": "Urdu",
    "fa": "Persian",
    "sw": "Swahili",
}


def get_language_name(code: str) -> str:
    """返回语言代码对应的英文名称，未知代码原样返回。"""
    return LANGUAGE_NAMES.get(code, code)


def get_supported_languages() -> list[dict[str, str]]:
    """以 ``[{"code": ..., "name": ...}]`` 形式列出全部支持语言。"""
    return [{"code": code, "name": name} for code, name in LANGUAGE_NAMES.items()]
