"""
app.llm.base
~~~~~~~~~~~~

翻译器契约。核心只依赖这个协议，具体实现见 ``app.llm.gemini_translator``。
"""
from __future__ import annotations

from typing import Protocol

from app.schemas.chat import TranslationResult


class Translator(Protocol):
    async def translate(self, text: str, target_languages: list[str]) -> TranslationResult:
        """把 ``text`` 翻译为每一种 ``target_languages``。

        实现可以抛异常，调用方（``BroadcastCoordinator``）负责降级。
        """
        ...
