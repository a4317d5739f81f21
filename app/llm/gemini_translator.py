"""
app.llm.gemini_translator
~~~~~~~~~~~~~~~~~~~~~~~~~

基于 Google Gemini 的翻译器 —— 一次调用同时完成语种检测和多目标语言翻译。

只负责与 Gemini API 的连接、调用和结果解析；"发给哪些语言"由
``BroadcastCoordinator`` 决定。通过构造函数注入 ``client`` 方便测试替换。
"""
from __future__ import annotations

import json
import re
from typing import Any

from google import genai
from google.genai import types

from app.core.config import settings
from app.core.logging import get_logger
from app.llm.client import create_gemini_client
from app.prompts.translation import TRANSLATION_SYSTEM_PROMPT, build_translation_prompt
from app.schemas.chat import TranslationResult

logger = get_logger(__name__)

# 模型未给出置信度（或给出非正数）时使用的默认值
DEFAULT_CONFIDENCE: float = 0.8

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_translation_reply(reply: str, target_languages: list[str], text: str) -> TranslationResult:
    """从模型回复中解析翻译结果。

    回复中可能夹带解释文字或 Markdown 代码块，这里取第一个 ``{`` 到最后一个
    ``}`` 之间的内容解析。模型漏掉的目标语言用原文补齐。

    Args:
        reply: 模型的原始文本回复。
        target_languages: 本次请求的目标语言。
        text: 原文，用于补齐缺失的译文。

    Returns:
        解析后的 ``TranslationResult``。

    Raises:
        ValueError: 回复中找不到可解析的 JSON 对象。
    """
    match = _JSON_OBJECT_RE.search(reply or "")
    if not match:
        raise ValueError("No JSON in translation reply")

    data: dict[str, Any] = json.loads(match.group(0))
    raw_translations = data.get("translations") or {}
    if not isinstance(raw_translations, dict):
        raise ValueError("translations is not an object")

    translations = {
        lang: str(raw_translations.get(lang) or text)
        for lang in target_languages
    }
    # 0 保留给降级结果；模型给出 0 或缺省时按默认值处理
    confidence = float(data.get("confidence") or 0)
    if confidence <= 0:
        confidence = DEFAULT_CONFIDENCE

    return TranslationResult(
        detected_language=data.get("detectedLanguage") or None,
        translations=translations,
        confidence=min(confidence, 1.0),
    )


class GeminiTranslator:
    """Gemini 翻译器。

    Attributes:
        model_name: 使用的 Gemini 模型名称。
    """

    def __init__(
        self,
        model_name: str | None = None,
        client: genai.Client | None = None,
    ) -> None:
        """初始化翻译器。

        Args:
            model_name: Gemini 模型名称，默认读取 ``settings.GEMINI_MODEL``。
            client: 可选的 ``genai.Client`` 实例（用于测试注入 mock）。
        """
        self.model_name: str = model_name or settings.GEMINI_MODEL
        self._client: genai.Client = client or create_gemini_client()
        self._config = types.GenerateContentConfig(
            system_instruction=TRANSLATION_SYSTEM_PROMPT,
            response_mime_type="application/json",
            max_output_tokens=settings.TRANSLATION_MAX_OUTPUT_TOKENS,
        )
        logger.info("翻译器已初始化 | model=%s", self.model_name)

    async def translate(self, text: str, target_languages: list[str]) -> TranslationResult:
        """翻译 ``text`` 到全部目标语言。

        Args:
            text: 原文。
            target_languages: 目标语言代码列表。

        Returns:
            翻译结果。调用或解析失败时返回降级结果（译文回显原文，置信度 0）。
        """
        if not target_languages:
            return TranslationResult(translations={}, confidence=1.0)

        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_name,
                contents=build_translation_prompt(text, target_languages),
                config=self._config,
            )
            result = parse_translation_reply(response.text, target_languages, text)
        except Exception as e:
            logger.error("翻译调用异常: %s", e, exc_info=True)
            return TranslationResult.fallback(text, target_languages)

        logger.debug(
            "翻译完成 | detected=%s | targets=%s | confidence=%.2f",
            result.detected_language, ",".join(target_languages), result.confidence,
        )
        return result
