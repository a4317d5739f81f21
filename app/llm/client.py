"""
app.llm.client
~~~~~~~~~~~~~~

Gemini API 客户端工厂 —— 全局共享的客户端创建入口。

翻译器等需要 Gemini Client 的模块统一从此处获取，测试时可直接注入 mock。
"""
from __future__ import annotations

from google import genai

from app.core.config import settings


def create_gemini_client(api_key: str | None = None) -> genai.Client:
    """创建 Gemini API 客户端实例。

    Args:
        api_key: 可选的 API Key，缺省读取 ``settings.GEMINI_API_KEY``。

    Returns:
        已认证的 ``genai.Client``。
    """
    return genai.Client(api_key=api_key or settings.GEMINI_API_KEY)
