"""
app.services.broadcast
~~~~~~~~~~~~~~~~~~~~~~

消息广播协调器 —— 翻译扇出 + 持久化 + 房间广播。

一条消息的处理流程:
  1. 读取房间当前参与者，确定发送者在本房间的语言（``sender_lang``）
  2. 目标语言 = 参与者语言的去重集合，去掉 ``sender_lang``
  3. 无目标语言或正文为空时跳过翻译；否则调用一次翻译器覆盖全部目标语言
  4. 持久化消息（原文 + 源语言 + 完整译文表）
  5. 持久化完成后，向房间分组广播唯一一条 ``new_message``

翻译按"语言"而不是按"接收者"计算，多个接收者共享同一目标语言时只翻译一次；
持久化的译文表也因此可以直接复用给之后查看历史的用户。
"""
from __future__ import annotations

from app.core.config import settings
from app.core.logging import get_logger
from app.db.store import Store
from app.llm.base import Translator
from app.schemas.chat import Message, MessageKind, Participant, TranslationResult, UserSummary
from app.schemas.events import NewMessageData, OutboundEvent
from app.services.room_broadcaster import RoomBroadcaster

logger = get_logger(__name__)


class BroadcastCoordinator:
    """消息广播协调器。

    Attributes:
        store: 持久化仓库。
        translator: 翻译器。
        broadcaster: 房间广播器。
    """

    def __init__(self, store: Store, translator: Translator, broadcaster: RoomBroadcaster) -> None:
        self.store = store
        self.translator = translator
        self.broadcaster = broadcaster

    async def broadcast_message(
        self,
        room_id: int,
        sender_id: int,
        content: str,
        message_type: MessageKind = "text",
    ) -> Message:
        """翻译、保存并广播一条消息。

        翻译失败不会中断发送；持久化失败会向上抛出，此时不会广播。

        Args:
            room_id: 房间 ID。
            sender_id: 发送者用户 ID。
            content: 原文。
            message_type: 消息类型（text / voice / image）。

        Returns:
            已持久化的消息。
        """
        # 每次发送都重新读取参与者，不做跨事件缓存
        participants = await self.store.get_room_participants(room_id)
        sender_participant = next((p for p in participants if p.user_id == sender_id), None)
        sender_lang = await self._sender_language(sender_participant, sender_id)
        target_languages = self._target_languages(participants, sender_lang)

        result = await self._translate(content, target_languages, sender_lang)

        message = await self.store.create_message(
            room_id,
            sender_id,
            content,
            message_type,
            result.detected_language,
            result.translations,
        )

        sender = (
            sender_participant.user
            if sender_participant is not None
            else await self._sender_summary(sender_id)
        )
        payload = NewMessageData(
            **message.model_dump(),
            sender=sender,
            translation_result=result,
        )
        delivered = await self.broadcaster.emit_to_room(
            room_id, OutboundEvent.NEW_MESSAGE, payload.to_wire(),
        )
        logger.info(
            "消息已广播 | room=%s | message_id=%s | targets=%s | confidence=%.2f | delivered=%d",
            room_id, message.id, ",".join(target_languages) or "-", result.confidence, delivered,
        )
        return message

    async def _sender_language(self, participant: Participant | None, sender_id: int) -> str:
        """发送者在本房间的语言；不是参与者时退回用户的偏好语言。"""
        if participant is not None:
            return participant.language
        user = await self.store.get_user_by_id(sender_id)
        return user.preferred_language if user else settings.DEFAULT_LANGUAGE

    async def _sender_summary(self, sender_id: int) -> UserSummary:
        user = await self.store.get_user_by_id(sender_id)
        return UserSummary.of(user) if user else UserSummary.unknown(sender_id)

    @staticmethod
    def _target_languages(participants: list[Participant], sender_lang: str) -> list[str]:
        """参与者语言去重、去掉发送者语言，排序保证结果稳定。"""
        return sorted({p.language for p in participants if p.language != sender_lang})

    async def _translate(
        self, content: str, target_languages: list[str], sender_lang: str,
    ) -> TranslationResult:
        if not target_languages or not content.strip():
            return TranslationResult(
                detected_language=sender_lang, translations={}, confidence=1.0,
            )

        try:
            result = await self.translator.translate(content, target_languages)
        except Exception as e:
            # 翻译失败只降级，不影响消息送达
            logger.error("翻译失败，回退为原文: %s", e, exc_info=True)
            return TranslationResult.fallback(content, target_languages, detected_language=sender_lang)

        # 保证译文表覆盖全部目标语言，缺失项回显原文
        return TranslationResult(
            detected_language=result.detected_language or sender_lang,
            translations={
                lang: result.translations.get(lang) or content for lang in target_languages
            },
            confidence=result.confidence,
        )
