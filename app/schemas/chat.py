"""
app.schemas.chat
~~~~~~~~~~~~~~~~

聊天领域模型 —— 用户、房间、参与者、消息与翻译结果。

Python 属性一律 snake_case，序列化到线上（REST 响应 / WebSocket 帧）时
通过 alias 生成器输出 camelCase，调用 ``to_wire()`` 即可得到可直接
``send_json`` 的字典。
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageKind = Literal["text", "voice", "image"]


class CamelModel(BaseModel):
    """线上格式为 camelCase 的模型基类，同时接受 snake_case 字段名构造。"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """序列化为 JSON 兼容、camelCase 键的字典。"""
        return self.model_dump(by_alias=True, mode="json")


class User(CamelModel):
    """用户（由外部 AuthService 注册，核心只读）。"""

    id: int
    username: str | None = None
    display_name: str
    profile_photo: str | None = None
    preferred_language: str = "en"
    role: str = "user"


class UserSummary(CamelModel):
    """随消息、参与者下发的用户简要信息。"""

    id: int
    display_name: str
    profile_photo: str | None = None

    @classmethod
    def of(cls, user: User) -> UserSummary:
        return cls(id=user.id, display_name=user.display_name, profile_photo=user.profile_photo)

    @classmethod
    def unknown(cls, user_id: int) -> UserSummary:
        """发送者已不存在时的占位信息。"""
        return cls(id=user_id, display_name="Unknown", profile_photo=None)


class Room(CamelModel):
    """聊天室。``room_code`` 为 6 位大写加入码，全局唯一。"""

    id: int
    room_code: str
    name: str
    created_by: int
    languages: list[str] = Field(default_factory=lambda: ["en"])
    is_active: bool = True
    created_at: datetime


class RoomWithCount(Room):
    participant_count: int = 0


class Participant(CamelModel):
    """房间成员关系，``language`` 为该用户在本房间选择的语言。"""

    room_id: int
    user_id: int
    language: str
    joined_at: datetime | None = None
    user: UserSummary


class RoomDetail(Room):
    participants: list[Participant] = Field(default_factory=list)


class Message(CamelModel):
    """不可变消息记录。译文在发送时计算一次，与原文一同持久化。"""

    id: int
    room_id: int
    sender_id: int
    content: str
    translated_content: dict[str, str] = Field(default_factory=dict)
    original_language: str | None = None
    message_type: MessageKind = "text"
    created_at: datetime


class MessageWithSender(Message):
    sender: UserSummary


class TranslationResult(CamelModel):
    """翻译结果。

    ``confidence == 0`` 是保留值，表示翻译子系统失败、译文回退为原文。

    Attributes:
        detected_language: 检测到的源语言代码，无法判断时为 ``None``。
        translations: 目标语言代码 → 译文。
        confidence: 置信度，取值 [0.0, 1.0]。
    """

    detected_language: str | None = None
    translations: dict[str, str] = Field(default_factory=dict)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    @classmethod
    def fallback(
        cls,
        text: str,
        target_languages: list[str],
        detected_language: str | None = None,
    ) -> TranslationResult:
        """翻译失败时的降级结果：每个目标语言都回显原文，置信度为 0。"""
        return cls(
            detected_language=detected_language,
            translations={lang: text for lang in target_languages},
            confidence=0.0,
        )

    @property
    def is_fallback(self) -> bool:
        return self.confidence == 0.0
