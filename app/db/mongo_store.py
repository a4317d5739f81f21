"""
app.db.mongo_store
~~~~~~~~~~~~~~~~~~

``Store`` 协议的 MongoDB 实现。

集合:
  - ``users``              —— 由外部 AuthService 写入，这里只读
  - ``rooms``              —— ``room_code`` 唯一索引
  - ``room_participants``  —— ``(room_id, user_id)`` 唯一索引
  - ``messages``           —— 追加写，按 ``(room_id, created_at)`` 查询
  - ``counters``           —— 为各集合分配自增整数 ID

每条消息一个文档（扁平设计），避免 16MB 文档限制且便于分页查询。
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.logging import get_logger
from app.schemas.chat import (
    Message,
    MessageKind,
    MessageWithSender,
    Participant,
    Room,
    RoomWithCount,
    User,
    UserSummary,
)

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _with_id(doc: dict[str, Any]) -> dict[str, Any]:
    """把 Mongo 的 ``_id`` 换成模型字段 ``id``。"""
    data = dict(doc)
    data["id"] = data.pop("_id")
    return data


class MongoStore:
    """基于 motor 的持久化仓库。

    Attributes:
        db: MongoDB 数据库实例。
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db
        self._users = db["users"]
        self._rooms = db["rooms"]
        self._participants = db["room_participants"]
        self._messages = db["messages"]
        self._counters = db["counters"]

    async def _next_id(self, name: str) -> int:
        """原子地为 ``name`` 集合分配下一个整数 ID。"""
        doc = await self._counters.find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["seq"])

    async def _summaries(self, user_ids: list[int]) -> dict[int, UserSummary]:
        """批量查询用户摘要，缺失的用户不出现在结果中。"""
        if not user_ids:
            return {}
        cursor = self._users.find(
            {"_id": {"$in": list(set(user_ids))}},
            {"display_name": 1, "profile_photo": 1},
        )
        docs = await cursor.to_list(length=None)
        return {
            doc["_id"]: UserSummary(
                id=doc["_id"],
                display_name=doc["display_name"],
                profile_photo=doc.get("profile_photo"),
            )
            for doc in docs
        }

    # ── 用户 ──────────────────────────────────────────────────────────

    async def get_user_by_id(self, user_id: int) -> User | None:
        doc = await self._users.find_one({"_id": user_id})
        return User(**_with_id(doc)) if doc else None

    async def count_users(self) -> int:
        return await self._users.count_documents({})

    # ── 房间 ──────────────────────────────────────────────────────────

    async def get_room_by_id(self, room_id: int) -> Room | None:
        doc = await self._rooms.find_one({"_id": room_id})
        return Room(**_with_id(doc)) if doc else None

    async def get_room_by_code(self, room_code: str) -> Room | None:
        doc = await self._rooms.find_one({"room_code": room_code.upper()})
        return Room(**_with_id(doc)) if doc else None

    async def create_room(
        self, room_code: str, name: str, created_by: int, languages: list[str],
    ) -> Room:
        """创建房间并把创建者加入为第一个参与者。

        ``room_code`` 唯一索引冲突时抛出 ``pymongo.errors.DuplicateKeyError``。
        """
        doc = {
            "_id": await self._next_id("rooms"),
            "room_code": room_code,
            "name": name,
            "created_by": created_by,
            "languages": languages,
            "is_active": True,
            "created_at": _utcnow(),
        }
        await self._rooms.insert_one(doc)
        await self.join_room(doc["_id"], created_by, languages[0])
        return Room(**_with_id(doc))

    async def set_room_active(self, room_id: int, is_active: bool) -> None:
        await self._rooms.update_one({"_id": room_id}, {"$set": {"is_active": is_active}})

    async def count_rooms(self) -> int:
        return await self._rooms.count_documents({})

    async def get_user_rooms(self, user_id: int) -> list[RoomWithCount]:
        """返回用户参与的、仍处于启用状态的房间及其参与人数。"""
        cursor = self._participants.find({"user_id": user_id}, {"room_id": 1})
        room_ids = [doc["room_id"] for doc in await cursor.to_list(length=None)]
        if not room_ids:
            return []

        rooms = await self._rooms.find(
            {"_id": {"$in": room_ids}, "is_active": True},
        ).sort("created_at", -1).to_list(length=None)

        counts_cursor = self._participants.aggregate([
            {"$match": {"room_id": {"$in": room_ids}}},
            {"$group": {"_id": "$room_id", "count": {"$sum": 1}}},
        ])
        counts = {doc["_id"]: doc["count"] for doc in await counts_cursor.to_list(length=None)}

        return [
            RoomWithCount(**_with_id(doc), participant_count=counts.get(doc["_id"], 0))
            for doc in rooms
        ]

    # ── 参与者 ────────────────────────────────────────────────────────

    async def join_room(self, room_id: int, user_id: int, language: str) -> Participant:
        # $setOnInsert + 唯一索引：并发重复加入也只会留下一条记录
        await self._participants.update_one(
            {"room_id": room_id, "user_id": user_id},
            {"$setOnInsert": {"language": language, "joined_at": _utcnow()}},
            upsert=True,
        )
        doc = await self._participants.find_one({"room_id": room_id, "user_id": user_id})
        summaries = await self._summaries([user_id])
        return Participant(
            room_id=room_id,
            user_id=user_id,
            language=doc["language"],
            joined_at=doc.get("joined_at"),
            user=summaries.get(user_id) or UserSummary.unknown(user_id),
        )

    async def leave_room(self, room_id: int, user_id: int) -> None:
        await self._participants.delete_one({"room_id": room_id, "user_id": user_id})

    async def is_user_in_room(self, room_id: int, user_id: int) -> bool:
        count = await self._participants.count_documents(
            {"room_id": room_id, "user_id": user_id}, limit=1,
        )
        return count > 0

    async def get_room_participants(self, room_id: int) -> list[Participant]:
        """房间全部参与者（按加入时间），已被删除的用户会被跳过。"""
        cursor = self._participants.find({"room_id": room_id}).sort("joined_at", 1)
        docs = await cursor.to_list(length=None)
        summaries = await self._summaries([doc["user_id"] for doc in docs])

        participants: list[Participant] = []
        for doc in docs:
            summary = summaries.get(doc["user_id"])
            if summary is None:
                continue
            participants.append(
                Participant(
                    room_id=doc["room_id"],
                    user_id=doc["user_id"],
                    language=doc["language"],
                    joined_at=doc.get("joined_at"),
                    user=summary,
                ),
            )
        return participants

    async def update_participant_language(
        self, room_id: int, user_id: int, language: str,
    ) -> None:
        await self._participants.update_one(
            {"room_id": room_id, "user_id": user_id},
            {"$set": {"language": language}},
        )

    # ── 消息 ──────────────────────────────────────────────────────────

    async def create_message(
        self,
        room_id: int,
        sender_id: int,
        content: str,
        message_type: MessageKind,
        original_language: str | None,
        translated_content: dict[str, str],
    ) -> Message:
        doc = {
            "_id": await self._next_id("messages"),
            "room_id": room_id,
            "sender_id": sender_id,
            "content": content,
            "translated_content": translated_content,
            "original_language": original_language,
            "message_type": message_type,
            "created_at": _utcnow(),
        }
        await self._messages.insert_one(doc)
        logger.debug("消息已保存 | room=%s | message_id=%s", room_id, doc["_id"])
        return Message(**_with_id(doc))

    async def get_room_messages(self, room_id: int, limit: int = 50) -> list[MessageWithSender]:
        # 先按时间倒序取最近 N 条，再反转为正序
        cursor = (
            self._messages
            .find({"room_id": room_id})
            .sort("created_at", -1)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        docs.reverse()

        summaries = await self._summaries([doc["sender_id"] for doc in docs])
        return [
            MessageWithSender(
                **_with_id(doc),
                sender=summaries.get(doc["sender_id"]) or UserSummary.unknown(doc["sender_id"]),
            )
            for doc in docs
        ]
