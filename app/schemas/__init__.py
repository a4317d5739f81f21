"""
app.schemas
~~~~~~~~~~~
Pydantic schemas and models for the API and the WebSocket protocol.
"""
from app.schemas.api_response import ApiResponse
from app.schemas.chat import (
    Message,
    MessageWithSender,
    Participant,
    Room,
    RoomDetail,
    RoomWithCount,
    TranslationResult,
    User,
    UserSummary,
)

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()

__all__ = [
    "ApiResponse",
    "Message",
    "MessageWithSender",
    "Participant",
    "Room",
    "RoomDetail",
    "RoomWithCount",
    "TranslationResult",
    "User",
    "UserSummary",
]
