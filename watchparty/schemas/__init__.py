"""
watchparty.schemas
~~~~~~~~~~~~~~~~~~
Pydantic schemas: WebSocket event payloads and REST request/response models.
"""
from watchparty.schemas.api_response import ApiResponse
from watchparty.schemas.events import (
    ChatMessage,
    InboundEvent,
    OutboundEvent,
    UserData,
)
from watchparty.schemas.rooms import (
    EndSessionData,
    HistoryResponseData,
    RoomCodeData,
    RoomFilesData,
    RoomInfoData,
)

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
