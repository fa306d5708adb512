"""Messaging API routes."""

import base64
import binascii
from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException, Query

from ...app import IApplication
from ...config import DEFAULT_PAGE_SIZE
from ...errors import ChatCoreError
from ...models import (
    ChatIntent,
    FileUpload,
    ImageGroupIntent,
    MessagePatch,
    MessageStatus,
    MessageType,
    content_from_dict,
)
from ..errors import to_http_exception


class SendMessageRequest(BaseModel):
    """Request model for sending a text message."""

    sender_id: str
    receiver_id: str
    text: str
    message_type: MessageType = MessageType.TEXT
    hidden_sender_side: bool = False


class FilePayload(BaseModel):
    """A file sent inline as base64."""

    filename: str
    data_base64: str
    content_type: str | None = None


class SendFileRequest(BaseModel):
    """Request model for sending a single file."""

    sender_id: str
    receiver_id: str
    file: FilePayload
    message_type: MessageType = MessageType.FILE


class SendImageGroupRequest(BaseModel):
    """Request model for sending several images at once."""

    sender_id: str
    receiver_id: str
    files: list[FilePayload]
    message_type: MessageType = MessageType.IMAGE


class UpdateMessageRequest(BaseModel):
    """Request model for replacing a message."""

    message_type: MessageType
    message_status: MessageStatus
    content: dict[str, Any]
    hidden_sender_side: bool = False


class RevokeRequest(BaseModel):
    """Request model for revoking a message."""

    sender_id: str
    receiver_id: str


class ForwardRequest(BaseModel):
    """Request model for forwarding a message."""

    sender_id: str
    receiver_ids: list[str] = Field(default_factory=list)


class SeenRequest(BaseModel):
    """Request model for marking a room as seen."""

    sender_id: str
    receiver_id: str


class MessagePageResponse(BaseModel):
    """Response model for a page of messages."""

    messages: list[dict[str, Any]]
    total_page: int


def _decode(payload: FilePayload) -> FileUpload:
    try:
        data = base64.b64decode(payload.data_base64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Invalid base64 file data")
    return FileUpload(
        filename=payload.filename, data=data, content_type=payload.content_type
    )


def create_messaging_router(app: IApplication) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api", tags=["messaging"])

    @router.post("/messages")
    async def send_message(request: SendMessageRequest) -> dict:
        """Send a text message."""
        intent = ChatIntent(
            sender_id=request.sender_id,
            receiver_id=request.receiver_id,
            message_type=request.message_type,
            text=request.text,
            hidden_sender_side=request.hidden_sender_side,
        )
        try:
            message = await app.engine.send_message(intent)
            return message.to_dict()
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/messages/file")
    async def send_file(request: SendFileRequest) -> dict:
        """Send a single file."""
        intent = ChatIntent(
            sender_id=request.sender_id,
            receiver_id=request.receiver_id,
            message_type=request.message_type,
            file=_decode(request.file),
        )
        try:
            message = await app.engine.send_message_with_file(intent)
            return message.to_dict()
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/messages/images")
    async def send_image_group(request: SendImageGroupRequest) -> dict:
        """Send several images as one message."""
        intent = ImageGroupIntent(
            sender_id=request.sender_id,
            receiver_id=request.receiver_id,
            message_type=request.message_type,
            files=[_decode(f) for f in request.files],
        )
        try:
            message = await app.engine.send_image_group(intent)
            return message.to_dict()
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/rooms/{room_id}/messages", response_model=MessagePageResponse)
    async def get_room_messages(
        room_id: str,
        sender_id: str = Query(..., description="Viewer requesting the history"),
        page: int = Query(0, ge=0),
        size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=200),
    ) -> dict:
        """Get one page of a room's messages as the viewer sees them."""
        try:
            result = await app.query.get_all_by_room_id(sender_id, room_id, page, size)
            return {
                "messages": [m.to_dict() for m in result.messages],
                "total_page": result.total_page,
            }
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.put("/messages/{message_id}")
    async def update_message(message_id: str, request: UpdateMessageRequest) -> dict:
        """Replace a message's type, status, content and hidden flag."""
        try:
            patch = MessagePatch(
                message_type=request.message_type,
                message_status=request.message_status,
                content=content_from_dict(request.content),
                hidden_sender_side=request.hidden_sender_side,
            )
            message = await app.engine.update_message(message_id, patch)
            return message.to_dict()
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/messages/{message_id}/revoke")
    async def revoke_message(message_id: str, request: RevokeRequest) -> dict:
        """Revoke a message."""
        try:
            message = await app.engine.revoke_message(
                message_id, request.sender_id, request.receiver_id
            )
            return message.to_dict()
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/messages/{message_id}/forward")
    async def forward_message(message_id: str, request: ForwardRequest) -> list[dict]:
        """Forward a message to several receivers."""
        try:
            messages = await app.engine.forward_message(
                message_id, request.sender_id, request.receiver_ids
            )
            return [m.to_dict() for m in messages]
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/rooms/{room_id}/seen")
    async def seen_messages(room_id: str, request: SeenRequest) -> dict:
        """Mark a room's messages as seen by the viewer."""
        try:
            count = await app.engine.seen_message(
                room_id, request.sender_id, request.receiver_id
            )
            return {"seen": count}
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
