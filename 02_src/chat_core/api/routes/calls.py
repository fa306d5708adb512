"""Call API routes."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import IApplication
from ...errors import ChatCoreError
from ...models import CallIntent, MessageType
from ..errors import to_http_exception


class StartCallRequest(BaseModel):
    """Request model for starting a call."""

    sender_id: str
    receiver_id: str
    message_type: MessageType = MessageType.AUDIO_CALL


def create_calls_router(app: IApplication) -> APIRouter:
    """Create calls router."""
    router = APIRouter(prefix="/api/calls", tags=["calls"])

    @router.post("")
    async def start_call(request: StartCallRequest) -> dict:
        """Start a call and notify the receiver."""
        intent = CallIntent(
            sender_id=request.sender_id,
            receiver_id=request.receiver_id,
            message_type=request.message_type,
        )
        try:
            message = await app.engine.save_call(intent)
            return message.to_dict()
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/{message_id}/{action}")
    async def update_call(message_id: str, action: str) -> dict:
        """Accept, reject or end the call started by message_id."""
        hooks = {
            "accept": app.engine.accept_call,
            "reject": app.engine.reject_call,
            "end": app.engine.end_call,
        }
        hook = hooks.get(action)
        if hook is None:
            raise HTTPException(status_code=404, detail=f"Unknown call action: {action}")

        try:
            message = await hook(message_id)
            return message.to_dict()
        except ChatCoreError as e:
            raise to_http_exception(e)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
