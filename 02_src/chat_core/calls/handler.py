"""Call session adapter."""

from typing import Protocol

from ..logging_config import get_logger
from ..models import CallStatus, Message
from ..storage import IMessageStore
from ..tracker import ITracker

logger = get_logger(__name__)


class ICallHandler(Protocol):
    """Receives call lifecycle transitions keyed by the call message."""

    async def start_call(self, message: Message) -> None: ...

    async def accept_call(self, message: Message) -> None: ...

    async def reject_call(self, message: Message) -> None: ...

    async def end_call(self, message: Message) -> None: ...


class CallHandler:
    """Records call state on the call message and traces it.

    Signaling (media negotiation, ringing) lives in the transport; this
    adapter only keeps the message's call status in step with it.
    """

    def __init__(self, messages: IMessageStore, tracker: ITracker):
        self._messages = messages
        self._tracker = tracker

    async def start_call(self, message: Message) -> None:
        await self._record(message, CallStatus.START, "call_started")

    async def accept_call(self, message: Message) -> None:
        await self._record(message, CallStatus.ACCEPT, "call_accepted")

    async def reject_call(self, message: Message) -> None:
        await self._record(message, CallStatus.REJECT, "call_rejected")

    async def end_call(self, message: Message) -> None:
        await self._record(message, CallStatus.END, "call_ended")

    async def _record(
        self, message: Message, status: CallStatus, event_type: str
    ) -> None:
        if message.content.kind != "call":
            logger.warning(
                "Ignoring %s for non-call message", event_type,
                extra={"message_id": message.id},
            )
            return

        if message.content.call_status != status:
            message.content.call_status = status
            await self._messages.save_message(message)

        await self._tracker.track(
            event_type=event_type,
            actor="call_handler",
            data={
                "message_id": message.id,
                "room_id": message.room_id,
                "sender_id": message.sender_id,
                "receiver_id": message.receiver_id,
                "call_type": message.message_type.value,
            },
        )
