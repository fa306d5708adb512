"""DeliveryEngine implementation."""

import copy
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from ..calls import ICallHandler
from ..errors import NotFound, PermissionDenied, TransientDeliveryError, ValidationError
from ..logging_config import get_logger
from ..models import (
    CallContent,
    CallIntent,
    CallStatus,
    ChatIntent,
    FileContent,
    FileListContent,
    FileUpload,
    Group,
    ImageGroupIntent,
    Message,
    MessageContent,
    MessagePatch,
    MessageStatus,
    MessageType,
    NotifyStatus,
    Room,
    RoomType,
    TextContent,
    User,
    UserNotify,
    transition,
)
from ..notifications import INotificationPublisher
from ..permissions import IPermissionEvaluator
from ..storage import IMessageStore, IRoomStore, IUserDirectory
from ..tracker import ITracker
from ..uploads import IUploader, stored_filename
from .previews import (
    call_preview_text,
    failed_preview_text,
    group_preview_text,
    preview_text,
)

logger = get_logger(__name__)

IMAGE_FILENAME = re.compile(r"\S+\.(jpg|png|gif|bmp)", re.IGNORECASE)
CALL_TYPES = (MessageType.AUDIO_CALL, MessageType.VIDEO_CALL)


@dataclass
class DeliveryOutcome:
    """Result of the fan-out step of send_message."""

    ok: bool
    error: TransientDeliveryError | None = None


class IDeliveryEngine(Protocol):
    """Persists messages, updates room projections, pushes notifications."""

    async def prepare_message(self, intent: ChatIntent) -> Message:
        """Persist a SENDING placeholder and return it."""
        ...

    async def send_message(
        self, intent: ChatIntent, pending: Message | None = None
    ) -> Message:
        """Deliver a text or file message. Failures are compensated, not raised."""
        ...

    async def send_message_with_file(self, intent: ChatIntent) -> Message:
        """Create a placeholder, then deliver the file message."""
        ...

    async def send_image_group(self, intent: ImageGroupIntent) -> Message:
        """Persist an image-group message, upload it and fan it out."""
        ...

    async def update_message(self, message_id: str, patch: MessagePatch) -> Message:
        """Replace a message's type, content, status and hidden flag."""
        ...

    async def revoke_message(
        self, message_id: str, sender_id: str, receiver_id: str
    ) -> Message:
        """Revoke a message on behalf of its author."""
        ...

    async def forward_message(
        self, message_id: str, sender_id: str, receiver_ids: list[str]
    ) -> list[Message]:
        """Copy a message to each receiver in order."""
        ...

    async def seen_message(self, room_id: str, sender_id: str, receiver_id: str) -> int:
        """Mark other participants' messages in a room as seen."""
        ...

    async def save_call(self, intent: CallIntent) -> Message:
        """Persist a call message, fan it out and start the call session."""
        ...

    async def accept_call(self, message_id: str) -> Message: ...

    async def reject_call(self, message_id: str) -> Message: ...

    async def end_call(self, message_id: str) -> Message: ...


class DeliveryEngine:
    """
    Orchestrates message delivery.

    Every operation runs sequentially on the caller's task. Room projections
    are updated with independent read-then-write sequences, so concurrent
    operations on the same row are last-write-wins.
    """

    def __init__(
        self,
        messages: IMessageStore,
        rooms: IRoomStore,
        users: IUserDirectory,
        permissions: IPermissionEvaluator,
        publisher: INotificationPublisher,
        uploader: IUploader,
        call_handler: ICallHandler,
        tracker: ITracker,
    ):
        self._messages = messages
        self._rooms = rooms
        self._users = users
        self._permissions = permissions
        self._publisher = publisher
        self._uploader = uploader
        self._call_handler = call_handler
        self._tracker = tracker

    # Lookups
    async def _require_room(self, sender_id: str, receiver_id: str) -> Room:
        room = await self._rooms.get_room_by_participants(sender_id, receiver_id)
        if room is None:
            raise NotFound("room not found")
        return room

    async def _require_user(self, user_id: str) -> User:
        user = await self._users.get_user(user_id)
        if user is None:
            raise NotFound("user not found")
        return user

    async def _require_message(self, message_id: str) -> Message:
        message = await self._messages.get_message(message_id)
        if message is None:
            raise NotFound(f"message {message_id} not found")
        return message

    @staticmethod
    def _content_for(intent: ChatIntent) -> MessageContent:
        if intent.file is not None:
            return FileContent.from_filename(stored_filename(intent.file.filename))
        if intent.text is not None:
            return TextContent(text=intent.text)
        raise ValidationError("message has neither text nor file")

    # Sending
    async def prepare_message(self, intent: ChatIntent) -> Message:
        """Persist a SENDING placeholder for intent and return it.

        Gives the client a message id while a file upload is still running.
        """
        room = await self._require_room(intent.sender_id, intent.receiver_id)
        await self._permissions.authorize(intent.sender_id, intent.receiver_id)

        message = Message(
            id=str(uuid.uuid4()),
            sender_id=intent.sender_id,
            receiver_id=intent.receiver_id,
            room_id=room.room_id,
            message_type=intent.message_type,
            content=self._content_for(intent),
            message_status=MessageStatus.SENDING,
            send_date=datetime.now(timezone.utc),
            hidden_sender_side=intent.hidden_sender_side,
        )
        return await self._messages.create_message(message)

    async def send_message(
        self, intent: ChatIntent, pending: Message | None = None
    ) -> Message:
        """
        Deliver a text or file message.

        Permission and lookup failures propagate before anything is written.
        A failure during upload, persistence or fan-out is compensated on the sender's
        own room projection and logged; it is not raised, so callers tell the
        two apart only by the returned message's status.

        Args:
            intent: What to send.
            pending: Placeholder from prepare_message whose id and room to reuse.

        Raises:
            PermissionDenied: if group policy forbids the send.
            NotFound: if the sender or the room does not exist.
            ValidationError: if the intent has neither text nor file, or the
                file name is unusable.
        """
        group = await self._permissions.authorize(intent.sender_id, intent.receiver_id)
        sender = await self._require_user(intent.sender_id)
        content = self._content_for(intent)

        if pending is not None:
            message_id, room_id = pending.id, pending.room_id
        else:
            room = await self._require_room(intent.sender_id, intent.receiver_id)
            message_id, room_id = str(uuid.uuid4()), room.room_id

        message = Message(
            id=message_id,
            sender_id=intent.sender_id,
            receiver_id=intent.receiver_id,
            room_id=room_id,
            message_type=intent.message_type,
            content=content,
            message_status=MessageStatus.SENDING,
            send_date=pending.send_date if pending else datetime.now(timezone.utc),
            hidden_sender_side=intent.hidden_sender_side,
            sender_name=sender.name,
            sender_avatar=sender.avatar,
        )

        if intent.file is not None:
            outcome = await self._deliver_uploads([intent.file], message, group, sender)
        else:
            outcome = await self._deliver(message, group, sender)
        await self._finish(message, outcome)
        return message

    async def _finish(self, message: Message, outcome: DeliveryOutcome) -> None:
        """Compensate a failed delivery or trace a successful one."""
        if not outcome.ok:
            await self._compensate(message, outcome.error)
            return

        await self._tracker.track(
            event_type="message_sent",
            actor="delivery_engine",
            data={
                "message_id": message.id,
                "room_id": message.room_id,
                "sender_id": message.sender_id,
                "receiver_id": message.receiver_id,
            },
        )

    @staticmethod
    def _failed(message: Message, e: Exception) -> DeliveryOutcome:
        error = TransientDeliveryError(f"delivery of message {message.id} failed: {e}")
        error.__cause__ = e
        return DeliveryOutcome(ok=False, error=error)

    async def _deliver(
        self, message: Message, group: Group | None, sender: User
    ) -> DeliveryOutcome:
        """Persist a text message as SENT, then fan it out."""
        try:
            transition(message, MessageStatus.SENT)
            message.send_date = datetime.now(timezone.utc)
            await self._messages.save_message(message)
            await self._fan_out(message, group, sender)
            return DeliveryOutcome(ok=True)
        except Exception as e:
            return self._failed(message, e)

    async def _deliver_uploads(
        self,
        uploads: list[FileUpload],
        message: Message,
        group: Group | None,
        sender: User,
    ) -> DeliveryOutcome:
        """Hand files to the uploader, which finalizes status, then fan out."""
        try:
            await self._uploader.upload_files(uploads, message)
            await self._fan_out(message, group, sender)
            return DeliveryOutcome(ok=True)
        except Exception as e:
            return self._failed(message, e)

    async def _fan_out(self, message: Message, group: Group | None, sender: User) -> None:
        """Update every room projection of the message's room and notify."""
        now = message.send_date or datetime.now(timezone.utc)
        rooms = await self._rooms.get_rooms_by_room_id(message.room_id)
        for room in rooms:
            if group is not None and room.sender_id not in group.members:
                continue

            room.time = now
            room.message_status = message.message_status
            if room.sender_id == message.sender_id:
                room.latest_message = preview_text(message)
                room.is_sender = True
                room.unread_count = 0
                saved = await self._rooms.save_room(room)
                await self._publisher.publish(
                    message.sender_id,
                    UserNotify(
                        status=NotifyStatus.SUCCESS,
                        sender_id=message.sender_id,
                        receiver_id=message.receiver_id,
                        message=message,
                        room=saved,
                    ),
                )
            else:
                if room.room_type == RoomType.GROUP:
                    room.latest_message = group_preview_text(message, sender.name)
                else:
                    room.latest_message = preview_text(message)
                room.is_sender = False
                room.unread_count += 1
                await self._rooms.save_room(room)

        await self._publisher.publish(
            message.receiver_id,
            UserNotify(
                status=NotifyStatus.SENT,
                sender_id=message.sender_id,
                receiver_id=message.receiver_id,
                message=message,
            ),
        )

    async def _compensate(
        self, message: Message, error: TransientDeliveryError | None
    ) -> None:
        """Show the failed content on the sender's own room projection."""
        logger.error(
            "Message delivery failed, compensating sender room: %s",
            error,
            exc_info=error,
            extra={"message_id": message.id, "room_id": message.room_id},
        )
        try:
            rooms = await self._rooms.get_rooms_by_room_id(message.room_id)
            for room in rooms:
                if room.sender_id == message.sender_id:
                    room.latest_message = failed_preview_text(message)
                    room.time = datetime.now(timezone.utc)
                    room.is_sender = True
                    room.unread_count = 0
                    await self._rooms.save_room(room)
                    break

            await self._tracker.track(
                event_type="message_compensated",
                actor="delivery_engine",
                data={
                    "message_id": message.id,
                    "room_id": message.room_id,
                    "error": str(error),
                },
            )
        except Exception:
            logger.exception(
                "Compensating room write failed",
                extra={"message_id": message.id, "room_id": message.room_id},
            )

    async def send_message_with_file(self, intent: ChatIntent) -> Message:
        """Create a placeholder, then deliver the file message."""
        if intent.file is None:
            raise ValidationError("file message without file")

        pending = await self.prepare_message(intent)
        return await self.send_message(intent, pending)

    async def send_image_group(self, intent: ImageGroupIntent) -> Message:
        """
        Persist a multi-image message, upload the files and deliver it.

        Upload and fan-out failures are compensated like send_message.

        Raises:
            ValidationError: if there are no files or any file is not an image.
            NotFound: if the sender or the room does not exist.
            PermissionDenied: if group policy forbids the send.
        """
        if not intent.files:
            raise ValidationError("no files to send")
        for upload in intent.files:
            if not IMAGE_FILENAME.fullmatch(upload.filename):
                raise ValidationError("all files must be image")

        room = await self._require_room(intent.sender_id, intent.receiver_id)
        group = await self._permissions.authorize(intent.sender_id, intent.receiver_id)
        sender = await self._require_user(intent.sender_id)

        message = Message(
            id=str(uuid.uuid4()),
            sender_id=intent.sender_id,
            receiver_id=intent.receiver_id,
            room_id=room.room_id,
            message_type=intent.message_type,
            content=FileListContent(
                files=[
                    FileContent.from_filename(stored_filename(f.filename))
                    for f in intent.files
                ]
            ),
            message_status=MessageStatus.SENDING,
            send_date=datetime.now(timezone.utc),
            sender_name=sender.name,
            sender_avatar=sender.avatar,
        )
        await self._messages.create_message(message)

        outcome = await self._deliver_uploads(intent.files, message, group, sender)
        await self._finish(message, outcome)
        return message

    # Mutations
    async def update_message(self, message_id: str, patch: MessagePatch) -> Message:
        """Replace a message's type, content, status and hidden flag."""
        message = await self._require_message(message_id)
        transition(message, patch.message_status)
        message.message_type = patch.message_type
        message.content = patch.content
        message.hidden_sender_side = patch.hidden_sender_side
        return await self._messages.save_message(message)

    async def revoke_message(
        self, message_id: str, sender_id: str, receiver_id: str
    ) -> Message:
        """
        Revoke a message on behalf of its author and tell the receiver.

        Raises:
            NotFound: if the message does not exist.
            PermissionDenied: if sender_id did not write the message.
        """
        message = await self._require_message(message_id)
        if message.sender_id != sender_id:
            raise PermissionDenied("permission access denied")

        transition(message, MessageStatus.REVOKED)
        await self._messages.save_message(message)

        await self._publisher.publish(
            receiver_id,
            UserNotify(
                status=NotifyStatus.REVOKED_MESSAGE,
                sender_id=message.sender_id,
                receiver_id=message.receiver_id,
            ),
        )
        await self._tracker.track(
            event_type="message_revoked",
            actor="delivery_engine",
            data={"message_id": message.id, "room_id": message.room_id},
        )
        return message

    async def forward_message(
        self, message_id: str, sender_id: str, receiver_ids: list[str]
    ) -> list[Message]:
        """
        Copy a message to each receiver, in the order given.

        Each copy is committed before the next receiver is processed. A
        failure part way through propagates and leaves earlier copies in
        place.

        Raises:
            NotFound: if the message, the sender or a receiver's room is absent.
        """
        source = await self._require_message(message_id)
        sender = await self._require_user(sender_id)

        forwarded: list[Message] = []
        for receiver_id in receiver_ids:
            room = await self._require_room(sender_id, receiver_id)
            now = datetime.now(timezone.utc)

            copy_message = Message(
                id=str(uuid.uuid4()),
                sender_id=sender_id,
                receiver_id=receiver_id,
                room_id=room.room_id,
                message_type=source.message_type,
                content=copy.deepcopy(source.content),
                message_status=MessageStatus.SENT,
                send_date=now,
                sender_name=sender.name,
                sender_avatar=sender.avatar,
            )
            await self._messages.create_message(copy_message)
            forwarded.append(copy_message)

            group = await self._permissions.group_for(room.room_id)
            preview = preview_text(copy_message)
            for view in await self._rooms.get_rooms_by_room_id(room.room_id):
                if group is not None and view.sender_id not in group.members:
                    continue
                view.latest_message = preview
                view.time = now
                view.message_status = MessageStatus.SENT
                if view.sender_id == sender_id:
                    view.is_sender = True
                    view.unread_count = 0
                else:
                    view.is_sender = False
                    view.unread_count += 1
                await self._rooms.save_room(view)

            await self._publisher.publish(
                receiver_id,
                UserNotify(
                    status=NotifyStatus.SENT,
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    message=copy_message,
                ),
            )

        last = forwarded[-1] if forwarded else None
        await self._publisher.publish(
            sender_id,
            UserNotify(
                status=NotifyStatus.SUCCESS,
                sender_id=sender_id,
                receiver_id=last.receiver_id if last else source.receiver_id,
                message=last,
            ),
        )
        await self._tracker.track(
            event_type="message_forwarded",
            actor="delivery_engine",
            data={
                "source_message_id": source.id,
                "sender_id": sender_id,
                "message_ids": [m.id for m in forwarded],
            },
        )
        return forwarded

    async def seen_message(self, room_id: str, sender_id: str, receiver_id: str) -> int:
        """
        Mark every SENT or RECEIVED message in the room not written by
        sender_id as SEEN, and clear sender_id's unread counter.

        The SEEN notification carries the sender and receiver of the most
        recent message across all rooms, not necessarily this one.

        Returns:
            Number of messages marked seen.

        Raises:
            NotFound: if sender_id has no room facing receiver_id.
        """
        room = await self._require_room(sender_id, receiver_id)
        now = datetime.now(timezone.utc)

        unseen: list[Message] = []
        for status in (MessageStatus.SENT, MessageStatus.RECEIVED):
            found = await self._messages.get_messages_by_room_and_status(room_id, status)
            unseen.extend(m for m in found if m.sender_id != sender_id)

        for message in unseen:
            transition(message, MessageStatus.SEEN, at=now)
            await self._messages.save_message(message)

        room.unread_count = 0
        await self._rooms.save_room(room)

        latest = await self._messages.get_most_recent_message()
        await self._publisher.publish(
            receiver_id,
            UserNotify(
                status=NotifyStatus.SEEN,
                sender_id=latest.sender_id if latest else sender_id,
                receiver_id=latest.receiver_id if latest else receiver_id,
            ),
        )
        await self._tracker.track(
            event_type="messages_seen",
            actor="delivery_engine",
            data={"room_id": room_id, "viewer_id": sender_id, "count": len(unseen)},
        )
        return len(unseen)

    # Calls
    async def save_call(self, intent: CallIntent) -> Message:
        """
        Persist a call-start message, fan it out and open the call session.

        The message is committed before the call handler runs; a handler
        failure is logged and leaves the message in place.

        Raises:
            ValidationError: if the message type is not a call type.
            NotFound: if the room or the caller does not exist.
            PermissionDenied: if group policy forbids the call.
        """
        if intent.message_type not in CALL_TYPES:
            raise ValidationError(f"{intent.message_type.value} is not a call type")

        room = await self._require_room(intent.sender_id, intent.receiver_id)
        is_group = await self._permissions.is_group_chat(room.room_id)
        group = None
        if is_group:
            group = await self._permissions.authorize(intent.sender_id, intent.receiver_id)
        sender = await self._require_user(intent.sender_id)

        now = datetime.now(timezone.utc)
        message = Message(
            id=str(uuid.uuid4()),
            sender_id=intent.sender_id,
            receiver_id=intent.receiver_id,
            room_id=room.room_id,
            message_type=intent.message_type,
            content=CallContent(call_status=CallStatus.START),
            message_status=MessageStatus.SENT,
            send_date=now,
            sender_name=sender.name,
            sender_avatar=sender.avatar,
        )
        await self._messages.create_message(message)

        for view in await self._rooms.get_rooms_by_room_id(room.room_id):
            if group is not None and view.sender_id not in group.members:
                continue

            viewer_is_sender = view.sender_id == intent.sender_id
            view.latest_message = call_preview_text(
                message, is_group, viewer_is_sender, sender.name
            )
            view.time = now
            view.message_status = MessageStatus.SENT
            view.is_sender = viewer_is_sender
            if viewer_is_sender:
                view.unread_count = 0
            else:
                view.unread_count += 1
            await self._rooms.save_room(view)

        await self._publisher.publish(
            intent.receiver_id,
            UserNotify(
                status=NotifyStatus.CALL_REQUEST,
                sender_id=message.sender_id,
                receiver_id=message.receiver_id,
                message=message,
            ),
        )

        try:
            await self._call_handler.start_call(message)
        except Exception:
            logger.exception(
                "Call handler failed to start call",
                extra={"message_id": message.id, "room_id": message.room_id},
            )
        return message

    async def accept_call(self, message_id: str) -> Message:
        """Forward an accepted call to the call handler."""
        message = await self._require_message(message_id)
        await self._call_handler.accept_call(message)
        return message

    async def reject_call(self, message_id: str) -> Message:
        """Forward a rejected call to the call handler."""
        message = await self._require_message(message_id)
        await self._call_handler.reject_call(message)
        return message

    async def end_call(self, message_id: str) -> Message:
        """Forward a finished call to the call handler."""
        message = await self._require_message(message_id)
        await self._call_handler.end_call(message)
        return message
