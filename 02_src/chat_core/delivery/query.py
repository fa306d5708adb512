"""Message history query for a room."""

from datetime import datetime, timezone
from typing import Protocol

from ..config import DEFAULT_PAGE_SIZE
from ..models import GroupStatus, MessagePage, MessageStatus, MessageType
from ..storage import IGroupDirectory, IMessageStore

HIDDEN_FROM_OTHERS = (MessageStatus.SENDING, MessageStatus.ERROR)


class IMessageQuery(Protocol):
    """Read side of the message store, as seen by one participant."""

    async def get_all_by_room_id(
        self, sender_id: str, room_id: str, page: int = 0, size: int = DEFAULT_PAGE_SIZE
    ) -> MessagePage:
        """Get the messages of a room visible to sender_id."""
        ...


class MessageQuery:
    """Filters a stored page of room messages for one viewer."""

    def __init__(self, messages: IMessageStore, groups: IGroupDirectory):
        self._messages = messages
        self._groups = groups

    async def get_all_by_room_id(
        self, sender_id: str, room_id: str, page: int = 0, size: int = DEFAULT_PAGE_SIZE
    ) -> MessagePage:
        """
        Get one page of a room's messages as sender_id may see them.

        Inactive groups expose only their SYSTEM messages, and non-members
        see nothing; both report total_page 0. Otherwise the viewer sees all
        of their own messages and other people's once they left SENDING/ERROR.
        Filtering runs on the stored page, so total_page counts unfiltered
        pages.
        """
        group = await self._groups.get_group(room_id)
        stored = await self._messages.get_messages_by_room(room_id, page, size)

        if group is not None:
            if group.group_status == GroupStatus.INACTIVE:
                system = [
                    m for m in stored.messages if m.message_type == MessageType.SYSTEM
                ]
                return MessagePage(messages=_by_send_date(system), total_page=0)

            if sender_id not in group.members:
                return MessagePage(messages=[], total_page=0)

        own = [m for m in stored.messages if m.sender_id == sender_id]
        others = [
            m
            for m in stored.messages
            if m.sender_id != sender_id and m.message_status not in HIDDEN_FROM_OTHERS
        ]
        return MessagePage(
            messages=_by_send_date(own + others),
            total_page=stored.total_page,
        )


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _by_send_date(messages):
    return sorted(messages, key=lambda m: m.send_date or _EPOCH)
