"""Group send-permission rules."""

from typing import Protocol

from ..errors import PermissionDenied
from ..models import Group, GroupStatus, SendMessagePermission
from ..storage import IGroupDirectory


class IPermissionEvaluator(Protocol):
    """Decides whether a sender may post into a conversation."""

    async def authorize(self, sender_id: str, target_id: str) -> Group | None:
        """Return the group context, None for direct chats."""
        ...

    async def group_for(self, room_id: str) -> Group | None:
        """Return the group behind room_id without checking the sender."""
        ...

    async def is_group_chat(self, room_id: str) -> bool: ...


def check_group_permission(group: Group, sender_id: str) -> None:
    """
    Apply a group's status, membership and send policy to sender_id.

    Raises:
        PermissionDenied: if the sender may not post into the group.
    """
    if group.group_status == GroupStatus.INACTIVE:
        raise PermissionDenied("group inactive")

    if sender_id not in group.members:
        raise PermissionDenied("user is not in group")

    policy = group.send_message_permission
    if policy == SendMessagePermission.ONLY_ADMIN:
        if sender_id not in group.admins and sender_id != group.owner:
            raise PermissionDenied("only admins or owner can send message")
    elif policy == SendMessagePermission.ONLY_OWNER:
        if sender_id != group.owner:
            raise PermissionDenied("only owner can send message")


class PermissionEvaluator:
    """Group-directory backed permission evaluator. Pure read."""

    def __init__(self, groups: IGroupDirectory):
        self._groups = groups

    async def authorize(self, sender_id: str, target_id: str) -> Group | None:
        """Return the target group if sender_id may post into it.

        A target that is not a group is a direct chat and always passes.
        """
        group = await self._groups.get_group(target_id)
        if group is None:
            return None

        check_group_permission(group, sender_id)
        return group

    async def group_for(self, room_id: str) -> Group | None:
        """Return the group behind room_id, or None for a direct chat."""
        return await self._groups.get_group(room_id)

    async def is_group_chat(self, room_id: str) -> bool:
        """A conversation is a group chat when its id names a group."""
        return await self.group_for(room_id) is not None
