"""Tests for revoke, forward, seen and update."""

from datetime import datetime, timedelta, timezone

import pytest

from chat_core.errors import InvalidTransition, NotFound, PermissionDenied
from chat_core.models import (
    FileContent,
    Message,
    MessagePatch,
    MessageStatus,
    MessageType,
    TextContent,
)

BASE = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


async def seed(storage, msg_id, sender, receiver, room_id, status, minutes=0, **kwargs):
    return await storage.create_message(
        Message(
            id=msg_id,
            sender_id=sender,
            receiver_id=receiver,
            room_id=room_id,
            message_type=kwargs.pop("message_type", MessageType.TEXT),
            content=kwargs.pop("content", TextContent(text=msg_id)),
            message_status=status,
            send_date=BASE + timedelta(minutes=minutes),
            **kwargs,
        )
    )


async def room_of(storage, viewer, room_id):
    rooms = await storage.get_rooms_by_room_id(room_id)
    return next(r for r in rooms if r.sender_id == viewer)


class TestRevoke:
    """Tests for revoke_message."""

    async def test_author_revokes(self, engine, chat, recorder):
        """Test that the author can revoke and the receiver is told."""
        await seed(chat, "m1", "alice", "bob", "room-ab", MessageStatus.SEEN)

        message = await engine.revoke_message("m1", "alice", "bob")

        assert message.message_status == MessageStatus.REVOKED
        stored = await chat.get_message("m1")
        assert stored.message_status == MessageStatus.REVOKED
        await recorder.settle()
        assert recorder.statuses() == [("bob", "REVOKED_MESSAGE")]

    async def test_revoke_is_idempotent(self, engine, chat):
        """Test that revoking twice leaves the message REVOKED."""
        await seed(chat, "m1", "alice", "bob", "room-ab", MessageStatus.SENT)

        await engine.revoke_message("m1", "alice", "bob")
        await engine.revoke_message("m1", "alice", "bob")

        stored = await chat.get_message("m1")
        assert stored.message_status == MessageStatus.REVOKED

    async def test_non_author_denied(self, engine, chat, recorder):
        """Test that only the author may revoke."""
        await seed(chat, "m1", "alice", "bob", "room-ab", MessageStatus.SENT)

        with pytest.raises(PermissionDenied, match="permission access denied"):
            await engine.revoke_message("m1", "bob", "alice")

        stored = await chat.get_message("m1")
        assert stored.message_status == MessageStatus.SENT
        await recorder.settle()
        assert recorder.events == []

    async def test_missing_message(self, engine, chat):
        """Test revoking an unknown message."""
        with pytest.raises(NotFound):
            await engine.revoke_message("nope", "alice", "bob")


class TestForward:
    """Tests for forward_message."""

    async def test_forward_to_two_receivers(self, engine, chat, recorder):
        """Test the forward scenario: two copies, in order, then SUCCESS."""
        await seed(chat, "m1", "bob", "alice", "room-ab", MessageStatus.SEEN)

        copies = await engine.forward_message("m1", "alice", ["bob", "carol"])

        assert len(copies) == 2
        assert len({c.id for c in copies} | {"m1"}) == 3
        assert [c.receiver_id for c in copies] == ["bob", "carol"]
        assert [c.room_id for c in copies] == ["room-ab", "room-ac"]
        for copy_message in copies:
            stored = await chat.get_message(copy_message.id)
            assert stored.message_status == MessageStatus.SENT
            assert stored.sender_id == "alice"
            assert stored.content == TextContent(text="m1")

        await recorder.settle()
        assert recorder.statuses() == [
            ("bob", "SENT"),
            ("carol", "SENT"),
            ("alice", "SUCCESS"),
        ]
        assert recorder.for_user("alice")[0].message.id == copies[-1].id

    async def test_forward_updates_room_projections(self, engine, chat):
        """Test unread and preview on both sides of each conversation."""
        await seed(chat, "m1", "bob", "alice", "room-ab", MessageStatus.SEEN)
        carol_room = await room_of(chat, "carol", "room-ac")
        carol_room.unread_count = 2
        await chat.save_room(carol_room)

        await engine.forward_message("m1", "alice", ["carol"])

        carol_room = await room_of(chat, "carol", "room-ac")
        assert carol_room.unread_count == 3
        assert carol_room.latest_message == "m1"
        assert carol_room.is_sender is False

        alice_room = await room_of(chat, "alice", "room-ac")
        assert alice_room.unread_count == 0
        assert alice_room.is_sender is True

    async def test_forward_into_group_skips_removed_members(self, engine, chat):
        """Test that only current members' group rows change on a forward."""
        await seed(chat, "m1", "bob", "alice", "room-ab", MessageStatus.SEEN)

        copies = await engine.forward_message("m1", "alice", ["group-1"])

        assert copies[0].room_id == "group-1"
        for member in ["bob", "carol"]:
            room = await room_of(chat, member, "group-1")
            assert room.unread_count == 1
            assert room.latest_message == "m1"

        dave_room = await room_of(chat, "dave", "group-1")
        assert dave_room.unread_count == 0
        assert dave_room.latest_message == ""

    async def test_forward_copies_content(self, engine, chat):
        """Test that copies do not share the source's content object."""
        await seed(
            chat,
            "m1",
            "bob",
            "alice",
            "room-ab",
            MessageStatus.SENT,
            message_type=MessageType.FILE,
            content=FileContent("report", "pdf"),
        )

        copies = await engine.forward_message("m1", "alice", ["carol"])
        copies[0].content.filename = "changed"

        source = await chat.get_message("m1")
        assert source.content.filename == "report"
        assert (await room_of(chat, "carol", "room-ac")).latest_message == "FILE"

    async def test_partial_failure_keeps_earlier_copies(self, engine, chat, recorder):
        """Test that a missing room stops the loop after the first copy."""
        await seed(chat, "m1", "bob", "alice", "room-ab", MessageStatus.SENT)

        with pytest.raises(NotFound):
            await engine.forward_message("m1", "alice", ["carol", "zed"])

        page = await chat.get_messages_by_room("room-ac", 0, 20)
        assert len(page.messages) == 1
        await recorder.settle()
        assert recorder.statuses() == [("carol", "SENT")]

    async def test_missing_source(self, engine, chat):
        """Test forwarding an unknown message."""
        with pytest.raises(NotFound):
            await engine.forward_message("nope", "alice", ["bob"])


class TestSeen:
    """Tests for seen_message."""

    async def test_marks_others_messages_seen(self, engine, chat):
        """Test SENT and RECEIVED from others become SEEN, nothing else."""
        seen_at = BASE - timedelta(days=1)
        await seed(chat, "m1", "bob", "alice", "room-ab", MessageStatus.SENT, 1)
        await seed(chat, "m2", "bob", "alice", "room-ab", MessageStatus.RECEIVED, 2)
        await seed(
            chat, "m3", "bob", "alice", "room-ab", MessageStatus.SEEN, 3, seen_date=seen_at
        )
        await seed(chat, "m4", "bob", "alice", "room-ab", MessageStatus.REVOKED, 4)
        await seed(chat, "m5", "alice", "bob", "room-ab", MessageStatus.SENT, 5)

        count = await engine.seen_message("room-ab", "alice", "bob")

        assert count == 2
        for msg_id in ["m1", "m2"]:
            stored = await chat.get_message(msg_id)
            assert stored.message_status == MessageStatus.SEEN
            assert stored.seen_date is not None
        assert (await chat.get_message("m3")).seen_date == seen_at
        assert (await chat.get_message("m4")).message_status == MessageStatus.REVOKED
        assert (await chat.get_message("m5")).message_status == MessageStatus.SENT

    async def test_resets_viewer_unread(self, engine, chat):
        """Test that the viewer's room projection is cleared."""
        alice_room = await room_of(chat, "alice", "room-ab")
        alice_room.unread_count = 4
        await chat.save_room(alice_room)

        assert await engine.seen_message("room-ab", "alice", "bob") == 0
        assert (await room_of(chat, "alice", "room-ab")).unread_count == 0

    async def test_seen_notification_uses_latest_message(self, engine, chat, recorder):
        """Test that the SEEN event names the globally most recent message."""
        await seed(chat, "m1", "bob", "alice", "room-ab", MessageStatus.SENT, 1)
        await seed(chat, "m2", "carol", "alice", "room-ac", MessageStatus.SENT, 9)

        await engine.seen_message("room-ab", "alice", "bob")

        await recorder.settle()
        assert recorder.statuses() == [("bob", "SEEN")]
        event = recorder.for_user("bob")[0]
        assert event.sender_id == "carol"
        assert event.receiver_id == "alice"

    async def test_seen_notification_without_messages(self, engine, chat, recorder):
        """Test the fallback when the store has no messages at all."""
        await engine.seen_message("room-ab", "alice", "bob")

        event = recorder.for_user("bob")[0]
        assert (event.sender_id, event.receiver_id) == ("alice", "bob")

    async def test_missing_room(self, engine, chat):
        """Test that a viewer without a projection is NotFound."""
        await seed(chat, "m1", "carol", "bob", "room-x", MessageStatus.SENT)

        with pytest.raises(NotFound):
            await engine.seen_message("room-x", "bob", "carol")

        assert (await chat.get_message("m1")).message_status == MessageStatus.SENT


class TestUpdate:
    """Tests for update_message."""

    async def test_replaces_fields(self, engine, chat):
        """Test replacing type, content, status and hidden flag."""
        await seed(chat, "m1", "alice", "bob", "room-ab", MessageStatus.SENDING)

        message = await engine.update_message(
            "m1",
            MessagePatch(
                message_type=MessageType.FILE,
                message_status=MessageStatus.SENT,
                content=FileContent("report", "pdf"),
                hidden_sender_side=True,
            ),
        )

        stored = await chat.get_message(message.id)
        assert stored.message_type == MessageType.FILE
        assert stored.message_status == MessageStatus.SENT
        assert stored.content == FileContent("report", "pdf")
        assert stored.hidden_sender_side is True

    async def test_revoked_stays_revoked(self, engine, chat):
        """Test that a revoked message cannot be brought back."""
        await seed(chat, "m1", "alice", "bob", "room-ab", MessageStatus.REVOKED)

        with pytest.raises(InvalidTransition):
            await engine.update_message(
                "m1",
                MessagePatch(
                    message_type=MessageType.TEXT,
                    message_status=MessageStatus.SENT,
                    content=TextContent(text="back"),
                ),
            )

        assert (await chat.get_message("m1")).message_status == MessageStatus.REVOKED

    async def test_missing_message(self, engine, chat):
        """Test updating an unknown message."""
        with pytest.raises(NotFound):
            await engine.update_message(
                "nope",
                MessagePatch(
                    message_type=MessageType.TEXT,
                    message_status=MessageStatus.SENT,
                    content=TextContent(text="x"),
                ),
            )
