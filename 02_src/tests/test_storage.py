"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import pytest

from chat_core.models import (
    FileContent,
    Group,
    GroupStatus,
    Message,
    MessageStatus,
    MessageType,
    Room,
    RoomType,
    SendMessagePermission,
    TextContent,
    TraceEvent,
    User,
)

BASE = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_message(msg_id, minutes, status=MessageStatus.SENT, sender="alice", room="room-ab"):
    return Message(
        id=msg_id,
        sender_id=sender,
        receiver_id="bob" if sender == "alice" else "alice",
        room_id=room,
        message_type=MessageType.TEXT,
        content=TextContent(text=msg_id),
        message_status=status,
        send_date=BASE + timedelta(minutes=minutes),
    )


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            for table in ["users", "groups", "rooms", "messages", "trace_events"]:
                assert table in tables

    async def test_uninitialized_storage_raises(self):
        """Test that using storage before init fails loudly."""
        from chat_core.storage import Storage

        st = Storage(":memory:")
        with pytest.raises(RuntimeError):
            await st.get_user("alice")


class TestStorageUsersAndGroups:
    """Tests for the user and group directories."""

    async def test_get_user(self, storage):
        """Test retrieving a saved user."""
        await storage.save_user(User(id="alice@x.io", name="Alice", avatar="a.png"))

        user = await storage.get_user("alice@x.io")
        assert user == User(id="alice@x.io", name="Alice", avatar="a.png")

    async def test_get_nonexistent_user(self, storage):
        """Test retrieving nonexistent user returns None."""
        assert await storage.get_user("nobody") is None

    async def test_group_round_trip(self, storage):
        """Test saving and loading a group with members and policy."""
        group = Group(
            id="g1",
            name="Team",
            owner="alice",
            members=["alice", "bob"],
            admins=["bob"],
            group_status=GroupStatus.INACTIVE,
            send_message_permission=SendMessagePermission.ONLY_ADMIN,
        )
        await storage.save_group(group)

        assert await storage.get_group("g1") == group
        assert await storage.get_group("room-ab") is None


class TestStorageMessages:
    """Tests for the message store."""

    async def test_create_message_generates_id(self, storage):
        """Test that creating a message without id assigns one."""
        msg = make_message("", 0)
        saved = await storage.create_message(msg)
        assert saved.id
        assert await storage.get_message(saved.id) is not None

    async def test_file_content_persisted(self, storage):
        """Test that a file variant survives storage."""
        msg = make_message("m1", 0)
        msg.message_type = MessageType.FILE
        msg.content = FileContent(filename="report", extension="pdf")
        await storage.create_message(msg)

        loaded = await storage.get_message("m1")
        assert loaded.content == FileContent(filename="report", extension="pdf")
        assert loaded.send_date == msg.send_date

    async def test_save_message_replaces(self, storage):
        """Test that save_message overwrites the stored record."""
        msg = make_message("m1", 0)
        await storage.create_message(msg)

        msg.message_status = MessageStatus.REVOKED
        await storage.save_message(msg)

        loaded = await storage.get_message("m1")
        assert loaded.message_status == MessageStatus.REVOKED

    async def test_get_messages_by_room_pages_newest_first(self, storage):
        """Test pagination order and page count."""
        for i in range(5):
            await storage.create_message(make_message(f"m{i}", i))
        await storage.create_message(make_message("other", 10, room="room-ac"))

        first = await storage.get_messages_by_room("room-ab", page=0, size=2)
        assert [m.id for m in first.messages] == ["m4", "m3"]
        assert first.total_page == 3

        last = await storage.get_messages_by_room("room-ab", page=2, size=2)
        assert [m.id for m in last.messages] == ["m0"]

    async def test_get_messages_by_room_and_status(self, storage):
        """Test filtering a room's messages by status."""
        await storage.create_message(make_message("m1", 0, MessageStatus.SENT))
        await storage.create_message(make_message("m2", 1, MessageStatus.SEEN))
        await storage.create_message(make_message("m3", 2, MessageStatus.SENT))

        sent = await storage.get_messages_by_room_and_status(
            "room-ab", MessageStatus.SENT
        )
        assert [m.id for m in sent] == ["m1", "m3"]

    async def test_get_most_recent_message(self, storage):
        """Test the global most recent message lookup."""
        assert await storage.get_most_recent_message() is None

        await storage.create_message(make_message("m1", 0))
        await storage.create_message(make_message("m2", 5, room="room-ac"))

        latest = await storage.get_most_recent_message()
        assert latest.id == "m2"


class TestStorageRooms:
    """Tests for room projections."""

    async def test_rooms_by_room_id(self, storage):
        """Test that all projections of a conversation are returned."""
        await storage.save_room(
            Room(id="r1", room_id="room-ab", sender_id="alice", receiver_id="bob")
        )
        await storage.save_room(
            Room(id="r2", room_id="room-ab", sender_id="bob", receiver_id="alice")
        )
        await storage.save_room(
            Room(id="r3", room_id="room-ac", sender_id="alice", receiver_id="carol")
        )

        rooms = await storage.get_rooms_by_room_id("room-ab")
        assert [r.id for r in rooms] == ["r1", "r2"]

    async def test_room_by_participants(self, storage):
        """Test finding a viewer's projection of a conversation."""
        room = Room(
            id="r1",
            room_id="group-1",
            sender_id="alice",
            receiver_id="group-1",
            room_type=RoomType.GROUP,
            latest_message="hello",
            message_status=MessageStatus.SENT,
            unread_count=3,
            time=BASE,
            is_sender=True,
        )
        await storage.save_room(room)

        assert await storage.get_room_by_participants("alice", "group-1") == room
        assert await storage.get_room_by_participants("group-1", "alice") is None

    async def test_save_room_generates_id(self, storage):
        """Test that saving a room without id assigns one."""
        room = await storage.save_room(
            Room(id="", room_id="room-ab", sender_id="alice", receiver_id="bob")
        )
        assert room.id


class TestStorageTraceEvents:
    """Tests for TraceEvent storage."""

    async def test_filters(self, storage):
        """Test filtering trace events by type and actor."""
        for i, (event_type, actor) in enumerate(
            [("message_sent", "delivery_engine"), ("call_started", "call_handler")]
        ):
            await storage.save_trace_event(
                TraceEvent(
                    id=f"e{i}",
                    event_type=event_type,
                    actor=actor,
                    data={"i": i},
                    timestamp=BASE + timedelta(seconds=i),
                )
            )

        events = await storage.get_trace_events(event_types=["call_started"])
        assert [e.id for e in events] == ["e1"]

        events = await storage.get_trace_events(actor="delivery_engine")
        assert [e.data for e in events] == [{"i": 0}]

        events = await storage.get_trace_events(after=BASE)
        assert [e.id for e in events] == ["e1"]

    async def test_clear(self, storage):
        """Test that clear removes all data."""
        await storage.save_user(User(id="alice", name="Alice"))
        await storage.create_message(make_message("m1", 0))

        await storage.clear()

        assert await storage.get_user("alice") is None
        assert await storage.get_message("m1") is None
