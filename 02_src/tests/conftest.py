"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class NotifyRecorder:
    """Collects every published notification in order."""

    def __init__(self, publisher):
        self._publisher = publisher
        self.events = []  # (target_user_id, channel, UserNotify)

    async def settle(self):
        """Wait for every scheduled delivery to land."""
        await self._publisher.drain()

    async def __call__(self, target_user_id, channel, event):
        self.events.append((target_user_id, channel, event))

    def for_user(self, user_id):
        return [e for target, _, e in self.events if target == user_id]

    def statuses(self):
        return [(target, e.status.value) for target, _, e in self.events]


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from chat_core.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def publisher():
    """Create an in-process notification publisher."""
    from chat_core.notifications import NotificationPublisher

    return NotificationPublisher()


@pytest.fixture
def recorder(publisher):
    """Record everything pushed through the publisher."""
    rec = NotifyRecorder(publisher)
    publisher.subscribe_all(rec)
    return rec


@pytest.fixture
def tracker(storage, publisher):
    """Create Tracker with storage and publisher (not subscribed)."""
    from chat_core.tracker import Tracker

    return Tracker(publisher=publisher, storage=storage)


@pytest.fixture
def uploader(storage, tmp_path):
    """Create a disk uploader writing under a temp directory."""
    from chat_core.uploads import DiskUploader

    return DiskUploader(storage, tmp_path / "uploads")


@pytest.fixture
def call_handler(storage, tracker):
    """Create the tracking call handler."""
    from chat_core.calls import CallHandler

    return CallHandler(storage, tracker)


@pytest.fixture
def permissions(storage):
    """Create a permission evaluator over the storage's groups."""
    from chat_core.permissions import PermissionEvaluator

    return PermissionEvaluator(storage)


@pytest.fixture
def engine(storage, permissions, publisher, uploader, call_handler, tracker):
    """Create DeliveryEngine wired to in-memory collaborators."""
    from chat_core.delivery import DeliveryEngine

    return DeliveryEngine(
        messages=storage,
        rooms=storage,
        users=storage,
        permissions=permissions,
        publisher=publisher,
        uploader=uploader,
        call_handler=call_handler,
        tracker=tracker,
    )


@pytest.fixture
def query(storage):
    """Create the room history query."""
    from chat_core.delivery import MessageQuery

    return MessageQuery(messages=storage, groups=storage)


@pytest_asyncio.fixture
async def chat(storage):
    """
    Seed users alice, bob, carol, dave.

    Direct rooms: alice<->bob ("room-ab"), alice<->carol ("room-ac").
    Group "group-1" owned by alice with members alice, bob, carol; each member
    has a GROUP room row, and dave has a stale row left over from before he
    was removed.
    """
    from chat_core.models import Group, Room, RoomType, User

    for user_id, name in [
        ("alice", "Alice"),
        ("bob", "Bob"),
        ("carol", "Carol"),
        ("dave", "Dave"),
    ]:
        await storage.save_user(User(id=user_id, name=name, avatar=f"{user_id}.png"))

    for a, b, room_id in [("alice", "bob", "room-ab"), ("alice", "carol", "room-ac")]:
        await storage.save_room(
            Room(id=f"{room_id}-{a}", room_id=room_id, sender_id=a, receiver_id=b)
        )
        await storage.save_room(
            Room(id=f"{room_id}-{b}", room_id=room_id, sender_id=b, receiver_id=a)
        )

    await storage.save_group(
        Group(
            id="group-1",
            name="Team",
            owner="alice",
            members=["alice", "bob", "carol"],
            admins=["bob"],
        )
    )
    for member in ["alice", "bob", "carol", "dave"]:
        await storage.save_room(
            Room(
                id=f"group-1-{member}",
                room_id="group-1",
                sender_id=member,
                receiver_id="group-1",
                room_type=RoomType.GROUP,
            )
        )

    return storage
