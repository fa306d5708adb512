"""SQLite document store for messages, room projections and directories."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    Group,
    GroupStatus,
    Message,
    MessagePage,
    MessageStatus,
    MessageType,
    Room,
    RoomType,
    SendMessagePermission,
    TraceEvent,
    User,
    content_from_dict,
    content_to_dict,
)


class IMessageStore(Protocol):
    """Append-mostly message records, keyed by id."""

    async def create_message(self, message: Message) -> Message:
        """Insert a new message. Generates an id if missing."""
        ...

    async def get_message(self, message_id: str) -> Message | None:
        """Get a message by id."""
        ...

    async def save_message(self, message: Message) -> Message:
        """Insert or replace a message."""
        ...

    async def get_messages_by_room(
        self, room_id: str, page: int, size: int
    ) -> MessagePage:
        """Get one page of a room's messages, newest first."""
        ...

    async def get_messages_by_room_and_status(
        self, room_id: str, status: MessageStatus
    ) -> list[Message]:
        """Get all messages of a room in the given status."""
        ...

    async def get_most_recent_message(self) -> Message | None:
        """Get the most recently sent message across all rooms."""
        ...


class IRoomStore(Protocol):
    """Per-viewer room projections."""

    async def get_rooms_by_room_id(self, room_id: str) -> list[Room]:
        """Get every projection sharing room_id."""
        ...

    async def get_room_by_participants(
        self, sender_id: str, receiver_id: str
    ) -> Room | None:
        """Get the projection owned by sender_id facing receiver_id."""
        ...

    async def save_room(self, room: Room) -> Room:
        """Insert or replace a projection."""
        ...


class IGroupDirectory(Protocol):
    """Read access to groups."""

    async def get_group(self, group_id: str) -> Group | None:
        """Get a group by id."""
        ...


class IUserDirectory(Protocol):
    """Read access to users."""

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by id."""
        ...


class IStorage(IMessageStore, IRoomStore, IGroupDirectory, IUserDirectory, Protocol):
    """Everything the application persists (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def save_group(self, group: Group) -> None:
        """Save a group."""
        ...

    async def save_user(self, user: User) -> None:
        """Save a user."""
        ...

    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    async def clear(self) -> None:
        """Clear all data."""
        ...


def _to_db(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # Fixed-width format keeps lexical order equal to time order.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


_MESSAGE_COLUMNS = """
    id, sender_id, receiver_id, room_id, message_type, content,
    message_status, send_date, seen_date, hidden_sender_side,
    sender_name, sender_avatar
"""

_ROOM_COLUMNS = """
    id, room_id, sender_id, receiver_id, room_type, latest_message,
    message_status, unread_count, time, is_sender, avatar_receiver
"""


def _row_to_message(row) -> Message:
    return Message(
        id=row[0],
        sender_id=row[1],
        receiver_id=row[2],
        room_id=row[3],
        message_type=MessageType(row[4]),
        content=content_from_dict(json.loads(row[5])),
        message_status=MessageStatus(row[6]),
        send_date=_from_db(row[7]),
        seen_date=_from_db(row[8]),
        hidden_sender_side=bool(row[9]),
        sender_name=row[10],
        sender_avatar=row[11],
    )


def _row_to_room(row) -> Room:
    return Room(
        id=row[0],
        room_id=row[1],
        sender_id=row[2],
        receiver_id=row[3],
        room_type=RoomType(row[4]),
        latest_message=row[5],
        message_status=MessageStatus(row[6]) if row[6] else None,
        unread_count=row[7],
        time=_from_db(row[8]),
        is_sender=bool(row[9]),
        avatar_receiver=row[10],
    )


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Messages
    async def _write_message(self, message: Message, verb: str) -> Message:
        conn = self._require_conn()

        if not message.id:
            message.id = str(uuid.uuid4())

        await conn.execute(
            f"""
            {verb} INTO messages ({_MESSAGE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.sender_id,
                message.receiver_id,
                message.room_id,
                message.message_type.value,
                json.dumps(content_to_dict(message.content)),
                message.message_status.value,
                _to_db(message.send_date),
                _to_db(message.seen_date),
                int(message.hidden_sender_side),
                message.sender_name,
                message.sender_avatar,
            ),
        )
        await conn.commit()
        return message

    async def create_message(self, message: Message) -> Message:
        """Insert a new message. Generates an id if missing."""
        return await self._write_message(message, "INSERT")

    async def save_message(self, message: Message) -> Message:
        """Insert or replace a message."""
        return await self._write_message(message, "INSERT OR REPLACE")

    async def get_message(self, message_id: str) -> Message | None:
        """Get a message by id."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?",
            (message_id,),
        )
        row = await cursor.fetchone()
        return _row_to_message(row) if row else None

    async def get_messages_by_room(
        self, room_id: str, page: int, size: int
    ) -> MessagePage:
        """Get one page (zero-based) of a room's messages, newest first."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "SELECT COUNT(*) FROM messages WHERE room_id = ?", (room_id,)
        )
        (total,) = await cursor.fetchone()

        cursor = await conn.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM messages
            WHERE room_id = ?
            ORDER BY send_date DESC
            LIMIT ? OFFSET ?
            """,
            (room_id, size, page * size),
        )
        rows = await cursor.fetchall()

        return MessagePage(
            messages=[_row_to_message(row) for row in rows],
            total_page=(total + size - 1) // size if size > 0 else 0,
        )

    async def get_messages_by_room_and_status(
        self, room_id: str, status: MessageStatus
    ) -> list[Message]:
        """Get all messages of a room in the given status."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM messages
            WHERE room_id = ? AND message_status = ?
            ORDER BY send_date ASC
            """,
            (room_id, status.value),
        )
        rows = await cursor.fetchall()
        return [_row_to_message(row) for row in rows]

    async def get_most_recent_message(self) -> Message | None:
        """Get the most recently sent message across all rooms."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS}
            FROM messages
            WHERE send_date IS NOT NULL
            ORDER BY send_date DESC
            LIMIT 1
            """
        )
        row = await cursor.fetchone()
        return _row_to_message(row) if row else None

    # Rooms
    async def get_rooms_by_room_id(self, room_id: str) -> list[Room]:
        """Get every projection sharing room_id."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"SELECT {_ROOM_COLUMNS} FROM rooms WHERE room_id = ? ORDER BY rowid",
            (room_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_room(row) for row in rows]

    async def get_room_by_participants(
        self, sender_id: str, receiver_id: str
    ) -> Room | None:
        """Get the projection owned by sender_id facing receiver_id."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {_ROOM_COLUMNS}
            FROM rooms
            WHERE sender_id = ? AND receiver_id = ?
            """,
            (sender_id, receiver_id),
        )
        row = await cursor.fetchone()
        return _row_to_room(row) if row else None

    async def save_room(self, room: Room) -> Room:
        """Insert or replace a projection."""
        conn = self._require_conn()

        if not room.id:
            room.id = str(uuid.uuid4())

        # Upsert keeps the rowid, so get_rooms_by_room_id order is stable.
        await conn.execute(
            f"""
            INSERT INTO rooms ({_ROOM_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                room_id = excluded.room_id,
                sender_id = excluded.sender_id,
                receiver_id = excluded.receiver_id,
                room_type = excluded.room_type,
                latest_message = excluded.latest_message,
                message_status = excluded.message_status,
                unread_count = excluded.unread_count,
                time = excluded.time,
                is_sender = excluded.is_sender,
                avatar_receiver = excluded.avatar_receiver
            """,
            (
                room.id,
                room.room_id,
                room.sender_id,
                room.receiver_id,
                room.room_type.value,
                room.latest_message,
                room.message_status.value if room.message_status else None,
                room.unread_count,
                _to_db(room.time),
                int(room.is_sender),
                room.avatar_receiver,
            ),
        )
        await conn.commit()
        return room

    # Groups
    async def save_group(self, group: Group) -> None:
        """Save a group."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO groups
            (id, name, owner, members, admins, group_status, send_message_permission)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                group.id,
                group.name,
                group.owner,
                json.dumps(group.members),
                json.dumps(group.admins),
                group.group_status.value,
                group.send_message_permission.value,
            ),
        )
        await conn.commit()

    async def get_group(self, group_id: str) -> Group | None:
        """Get a group by id."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, name, owner, members, admins, group_status, send_message_permission
            FROM groups
            WHERE id = ?
            """,
            (group_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return Group(
            id=row[0],
            name=row[1],
            owner=row[2],
            members=json.loads(row[3]),
            admins=json.loads(row[4]),
            group_status=GroupStatus(row[5]),
            send_message_permission=SendMessagePermission(row[6]),
        )

    # Users
    async def save_user(self, user: User) -> None:
        """Save a user."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO users (id, name, avatar)
            VALUES (?, ?, ?)
            """,
            (user.id, user.name, user.avatar),
        )
        await conn.commit()

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by id."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "SELECT id, name, avatar FROM users WHERE id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return User(id=row[0], name=row[1], avatar=row[2])

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, default=str),
                _to_db(event.timestamp),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters, newest first."""
        conn = self._require_conn()

        conditions = []
        params: list = []

        if after:
            conditions.append("timestamp > ?")
            params.append(_to_db(after))
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=_from_db(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        for table in ["messages", "rooms", "groups", "users", "trace_events"]:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
