"""Storage module."""

from .storage import (
    IGroupDirectory,
    IMessageStore,
    IRoomStore,
    IStorage,
    IUserDirectory,
    Storage,
)

__all__ = [
    "IGroupDirectory",
    "IMessageStore",
    "IRoomStore",
    "IStorage",
    "IUserDirectory",
    "Storage",
]
