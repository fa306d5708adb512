"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .calls import CallHandler
from .config import resolve_db_path
from .delivery import DeliveryEngine, IDeliveryEngine, IMessageQuery, MessageQuery
from .logging_config import get_logger
from .notifications import NotificationPublisher
from .permissions import PermissionEvaluator
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker
from .uploads import DiskUploader

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    @property
    def storage(self) -> IStorage: ...

    @property
    def engine(self) -> IDeliveryEngine: ...

    @property
    def query(self) -> IMessageQuery: ...

    @property
    def publisher(self) -> NotificationPublisher: ...


class Application:
    """Main application bootstrap."""

    def __init__(self, db_path: str | None = None, upload_dir: str | None = None):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._upload_dir = upload_dir or os.getenv("UPLOAD_DIR")

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._publisher: NotificationPublisher | None = None
        self._tracker: ITracker | None = None
        self._engine: DeliveryEngine | None = None
        self._query: MessageQuery | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Publisher (no dependencies)
        self._publisher = NotificationPublisher()

        # 3. Tracker (depends on Publisher + Storage)
        tracker = Tracker(self._publisher, self._storage)
        await tracker.start()
        self._tracker = tracker

        # 4. Collaborators of the engine
        permissions = PermissionEvaluator(self._storage)
        uploader = DiskUploader(self._storage, self._upload_dir)
        call_handler = CallHandler(self._storage, self._tracker)

        # 5. DeliveryEngine and query side
        self._engine = DeliveryEngine(
            messages=self._storage,
            rooms=self._storage,
            users=self._storage,
            permissions=permissions,
            publisher=self._publisher,
            uploader=uploader,
            call_handler=call_handler,
            tracker=self._tracker,
        )
        self._query = MessageQuery(messages=self._storage, groups=self._storage)
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        self._engine = None
        self._query = None
        # Tracker handlers still write to storage.
        if self._publisher:
            await self._publisher.drain()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def engine(self) -> IDeliveryEngine:
        """Get delivery engine instance."""
        if not self._engine:
            raise RuntimeError("Application not started")
        return self._engine

    @property
    def query(self) -> IMessageQuery:
        """Get message query instance."""
        if not self._query:
            raise RuntimeError("Application not started")
        return self._query

    @property
    def publisher(self) -> NotificationPublisher:
        """Get notification publisher instance."""
        if not self._publisher:
            raise RuntimeError("Application not started")
        return self._publisher
