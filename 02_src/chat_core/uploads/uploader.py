"""Upload collaborator: stores file bytes and finalizes the message."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from werkzeug.utils import secure_filename

from ..config import resolve_upload_dir
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import FileUpload, Message, MessageStatus, transition
from ..storage import IMessageStore

logger = get_logger(__name__)


def stored_filename(name: str) -> str:
    """
    Filesystem-safe form of a client file name.

    Raises:
        ValidationError: if nothing usable is left of the name.
    """
    safe = secure_filename(name)
    if not safe:
        raise ValidationError(f"invalid file name: {name!r}")
    return safe


class IUploader(Protocol):
    """Blob storage for message attachments."""

    async def upload_files(self, uploads: list[FileUpload], message: Message) -> None:
        """Store uploads and move message out of SENDING."""
        ...


class DiskUploader:
    """Writes attachments under the upload directory, one folder per message."""

    def __init__(self, messages: IMessageStore, upload_dir: str | Path | None = None):
        self._messages = messages
        self._upload_dir = resolve_upload_dir(upload_dir)

    async def upload_files(self, uploads: list[FileUpload], message: Message) -> None:
        """Store uploads, then mark message SENT (or ERROR and re-raise)."""
        target_dir = self._upload_dir / message.id
        try:
            await asyncio.to_thread(target_dir.mkdir, parents=True, exist_ok=True)
            for upload in uploads:
                path = target_dir / stored_filename(upload.filename)
                await asyncio.to_thread(path.write_bytes, upload.data)
        except OSError as e:
            logger.error(
                "Upload failed: %s", e, extra={"message_id": message.id}, exc_info=True
            )
            transition(message, MessageStatus.ERROR)
            await self._messages.save_message(message)
            raise

        transition(message, MessageStatus.SENT)
        message.send_date = datetime.now(timezone.utc)
        await self._messages.save_message(message)
        logger.info(
            "Stored %s file(s)", len(uploads), extra={"message_id": message.id}
        )

    def path_for(self, message_id: str, filename: str) -> Path:
        """Location of a stored attachment."""
        return self._upload_dir / message_id / stored_filename(filename)
