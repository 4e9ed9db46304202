"""
File Service

Stores validated uploads on local disk, one directory per user. Disk
reads and writes run in a worker thread.
"""
import asyncio
import logging
import mimetypes
import time
from pathlib import Path
from typing import Optional, Tuple
from uuid import UUID

from ..security.files import ALLOWED_TYPES, sanitize_filename, validate_upload

logger = logging.getLogger("studio.services.files")


class FileService:
    def __init__(self, upload_dir: str):
        self.upload_dir = Path(upload_dir)

    def _user_dir(self, user_id: UUID) -> Path:
        return self.upload_dir / str(user_id)

    def supported_types(self) -> list:
        return [file_type.to_dict() for file_type in ALLOWED_TYPES.values()]

    async def save(self, user_id: UUID, filename: str, content_type: str, data: bytes) -> dict:
        """
        Validate and store an upload.

        Raises:
            UploadRejected: Validation failed
        """
        file_type = validate_upload(filename, content_type, data)
        file_id = f"{int(time.time() * 1000)}-{sanitize_filename(filename)}"

        await asyncio.to_thread(self._write, self._user_dir(user_id), file_id, data)
        logger.info(f"Stored upload {file_id} ({len(data)} bytes) for user {user_id}")

        return {
            "id": file_id,
            "name": filename,
            "size": len(data),
            "mime_type": file_type.mime_type,
            "category": file_type.category,
            "url": f"/api/v1/advisor/files/{file_id}",
        }

    async def load(self, user_id: UUID, file_id: str) -> Optional[Tuple[bytes, str]]:
        """File bytes and MIME type, or None when the caller has no such file"""
        safe_id = sanitize_filename(file_id)
        if safe_id != file_id:
            return None
        data = await asyncio.to_thread(self._read, self._user_dir(user_id) / safe_id)
        if data is None:
            return None
        mime_type = mimetypes.guess_type(safe_id)[0] or "application/octet-stream"
        return data, mime_type

    @staticmethod
    def _write(user_dir: Path, file_id: str, data: bytes) -> None:
        user_dir.mkdir(parents=True, exist_ok=True)
        (user_dir / file_id).write_bytes(data)

    @staticmethod
    def _read(path: Path) -> Optional[bytes]:
        if not path.is_file():
            return None
        return path.read_bytes()
