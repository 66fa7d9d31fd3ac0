# ================================
# LOCAL FILE STORAGE (services/storage_service.py)
# ================================

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError
from io import BytesIO
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, Any
import mimetypes
import logging
import uuid

from app.config import settings
from app.core.exceptions import AppException

logger = logging.getLogger(__name__)

IMAGE_TYPES = ['image/jpeg', 'image/jpg', 'image/png', 'image/webp']
RECEIPT_TYPES = ['image/jpeg', 'image/jpg', 'image/png', 'application/pdf']

class LocalStorageService:
    """Stores uploads below UPLOAD_DIR; served by the app under /uploads"""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.UPLOAD_DIR)

    def public_url(self, relative_path: str) -> str:
        return f"/uploads/{relative_path}"

    def absolute_path(self, relative_path: str) -> Path:
        path = (self.base_dir / relative_path).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise AppException("Invalid file path", 400, "INVALID_PATH")
        return path

    async def _read_validated(
        self,
        file: UploadFile,
        allowed_types: list,
        max_size_mb: Optional[int]
    ) -> bytes:
        if file.content_type not in allowed_types:
            raise AppException(
                status_code=400,
                detail=f"File type not allowed. Allowed types: {', '.join(allowed_types)}",
                error_code="INVALID_FILE_TYPE"
            )

        content = await file.read()

        max_size_mb = max_size_mb or settings.MAX_UPLOAD_SIZE_MB
        if len(content) > max_size_mb * 1024 * 1024:
            raise AppException(
                status_code=400,
                detail=f"File size exceeds maximum allowed size of {max_size_mb}MB",
                error_code="FILE_TOO_LARGE"
            )
        if not content:
            raise AppException("Uploaded file is empty", 400, "EMPTY_FILE")

        return content

    def _write(self, folder: str, content: bytes, content_type: str) -> Dict[str, str]:
        file_extension = mimetypes.guess_extension(content_type) or '.bin'
        if file_extension == '.jpe':
            file_extension = '.jpg'
        unique_filename = f"{uuid.uuid4()}{file_extension}"
        relative_path = f"{folder}/{datetime.now(timezone.utc).strftime('%Y/%m')}/{unique_filename}"

        target = self.base_dir / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

        return {"filename": unique_filename, "file_path": relative_path}

    async def save_image(
        self,
        file: UploadFile,
        folder: str,
        max_size_mb: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Validate and store an uploaded photo

        Args:
            file: FastAPI UploadFile object
            folder: Sub folder, e.g. 'customers/<id>'
            max_size_mb: Maximum file size in MB

        Returns:
            Dict with stored filename, relative path, size, type and dimensions
        """
        content = await self._read_validated(file, IMAGE_TYPES, max_size_mb)

        try:
            img = Image.open(BytesIO(content))
            img.verify()
            width, height = Image.open(BytesIO(content)).size
        except (UnidentifiedImageError, OSError, SyntaxError):
            raise AppException("Uploaded file is not a valid image", 400, "INVALID_IMAGE")

        stored = self._write(folder, content, file.content_type)
        logger.info(f"Stored image {stored['file_path']} ({len(content)} bytes)")

        return {
            **stored,
            "original_name": file.filename or stored["filename"],
            "mime_type": file.content_type,
            "file_size": len(content),
            "width": width,
            "height": height,
        }

    async def save_receipt(self, file: UploadFile) -> Dict[str, Any]:
        """Store a receipt image or PDF, returns stored info plus the raw bytes"""
        content = await self._read_validated(file, RECEIPT_TYPES, None)
        stored = self._write("receipts", content, file.content_type)
        logger.info(f"Stored receipt {stored['file_path']} ({len(content)} bytes)")

        return {
            **stored,
            "original_name": file.filename or stored["filename"],
            "mime_type": file.content_type,
            "file_size": len(content),
            "content": content,
        }

    def delete_file(self, relative_path: Optional[str]) -> bool:
        """Remove a stored file; missing files are logged, not raised"""
        if not relative_path:
            return False
        try:
            path = self.absolute_path(relative_path)
            path.unlink()
            logger.info(f"Deleted file: {relative_path}")
            return True
        except FileNotFoundError:
            logger.warning(f"File already removed: {relative_path}")
            return False

def get_storage_service() -> LocalStorageService:
    return LocalStorageService()
