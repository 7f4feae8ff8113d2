"""
Local image storage for complaint proof photos

Saves uploads under UPLOAD_DIR and hands back stable "/uploads/<name>"
references; the complaint only ever stores those references.
"""
import os
import uuid
from typing import List, Optional, Sequence, Tuple

from fastapi import UploadFile

from hostel_complaints.config import get_settings
from hostel_complaints.exceptions import ValidationError
from hostel_complaints.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
URL_PREFIX = "/uploads"


class LocalImageStorage:

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        max_files: Optional[int] = None,
        max_size: Optional[int] = None,
    ):
        self.upload_dir = upload_dir or settings.UPLOAD_DIR
        self.max_files = max_files or settings.MAX_UPLOAD_FILES
        self.max_size = max_size or settings.MAX_UPLOAD_SIZE

    def _check_extension(self, filename: str) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                f"File type '{ext or 'unknown'}' not allowed. "
                f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
            )
        return ext

    async def _read_checked(self, upload: UploadFile) -> Tuple[str, bytes]:
        ext = self._check_extension(upload.filename)
        content = await upload.read()
        if len(content) > self.max_size:
            raise ValidationError(
                f"File too large. Maximum size: {self.max_size // (1024 * 1024)}MB"
            )
        return ext, content

    def _write(self, filename: str, ext: str, content: bytes) -> str:
        os.makedirs(self.upload_dir, exist_ok=True)
        unique_name = f"{uuid.uuid4().hex}{ext}"
        with open(os.path.join(self.upload_dir, unique_name), "wb") as f:
            f.write(content)

        logger.info(f"Stored image '{filename}' as {unique_name} ({len(content)} bytes)")
        return f"{URL_PREFIX}/{unique_name}"

    async def save(self, upload: UploadFile) -> str:
        """Write one upload to disk; returns its reference"""
        ext, content = await self._read_checked(upload)
        return self._write(upload.filename, ext, content)

    async def save_all(self, uploads: Sequence[UploadFile]) -> List[str]:
        uploads = [u for u in uploads if u is not None and u.filename]
        if len(uploads) > self.max_files:
            raise ValidationError(f"At most {self.max_files} images may be attached")
        # Check every file before writing any of them
        checked = []
        for upload in uploads:
            ext, content = await self._read_checked(upload)
            checked.append((upload.filename, ext, content))

        references = []
        try:
            for filename, ext, content in checked:
                references.append(self._write(filename, ext, content))
        except OSError:
            for reference in references:
                self.delete(reference)
            raise
        return references

    def delete(self, reference: str) -> None:
        """Remove a stored image; unknown references are ignored"""
        name = os.path.basename(reference)
        path = os.path.realpath(os.path.join(self.upload_dir, name))
        if path.startswith(os.path.realpath(self.upload_dir)) and os.path.exists(path):
            os.remove(path)


def get_image_storage() -> LocalImageStorage:
    return LocalImageStorage()
