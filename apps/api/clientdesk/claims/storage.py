from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from clientdesk.core.config import get_settings
from clientdesk.core.errors import BadRequestError
from clientdesk.metrics import observe_attachment_cleanup_failure


logger = logging.getLogger("clientdesk.storage")

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
        "text/csv",
    }
)


@dataclass(slots=True)
class StoredFile:
    filename: str
    original_name: str
    mime_type: str
    size: int
    path: str


def upload_root() -> Path:
    return Path(get_settings().upload_path).resolve()


def validate_upload(content: bytes, mime_type: str | None) -> str:
    if not mime_type or mime_type not in ALLOWED_MIME_TYPES:
        raise BadRequestError(f"File type not allowed: {mime_type or 'unknown'}")
    if not content:
        raise BadRequestError("No file uploaded")
    max_size = get_settings().upload_max_size
    if len(content) > max_size:
        raise BadRequestError(f"File too large. Maximum size is {max_size // (1024 * 1024)}MB")
    return mime_type


def store_file(content: bytes, original_name: str | None, mime_type: str | None, now: datetime | None = None) -> StoredFile:
    """Validate and write ``content`` under ``<root>/YYYY/MM/<uuid><ext>``."""
    checked_type = validate_upload(content, mime_type)
    moment = now or datetime.now(timezone.utc)
    directory = upload_root() / f"{moment.year:04d}" / f"{moment.month:02d}"
    directory.mkdir(parents=True, exist_ok=True)

    safe_name = Path(original_name or "file").name or "file"
    filename = f"{uuid.uuid4()}{Path(safe_name).suffix.lower()}"
    file_path = directory / filename
    file_path.write_bytes(content)
    logger.info("storage.file_stored", extra={"file_path": str(file_path)})
    return StoredFile(
        filename=filename,
        original_name=safe_name,
        mime_type=checked_type,
        size=len(content),
        path=str(file_path),
    )


def delete_file(path: str) -> bool:
    """Remove a stored file. Failures are logged and reported, never raised."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        logger.warning("storage.file_missing", extra={"file_path": path})
        return False
    except OSError as exc:
        observe_attachment_cleanup_failure()
        logger.error("storage.delete_failed", extra={"file_path": path, "error": str(exc)})
        return False
    return True


def file_exists(path: str) -> bool:
    return Path(path).is_file()
