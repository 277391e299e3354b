import logging
import uuid
from pathlib import Path
from typing import Optional

from app.core.config import settings
from app.core.exceptions import StorageError, ValidationError
from app.core.storage import BlobStorage

logger = logging.getLogger(__name__)

PHOTO_FOLDER = "customer-photos"
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}


def validate_photo(content: bytes, filename: str) -> None:
    file_ext = Path(filename or "").suffix.lower()
    if file_ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"File type not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    file_size_mb = len(content) / (1024 * 1024)
    if file_size_mb > settings.MAX_IMAGE_SIZE_MB:
        raise ValidationError(f"File too large. Maximum size: {settings.MAX_IMAGE_SIZE_MB}MB")


async def upload_customer_photo(
    storage: BlobStorage,
    content: bytes,
    filename: str,
    content_type: Optional[str] = None
) -> str:
    """Store a photo under a fresh unique key and return its URL.

    The key keeps the original file extension. Raises StorageError when the
    bytes could not be stored; no URL is returned in that case.
    """
    validate_photo(content, filename)

    unique_filename = f"{uuid.uuid4().hex}{Path(filename).suffix.lower()}"
    key = f"{PHOTO_FOLDER}/{unique_filename}"

    await storage.put_bytes(key, content, content_type=content_type)
    url = storage.url_for(key)
    logger.info(f"Uploaded customer photo {filename} as {key} ({len(content)} bytes)")
    return url


async def delete_customer_photo(storage: BlobStorage, url: str) -> None:
    """Best-effort removal of a stored photo. Failures are logged, never raised."""
    try:
        await storage.delete_url(url)
        logger.info(f"Deleted customer photo {url}")
    except StorageError as e:
        logger.warning(f"Error deleting photo {url}: {e}")
    except Exception as e:
        logger.warning(f"Unexpected error deleting photo {url}: {e}", exc_info=True)
