import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from app.core.config import settings
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class BlobStorage:
    """Stores photo bytes under a key and hands out retrieval URLs."""

    async def put_bytes(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    def url_for(self, key: str) -> str:
        raise NotImplementedError

    async def delete_url(self, url: str) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalBlobStorage(BlobStorage):
    root: Path
    url_prefix: str

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        if ".." in safe_key.split("/"):
            raise StorageError(f"Invalid storage key: {key}")
        return self.root / safe_key

    def _key_from_url(self, url: str) -> str:
        prefix = self.url_prefix.rstrip("/") + "/"
        if not url.startswith(prefix):
            raise StorageError(f"URL is not managed by this storage: {url}")
        return url[len(prefix):]

    async def put_bytes(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Failed to write {key}: {e}")
            raise StorageError(f"Failed to store {key}: {e}") from e

    def url_for(self, key: str) -> str:
        return f"{self.url_prefix.rstrip('/')}/{key.lstrip('/')}"

    async def delete_url(self, url: str) -> None:
        path = self._path(self._key_from_url(url))
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise StorageError(f"No stored object for {url}") from e
        except OSError as e:
            raise StorageError(f"Failed to delete {url}: {e}") from e


@lru_cache()
def get_storage() -> BlobStorage:
    return LocalBlobStorage(root=Path(settings.UPLOAD_DIR), url_prefix=settings.UPLOAD_URL_PREFIX)
