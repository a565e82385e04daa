# storage/blobs.py: object storage on the local filesystem.
# upload() returns a file:// URL; read() accepts only URLs under the store root.

import logging
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

from errors import PersistenceError

logger = logging.getLogger(__name__)


class LocalBlobStore:
    def __init__(self, root):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root != target and self.root not in target.parents:
            raise PersistenceError(f"Path {path!r} is outside the object store.")
        return target

    def upload(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("upload %s failed: %s", path, exc)
            raise PersistenceError("Could not upload file.") from exc
        logger.info("Stored %d bytes at %s", len(data), target)
        return target.as_uri()

    def read(self, url: str) -> bytes:
        parsed = urlparse(url)
        if parsed.scheme != "file":
            raise PersistenceError(f"Unsupported object URL {url!r}.")
        target = self._resolve(url2pathname(parsed.path))
        try:
            return target.read_bytes()
        except OSError as exc:
            logger.error("read %s failed: %s", url, exc)
            raise PersistenceError("Could not read stored file.") from exc
