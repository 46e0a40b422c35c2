"""Object storage — a key/value bucket with signed, time-limited retrieval URLs.

Objects live under ``<root>/objects/<key>``; their declared content type is
kept beside them in ``<root>/meta/<key>.json``. Keys use ``/`` separators and
may not escape the bucket.
"""

import hashlib
import hmac
import json
import mimetypes
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Callable
from urllib.parse import quote

from config import LIBRARY_SIGNING_KEY, LIST_PAGE_SIZE, REMOVE_BATCH_SIZE, STORAGE_DIR
from exceptions import InvalidSignatureError, LinkExpiredError
from logging_config import get_logger

logger = get_logger(__name__)

COPY_CHUNK = 1024 * 1024  # 1MB


@dataclass(frozen=True)
class StorageEntry:
    key: str
    size: int
    content_type: str
    updated_at: float

    def relative_to(self, prefix: str) -> str:
        return self.key[len(prefix.rstrip("/")) + 1:]


class ObjectStorage:
    """Operations the service needs from an object store."""

    def put(self, key: str, data: bytes | BinaryIO, content_type: str | None = None) -> StorageEntry:
        raise NotImplementedError

    def remove(self, keys: list[str]) -> int:
        raise NotImplementedError

    def list(self, prefix: str, limit: int = LIST_PAGE_SIZE, offset: int = 0) -> list[StorageEntry]:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def stat(self, key: str) -> StorageEntry | None:
        raise NotImplementedError

    def create_signed_url(self, key: str, ttl_seconds: int, download_name: str | None = None) -> str:
        raise NotImplementedError

    def verify_signature(
        self, key: str, expires: int, signature: str, download_name: str | None = None
    ) -> None:
        raise NotImplementedError

    def get_public_url(self, key: str) -> str:
        raise NotImplementedError


def normalize_key(key: str) -> str:
    """Return the canonical form of a key or raise ValueError."""
    if not key or key.startswith("/") or "\\" in key:
        raise ValueError(f"Invalid storage key: {key!r}")
    parts = PurePosixPath(key).parts
    if any(p in ("..", ".") for p in parts):
        raise ValueError(f"Invalid storage key: {key!r}")
    return "/".join(parts)


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed bucket."""

    def __init__(
        self,
        root: Path,
        signing_key: str,
        base_url: str = "/storage",
        clock: Callable[[], float] = time.time,
    ):
        self.root = Path(root)
        self.objects_dir = self.root / "objects"
        self.meta_dir = self.root / "meta"
        self.objects_dir.mkdir(parents=True, exist_ok=True)
        self.meta_dir.mkdir(parents=True, exist_ok=True)
        self._signing_key = signing_key.encode()
        self.base_url = base_url.rstrip("/")
        self.clock = clock

    # --- paths ---------------------------------------------------------------

    def _object_path(self, key: str) -> Path:
        path = (self.objects_dir / normalize_key(key)).resolve()
        path.relative_to(self.objects_dir.resolve())
        return path

    def _meta_path(self, key: str) -> Path:
        return self.meta_dir / f"{normalize_key(key)}.json"

    def _prune_empty_dirs(self, path: Path, stop: Path) -> None:
        parent = path.parent
        while parent != stop and parent.is_dir():
            try:
                parent.rmdir()
            except OSError:
                return
            parent = parent.parent

    # --- operations ----------------------------------------------------------

    def put(self, key: str, data: bytes | BinaryIO, content_type: str | None = None) -> StorageEntry:
        key = normalize_key(key)
        path = self._object_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        content_type = content_type or mimetypes.guess_type(key)[0] or "application/octet-stream"

        tmp = tempfile.NamedTemporaryFile(delete=False, dir=str(path.parent), prefix=".tmp")
        try:
            with tmp:
                if isinstance(data, (bytes, bytearray)):
                    tmp.write(data)
                else:
                    shutil.copyfileobj(data, tmp, COPY_CHUNK)
            os.replace(tmp.name, path)
        except Exception:
            Path(tmp.name).unlink(missing_ok=True)
            raise

        meta_path = self._meta_path(key)
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        meta_path.write_text(json.dumps({"content_type": content_type}))

        logger.debug("Stored object %s (%d bytes)", key, path.stat().st_size)
        return self.stat(key)

    def stat(self, key: str) -> StorageEntry | None:
        key = normalize_key(key)
        path = self._object_path(key)
        if not path.is_file():
            return None
        content_type = "application/octet-stream"
        meta_path = self._meta_path(key)
        if meta_path.exists():
            content_type = json.loads(meta_path.read_text()).get("content_type", content_type)
        st = path.stat()
        return StorageEntry(key=key, size=st.st_size, content_type=content_type, updated_at=st.st_mtime)

    def open(self, key: str) -> BinaryIO:
        path = self._object_path(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        return open(path, "rb")

    def remove(self, keys: list[str]) -> int:
        """Delete up to REMOVE_BATCH_SIZE keys. Missing keys are ignored."""
        if len(keys) > REMOVE_BATCH_SIZE:
            raise ValueError(f"Cannot remove more than {REMOVE_BATCH_SIZE} objects per call")

        removed = 0
        for key in keys:
            path = self._object_path(key)
            if path.is_file():
                path.unlink()
                self._prune_empty_dirs(path, self.objects_dir.resolve())
                removed += 1
            meta_path = self._meta_path(key)
            if meta_path.exists():
                meta_path.unlink()
                self._prune_empty_dirs(meta_path, self.meta_dir)
        return removed

    def list(self, prefix: str, limit: int = LIST_PAGE_SIZE, offset: int = 0) -> list[StorageEntry]:
        """Every object under ``prefix``, recursively, sorted by key."""
        prefix = normalize_key(prefix)
        base = self._object_path(prefix)
        if not base.is_dir():
            return []

        keys = sorted(
            f"{prefix}/{p.relative_to(base).as_posix()}"
            for p in base.rglob("*")
            if p.is_file() and not p.name.startswith(".tmp")
        )
        return [self.stat(k) for k in keys[offset:offset + limit]]

    # --- urls ----------------------------------------------------------------

    def _sign(self, key: str, expires: int, download_name: str | None = None) -> str:
        payload = f"{key}:{expires}:{download_name or ''}".encode()
        return hmac.new(self._signing_key, payload, hashlib.sha256).hexdigest()

    def create_signed_url(self, key: str, ttl_seconds: int, download_name: str | None = None) -> str:
        key = normalize_key(key)
        if self.stat(key) is None:
            raise FileNotFoundError(key)
        expires = int(self.clock()) + ttl_seconds
        signature = self._sign(key, expires, download_name)
        url = f"{self.base_url}/{quote(key)}?expires={expires}&signature={signature}"
        if download_name:
            url += f"&download={quote(download_name)}"
        return url

    def verify_signature(
        self, key: str, expires: int, signature: str, download_name: str | None = None
    ) -> None:
        """Raise InvalidSignatureError or LinkExpiredError unless the URL is usable.

        ``download_name`` is part of the signed payload, so the saved filename
        cannot be changed without invalidating the link.
        """
        key = normalize_key(key)
        if not hmac.compare_digest(signature, self._sign(key, expires, download_name)):
            raise InvalidSignatureError("Invalid download link")
        if self.clock() > expires:
            raise LinkExpiredError("Download link has expired")

    def get_public_url(self, key: str) -> str:
        return f"{self.base_url}/public/{quote(normalize_key(key))}"


@lru_cache
def get_storage() -> ObjectStorage:
    return LocalObjectStorage(STORAGE_DIR, LIBRARY_SIGNING_KEY)
