"""Archive service — reassembles a folder's objects into one ZIP."""

import tempfile
import zipfile
from typing import BinaryIO

from config import LIST_PAGE_SIZE
from exceptions import ArchiveError, EmptyFolderError
from logging_config import get_logger
from api.files.dto.file import FileAccess
from storage import ObjectStorage, StorageEntry, get_storage

logger = get_logger(__name__)

ARCHIVE_SPOOL_LIMIT = 16 * 1024 * 1024  # 16MB in memory, then disk
CHUNK_SIZE = 1024 * 1024


def list_folder(
    record: FileAccess,
    storage: ObjectStorage | None = None,
    page_size: int = LIST_PAGE_SIZE,
) -> list[StorageEntry]:
    """Page through every object under the folder prefix."""
    storage = storage or get_storage()
    entries: list[StorageEntry] = []
    offset = 0
    while True:
        page = storage.list(record.file_path, limit=page_size, offset=offset)
        entries.extend(page)
        if len(page) < page_size:
            break
        offset += page_size
    return entries


def build_archive(
    record: FileAccess,
    entries: list[StorageEntry],
    storage: ObjectStorage | None = None,
) -> BinaryIO:
    """Zip every entry under its path relative to the folder prefix.

    Returns the finished archive as an open file positioned at the start;
    the caller closes it. Nothing is returned for a failed build.
    """
    if not entries:
        raise EmptyFolderError("This folder is empty, there is nothing to download")

    storage = storage or get_storage()
    archive = tempfile.SpooledTemporaryFile(max_size=ARCHIVE_SPOOL_LIMIT)
    try:
        with zipfile.ZipFile(archive, "w", zipfile.ZIP_DEFLATED) as zf:
            for entry in entries:
                with storage.open(entry.key) as src, zf.open(entry.relative_to(record.file_path), "w") as dst:
                    while chunk := src.read(CHUNK_SIZE):
                        dst.write(chunk)
    except Exception as e:
        archive.close()
        logger.error("Archive for folder %s failed: %s", record.id, e, exc_info=True)
        raise ArchiveError("Could not create the archive, please try again later") from e

    logger.info("Built archive for folder %s: %d files", record.id, len(entries))
    archive.seek(0)
    return archive


def archive_name(record: FileAccess) -> str:
    return f"{record.title}.zip"
