"""Upload service — single files, folder records and folder members."""

import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import BinaryIO

from fastapi.concurrency import run_in_threadpool

from auth import Authorizer
from config import MAX_BATCH_SIZE
from exceptions import (
    DuplicateTitleError,
    FolderSetupError,
    RecordNotFoundError,
    ValidationError,
)
from logging_config import get_logger
from api.download.services import download_service
from api.files.dto.file import FileAccess, FileResponse
from api.files.repositories import files_repository
from storage import ObjectStorage, StorageEntry, get_storage
from transfer import BatchResult, TransferProgress, run_batches

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class FolderMember:
    relative_path: str
    data: BinaryIO | bytes
    content_type: str | None = None


def validate_fields(title: str | None, secret_code: str | None) -> str:
    """Return the cleaned title; raise ValidationError for missing fields."""
    title = (title or "").strip()
    if not title:
        raise ValidationError("A title is required")
    if not secret_code:
        raise ValidationError("A secret code is required")
    return title


def ensure_title_available(title: str) -> None:
    if files_repository.title_exists(title):
        raise DuplicateTitleError(
            "A file with this title already exists. Please use a different title."
        )


def sanitize_relpath(rel_path: str) -> str:
    """Normalize a member path, dropping empty, '.' and '..' segments."""
    rel_path = (rel_path or "").replace("\\", "/")
    parts = [p for p in rel_path.split("/") if p and p not in (".", "..")]
    if not parts:
        raise ValidationError(f"Invalid file path: {rel_path!r}")
    return "/".join(parts)


def _file_key(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix
    return f"files/{uuid.uuid4().hex}{suffix}"


def upload_file(
    title: str,
    secret_code: str,
    filename: str,
    content_type: str | None,
    data: BinaryIO | bytes,
    storage: ObjectStorage | None = None,
) -> FileResponse:
    """Store one file and create its record."""
    title = validate_fields(title, secret_code)
    filename = PurePosixPath((filename or "").replace("\\", "/")).name
    if filename in ("", ".."):
        raise ValidationError("Please select a file")
    ensure_title_available(title)

    storage = storage or get_storage()
    key = _file_key(filename)
    entry = storage.put(key, data, content_type)

    try:
        record = files_repository.create(
            title=title,
            filename=filename,
            file_path=key,
            secret_code=secret_code,
            content_type=content_type or entry.content_type or DEFAULT_CONTENT_TYPE,
            size=entry.size,
        )
    except Exception:
        # The title was taken between the check and the insert, or the store failed.
        storage.remove([key])
        raise

    logger.info("Uploaded file %s as record %s (%d bytes)", filename, record.id, entry.size)
    return record


def create_folder(
    title: str,
    secret_code: str,
    file_count: int,
    size: int,
    name: str | None = None,
) -> FileResponse:
    """Create the single record that represents an uploaded directory tree."""
    title = validate_fields(title, secret_code)
    if file_count < 1:
        raise ValidationError("The selected folder contains no files")
    ensure_title_available(title)

    folder_id = uuid.uuid4().hex
    try:
        record = files_repository.create(
            title=title,
            filename=name or title,
            file_path=f"folders/{folder_id}",
            secret_code=secret_code,
            content_type="application/x-directory",
            size=size,
            is_folder=True,
            file_count=file_count,
            file_id=folder_id,
        )
    except DuplicateTitleError:
        raise
    except Exception as e:
        logger.error("Could not create folder record %r: %s", title, e, exc_info=True)
        raise FolderSetupError("Could not create the folder, nothing was uploaded") from e

    logger.info("Created folder record %s (%d files, %d bytes)", record.id, file_count, size)
    return record


def _member_key(folder_path: str, relative_path: str) -> str:
    return f"{folder_path}/{sanitize_relpath(relative_path)}"


def authorize_folder(folder_id: str, code: str | None, authorizer: Authorizer | None = None) -> FileAccess:
    record = download_service.authorize(folder_id, code, authorizer)
    if not record.is_folder:
        raise RecordNotFoundError("Folder not found")
    return record


def put_folder_member(
    folder_id: str,
    code: str | None,
    relative_path: str,
    data: BinaryIO | bytes,
    content_type: str | None = None,
    authorizer: Authorizer | None = None,
    storage: ObjectStorage | None = None,
) -> StorageEntry:
    """Write one member object under the folder prefix. Creates no record."""
    record = authorize_folder(folder_id, code, authorizer)
    storage = storage or get_storage()
    return storage.put(_member_key(record.file_path, relative_path), data, content_type)


async def upload_folder(
    title: str,
    secret_code: str,
    members: list[FolderMember],
    name: str | None = None,
    batch_size: int = MAX_BATCH_SIZE,
    storage: ObjectStorage | None = None,
    progress: TransferProgress | None = None,
) -> tuple[FileResponse, BatchResult]:
    """Create the folder record, then write its members batch by batch."""
    storage = storage or get_storage()
    size = sum(_member_size(m) for m in members)
    record = await run_in_threadpool(
        create_folder, title, secret_code, len(members), size, name
    )
    folder = files_repository.get_access_by_id(record.id)
    if folder is None:
        raise FolderSetupError("Folder record vanished after creation")

    async def put_member(member: FolderMember) -> StorageEntry:
        key = _member_key(folder.file_path, member.relative_path)
        return await run_in_threadpool(storage.put, key, member.data, member.content_type)

    result = await run_batches(
        members,
        put_member,
        batch_size,
        progress=progress,
        label=f"folder upload {record.id}",
    )
    if progress is not None:
        progress.reset()
    return record, result


def _member_size(member: FolderMember) -> int:
    if isinstance(member.data, (bytes, bytearray)):
        return len(member.data)
    position = member.data.tell()
    member.data.seek(0, 2)
    size = member.data.tell()
    member.data.seek(position)
    return size

