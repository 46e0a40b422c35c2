"""Files service — listing and deletion."""

from auth import Authorizer
from config import REMOVE_BATCH_SIZE
from exceptions import RecordNotFoundError
from logging_config import get_logger
from api.download.services import archive_service, download_service
from api.files.dto.file import FileAccess, FileResponse
from api.files.repositories import files_repository
from storage import ObjectStorage, get_storage
from transfer import BatchResult, partition

logger = get_logger(__name__)


def list_files(search: str | None = None, limit: int | None = None) -> list[FileResponse]:
    return files_repository.search(search, limit)


def get_file(file_id: str) -> FileResponse:
    record = files_repository.get_by_id(file_id)
    if not record:
        raise RecordNotFoundError("File not found")
    return record


def _remove_in_batches(keys: list[str], storage: ObjectStorage, batch_size: int) -> BatchResult:
    """Remove keys batch by batch; a failed batch is logged and skipped."""
    result = BatchResult()
    for batch in partition(keys, batch_size):
        try:
            storage.remove(batch)
        except Exception as e:
            logger.error("Failed to remove %d objects starting at %s: %s", len(batch), batch[0], e)
            result.failed.extend((key, e) for key in batch)
        else:
            result.succeeded.extend(batch)
    return result


def _delete_folder_objects(record: FileAccess, storage: ObjectStorage, batch_size: int) -> BatchResult:
    entries = archive_service.list_folder(record, storage, page_size=batch_size)
    keys = [e.key for e in entries]
    logger.info("Deleting folder %s: %d objects", record.id, len(keys))
    return _remove_in_batches(keys, storage, batch_size)


def delete_file(
    file_id: str,
    code: str | None,
    authorizer: Authorizer | None = None,
    storage: ObjectStorage | None = None,
    batch_size: int = REMOVE_BATCH_SIZE,
) -> BatchResult:
    """Delete a record's storage objects, then the record.

    Storage removal is best effort: the record is deleted once every batch
    has been attempted, even if some of them failed.
    """
    record = download_service.authorize(file_id, code, authorizer)
    storage = storage or get_storage()

    if record.is_folder:
        result = _delete_folder_objects(record, storage, batch_size)
    else:
        result = _remove_in_batches([record.file_path], storage, batch_size)

    if result.failed:
        logger.warning(
            "Record %s: %d objects could not be removed and are now orphaned",
            file_id,
            len(result.failed),
        )

    files_repository.delete_by_id(file_id)
    logger.info("Deleted record %s", file_id)
    return result
