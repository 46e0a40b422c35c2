"""Uploader — sends a selection to the library, folders in batches."""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from logging_config import get_logger
from transfer import BatchResult, TransferProgress, run_batches
from cli.config import MAX_BATCH_SIZE, SLOW_NOTICE_SECONDS
from cli.library_client import LibraryClient
from cli.selection import SelectedFile, Selection

logger = get_logger(__name__)


@dataclass
class UploadOutcome:
    record: dict
    result: Optional[BatchResult] = None

    @property
    def failed_paths(self) -> list[str]:
        if self.result is None:
            return []
        return [entry.relative_path for entry, _ in self.result.failed]


def _slow_notice() -> None:
    logger.warning("This is taking a while, the upload is still running...")


async def upload_selection(
    client: LibraryClient,
    selection: Selection,
    title: str,
    secret_code: str,
    batch_size: int = MAX_BATCH_SIZE,
    on_progress: Optional[Callable[[int], None]] = None,
    slow_notice_after: float = SLOW_NOTICE_SECONDS,
) -> UploadOutcome:
    """
    Upload a selection.

    A single file goes up in one request. A folder first gets its record;
    if that fails nothing is uploaded. Members are then PUT ``batch_size``
    at a time. Member failures are collected in the returned result.
    """
    loop = asyncio.get_running_loop()
    timer = loop.call_later(slow_notice_after, _slow_notice)
    try:
        if not selection.is_folder:
            entry = selection.entries[0]
            record = await client.upload_file(entry.path, title, secret_code, entry.content_type)
            if on_progress:
                on_progress(100)
            return UploadOutcome(record=record)

        record = await client.create_folder(
            title,
            secret_code,
            selection.file_count,
            selection.total_size,
            name=selection.root.name,
        )
        logger.info("Created folder %s, uploading %d files", record["id"], selection.file_count)

        async def put(entry: SelectedFile) -> dict:
            return await client.put_member(
                record["id"], secret_code, entry.relative_path, entry.path, entry.content_type
            )

        progress = TransferProgress(selection.file_count, on_progress)
        result = await run_batches(
            selection.entries,
            put,
            batch_size,
            progress=progress,
            label=f"upload {title}",
        )
        progress.reset()
        return UploadOutcome(record=record, result=result)
    finally:
        timer.cancel()
