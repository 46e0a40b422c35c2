"""Download controller — signed links, file delivery and folder archives."""

from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse, StreamingResponse
from starlette.background import BackgroundTask

from auth import Authorizer, get_authorizer
from config import PUBLIC_BUCKET
from exceptions import EmptyFolderError, RecordNotFoundError
from api.download.dto.download import AccessResponse, FolderEntryResponse, FolderListingResponse
from api.download.services import archive_service, download_service
from storage import ObjectStorage, get_storage

router = APIRouter(tags=["Download"])

CHUNK_SIZE = 1024 * 1024  # 1MB


def _content_disposition(filename: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(filename)}"


def _stream_object(storage: ObjectStorage, key: str, filename: str, content_type: str) -> StreamingResponse:
    entry = storage.stat(key)
    if entry is None:
        raise HTTPException(status_code=404, detail="File not found")

    def iterfile():
        with storage.open(key) as f:
            while chunk := f.read(CHUNK_SIZE):
                yield chunk

    return StreamingResponse(
        iterfile(),
        media_type=content_type or entry.content_type,
        headers={
            "Content-Disposition": _content_disposition(filename),
            "Content-Length": str(entry.size),
        },
    )


@router.get("/api/files/{file_id}/access", response_model=AccessResponse)
async def access_file(
    file_id: str,
    code: str = Query(""),
    authorizer: Authorizer = Depends(get_authorizer),
    storage: ObjectStorage = Depends(get_storage),
):
    """Verify the secret code and return a short-lived download link."""
    grant = download_service.grant_access(file_id, code, authorizer, storage)
    return AccessResponse(**grant.__dict__)


@router.get("/api/files/{file_id}/download")
async def download_file(
    file_id: str,
    code: str = Query(""),
    user_agent: str | None = Header(None),
    authorizer: Authorizer = Depends(get_authorizer),
    storage: ObjectStorage = Depends(get_storage),
):
    """Deliver a single file, choosing the strategy from the client platform."""
    record = download_service.authorize(file_id, code, authorizer)
    grant = download_service.issue_grant(record, storage)
    if download_service.delivery_strategy(user_agent) == download_service.STRATEGY_OPEN:
        return RedirectResponse(url=grant.url, status_code=303)

    return _stream_object(storage, record.file_path, grant.filename, grant.content_type)


@router.get("/api/folders/{folder_id}/entries", response_model=FolderListingResponse)
async def list_folder_entries(
    folder_id: str,
    code: str = Query(""),
    authorizer: Authorizer = Depends(get_authorizer),
    storage: ObjectStorage = Depends(get_storage),
):
    record = download_service.authorize(folder_id, code, authorizer)
    if not record.is_folder:
        raise RecordNotFoundError("Folder not found")

    entries = await run_in_threadpool(archive_service.list_folder, record, storage)
    return FolderListingResponse(
        folder_id=record.id,
        title=record.title,
        file_count=len(entries),
        entries=[
            FolderEntryResponse(
                path=e.relative_to(record.file_path),
                size=e.size,
                content_type=e.content_type,
            )
            for e in entries
        ],
    )


@router.get("/download-folder")
async def download_folder(
    folder_id: str = Query("", alias="folderId"),
    code: str = Query(""),
    authorizer: Authorizer = Depends(get_authorizer),
    storage: ObjectStorage = Depends(get_storage),
):
    """Zip a folder's objects server-side and return the archive."""
    record = download_service.authorize(folder_id, code, authorizer)
    if not record.is_folder:
        raise RecordNotFoundError("Folder not found")

    entries = await run_in_threadpool(archive_service.list_folder, record, storage)
    if not entries:
        raise EmptyFolderError("This folder is empty, there is nothing to download")

    archive = await run_in_threadpool(archive_service.build_archive, record, entries, storage)
    size = archive.seek(0, 2)
    archive.seek(0)

    def iterarchive():
        with archive:
            while chunk := archive.read(CHUNK_SIZE):
                yield chunk

    return StreamingResponse(
        iterarchive(),
        media_type="application/zip",
        headers={
            "Content-Disposition": _content_disposition(archive_service.archive_name(record)),
            "Content-Length": str(size),
        },
        background=BackgroundTask(archive.close),
    )


@router.get("/storage/public/{key:path}")
async def public_object(key: str, storage: ObjectStorage = Depends(get_storage)):
    if not PUBLIC_BUCKET:
        raise HTTPException(status_code=404, detail="Not found")
    try:
        entry = storage.stat(key)
    except ValueError:
        entry = None
    if entry is None:
        raise HTTPException(status_code=404, detail="Not found")
    return _stream_object(storage, key, key.rsplit("/", 1)[-1], entry.content_type)


@router.get("/storage/{key:path}")
async def signed_object(
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    download: str | None = Query(None),
    storage: ObjectStorage = Depends(get_storage),
):
    """Serve an object through a signed, time-limited link."""
    try:
        storage.verify_signature(key, expires, signature, download)
        entry = storage.stat(key)
    except ValueError:
        raise HTTPException(status_code=404, detail="Not found")
    if entry is None:
        raise HTTPException(status_code=404, detail="Not found")
    return _stream_object(storage, key, download or key.rsplit("/", 1)[-1], entry.content_type)
