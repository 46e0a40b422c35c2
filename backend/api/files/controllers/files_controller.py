"""Files controller — API routes for listing and deleting records."""

from fastapi import APIRouter, Depends, Header, Query, status
from fastapi.concurrency import run_in_threadpool

from auth import Authorizer, get_authorizer
from api.files.dto.file import FileResponse
from api.files.services import files_service
from storage import ObjectStorage, get_storage

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.get("", response_model=list[FileResponse])
async def list_files(
    search: str | None = Query(None),
    limit: int | None = Query(None, ge=1, le=1000),
):
    return files_service.list_files(search, limit)


@router.get("/{file_id}", response_model=FileResponse)
async def get_file(file_id: str):
    return files_service.get_file(file_id)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: str,
    x_secret_code: str = Header(""),
    authorizer: Authorizer = Depends(get_authorizer),
    storage: ObjectStorage = Depends(get_storage),
):
    await run_in_threadpool(files_service.delete_file, file_id, x_secret_code, authorizer, storage)
