"""Upload controller — single files, folder records and folder members."""

import tempfile

from fastapi import APIRouter, Depends, File, Form, Header, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from auth import Authorizer, get_authorizer
from api.files.dto.file import FileResponse
from api.upload.dto.upload import (
    FailedMember,
    FolderCreate,
    FolderUploadResponse,
    MemberUploadResponse,
)
from api.upload.services import upload_service
from storage import ObjectStorage, get_storage

router = APIRouter(prefix="/api", tags=["Upload"])

SPOOL_LIMIT = 8 * 1024 * 1024  # 8MB in memory, then disk


@router.post("/files", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    title: str = Form(""),
    secret_code: str = Form(""),
    storage: ObjectStorage = Depends(get_storage),
):
    """Upload a single file."""
    return await run_in_threadpool(
        upload_service.upload_file,
        title,
        secret_code,
        file.filename,
        file.content_type,
        file.file,
        storage,
    )


@router.post("/folders", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(data: FolderCreate):
    """Create the folder record. Members are PUT afterwards."""
    return await run_in_threadpool(
        upload_service.create_folder,
        data.title,
        data.secret_code,
        data.file_count,
        data.size,
        data.name,
    )


@router.put("/folders/{folder_id}/files/{relative_path:path}", response_model=MemberUploadResponse)
async def put_folder_member(
    request: Request,
    folder_id: str,
    relative_path: str,
    x_secret_code: str = Header(""),
    authorizer: Authorizer = Depends(get_authorizer),
    storage: ObjectStorage = Depends(get_storage),
):
    """Stream one member of a folder into storage."""
    # Reject before reading the body
    await run_in_threadpool(upload_service.authorize_folder, folder_id, x_secret_code, authorizer)
    path = upload_service.sanitize_relpath(relative_path)

    with tempfile.SpooledTemporaryFile(max_size=SPOOL_LIMIT) as tmp:
        async for chunk in request.stream():
            tmp.write(chunk)
        tmp.seek(0)

        entry = await run_in_threadpool(
            upload_service.put_folder_member,
            folder_id,
            x_secret_code,
            relative_path,
            tmp,
            request.headers.get("content-type"),
            authorizer,
            storage,
        )

    return MemberUploadResponse(
        folder_id=folder_id,
        path=path,
        size=entry.size,
    )


@router.post("/folders/upload", response_model=FolderUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_folder(
    files: list[UploadFile] = File(...),
    paths: list[str] = Form([]),
    title: str = Form(""),
    secret_code: str = Form(""),
    name: str | None = Form(None),
    storage: ObjectStorage = Depends(get_storage),
):
    """Upload a whole folder in one multipart request.

    ``paths`` carries each file's relative path in the same order as
    ``files``; when absent the uploaded filename is used.
    """
    members = [
        upload_service.FolderMember(
            relative_path=paths[i] if i < len(paths) else f.filename,
            data=f.file,
            content_type=f.content_type,
        )
        for i, f in enumerate(files)
    ]
    record, result = await upload_service.upload_folder(
        title, secret_code, members, name=name, storage=storage
    )
    return FolderUploadResponse(
        folder=record,
        uploaded=len(result.succeeded),
        failed=[FailedMember(path=m.relative_path, error=str(e)) for m, e in result.failed],
    )
