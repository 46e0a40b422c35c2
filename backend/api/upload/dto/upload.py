"""Upload Data Transfer Objects."""

from pydantic import BaseModel, Field

from api.files.dto.file import FileResponse


class FolderCreate(BaseModel):
    title: str
    secret_code: str
    file_count: int = Field(ge=0)
    size: int = Field(default=0, ge=0)
    name: str | None = None


class MemberUploadResponse(BaseModel):
    folder_id: str
    path: str
    size: int


class FailedMember(BaseModel):
    path: str
    error: str


class FolderUploadResponse(BaseModel):
    folder: FileResponse
    uploaded: int
    failed: list[FailedMember]
