"""Download Data Transfer Objects."""

from pydantic import BaseModel


class AccessResponse(BaseModel):
    url: str
    filename: str
    content_type: str
    expires_in: int


class FolderEntryResponse(BaseModel):
    path: str
    size: int
    content_type: str


class FolderListingResponse(BaseModel):
    folder_id: str
    title: str
    file_count: int
    entries: list[FolderEntryResponse]
