"""File Data Transfer Objects."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from pydantic import BaseModel, computed_field

from config import EXPIRY_DAYS


class FileResponse(BaseModel):
    id: str
    title: str
    filename: str
    content_type: str
    size: int
    is_folder: bool = False
    file_count: int | None = None
    is_verified: bool = False
    created_at: datetime

    @computed_field
    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(days=EXPIRY_DAYS)


@dataclass(frozen=True)
class FileAccess:
    """Internal view of a record carrying its secret; never serialized."""

    id: str
    title: str
    filename: str
    file_path: str
    secret_code: str
    content_type: str
    is_folder: bool
