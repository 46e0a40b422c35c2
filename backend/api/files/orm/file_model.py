"""Shared file ORM model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class FileModel(Base):
    __tablename__ = "shared_files"

    id = Column(String(32), primary_key=True, default=_new_id)
    title = Column(String, unique=True, nullable=False, index=True)
    filename = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    secret_code = Column(String, nullable=False)
    content_type = Column(String, nullable=False, default="application/octet-stream")
    size = Column(Integer, default=0)
    is_folder = Column(Boolean, nullable=False, default=False)
    file_count = Column(Integer, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=func.now(), index=True)
