"""Download service — access checks and signed retrieval links."""

import re
from dataclasses import dataclass

from auth import Authorizer, get_authorizer
from config import SIGNED_URL_TTL
from exceptions import AccessDeniedError, RecordNotFoundError
from logging_config import get_logger
from api.files.dto.file import FileAccess
from api.files.repositories import files_repository
from storage import ObjectStorage, get_storage

logger = get_logger(__name__)

# Clients on these platforms cannot save a fetched blob; they get the URL instead.
RESTRICTED_USER_AGENT = re.compile(r"iPad|iPhone|iPod")

STRATEGY_OPEN = "open"
STRATEGY_SAVE = "save"


@dataclass(frozen=True)
class AccessGrant:
    url: str
    filename: str
    content_type: str
    expires_in: int


def authorize(file_id: str, code: str | None, authorizer: Authorizer | None = None) -> FileAccess:
    """Return the record if ``code`` unlocks it."""
    record = files_repository.get_access_by_id(file_id)
    if not record:
        raise RecordNotFoundError("File not found")

    authorizer = authorizer or get_authorizer()
    if not authorizer.can_access(record, code):
        logger.info("Access denied for record %s", file_id)
        raise AccessDeniedError("Incorrect secret code")
    return record


def issue_grant(record: FileAccess, storage: ObjectStorage | None = None) -> AccessGrant:
    """Issue a short-lived signed URL for an already authorized single file."""
    if record.is_folder:
        raise RecordNotFoundError("Folders are downloaded as an archive")

    storage = storage or get_storage()
    try:
        url = storage.create_signed_url(record.file_path, SIGNED_URL_TTL, download_name=record.filename)
    except FileNotFoundError as e:
        logger.error("Record %s points at missing object %s", record.id, record.file_path)
        raise RecordNotFoundError("File content is missing") from e

    return AccessGrant(
        url=url,
        filename=record.filename,
        content_type=record.content_type,
        expires_in=SIGNED_URL_TTL,
    )


def grant_access(
    file_id: str,
    code: str | None,
    authorizer: Authorizer | None = None,
    storage: ObjectStorage | None = None,
) -> AccessGrant:
    return issue_grant(authorize(file_id, code, authorizer), storage)


def delivery_strategy(user_agent: str | None) -> str:
    """Pick how the bytes reach the user for a given client."""
    if user_agent and RESTRICTED_USER_AGENT.search(user_agent):
        return STRATEGY_OPEN
    return STRATEGY_SAVE
