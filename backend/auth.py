"""Access control — secret codes with a single override code."""

import secrets
from functools import lru_cache

from config import LIBRARY_OVERRIDE_CODE
from api.files.dto.file import FileAccess


class Authorizer:
    """Decides whether a credential unlocks a record."""

    def can_access(self, record: FileAccess, credential: str | None) -> bool:
        raise NotImplementedError


class SecretCodeAuthorizer(Authorizer):
    """Accepts the record's own secret code or the override code."""

    def __init__(self, override_code: str | None = None):
        self.override_code = override_code or None

    def can_access(self, record: FileAccess, credential: str | None) -> bool:
        if not credential:
            return False
        if secrets.compare_digest(credential.encode(), record.secret_code.encode()):
            return True
        if self.override_code:
            return secrets.compare_digest(credential.encode(), self.override_code.encode())
        return False


@lru_cache
def get_authorizer() -> Authorizer:
    return SecretCodeAuthorizer(LIBRARY_OVERRIDE_CODE)
