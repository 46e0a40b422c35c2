"""Application configuration."""

import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("DATA_DIR", str(Path(__file__).parent.parent / "data")))
DATA_DIR.mkdir(parents=True, exist_ok=True)

STORAGE_DIR = Path(os.environ.get("STORAGE_DIR", str(DATA_DIR / "bucket")))
STORAGE_DIR.mkdir(parents=True, exist_ok=True)

DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DATA_DIR}/library.db")

# Access codes
LIBRARY_OVERRIDE_CODE = os.environ.get("LIBRARY_OVERRIDE_CODE", "41134").strip()
LIBRARY_SIGNING_KEY = os.environ.get("LIBRARY_SIGNING_KEY", "dev-signing-key-change-me")

# Storage behaviour
SIGNED_URL_TTL = int(os.environ.get("SIGNED_URL_TTL", "300"))  # 5 minutes
PUBLIC_BUCKET = os.environ.get("PUBLIC_BUCKET", "").lower() in ("1", "true", "yes")
REMOVE_BATCH_SIZE = 1000
LIST_PAGE_SIZE = 1000

# Transfers
MAX_BATCH_SIZE = int(os.environ.get("MAX_BATCH_SIZE", "100"))
MAX_FILE_COUNT = int(os.environ.get("MAX_FILE_COUNT", "1000"))
MAX_TOTAL_BYTES = int(os.environ.get("MAX_TOTAL_BYTES", str(2 * 1024**3)))  # 2 GiB

# Displayed only, nothing enforces it
EXPIRY_DAYS = int(os.environ.get("EXPIRY_DAYS", "4"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
