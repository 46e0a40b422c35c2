"""Client configuration, read from the environment."""

import os

LIBRARY_URL = os.environ.get("LIBRARY_URL", "http://localhost:8000")
LIBRARY_TIMEOUT = float(os.environ.get("LIBRARY_TIMEOUT", "60"))

MAX_BATCH_SIZE = int(os.environ.get("MAX_BATCH_SIZE", "100"))
MAX_FILE_COUNT = int(os.environ.get("MAX_FILE_COUNT", "1000"))
MAX_TOTAL_BYTES = int(os.environ.get("MAX_TOTAL_BYTES", str(2 * 1024**3)))  # 2 GiB

# Only triggers a notice, transfers are never aborted
SLOW_NOTICE_SECONDS = 30
