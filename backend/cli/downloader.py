"""Downloader — single files via signed links, folders via server-side archives."""

import asyncio
import sys
import webbrowser
from pathlib import Path
from typing import Callable, Optional

from logging_config import get_logger
from cli.library_client import LibraryClient, LibraryClientError

logger = get_logger(__name__)

STRATEGY_OPEN = "open"
STRATEGY_SAVE = "save"

# Platforms where a saved file is not reachable by the user; hand the link to the browser.
RESTRICTED_PLATFORMS = ("ios", "android")

PHASE_LISTING = "listing files"
PHASE_EMPTY = "folder is empty"
PHASE_ARCHIVING = "creating archive"
PHASE_STARTING = "download starting"
PHASE_DONE = "download complete"


def default_strategy(platform: Optional[str] = None) -> str:
    platform = platform or sys.platform
    return STRATEGY_OPEN if platform in RESTRICTED_PLATFORMS else STRATEGY_SAVE


def _target(dest: Path, filename: str) -> Path:
    """Resolve where to write; a server-supplied name never leaves ``dest``."""
    if dest.is_dir():
        name = Path(filename.replace("\\", "/")).name
        if name in ("", ".", ".."):
            raise LibraryClientError(f"Refusing to save under the name {filename!r}")
        return dest / name
    dest.parent.mkdir(parents=True, exist_ok=True)
    return dest


async def download_file(
    client: LibraryClient,
    file_id: str,
    code: str,
    dest: Path,
    strategy: Optional[str] = None,
    opener: Callable[[str], bool] = webbrowser.open,
) -> Path | str:
    """Return the saved path, or the opened URL for the open strategy."""
    grant = await client.access(file_id, code)
    strategy = strategy or default_strategy()

    if strategy == STRATEGY_OPEN:
        url = client.absolute_url(grant["url"])
        opener(url)
        logger.info("Opened %s in the browser", grant["filename"])
        return url

    data = await client.fetch(grant["url"])
    target = _target(dest, grant["filename"])
    await asyncio.to_thread(target.write_bytes, data)
    logger.info("Saved %s (%d bytes)", target, len(data))
    return target


async def download_folder(
    client: LibraryClient,
    folder_id: str,
    code: str,
    dest: Path,
    on_phase: Callable[[str], None] = lambda phase: None,
) -> Optional[Path]:
    """Fetch a folder as a ZIP. Returns None when the folder has no files."""
    on_phase(PHASE_LISTING)
    listing = await client.folder_entries(folder_id, code)
    if not listing["entries"]:
        on_phase(PHASE_EMPTY)
        return None

    on_phase(PHASE_ARCHIVING)
    data = await client.download_folder(folder_id, code)

    on_phase(PHASE_STARTING)
    target = _target(dest, f"{listing['title']}.zip")
    await asyncio.to_thread(target.write_bytes, data)
    on_phase(PHASE_DONE)
    return target
