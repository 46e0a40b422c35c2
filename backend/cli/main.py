"""CLI entry point."""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from exceptions import ValidationError
from logging_config import setup_logging
from cli.config import LIBRARY_URL, MAX_BATCH_SIZE
from cli.downloader import STRATEGY_OPEN, STRATEGY_SAVE, download_file, download_folder
from cli.library_client import LibraryClient, LibraryClientError
from cli.selection import format_size, select_path, validate
from cli.uploader import upload_selection


def _print_progress(percent: int) -> None:
    sys.stdout.write(f"\rUploading... {percent}%")
    sys.stdout.flush()
    if percent >= 100:
        sys.stdout.write("\n")


async def cmd_list(client: LibraryClient, args) -> int:
    files = await client.list_files(args.search, args.limit)
    if not files:
        print("No files found.")
        return 0
    for f in files:
        kind = f"folder, {f['file_count']} files" if f["is_folder"] else format_size(f["size"])
        print(f"{f['id']}  {f['title']}  ({kind})  expires {f['expires_at'][:10]}")
    return 0


async def cmd_upload(client: LibraryClient, args) -> int:
    selection = select_path(args.path)
    title = args.title or selection.default_title
    warnings = validate(selection, title, args.code)
    for w in warnings:
        print(f"Warning: {w.message}")
    if warnings and not args.force:
        print("Re-run with --force to upload anyway.")
        return 1

    print(f"Uploading {selection.file_count} file(s), {format_size(selection.total_size)} as '{title}'")
    outcome = await upload_selection(
        client, selection, title, args.code, batch_size=args.batch_size, on_progress=_print_progress
    )
    print(f"Uploaded as {outcome.record['id']}")
    if outcome.failed_paths:
        print(f"{len(outcome.failed_paths)} file(s) failed:")
        for path in outcome.failed_paths:
            print(f"  {path}")
        return 1
    return 0


async def cmd_download(client: LibraryClient, args) -> int:
    result = await download_file(client, args.id, args.code, Path(args.dest), strategy=args.strategy)
    print(f"Saved {result}" if isinstance(result, Path) else f"Opened {result}")
    return 0


async def cmd_download_folder(client: LibraryClient, args) -> int:
    target = await download_folder(
        client, args.id, args.code, Path(args.dest), on_phase=lambda phase: print(f"{phase.capitalize()}...")
    )
    if target is None:
        print("Nothing to download.")
        return 0
    print(f"Saved {target}")
    return 0


async def cmd_delete(client: LibraryClient, args) -> int:
    await client.delete(args.id, args.code)
    print("Deleted.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="library", description="Virtual Library client")
    parser.add_argument("--url", default=LIBRARY_URL, help="Service base URL")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List uploads, newest first")
    p.add_argument("--search", help="Title substring")
    p.add_argument("--limit", type=int)
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("upload", help="Upload a file or a folder")
    p.add_argument("path")
    p.add_argument("--title", help="Defaults to the file or folder name")
    p.add_argument("--code", required=True, help="Secret code")
    p.add_argument("--batch-size", type=int, default=MAX_BATCH_SIZE)
    p.add_argument("--force", action="store_true", help="Ignore size and count warnings")
    p.set_defaults(handler=cmd_upload)

    p = sub.add_parser("download", help="Download a single file")
    p.add_argument("id")
    p.add_argument("--code", required=True)
    p.add_argument("--dest", default=".")
    p.add_argument("--strategy", choices=[STRATEGY_SAVE, STRATEGY_OPEN], default=None)
    p.set_defaults(handler=cmd_download)

    p = sub.add_parser("download-folder", help="Download a folder as a ZIP")
    p.add_argument("id")
    p.add_argument("--code", required=True)
    p.add_argument("--dest", default=".")
    p.set_defaults(handler=cmd_download_folder)

    p = sub.add_parser("delete", help="Delete a file or folder")
    p.add_argument("id")
    p.add_argument("--code", required=True)
    p.set_defaults(handler=cmd_delete)

    return parser


async def _run(args) -> int:
    async with LibraryClient(base_url=args.url) as client:
        return await args.handler(client, args)


def main(argv=None) -> int:
    """Entry point for CLI."""
    args = build_parser().parse_args(argv)
    log_level = "DEBUG" if args.debug else os.getenv("LOG_LEVEL", "WARNING")
    logger = setup_logging("cli", log_level=log_level)

    try:
        return asyncio.run(_run(args))
    except (ValidationError, LibraryClientError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error("CLI error: %s", e, exc_info=True)
        print("Error: an unexpected error occurred", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
