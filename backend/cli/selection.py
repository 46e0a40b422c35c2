"""Selection — gather a file or a directory tree and check it before upload."""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

from exceptions import ValidationError
from cli.config import MAX_FILE_COUNT, MAX_TOTAL_BYTES

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class SelectedFile:
    path: Path
    relative_path: str
    size: int
    content_type: str


@dataclass
class Selection:
    root: Path
    entries: list[SelectedFile] = field(default_factory=list)
    is_folder: bool = False

    @property
    def file_count(self) -> int:
        return len(self.entries)

    @property
    def total_size(self) -> int:
        return sum(e.size for e in self.entries)

    @property
    def default_title(self) -> str:
        return self.root.name if self.is_folder else self.root.stem


@dataclass(frozen=True)
class SelectionWarning:
    kind: str
    message: str


def _selected(path: Path, relative_path: str) -> SelectedFile:
    content_type = mimetypes.guess_type(path.name)[0] or DEFAULT_CONTENT_TYPE
    return SelectedFile(path=path, relative_path=relative_path, size=path.stat().st_size, content_type=content_type)


def select_path(path: str | Path) -> Selection:
    """Select one file, or every file below a directory.

    Folder entries keep the top-level directory in their relative path,
    e.g. ``notes/week1/a.pdf``.
    """
    root = Path(path).expanduser().resolve()
    if root.is_file():
        return Selection(root=root, entries=[_selected(root, root.name)], is_folder=False)
    if not root.is_dir():
        raise ValidationError(f"No such file or directory: {root}")

    entries = [
        _selected(p, f"{root.name}/{p.relative_to(root).as_posix()}")
        for p in sorted(root.rglob("*"))
        if p.is_file()
    ]
    return Selection(root=root, entries=entries, is_folder=True)


def validate(
    selection: Selection,
    title: str | None,
    secret_code: str | None,
    max_files: int = MAX_FILE_COUNT,
    max_bytes: int = MAX_TOTAL_BYTES,
) -> list[SelectionWarning]:
    """Raise for blocking problems; return warnings the caller may bypass."""
    if not (title or "").strip():
        raise ValidationError("A title is required")
    if not secret_code:
        raise ValidationError("A secret code is required")
    if selection.file_count == 0:
        raise ValidationError("No files selected")

    warnings = []
    if selection.file_count > max_files:
        warnings.append(SelectionWarning(
            "file_count",
            f"{selection.file_count} files selected, more than the recommended {max_files}",
        ))
    if selection.total_size > max_bytes:
        warnings.append(SelectionWarning(
            "total_size",
            f"{format_size(selection.total_size)} selected, more than the recommended {format_size(max_bytes)}",
        ))
    return warnings


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024**2:
        return f"{size / 1024:.1f} KB"
    if size < 1024**3:
        return f"{size / 1024**2:.1f} MB"
    return f"{size / 1024**3:.1f} GB"
