"""Path utilities for expanding, normalizing and classifying paths."""

import os
import posixpath
from pathlib import Path
from typing import Optional


def expand_path(path: str) -> Path:
    """Expand and normalize a path, resolving ~ and relative paths.

    Args:
        path: Path string that may contain ~ or be relative

    Returns:
        Absolute Path object
    """
    return Path(path).expanduser().resolve()


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The path that was ensured
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def normalize_segments(path: str) -> str:
    """Collapse ``.`` and ``..`` segments without touching the filesystem.

    ``..`` above the root is dropped, so ``a/../../b`` becomes ``b``.
    """
    parts: list[str] = []
    for part in path.split("/"):
        if part == "..":
            if parts:
                parts.pop()
        elif part and part != ".":
            parts.append(part)
    return "/".join(parts)


def directory_segments(path: str) -> list[str]:
    """Return the directory components of a slash or OS separated path."""
    parts = path.replace(os.sep, "/").split("/")
    return [p for p in parts[:-1] if p]


def has_segment(path: str, segment: str) -> bool:
    """Check whether ``segment`` is one of the directories in ``path``."""
    return segment in directory_segments(path)


def relative_to_root(path: Path, root: Optional[Path]) -> str:
    """Render ``path`` relative to ``root`` when it lives under it.

    Paths outside the root are returned absolute, in posix form.
    """
    if root is not None:
        try:
            return Path(path).relative_to(root).as_posix()
        except ValueError:
            pass
    return Path(path).as_posix()


def after_segment(path: str, segment: str) -> Optional[str]:
    """Return the part of ``path`` after the last ``segment`` directory."""
    marker = f"/{segment}/"
    normalized = "/" + path.replace(os.sep, "/").lstrip("/")
    if marker not in normalized:
        return None
    return posixpath.normpath(normalized.rsplit(marker, 1)[1])
