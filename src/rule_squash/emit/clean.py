"""Removal of generated squash output."""

import shutil
from pathlib import Path
from typing import Iterable, Optional

from rule_squash.config.schema import SettingsConfig
from rule_squash.emit.mcp_manifest import MANIFEST_FILENAME

DEEP_CLEAN_DOCUMENTS = ("CLAUDE.local.md", "CLAUDE.md")


def _bin_root(bin_dir: str) -> Path:
    """Top-level directory holding the bin directory, e.g. ``.rule-squash``."""
    path = Path(bin_dir)
    return path if path.is_absolute() else Path(path.parts[0])


def clean_targets(
    destination: Path,
    settings: SettingsConfig,
    output_file: Optional[str] = None,
    deep: bool = False,
) -> list[Path]:
    """List the generated paths present under ``destination``.

    The assistant directory, the combined document, the bin directory and
    the server manifest are always candidates. ``deep`` adds the whole
    directory that holds the bin directory and both ``CLAUDE*.md`` documents.

    Args:
        destination: Directory squash output was written into
        settings: Settings naming the output locations
        output_file: Document path to remove (default: ``settings.output_file``)
        deep: Also remove every artifact a squash could have left behind

    Returns:
        Existing paths relative to ``destination``, without duplicates
    """
    candidates = [
        Path(settings.claude_dir),
        Path(output_file or settings.output_file),
        Path(settings.bin_dir),
        Path(MANIFEST_FILENAME),
    ]
    if deep:
        candidates.append(_bin_root(settings.bin_dir))
        candidates.extend(Path(name) for name in DEEP_CLEAN_DOCUMENTS)

    targets: list[Path] = []
    for candidate in candidates:
        if candidate in targets or not (destination / candidate).exists():
            continue
        if any(parent in targets for parent in candidate.parents):
            continue
        targets = [t for t in targets if candidate not in t.parents]
        targets.append(candidate)
    return targets


def remove_targets(destination: Path, targets: Iterable[Path]) -> list[Path]:
    """Delete each target below ``destination``; directories recursively.

    Returns:
        The absolute paths removed
    """
    removed = []
    for target in targets:
        path = destination / target
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            continue
        removed.append(path)
    return removed
