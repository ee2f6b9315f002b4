"""Artifact naming and file helpers for commands, skills, bins and scripts."""

import os
import posixpath
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional, Sequence

from rule_squash.core.canonical import Canonicalizer
from rule_squash.core.frontmatter import strip_directives
from rule_squash.core.source import ProcessedSource, SourceKind
from rule_squash.core.urls import normalize_github_url
from rule_squash.fetch.protocols import RemoteFetcher
from rule_squash.utils.paths import after_segment, ensure_dir

EXECUTABLE_MODE = 0o755
SKILL_SEPARATOR = "\n\n---\n\n"

_BIN_TARGET = re.compile(r"(?:^|/)bin/(.+\.sh)$")


def command_relative_path(path: str, omit_prefixes: Sequence[str] = ()) -> str:
    """Compute where a command file lands under the commands directory.

    The result is the path after ``commands/``, prefixed with the
    directories between the last ``rules``-like directory and ``commands``
    (or with the parent directory when there is no such directory). The
    longest matching prefix from ``omit_prefixes`` is then stripped.

    Args:
        path: Display or repository path of the command file
        omit_prefixes: Leading directory prefixes to remove

    Returns:
        Relative path such as ``git/commit.md``
    """
    posix = path.replace(os.sep, "/")
    parts = f"/{posix}".split("/commands/")
    if len(parts) < 2:
        return PurePosixPath(posix).name

    after_commands = parts[-1]
    components = [c for c in parts[0].split("/") if c]
    rules_indexes = [i for i, c in enumerate(components) if "rules" in c.lower()]

    if rules_indexes:
        prefix = components[rules_indexes[-1] + 1:]
    else:
        prefix = components[-1:]
    result = posixpath.join(*prefix, after_commands) if prefix else after_commands

    if omit_prefixes:
        result = _omit_prefix(result, after_commands, omit_prefixes)
    return result


def _omit_prefix(result: str, after_commands: str, prefixes: Sequence[str]) -> str:
    best_path = result
    best_stripped = 0

    for prefix in prefixes:
        prefix_parts = [p for p in prefix.split("/") if p]
        path_parts = result.split("/")
        stripped = 0
        while prefix_parts and path_parts and prefix_parts[0] == path_parts[0]:
            prefix_parts.pop(0)
            path_parts.pop(0)
            stripped += 1

        if stripped > best_stripped:
            best_stripped = stripped
            best_path = "/".join(path_parts) if path_parts else posixpath.basename(after_commands)

    return best_path


def skill_name(path: str) -> str:
    """Derive a skill's name from the path after its last ``skills/`` directory."""
    name = after_segment(path, "skills") or PurePosixPath(path).name
    return name[:-3] if name.endswith(".md") else name


def bin_target(path: str) -> str:
    """Path of a bin script relative to the bin output directory."""
    match = _BIN_TARGET.search(path.replace(os.sep, "/"))
    return match.group(1) if match else PurePosixPath(path).name


def compile_skill(
    skill: ProcessedSource,
    canonicalizer: Canonicalizer,
    fetcher: Optional[RemoteFetcher] = None,
    keep_frontmatter: bool = False,
) -> str:
    """Inline a skill's own ``requires:`` after its content.

    Required documents are stripped of directives and joined with horizontal
    rules. Requirements that cannot be found or fetched are skipped.
    """
    parts = [skill.content]
    for reference in skill.directives.requires:
        target = canonicalizer.canonicalize(skill.source, reference)
        if target is None:
            continue
        text = _read_source_text(target.reference, target.kind, fetcher)
        if text is not None:
            parts.append(strip_directives(text, keep_frontmatter=keep_frontmatter))
    if len(parts) == 1:
        return skill.content
    return SKILL_SEPARATOR.join(parts)


def _read_source_text(
    reference: str, kind: SourceKind, fetcher: Optional[RemoteFetcher]
) -> Optional[str]:
    if kind is SourceKind.REMOTE:
        return fetcher.fetch(reference) if fetcher is not None else None
    try:
        with open(reference, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError:
        return None


@dataclass
class ScriptFile:
    """A script to place in the scripts directory.

    Attributes:
        filename: Target file name
        from_rule: Display path of the rule that declared it
        source_path: Local file to copy, for local scripts
        url: Remote location, for remote scripts
    """

    filename: str
    from_rule: str
    source_path: Optional[Path] = None
    url: Optional[str] = None


@dataclass
class ScriptCollection:
    local: list[ScriptFile] = field(default_factory=list)
    remote: list[ScriptFile] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.local or self.remote)


def collect_scripts(
    sources: Sequence[ProcessedSource], canonicalizer: Canonicalizer
) -> ScriptCollection:
    """Collect ``scripts:`` declared by processed sources.

    Local script paths are looked up in the search roots, then next to the
    declaring file. Remote entries accept the ``github:`` shorthand.
    """
    collection = ScriptCollection()
    for source in sources:
        scripts = source.directives.scripts
        for script_path in scripts.files:
            resolved = _find_script(script_path, source, canonicalizer)
            if resolved is None:
                collection.warnings.append(
                    f"Script not found: {script_path} (from {source.path})"
                )
                continue
            collection.local.append(
                ScriptFile(
                    filename=PurePosixPath(script_path).name,
                    from_rule=source.path,
                    source_path=resolved,
                )
            )
        for url in scripts.remote:
            collection.remote.append(
                ScriptFile(
                    filename=PurePosixPath(url).name,
                    from_rule=source.path,
                    url=normalize_github_url(url),
                )
            )
    return collection


def _find_script(
    script_path: str, declaring: ProcessedSource, canonicalizer: Canonicalizer
) -> Optional[Path]:
    found = canonicalizer.find(script_path)
    if found is not None and found.is_file():
        return found
    if declaring.source.kind is SourceKind.LOCAL:
        candidate = Path(declaring.identity).parent / script_path
        if candidate.is_file():
            return candidate
    return None


def make_executable(path: Path) -> None:
    path.chmod(EXECUTABLE_MODE)


def copy_file(source: Path, target: Path, executable: bool = False) -> None:
    """Copy ``source`` to ``target``, creating parent directories."""
    ensure_dir(target.parent)
    shutil.copy2(source, target)
    if executable:
        make_executable(target)
