"""Rule tree health checks: orphaned files and circular requirements.

These are read-only analyses over the local rule tree. Edges come from
``requires:`` frontmatter and ``@./path`` inline references at the start of a
line. ``skills:`` references count as usage for orphan detection but are not
edges for cycle detection. References resolve through the same
:class:`Canonicalizer` the resolver uses; remote targets are ignored.
"""

import os
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from rule_squash.core.canonical import Canonicalizer
from rule_squash.core.frontmatter import read_directives
from rule_squash.core.loader import RecipeLoader
from rule_squash.core.source import Source, SourceKind

INLINE_REFERENCE = re.compile(r"^@(\.\.?/\S+)", re.MULTILINE)


def _read(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError):
        return ""


def requirements(
    path: str, canonicalizer: Canonicalizer, include_skills: bool = False
) -> list[str]:
    """Return the existing local files ``path`` depends on, as realpaths.

    Args:
        path: Rule file to inspect
        canonicalizer: Resolves each reference relative to ``path``
        include_skills: Also follow ``skills:`` references
    """
    content = _read(path)
    directives = read_directives(content)
    declaring = Source.local(path)

    references = INLINE_REFERENCE.findall(content) + directives.requires
    if include_skills:
        references += directives.skills

    found = []
    for reference in references:
        target = canonicalizer.canonicalize(declaring, reference)
        if target is None or target.kind is not SourceKind.LOCAL:
            continue
        if target.reference not in found:
            found.append(target.reference)
    return found


def reachable(roots: Iterable[str], canonicalizer: Canonicalizer) -> set[str]:
    """Every file reachable from ``roots`` through requirements and skills."""
    used: set[str] = set()
    queue = deque(os.path.realpath(root) for root in roots)
    while queue:
        current = queue.popleft()
        if current in used:
            continue
        used.add(current)
        if os.path.isfile(current):
            queue.extend(requirements(current, canonicalizer, include_skills=True))
    return used


def find_orphans(
    candidates: Iterable[str], roots: Iterable[str], canonicalizer: Canonicalizer
) -> list[str]:
    """List candidate files not reachable from any recipe root.

    Args:
        candidates: Every rule file in the tree
        roots: Files loaded directly by recipes
        canonicalizer: Resolves references between files

    Returns:
        Sorted realpaths of orphaned files
    """
    used = reachable(roots, canonicalizer)
    return sorted({os.path.realpath(c) for c in candidates} - used)


@dataclass
class _CycleSearch:
    """Enumerates elementary cycles, each from its smallest member."""

    graph: dict[str, list[str]]
    cycles: list[list[str]] = field(default_factory=list)

    def from_start(self, start: str) -> None:
        self._visit(start, start, [start])

    def _visit(self, start: str, node: str, path: list[str]) -> None:
        for neighbor in self.graph.get(node, []):
            if neighbor == start:
                self.cycles.append(list(path))
            elif neighbor > start and neighbor in self.graph and neighbor not in path:
                self._visit(start, neighbor, path + [neighbor])


def find_cycles(files: Iterable[str], canonicalizer: Canonicalizer) -> list[list[str]]:
    """Find circular requirement chains among ``files``.

    Every elementary cycle is reported once, rotated to start at its
    smallest member. Self-requirements are cycles of length one.

    Returns:
        Each distinct cycle as realpaths in requirement order
    """
    nodes = sorted({os.path.realpath(f) for f in files})
    graph = {node: requirements(node, canonicalizer) for node in nodes}

    search = _CycleSearch(graph)
    for node in nodes:
        search.from_start(node)
    return search.cycles


def rule_files(rules_dir: Path) -> list[str]:
    """List the markdown rule files under ``rules_dir``."""
    if not rules_dir.is_dir():
        return []
    return sorted(os.path.realpath(p) for p in rules_dir.rglob("*.md") if p.is_file())


@dataclass
class TreeReport:
    """Health report for a rule tree.

    Attributes:
        files: Every markdown file under the rule tree
        orphans: Files no recipe reaches
        cycles: Circular requirement chains
    """

    files: list[str]
    orphans: list[str]
    cycles: list[list[str]]


def analyze_tree(loader: RecipeLoader, rules_dir: Path) -> TreeReport:
    """Check the rule tree against every recipe the loader knows."""
    roots: list[str] = []
    for name in loader.registry.names():
        loaded = loader.load(name)
        roots.extend(s.reference for s in loaded.sources if s.kind is SourceKind.LOCAL)

    files = rule_files(rules_dir)
    return TreeReport(
        files=files,
        orphans=find_orphans(files, roots, loader.canonicalizer),
        cycles=find_cycles(files, loader.canonicalizer),
    )
