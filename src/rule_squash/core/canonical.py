"""Canonical identities for local and remote rule sources.

Two references that point at the same document must collapse to the same
identity so the document is processed once per run. Local files are
identified by their symlink-free absolute path, remote files by their URL.
"""

import os
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urljoin, urlparse

from rule_squash.config.schema import SettingsConfig
from rule_squash.core.source import Source, SourceKind, is_url
from rule_squash.core.urls import parse_github_url
from rule_squash.utils.paths import expand_path, relative_to_root


class Canonicalizer:
    """Resolves references to canonical sources.

    Top-level references are looked up in an ordered list of search roots
    (typically the working directory, a user override directory and the
    project root). References declared inside a rule file are resolved
    relative to that file.
    """

    def __init__(self, search_roots: Sequence[Path], project_root: Optional[Path] = None):
        """Initialize the canonicalizer.

        Args:
            search_roots: Directories searched in order for relative references
            project_root: Root used to render display paths (default: last root)
        """
        self.search_roots = [Path(root) for root in search_roots]
        root = project_root or (self.search_roots[-1] if self.search_roots else None)
        self.project_root = Path(os.path.realpath(root)) if root else None

    @classmethod
    def from_settings(
        cls, settings: SettingsConfig, cwd: Optional[Path] = None
    ) -> "Canonicalizer":
        """Build the standard search path: cwd, home override dir, project root."""
        cwd = cwd or Path.cwd()
        project_root = expand_path(settings.project_root) if settings.project_root else cwd
        roots = [cwd, expand_path(settings.home_rules_dir), project_root]
        return cls(roots, project_root=project_root)

    def find(self, reference: str) -> Optional[Path]:
        """Locate a local file or directory.

        Absolute paths are used as-is; relative paths are tried against each
        search root in order.

        Returns:
            The first existing path, or None
        """
        path = Path(reference).expanduser()
        if path.is_absolute():
            return path if path.exists() else None

        for root in self.search_roots:
            candidate = root / path
            if candidate.exists():
                return candidate.absolute()
        return None

    def identity(self, source: Source) -> str:
        """Return the dedup key for a source.

        Local sources that cannot be found keep their reference as identity.
        """
        if source.kind is SourceKind.REMOTE:
            return source.reference
        found = self.find(source.reference)
        return os.path.realpath(found) if found else source.reference

    def display_path(self, source: Source) -> str:
        """Path shown to users and used to derive artifact names."""
        if source.kind is SourceKind.REMOTE:
            return source.reference
        return relative_to_root(Path(self.identity(source)), self.project_root)

    def classification_path(self, source: Source) -> str:
        """Path whose directories decide the artifact classification."""
        if source.kind is SourceKind.REMOTE:
            location = parse_github_url(source.reference)
            return location.path if location else urlparse(source.reference).path
        return self.display_path(source)

    def canonicalize(self, declaring: Optional[Source], reference: str) -> Optional[Source]:
        """Resolve ``reference`` as seen from ``declaring``.

        Args:
            declaring: The source whose frontmatter holds the reference, or
                None for a top-level recipe entry
            reference: Path or URL as written

        Returns:
            A canonical Source (local references carry their realpath), or
            None when a local reference does not resolve to a file. Remote
            references always resolve; a missing remote file surfaces when
            it is fetched.
        """
        if is_url(reference):
            return Source.remote(reference)

        if declaring is not None and declaring.kind is SourceKind.REMOTE:
            return Source.remote(self._join_remote(declaring.reference, reference))

        if declaring is None or Path(reference).expanduser().is_absolute():
            found = self.find(reference)
            if (found is None or found.is_dir()) and not reference.endswith(".md"):
                found = self.find(f"{reference}.md") or found
            if found is None:
                return None
            resolved = str(found)
        else:
            declaring_path = self.find(declaring.reference)
            if declaring_path is None:
                return None
            resolved = os.path.normpath(os.path.join(declaring_path.parent, reference))

        resolved = _prefer_markdown(resolved)
        if not os.path.isfile(resolved):
            return None
        return Source.local(os.path.realpath(resolved))

    @staticmethod
    def _join_remote(declaring_url: str, reference: str) -> str:
        location = parse_github_url(declaring_url)
        if location is not None and location.mode == "blob":
            return location.join(reference).url
        return urljoin(declaring_url, reference)


def _prefer_markdown(path: str) -> str:
    """Use ``path.md`` when ``path`` itself is not a file but the sibling is."""
    if not os.path.isfile(path) and not path.endswith(".md"):
        candidate = f"{path}.md"
        if os.path.isfile(candidate):
            return candidate
    return path
