"""Dependency resolution for rule sources.

Turns a flat list of sources into an ordered, deduplicated list of processed
sources. Each source's frontmatter may pull in more documents:

- ``requires:`` is best-effort. A target that cannot be found is skipped
  without a warning.
- ``skills:`` is strict. A target that is missing, unreadable or not under a
  ``skills`` directory aborts the whole resolution.

Dependencies are emitted before the sources that need them. The first path
that reaches a document is fully resolved before its siblings are visited,
so a document required from two places lands ahead of the first dependent
that reached it.
"""

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Iterator, Optional

from rule_squash.core.canonical import Canonicalizer
from rule_squash.core.errors import SkillReferenceError
from rule_squash.core.frontmatter import Directives, read_directives, strip_directives
from rule_squash.core.source import (
    Classification,
    ProcessedSource,
    Source,
    SourceKind,
    classify,
)
from rule_squash.fetch.protocols import RemoteFetcher
from rule_squash.utils.paths import has_segment


@dataclass
class Resolution:
    """Ordered output of one resolution pass.

    Attributes:
        sources: Processed sources, dependencies first, one per identity
        warnings: Soft misses and fetch failures met along the way
    """

    sources: list[ProcessedSource] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def of(self, classification: Classification) -> list[ProcessedSource]:
        return [s for s in self.sources if s.classification is classification]

    @property
    def content(self) -> list[ProcessedSource]:
        return self.of(Classification.CONTENT)

    @property
    def commands(self) -> list[ProcessedSource]:
        return self.of(Classification.COMMAND)

    @property
    def skills(self) -> list[ProcessedSource]:
        return self.of(Classification.SKILL)

    @property
    def bins(self) -> list[ProcessedSource]:
        return self.of(Classification.BIN)

    @property
    def identities(self) -> list[str]:
        return [s.identity for s in self.sources]


class DependencyResolver:
    """Resolves ``requires:`` and ``skills:`` dependencies for a source list."""

    def __init__(
        self,
        canonicalizer: Canonicalizer,
        fetcher: Optional[RemoteFetcher] = None,
        keep_frontmatter: bool = False,
    ):
        """Initialize the resolver.

        Args:
            canonicalizer: Resolves references and identities
            fetcher: Remote fetch collaborator; remote sources are skipped
                with a warning when absent
            keep_frontmatter: Keep non-directive frontmatter in emitted content
        """
        self.canonicalizer = canonicalizer
        self.fetcher = fetcher
        self.keep_frontmatter = keep_frontmatter

    def resolve(self, sources: list[Source]) -> Resolution:
        """Resolve ``sources`` and everything they depend on.

        Args:
            sources: Top-level sources in recipe order

        Returns:
            Resolution with processed sources in emission order

        Raises:
            SkillReferenceError: If any ``skills:`` reference is invalid
        """
        return _ResolutionPass(self, sources).run()


class _ResolutionPass:
    """State for a single :meth:`DependencyResolver.resolve` call."""

    def __init__(self, resolver: DependencyResolver, sources: list[Source]):
        self.canonicalizer = resolver.canonicalizer
        self.fetcher = resolver.fetcher
        self.keep_frontmatter = resolver.keep_frontmatter
        self.sources = list(sources)
        self.seen: set[str] = set()
        self.prefetched: dict[str, str] = {}
        self.skill_origins: dict[str, str] = {}
        self.result = Resolution()

    def run(self) -> Resolution:
        remote_urls = [s.reference for s in self.sources if s.kind is SourceKind.REMOTE]
        if remote_urls and self.fetcher is not None:
            self.prefetched = self.fetcher.prefetch(remote_urls)

        for source in self.sources:
            self._complete(source)
        return self.result

    def _complete(self, root: Source) -> None:
        """Resolve ``root`` and its dependency tree, dependencies first.

        Uses an explicit stack of ``(processed, pending dependencies)`` frames;
        a frame is emitted once all of its dependencies are complete.
        """
        processed = self._process(root)
        if processed is None:
            return

        stack: list[tuple[ProcessedSource, Iterator[Source]]] = [
            (processed, iter(self._dependencies(processed)))
        ]
        while stack:
            current, pending = stack[-1]
            for dependency in pending:
                child = self._process(dependency)
                if child is not None:
                    stack.append((child, iter(self._dependencies(child))))
                    break
            else:
                stack.pop()
                self.result.sources.append(current)

    def _process(self, source: Source) -> Optional[ProcessedSource]:
        """Read a source once per identity.

        Returns:
            The processed source, or None if it was already seen or could
            not be read
        """
        identity = self.canonicalizer.identity(source)
        if identity in self.seen:
            return None

        classification = classify(self.canonicalizer.classification_path(source))
        path = self.canonicalizer.display_path(source)

        if classification is Classification.BIN and not source.is_remote:
            if not os.path.isfile(identity):
                self.result.warnings.append(f"File not found: {source.reference}")
                return None
            self.seen.add(identity)
            return ProcessedSource(
                source=source,
                identity=identity,
                path=path,
                content="",
                original_content="",
                classification=classification,
            )

        text = self._read(source, identity)
        if text is None:
            if source.via_skills:
                raise SkillReferenceError(
                    source.reference, self.skill_origins.get(identity, path)
                )
            return None
        self.seen.add(identity)

        return ProcessedSource(
            source=source,
            identity=identity,
            path=path,
            content=strip_directives(text, keep_frontmatter=self.keep_frontmatter),
            original_content=text,
            classification=classification,
            directives=read_directives(text),
        )

    def _read(self, source: Source, identity: str) -> Optional[str]:
        if source.kind is SourceKind.LOCAL:
            if not os.path.isfile(identity):
                if not source.via_requires:
                    self.result.warnings.append(f"File not found: {source.reference}")
                return None
            with open(identity, "r", encoding="utf-8", errors="replace") as f:
                return f.read()

        if source.reference in self.prefetched:
            return self.prefetched[source.reference]
        if self.fetcher is None:
            self.result.warnings.append(
                f"No remote fetcher configured, skipping: {source.reference}"
            )
            return None

        text = self.fetcher.fetch(source.reference)
        if text is None:
            self.result.warnings.append(f"Failed to fetch: {source.reference}")
        return text

    def _dependencies(self, processed: ProcessedSource) -> list[Source]:
        """Collect the unseen sources ``processed`` depends on.

        Skill targets are validated eagerly so an invalid reference aborts
        before any further document is read. A skill's own ``requires:`` are
        compiled into the skill artifact instead of the combined document.
        """
        directives: Directives = processed.directives
        dependencies: list[Source] = []

        if processed.classification is not Classification.SKILL:
            for reference in directives.requires:
                target = self.canonicalizer.canonicalize(processed.source, reference)
                if target is not None:
                    dependencies.append(dataclasses.replace(target, via_requires=True))

        for reference in directives.skills:
            target = self.canonicalizer.canonicalize(processed.source, reference)
            if target is None:
                raise SkillReferenceError(reference, processed.path)
            resolved = self.canonicalizer.classification_path(target)
            if not has_segment(resolved, "skills"):
                raise SkillReferenceError(
                    reference, processed.path, self.canonicalizer.display_path(target)
                )
            self.skill_origins.setdefault(self.canonicalizer.identity(target), processed.path)
            dependencies.append(dataclasses.replace(target, via_skills=True))

        return dependencies
