"""Recipe loading: expand a recipe into a flat, ordered list of sources.

Sources are collected in four groups, each internally stable:
1. ``files:`` entries (directories expand to sorted markdown and bin scripts)
2. ``sources:`` entries (paths, URLs, github specs, local specs)
3. legacy ``remote_sources:`` URLs
4. files under the rule tree that opt in through a ``recipes:`` tag
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rule_squash.config.schema import (
    GithubSourceSpec,
    LocalSourceSpec,
    RecipeConfig,
    SourceSpec,
)
from rule_squash.core.canonical import Canonicalizer
from rule_squash.core.frontmatter import read_directives
from rule_squash.core.registry import RecipeRegistry
from rule_squash.core.source import Source, SourceKind, is_url
from rule_squash.core.urls import looks_like_file, parse_github_url
from rule_squash.fetch.protocols import RemoteFetcher
from rule_squash.utils.paths import has_segment

TAG_SUFFIXES = (".md", ".mdc")


@dataclass
class LoadedRecipe:
    """A recipe expanded to its top-level sources.

    Attributes:
        name: Recipe name
        recipe: The recipe definition
        sources: Top-level sources in load order, unique by identity
        warnings: Entries that contributed nothing
    """

    name: str
    recipe: RecipeConfig
    sources: list[Source] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def expand_directory(directory: Path) -> list[Path]:
    """List the rule files below ``directory``.

    Returns every ``*.md`` file plus every ``*.sh`` file that sits under a
    ``bin`` directory, sorted by path.
    """
    found = []
    for path in directory.rglob("*"):
        if not path.is_file():
            continue
        relative = path.relative_to(directory).as_posix()
        if path.suffix == ".md":
            found.append(path)
        elif path.suffix == ".sh" and has_segment(f"{directory.name}/{relative}", "bin"):
            found.append(path)
    return sorted(found)


class RecipeLoader:
    """Expands recipes from a registry into top-level source lists."""

    def __init__(
        self,
        canonicalizer: Canonicalizer,
        registry: RecipeRegistry,
        fetcher: Optional[RemoteFetcher] = None,
        rules_dir: Optional[Path] = None,
    ):
        """Initialize the loader.

        Args:
            canonicalizer: Resolves local references and identities
            registry: Recipe lookup
            fetcher: Lists GitHub tree URLs; tree entries warn when absent
            rules_dir: Rule tree scanned for ``recipes:`` tags
        """
        self.canonicalizer = canonicalizer
        self.registry = registry
        self.fetcher = fetcher
        self.rules_dir = rules_dir

    def load(self, name: str) -> LoadedRecipe:
        """Expand the recipe called ``name``.

        Raises:
            RecipeNotFoundError: If the recipe is not registered
        """
        recipe = self.registry.require(name)
        loaded = LoadedRecipe(name=name, recipe=recipe)

        collected: list[Source] = []
        for entry in recipe.files:
            collected.extend(self._local_entry(entry, loaded.warnings))
        for spec in recipe.sources:
            collected.extend(self._source_spec(spec, loaded.warnings))
        for url in recipe.remote_sources:
            collected.extend(self._url_entry(url, loaded.warnings))
        collected.extend(self._tagged(name))

        seen: set[str] = set()
        for source in collected:
            identity = self.canonicalizer.identity(source)
            if identity not in seen:
                seen.add(identity)
                loaded.sources.append(source)
        return loaded

    def _local_entry(self, entry: str, warnings: list[str]) -> list[Source]:
        found = self.canonicalizer.find(entry)
        if found is not None and found.is_dir():
            return [Source.local(str(path)) for path in expand_directory(found)]

        source = self.canonicalizer.canonicalize(None, entry)
        if source is None:
            warnings.append(f"File not found: {entry}")
            return []
        return [source]

    def _url_entry(self, url: str, warnings: list[str]) -> list[Source]:
        location = parse_github_url(url)
        if location is not None and location.mode == "tree":
            return self._tree(url, warnings)
        return [Source.remote(url)]

    def _tree(self, tree_url: str, warnings: list[str]) -> list[Source]:
        if self.fetcher is None:
            warnings.append(f"No remote fetcher configured, skipping: {tree_url}")
            return []
        blobs = self.fetcher.list_directory(tree_url)
        if not blobs:
            warnings.append(f"No markdown files found in {tree_url}")
        return [Source.remote(url) for url in blobs]

    def _source_spec(self, spec: SourceSpec, warnings: list[str]) -> list[Source]:
        if isinstance(spec, GithubSourceSpec):
            sources: list[Source] = []
            for rule in spec.rules:
                path = rule.strip("/")
                if looks_like_file(path):
                    sources.append(
                        Source.remote(
                            f"https://github.com/{spec.github}/blob/{spec.branch}/{path}"
                        )
                    )
                else:
                    sources.extend(
                        self._tree(
                            f"https://github.com/{spec.github}/tree/{spec.branch}/{path}",
                            warnings,
                        )
                    )
            return sources

        if isinstance(spec, LocalSourceSpec):
            sources = []
            for entry in spec.local:
                sources.extend(self._local_entry(entry, warnings))
            return sources

        if is_url(spec):
            return self._url_entry(spec, warnings)
        return self._local_entry(spec, warnings)

    def _tagged(self, name: str) -> list[Source]:
        """Find rule files whose ``recipes:`` tag list names this recipe."""
        if self.rules_dir is None or not self.rules_dir.is_dir():
            return []

        tagged = []
        for path in sorted(self.rules_dir.rglob("*")):
            if not path.is_file() or path.suffix not in TAG_SUFFIXES:
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            if name in read_directives(content).recipes:
                tagged.append(Source.local(os.path.realpath(path)))
        return tagged


def filter_essential(sources: list[Source]) -> list[Source]:
    """Keep only local sources whose frontmatter sets ``essential: true``."""
    essential = []
    for source in sources:
        if source.kind is not SourceKind.LOCAL or not os.path.isfile(source.reference):
            continue
        try:
            with open(source.reference, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError):
            continue
        if read_directives(content).essential:
            essential.append(source)
    return essential
