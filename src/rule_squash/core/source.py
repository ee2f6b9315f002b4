"""Source references and the processed records produced from them."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from rule_squash.core.frontmatter import Directives
from rule_squash.utils.paths import directory_segments


class SourceKind(str, Enum):
    """Where a rule document lives."""

    LOCAL = "local"
    REMOTE = "remote"


class Classification(str, Enum):
    """Which artifact a processed source feeds."""

    CONTENT = "content"
    COMMAND = "command"
    SKILL = "skill"
    BIN = "bin"


@dataclass(frozen=True)
class Source:
    """A single reference to a rule document.

    Attributes:
        reference: Filesystem path (possibly relative) or URL
        kind: Local or remote
        via_requires: The source was pulled in by a ``requires:`` directive
        via_skills: The source was pulled in by a ``skills:`` directive
    """

    reference: str
    kind: SourceKind
    via_requires: bool = field(default=False, compare=False)
    via_skills: bool = field(default=False, compare=False)

    @classmethod
    def local(cls, reference: str) -> "Source":
        return cls(reference=str(reference), kind=SourceKind.LOCAL)

    @classmethod
    def remote(cls, url: str) -> "Source":
        return cls(reference=url, kind=SourceKind.REMOTE)

    @property
    def is_remote(self) -> bool:
        return self.kind is SourceKind.REMOTE


def is_url(reference: str) -> bool:
    """Check whether a reference is an absolute http(s) URL."""
    return reference.startswith(("http://", "https://"))


def classify(path: str) -> Classification:
    """Classify a source by the directories it lives under.

    ``bin/**/*.sh`` wins over ``skills/``, which wins over ``commands/``.
    """
    directories = directory_segments(path)
    if "bin" in directories and path.endswith(".sh"):
        return Classification.BIN
    if "skills" in directories:
        return Classification.SKILL
    if "commands" in directories:
        return Classification.COMMAND
    return Classification.CONTENT


@dataclass
class ProcessedSource:
    """A source whose content has been read, produced once per identity.

    Attributes:
        source: The reference that first reached this document
        identity: Canonical dedup key (realpath or URL)
        path: Display path, relative to the project root when possible
        content: Text with resolution metadata stripped
        original_content: Text as read, frontmatter intact
        classification: Which artifact the source feeds
        directives: Directives parsed from ``original_content``
    """

    source: Source
    identity: str
    path: str
    content: str
    original_content: str
    classification: Classification
    directives: Directives = field(default_factory=Directives)

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path).name
