"""GitHub URL parsing and construction.

Handles the URL shapes rule sources use:
- https://github.com/owner/repo/blob/main/rules/testing.md (a file)
- https://github.com/owner/repo/tree/main/rules/testing (a directory)
- github:owner/repo/blob/main/bin/tool.sh (shorthand for scripts)
"""

import posixpath
import re
from dataclasses import dataclass
from typing import Literal, Optional
from urllib.parse import urlparse

from rule_squash.utils.paths import normalize_segments

_FILE_LIKE = re.compile(r"\.\w+$")


@dataclass(frozen=True)
class GitHubLocation:
    """A file or directory inside a GitHub repository.

    Attributes:
        owner: Repository owner
        repo: Repository name
        mode: "blob" for files, "tree" for directories
        ref: Git branch/tag/commit reference
        path: Path within the repository, without a leading slash
    """

    owner: str
    repo: str
    mode: Literal["blob", "tree"]
    ref: str
    path: str

    @property
    def repo_key(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/{self.mode}/{self.ref}/{self.path}"

    @property
    def raw_url(self) -> str:
        return f"https://raw.githubusercontent.com/{self.owner}/{self.repo}/{self.ref}/{self.path}"

    def blob(self, path: str) -> "GitHubLocation":
        """Return the blob location of ``path`` in the same repository and ref."""
        return GitHubLocation(self.owner, self.repo, "blob", self.ref, path)

    def join(self, reference: str) -> "GitHubLocation":
        """Resolve ``reference`` against this file's directory.

        A reference with a leading slash is taken from the repository root.
        ``.`` and ``..`` are collapsed as plain string segments.
        """
        if reference.startswith("/"):
            return self.blob(normalize_segments(reference[1:]))
        directory = posixpath.dirname(self.path)
        return self.blob(normalize_segments(posixpath.join(directory, reference)))


def parse_github_url(url: str) -> Optional[GitHubLocation]:
    """Parse a GitHub blob or tree URL.

    Args:
        url: URL to parse

    Returns:
        GitHubLocation, or None if the URL is not a blob/tree URL on github.com
    """
    parsed = urlparse(url)
    if parsed.netloc not in ("github.com", "www.github.com"):
        return None

    parts = parsed.path.lstrip("/").split("/")
    if len(parts) < 5 or parts[2] not in ("blob", "tree") or not parts[4]:
        return None

    return GitHubLocation(
        owner=parts[0],
        repo=parts[1],
        mode=parts[2],  # type: ignore[arg-type]
        ref=parts[3],
        path="/".join(parts[4:]).rstrip("/"),
    )


def normalize_github_url(url: str) -> str:
    """Expand the ``github:owner/repo/...`` shorthand to a full URL."""
    if url.startswith("github:"):
        return f"https://github.com/{url[len('github:'):].lstrip('/')}"
    return url


def looks_like_file(path: str) -> bool:
    """Check whether the last path segment carries an extension."""
    return bool(_FILE_LIKE.search(path.rstrip("/").rsplit("/", 1)[-1]))
