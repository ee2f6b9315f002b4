"""Abstract interface for reading remote rule documents."""

from typing import Protocol


class RemoteFetcher(Protocol):
    """Reads remote rule files and lists remote rule directories.

    Implementations never raise for an unreachable document; they return
    None or an empty result and let the caller record a warning.
    """

    def fetch(self, url: str) -> str | None:
        """Return the text at ``url``, or None if every strategy failed."""
        ...

    def list_directory(self, tree_url: str) -> list[str]:
        """Return one blob URL per markdown file in a GitHub tree URL."""
        ...

    def prefetch(self, urls: list[str]) -> dict[str, str]:
        """Fetch many URLs in as few requests as possible.

        Returns:
            Mapping of URL to text for every URL that was fetched; URLs
            missing from the mapping are fetched one by one later.
        """
        ...
