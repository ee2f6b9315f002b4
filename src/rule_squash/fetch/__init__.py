"""Remote rule fetching."""

from rule_squash.fetch.github import GitHubFetcher
from rule_squash.fetch.protocols import RemoteFetcher

__all__ = ["GitHubFetcher", "RemoteFetcher"]
