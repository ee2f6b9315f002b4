"""Remote rule fetcher backed by the GitHub REST and GraphQL APIs."""

import base64
import json
from collections import defaultdict
from typing import Any, Callable, Optional

import httpx

from rule_squash.core.urls import GitHubLocation, parse_github_url


class GitHubFetcher:
    """Fetcher for rule files hosted on GitHub or plain HTTP servers.

    Every document is tried against an ordered list of strategies, each
    attempted once: the contents API, then raw.githubusercontent.com for
    GitHub blob URLs, or a plain GET for anything else. There is no retry
    loop and no per-request timeout; callers wrap the whole run instead.
    """

    BASE_URL = "https://api.github.com"
    GRAPHQL_URL = "https://api.github.com/graphql"

    def __init__(self, token: str | None = None, client: Optional[httpx.Client] = None):
        """Initialize GitHub fetcher.

        Args:
            token: Optional GitHub personal access token. Batch prefetching
                through GraphQL is only available with a token.
            client: Optional preconfigured HTTP client
        """
        self.token = token
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "rule-squash",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=None, follow_redirects=True)
        return self._client

    def close(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "GitHubFetcher":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def fetch(self, url: str) -> str | None:
        """Fetch the text of a remote rule file.

        Args:
            url: GitHub blob URL or any http(s) URL

        Returns:
            The document text, or None if every strategy failed
        """
        for strategy in self._strategies(url):
            try:
                return strategy()
            except (httpx.HTTPError, ValueError, KeyError):
                continue
        return None

    def _strategies(self, url: str) -> list[Callable[[], str]]:
        location = parse_github_url(url)
        if location is not None and location.mode == "blob":
            return [
                lambda: self._fetch_contents(location),
                lambda: self._get_text(location.raw_url),
            ]
        return [lambda: self._get_text(url)]

    def _fetch_contents(self, location: GitHubLocation) -> str:
        """Read a file through the contents API.

        Raises:
            httpx.HTTPError: If the request fails
            ValueError: If the response is not a base64 encoded file
        """
        response = self.client.get(
            f"{self.BASE_URL}/repos/{location.repo_key}/contents/{location.path}",
            headers=self._headers,
            params={"ref": location.ref},
        )
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict) or data.get("encoding") != "base64":
            raise ValueError(f"Expected a file at {location.path}")
        return base64.b64decode(data["content"]).decode("utf-8")

    def _get_text(self, url: str) -> str:
        response = self.client.get(url, headers={"User-Agent": "rule-squash"})
        response.raise_for_status()
        return response.text

    def list_directory(self, tree_url: str) -> list[str]:
        """List the markdown files of a GitHub directory.

        Args:
            tree_url: https://github.com/owner/repo/tree/ref/path

        Returns:
            Blob URLs of the ``.md`` files directly inside the directory,
            sorted by name; empty if the directory cannot be read
        """
        location = parse_github_url(tree_url)
        if location is None:
            return []

        try:
            response = self.client.get(
                f"{self.BASE_URL}/repos/{location.repo_key}/contents/{location.path}",
                headers=self._headers,
                params={"ref": location.ref},
            )
            response.raise_for_status()
            items = response.json()
        except (httpx.HTTPError, json.JSONDecodeError):
            return []

        if not isinstance(items, list):
            return []

        names = sorted(
            item["name"]
            for item in items
            if item.get("type") == "file" and str(item.get("name", "")).endswith(".md")
        )
        return [location.blob(f"{location.path}/{name}").url for name in names]

    def prefetch(self, urls: list[str]) -> dict[str, str]:
        """Batch fetch GitHub blob URLs, one GraphQL query per repository.

        Repositories contributing a single file are left to per-file fetching.

        Returns:
            Mapping of URL to text for every file the batch returned
        """
        if not self.token:
            return {}

        grouped: dict[str, list[tuple[str, GitHubLocation]]] = defaultdict(list)
        for url in urls:
            location = parse_github_url(url)
            if location is not None and location.mode == "blob":
                grouped[location.repo_key].append((url, location))

        results: dict[str, str] = {}
        for entries in grouped.values():
            if len(entries) < 2:
                continue
            try:
                results.update(self._fetch_batch(entries))
            except (httpx.HTTPError, ValueError):
                continue
        return results

    def _fetch_batch(
        self, entries: list[tuple[str, GitHubLocation]]
    ) -> dict[str, str]:
        owner, repo = entries[0][1].owner, entries[0][1].repo
        fields = "\n".join(
            f'file{idx}: object(expression: {json.dumps(f"{loc.ref}:{loc.path}")}) '
            "{ ... on Blob { text } }"
            for idx, (_, loc) in enumerate(entries)
        )
        query = (
            f"query {{ repository(owner: {json.dumps(owner)}, name: {json.dumps(repo)}) "
            f"{{ {fields} }} }}"
        )

        response = self.client.post(
            self.GRAPHQL_URL, headers=self._headers, json={"query": query}
        )
        response.raise_for_status()

        repository = (response.json().get("data") or {}).get("repository") or {}
        results = {}
        for idx, (url, _) in enumerate(entries):
            blob = repository.get(f"file{idx}")
            if blob and blob.get("text") is not None:
                results[url] = blob["text"]
        return results
