"""Shared pytest fixtures for rule-squash tests."""

from pathlib import Path
from textwrap import dedent

import pytest

from rule_squash.config.schema import RuleSquashConfig
from rule_squash.core.canonical import Canonicalizer


class FakeFetcher:
    """In-memory remote fetcher.

    ``documents`` maps URLs to text, ``directories`` maps tree URLs to the
    blob URLs they list. Every fetch is recorded in ``fetched``.
    """

    def __init__(self, documents=None, directories=None, batch=None):
        self.documents = dict(documents or {})
        self.directories = dict(directories or {})
        self.batch = dict(batch or {})
        self.fetched = []
        self.prefetched = []

    def fetch(self, url):
        self.fetched.append(url)
        return self.documents.get(url)

    def list_directory(self, tree_url):
        return list(self.directories.get(tree_url, []))

    def prefetch(self, urls):
        self.prefetched.append(list(urls))
        return {url: self.batch[url] for url in urls if url in self.batch}


@pytest.fixture
def project(tmp_path):
    """Provide an empty project root directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def write_rule(project):
    """Return a helper that writes a rule file below the project root."""

    def write(relative: str, content: str = "", frontmatter: str | None = None) -> Path:
        path = project / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        text = dedent(content)
        if frontmatter is not None:
            text = f"---\n{dedent(frontmatter).strip()}\n---\n{text}"
        path.write_text(text)
        return path

    return write


@pytest.fixture
def canonicalizer(project):
    """Canonicalizer searching only the project root."""
    return Canonicalizer([project], project_root=project)


@pytest.fixture
def fake_fetcher():
    """Provide an empty in-memory fetcher."""
    return FakeFetcher()


@pytest.fixture
def make_config(project, tmp_path):
    """Return a helper building a config rooted at the project directory."""

    def build(recipes: dict, **settings) -> RuleSquashConfig:
        base_settings = {
            "project_root": str(project),
            "home_rules_dir": str(tmp_path / "home-rules"),
            "mcp_config": str(tmp_path / "mcp.json"),
        }
        base_settings.update(settings)
        return RuleSquashConfig(
            version="1.0", settings=base_settings, recipes=recipes
        )

    return build


@pytest.fixture
def minimal_config_dict():
    """Provide a minimal valid configuration dictionary."""
    return {
        "version": "1.0",
        "settings": {
            "rules_dir": "rules",
            "output_file": "CLAUDE.local.md",
        },
        "recipes": {},
    }


@pytest.fixture
def sample_recipes():
    """Provide recipes covering the main recipe shapes."""
    return {
        "ruby": {
            "description": "Ruby development",
            "files": ["rules/ruby"],
            "mcp_servers": ["github"],
        },
        "review": ["rules/review/checklist.md"],
        "remote": {
            "sources": [
                {"github": "owner/rules", "branch": "main", "rules": ["testing.md"]},
                "https://example.com/rules/style.md",
            ],
        },
    }
