"""Tests for required shell command checks."""

from rule_squash.core.resolver import DependencyResolver
from rule_squash.core.shell import (
    missing_command_warnings,
    missing_commands,
    required_commands,
)
from rule_squash.core.source import Source

from conftest import FakeFetcher

REMOTE = "https://example.com/rules/remote.md"


class TestRequiredCommands:
    """Test collection from resolved sources."""

    def test_local_sources_in_order(self, write_rule, canonicalizer):
        write_rule("rules/common.md", "C\n", frontmatter="require_shell_commands: [gh, jq]")
        write_rule(
            "rules/a.md",
            "A\n",
            frontmatter="requires: [common.md]\nrequire_shell_commands: jq",
        )
        fetcher = FakeFetcher({REMOTE: "---\nrequire_shell_commands: [curl]\n---\nR\n"})
        resolution = DependencyResolver(canonicalizer, fetcher=fetcher).resolve(
            [Source.local("rules/a.md"), Source.remote(REMOTE)]
        )

        assert required_commands(resolution.sources) == ["gh", "jq"]


class TestMissingCommands:
    """Test PATH lookups."""

    def test_lookup_is_injectable(self):
        available = {"git": "/usr/bin/git"}

        assert missing_commands(["git", "jq"], which=available.get) == ["jq"]

    def test_executable_on_path(self, tmp_path, monkeypatch):
        tool = tmp_path / "bin" / "rule-squash-test-tool"
        tool.parent.mkdir()
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o755)
        monkeypatch.setenv("PATH", str(tool.parent))

        assert missing_commands(["rule-squash-test-tool", "rule-squash-absent"]) == [
            "rule-squash-absent"
        ]

    def test_warning_text(self, write_rule, canonicalizer, monkeypatch, tmp_path):
        monkeypatch.setenv("PATH", str(tmp_path / "empty"))
        write_rule("rules/a.md", "A\n", frontmatter="require_shell_commands: [jq]")
        resolution = DependencyResolver(canonicalizer).resolve([Source.local("rules/a.md")])

        assert missing_command_warnings(resolution.sources) == [
            "Required shell command 'jq' not found in PATH"
        ]
