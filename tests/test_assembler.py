"""Tests for squash planning and writing."""

import json
import os
import stat
from datetime import datetime

import pytest

from rule_squash.core.errors import (
    NestedSubagentError,
    RecipeNotFoundError,
    SkillReferenceError,
)
from rule_squash.emit.assembler import (
    ArtifactKind,
    SquashContext,
    plan_squash,
    squash,
)

from conftest import FakeFetcher

GENERATED_AT = datetime(2024, 5, 1, 9, 0, 0)


@pytest.fixture
def destination(tmp_path):
    """Provide an empty output directory."""
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def context_for(make_config, destination):
    """Return a helper building a squash context for given recipes."""

    def build(recipes, fetcher=None, **options):
        return SquashContext(
            config=make_config(recipes),
            fetcher=fetcher,
            destination=destination,
            generated_at=GENERATED_AT,
            **options,
        )

    return build


def paths(plan, kind):
    return [artifact.path.as_posix() for artifact in plan.of(kind)]


class TestPlanDocument:
    """Test the combined document."""

    def test_combined_document(self, write_rule, context_for):
        write_rule("rules/common.md", "# Common\n")
        write_rule("rules/a.md", "# A\n", frontmatter="requires: [common.md]")
        write_rule("rules/b.md", "# B\n", frontmatter="requires: [common.md]")

        plan = plan_squash("r", context_for({"r": {"files": ["rules/a.md", "rules/b.md"]}}))

        assert plan.document.path.as_posix() == "CLAUDE.local.md"
        assert plan.document.content == "# Common\n\n# A\n\n# B\n"

    def test_output_file_override(self, write_rule, context_for):
        write_rule("rules/a.md", "A\n")

        plan = plan_squash(
            "r", context_for({"r": {"files": ["rules/a.md"]}}, output_file="AGENTS.md")
        )

        assert plan.document.path.as_posix() == "AGENTS.md"

    def test_agent_only_recipe(self, write_rule, context_for):
        write_rule("rules/a.md", "A\n")

        plan = plan_squash("helper", context_for({"helper": ["rules/a.md"]}))

        assert plan.document.path.as_posix() == ".claude/agents/helper.md"

    def test_essential_filter(self, write_rule, context_for):
        write_rule("rules/keep.md", "Keep\n", frontmatter="essential: true")
        write_rule("rules/drop.md", "Drop\n")
        recipes = {"r": {"files": ["rules/keep.md", "rules/drop.md"]}}

        plan = plan_squash("r", context_for(recipes, essential=True))

        assert plan.document.content == "Keep\n"

    def test_keep_frontmatter(self, write_rule, context_for):
        write_rule("rules/a.md", "A\n", frontmatter="globs: '*.rb'\nrequires: [x.md]")

        plan = plan_squash(
            "r", context_for({"r": {"files": ["rules/a.md"]}}, keep_frontmatter=True)
        )

        assert plan.document.content == "---\nglobs: '*.rb'\n---\nA\n"

    def test_missing_file_warns(self, context_for):
        plan = plan_squash("r", context_for({"r": {"files": ["rules/gone.md"]}}))

        assert plan.warnings == ["File not found: rules/gone.md"]
        assert plan.document.content == ""


class TestPlanArtifacts:
    """Test commands, skills, bins and scripts."""

    def test_commands_and_skills(self, write_rule, context_for):
        write_rule("rules/git/commands/commit.md", "Commit\n")
        write_rule("rules/skills/deploy.md", "Deploy\n")
        write_rule(
            "rules/main.md", "Main\n", frontmatter="skills: [skills/deploy.md]"
        )
        recipes = {"r": {"files": ["rules/main.md", "rules/git/commands/commit.md"]}}

        plan = plan_squash("r", context_for(recipes))

        assert paths(plan, ArtifactKind.COMMAND) == [".claude/commands/git/commit.md"]
        assert paths(plan, ArtifactKind.SKILL) == [".claude/skills/deploy/SKILL.md"]
        assert plan.document.content == "Main\n"

    def test_omit_command_prefix(self, write_rule, context_for):
        write_rule("rules/ruby/rails/commands/gen.md", "Gen\n")
        recipes = {
            "r": {
                "files": ["rules/ruby/rails/commands/gen.md"],
                "omit_command_prefix": "ruby",
            }
        }

        plan = plan_squash("r", context_for(recipes))

        assert paths(plan, ArtifactKind.COMMAND) == [".claude/commands/rails/gen.md"]

    def test_bins_and_scripts(self, write_rule, context_for):
        write_rule("rules/tools/bin/reset.sh", "#!/bin/sh\n")
        write_rule("rules/tools/run.sh", "#!/bin/sh\n")
        write_rule(
            "rules/tools/a.md",
            "A\n",
            frontmatter="scripts:\n  files: [run.sh]\n  remote: ['https://example.com/x.sh']",
        )
        fetcher = FakeFetcher({"https://example.com/x.sh": "#!/bin/sh\necho x\n"})

        plan = plan_squash("r", context_for({"r": {"files": ["rules/tools"]}}, fetcher=fetcher))

        bins = plan.of(ArtifactKind.BIN)
        assert [b.path.as_posix() for b in bins] == [".rule-squash/bin/reset.sh"]
        assert bins[0].executable
        assert paths(plan, ArtifactKind.SCRIPT) == [
            ".claude/scripts/run.sh",
            ".claude/scripts/x.sh",
        ]

    def test_unfetchable_script_warns(self, write_rule, context_for):
        write_rule(
            "rules/a.md", "A\n", frontmatter="scripts:\n  remote: ['https://example.com/x.sh']"
        )

        plan = plan_squash("r", context_for({"r": {"files": ["rules/a.md"]}}, fetcher=FakeFetcher()))

        assert plan.of(ArtifactKind.SCRIPT) == []
        assert "Failed to fetch script: https://example.com/x.sh" in plan.warnings


    def test_missing_shell_commands_warn(self, write_rule, context_for, monkeypatch, tmp_path):
        """Test warnings for commands missing from PATH, subagents included."""
        monkeypatch.setenv("PATH", str(tmp_path / "empty-path"))
        write_rule("rules/a.md", "A\n", frontmatter="require_shell_commands: jq")
        write_rule("rules/review.md", "R\n", frontmatter="require_shell_commands: [gh, jq]")
        recipes = {
            "r": {
                "files": ["rules/a.md"],
                "subagents": [{"name": "reviewer", "recipe": "review"}],
            },
            "review": {"files": ["rules/review.md"]},
        }

        plan = plan_squash("r", context_for(recipes))

        assert [w for w in plan.warnings if w.startswith("Required shell command")] == [
            "Required shell command 'jq' not found in PATH",
            "Required shell command 'gh' not found in PATH",
        ]


class TestPlanSubagents:
    """Test subagent files and validation."""

    def test_subagent_files(self, write_rule, context_for):
        write_rule("rules/main.md", "Main\n", frontmatter="dispatches: [reviewer]")
        write_rule("rules/review/check.md", "Check\n")
        write_rule("rules/review/commands/review.md", "Run review\n")
        write_rule("rules/skills/lint.md", "Lint\n")
        write_rule("rules/review/lint-user.md", "Uses lint\n", frontmatter="skills: [../skills/lint.md]")
        recipes = {
            "main": {
                "files": ["rules/main.md"],
                "subagents": [{"name": "reviewer", "recipe": "review"}],
                "model": "sonnet",
            },
            "review": {
                "description": "Reviews changes",
                "files": ["rules/review"],
                "mcp_servers": ["github"],
            },
        }

        plan = plan_squash("main", context_for(recipes))

        agent = plan.of(ArtifactKind.AGENT)[0]
        assert agent.path.as_posix() == ".claude/agents/reviewer.md"
        assert "model: sonnet\n" in agent.content
        assert "skills: [lint]\n" in agent.content
        assert "mcpServers: [github]\n" in agent.content
        assert "Check\n" in agent.content
        assert paths(plan, ArtifactKind.COMMAND) == [
            ".claude/commands/reviewer/review/review.md"
        ]
        assert paths(plan, ArtifactKind.SKILL) == [".claude/skills/lint/SKILL.md"]
        assert plan.mcp_servers == ["github"]

    def test_subagent_bins(self, write_rule, context_for):
        """Test that bin files of a subagent recipe are copied too."""
        write_rule("rules/main.md", "Main\n")
        write_rule("rules/review/check.md", "Check\n")
        write_rule("rules/review/bin/tool.sh", "#!/bin/sh\n")
        recipes = {
            "main": {
                "files": ["rules/main.md"],
                "subagents": [{"name": "reviewer", "recipe": "review"}],
            },
            "review": {"files": ["rules/review/check.md", "rules/review/bin/tool.sh"]},
        }

        plan = plan_squash("main", context_for(recipes))

        bins = plan.of(ArtifactKind.BIN)
        assert [b.path.as_posix() for b in bins] == [".rule-squash/bin/tool.sh"]
        assert bins[0].executable

    def test_nested_subagents_fail(self, context_for):
        recipes = {
            "a": {"subagents": [{"name": "b", "recipe": "rb"}]},
            "rb": {"subagents": [{"name": "c", "recipe": "rc"}]},
            "rc": {},
        }

        with pytest.raises(NestedSubagentError):
            plan_squash("a", context_for(recipes))

    def test_unknown_recipe(self, context_for):
        with pytest.raises(RecipeNotFoundError):
            plan_squash("nope", context_for({}))


class TestPlanManifest:
    """Test .mcp.json planning."""

    def test_manifest_from_definitions(self, tmp_path, destination, context_for):
        (tmp_path / "mcp.json").write_text(json.dumps({"github": {"command": "gh"}}))
        (destination / ".mcp.json").write_text(json.dumps({"keep": 1}))
        recipes = {"r": {"mcp_servers": ["github", "missing"]}}

        plan = plan_squash("r", context_for(recipes))

        manifest = json.loads(plan.of(ArtifactKind.MANIFEST)[0].content)
        assert manifest == {"keep": 1, "mcpServers": {"github": {"command": "gh", "type": "stdio"}}}
        assert any("'missing'" in warning for warning in plan.warnings)

    def test_missing_definitions_file_warns(self, context_for):
        plan = plan_squash("r", context_for({"r": {"mcp_servers": ["github"]}}))

        assert plan.of(ArtifactKind.MANIFEST) == []
        assert any("github" in warning for warning in plan.warnings)

    def test_no_servers_no_manifest(self, context_for):
        plan = plan_squash("r", context_for({"r": {}}))
        assert plan.of(ArtifactKind.MANIFEST) == []


class TestSquash:
    """Test writing and the all-or-nothing outcome."""

    def test_writes_artifacts(self, write_rule, destination, context_for):
        write_rule("rules/a.md", "A\n")
        write_rule("rules/bin/tool.sh", "#!/bin/sh\n")
        write_rule("rules/commands/go.md", "Go\n")
        recipes = {"r": {"files": ["rules/a.md", "rules/bin/tool.sh", "rules/commands/go.md"]}}

        outcome = squash("r", context_for(recipes))

        assert outcome.ok
        assert (destination / "CLAUDE.local.md").read_text() == "A\n"
        assert (destination / ".claude/commands/go.md").read_text() == "Go\n"
        tool = destination / ".rule-squash/bin/tool.sh"
        assert stat.S_IMODE(os.stat(tool).st_mode) == 0o755
        assert len(outcome.written) == 3

    def test_dry_run_writes_nothing(self, write_rule, destination, context_for):
        write_rule("rules/a.md", "A\n")

        outcome = squash("r", context_for({"r": {"files": ["rules/a.md"]}}), dry_run=True)

        assert outcome.ok
        assert outcome.written == []
        assert list(destination.iterdir()) == []

    def test_failure_writes_nothing(self, write_rule, destination, context_for):
        write_rule("rules/a.md", "A\n")
        write_rule("rules/b.md", "B\n", frontmatter="skills: [skills/gone.md]")
        recipes = {"r": {"files": ["rules/a.md", "rules/b.md"]}}

        outcome = squash("r", context_for(recipes))

        assert not outcome.ok
        assert isinstance(outcome.error, SkillReferenceError)
        assert outcome.plan is None
        assert list(destination.iterdir()) == []
