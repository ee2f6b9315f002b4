"""Tests for combined document and agent file rendering."""

from datetime import datetime

from rule_squash.config.schema import RecipeConfig
from rule_squash.core.loader import LoadedRecipe
from rule_squash.core.resolver import Resolution
from rule_squash.core.source import Classification, ProcessedSource, Source
from rule_squash.core.subagents import SubagentNode
from rule_squash.emit.markdown import render_agent, render_combined


def processed(name, content, classification=Classification.CONTENT):
    return ProcessedSource(
        source=Source.local(name),
        identity=name,
        path=name,
        content=content,
        original_content=content,
        classification=classification,
    )


def node(sources, description=None):
    recipe = RecipeConfig(description=description)
    return SubagentNode(
        name="code_reviewer",
        owning_recipe="main",
        child_recipe="review",
        recipe=recipe,
        loaded=LoadedRecipe(name="review", recipe=recipe),
        resolution=Resolution(sources=sources),
        model="inherit",
        mcp_servers=[],
    )


class TestRenderCombined:
    """Test the combined document."""

    def test_joins_with_blank_lines(self):
        document = render_combined([processed("a.md", "# A\n\n"), processed("b.md", "# B")])
        assert document == "# A\n\n# B\n"

    def test_empty(self):
        assert render_combined([]) == ""


class TestRenderAgent:
    """Test subagent file rendering."""

    def test_full_agent(self):
        sources = [
            processed("a.md", "# Review\n"),
            processed("c.md", "cmd", Classification.COMMAND),
            processed("blank.md", "\n"),
        ]

        content = render_agent(
            node(sources, description="Reviews code"),
            skill_names=["lint", "audit"],
            mcp_servers=["github"],
            generated_at=datetime(2024, 5, 1, 12, 30, 0),
        )

        assert content.startswith(
            "---\n"
            "name: code_reviewer\n"
            "description: Reviews code\n"
            "tools: Bash, Read, Write, Edit, Glob, Grep\n"
            "model: inherit\n"
            "skills: [lint, audit]\n"
            "mcpServers: [github]\n"
            "permissionMode: bypassPermissions\n"
            "# Auto-generated from recipe: review\n"
            "# Do not edit manually - regenerate using 'rule-squash squash main'\n"
            "---\n"
        )
        assert "# Code Reviewer\n\nReviews code\n\n## Recipe Content\n\n# Review\n\n---\n" in content
        assert "cmd" not in content
        assert content.endswith(
            "---\n*Last generated: 2024-05-01 12:30:00*\n*Source recipe: review*\n"
        )

    def test_optional_lists_omitted(self):
        content = render_agent(
            node([]), skill_names=[], mcp_servers=[], generated_at=datetime(2024, 1, 1)
        )

        assert "skills:" not in content
        assert "mcpServers:" not in content
        assert "description: Subagent for review\n" in content
