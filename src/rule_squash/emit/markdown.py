"""Markdown rendering for the combined document and subagent files."""

from datetime import datetime
from typing import Sequence

from rule_squash.core.source import ProcessedSource
from rule_squash.core.subagents import SubagentNode

AGENT_TOOLS = "Bash, Read, Write, Edit, Glob, Grep"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def render_combined(sources: Sequence[ProcessedSource]) -> str:
    """Concatenate source contents in order, separated by blank lines.

    Args:
        sources: Content sources in emission order

    Returns:
        The combined document; empty when there is no content
    """
    parts = [source.content.rstrip("\n") for source in sources]
    if not parts:
        return ""
    return "\n\n".join(parts) + "\n"


def _title(agent_name: str) -> str:
    return " ".join(word.capitalize() for word in agent_name.split("_"))


def _inline_list(key: str, values: Sequence[str]) -> list[str]:
    return [f"{key}: [{', '.join(values)}]"] if values else []


def render_agent(
    node: SubagentNode,
    skill_names: Sequence[str],
    mcp_servers: Sequence[str],
    generated_at: datetime,
) -> str:
    """Render a subagent definition file.

    The file carries a generated header (name, description, tools, model,
    skills, mcpServers, permissionMode), the subagent recipe's content
    sources, and a footer naming the source recipe.
    """
    header = [
        "---",
        f"name: {node.name}",
        f"description: {node.description}",
        f"tools: {AGENT_TOOLS}",
        f"model: {node.model}",
        *_inline_list("skills", skill_names),
        *_inline_list("mcpServers", mcp_servers),
        "permissionMode: bypassPermissions",
        f"# Auto-generated from recipe: {node.child_recipe}",
        "# Do not edit manually - regenerate using "
        f"'rule-squash squash {node.owning_recipe}'",
        "---",
        "",
    ]

    body = [
        f"# {_title(node.name)}",
        "",
        node.description,
        "",
        "## Recipe Content",
        "",
    ]
    for source in node.resolution.content:
        content = source.content.rstrip("\n")
        if not content.strip():
            continue
        body.extend([content, "", "---", ""])

    footer = [
        "---",
        f"*Last generated: {generated_at.strftime(TIMESTAMP_FORMAT)}*",
        f"*Source recipe: {node.child_recipe}*",
    ]
    return "\n".join(header + body + footer) + "\n"
