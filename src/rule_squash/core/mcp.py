"""Aggregation of MCP server names across a recipe and its subagents."""

from typing import Callable, Iterable, Optional

from rule_squash.core.registry import RecipeRegistry
from rule_squash.core.resolver import Resolution


def unique(items: Iterable[str]) -> list[str]:
    """Deduplicate while keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def servers_from_resolution(resolution: Resolution) -> list[str]:
    """Collect ``mcp_servers:`` declared by resolved rule files."""
    return unique(
        server for source in resolution.sources for server in source.directives.mcp_servers
    )


def collect_mcp_servers(
    name: str,
    registry: RecipeRegistry,
    resolution_for: Optional[Callable[[str], Resolution]] = None,
    visited: Optional[set[str]] = None,
) -> list[str]:
    """Collect every MCP server a recipe needs, subagents included.

    The result is the recipe's own ``mcp_servers``, then the servers its
    resolved files declare, then the recursive collection of each subagent
    recipe. Each subagent recipe is expanded at most once per call, so
    circular subagent graphs terminate.

    Args:
        name: Recipe to collect for
        registry: Recipe lookup
        resolution_for: Returns the resolution of a recipe by name; file
            declarations are skipped when omitted
        visited: Subagent recipe names already expanded

    Returns:
        Server names in first-seen order, without duplicates
    """
    if visited is None:
        visited = set()

    recipe = registry.get(name)
    if recipe is None:
        return []

    servers = list(recipe.mcp_servers)
    if resolution_for is not None:
        servers.extend(servers_from_resolution(resolution_for(name)))

    for subagent in recipe.subagents:
        if subagent.recipe in visited:
            continue
        visited.add(subagent.recipe)
        servers.extend(collect_mcp_servers(subagent.recipe, registry, resolution_for, visited))

    return unique(servers)
