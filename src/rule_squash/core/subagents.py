"""Subagent tree building and dispatch validation.

A recipe may register subagents, each backed by another recipe. The tree is
at most one level deep: a subagent recipe may not register subagents of its
own, and none of its files may dispatch work to further subagents.
"""

from dataclasses import dataclass
from typing import Callable

from rule_squash.config.schema import RecipeConfig, SubagentConfig
from rule_squash.core.errors import (
    NestedSubagentError,
    SubagentDispatchError,
    UnregisteredDispatchError,
)
from rule_squash.core.loader import LoadedRecipe
from rule_squash.core.mcp import servers_from_resolution, unique
from rule_squash.core.registry import RecipeRegistry
from rule_squash.core.resolver import Resolution

DEFAULT_AGENT_MODEL = "inherit"


@dataclass
class SubagentNode:
    """A validated subagent, ready for emission.

    Attributes:
        name: Subagent name
        owning_recipe: Recipe that registers the subagent
        child_recipe: Recipe the subagent is built from
        recipe: Definition of ``child_recipe``
        loaded: Top-level sources of ``child_recipe``
        resolution: Resolved sources of ``child_recipe``
        model: Subagent model, then owner model, then ``inherit``
        mcp_servers: Servers the subagent recipe and its files declare
    """

    name: str
    owning_recipe: str
    child_recipe: str
    recipe: RecipeConfig
    loaded: LoadedRecipe
    resolution: Resolution
    model: str
    mcp_servers: list[str]

    @property
    def description(self) -> str:
        return self.recipe.description or f"Subagent for {self.child_recipe}"

    @property
    def warnings(self) -> list[str]:
        return self.loaded.warnings + self.resolution.warnings


def validate_dispatches(recipe_name: str, recipe: RecipeConfig, resolution: Resolution) -> None:
    """Check that every ``dispatches:`` target is a registered subagent.

    Raises:
        UnregisteredDispatchError: On the first unregistered target
    """
    registered = set(recipe.subagent_names)
    for source in resolution.sources:
        for dispatch in source.directives.dispatches:
            if dispatch not in registered:
                raise UnregisteredDispatchError(recipe_name, source.filename, dispatch)


def validate_no_dispatches(
    agent_name: str, recipe_name: str, resolution: Resolution
) -> None:
    """Check that no file of a subagent recipe dispatches further subagents.

    Raises:
        SubagentDispatchError: Listing every offending file and target
    """
    offenders = [
        (source.filename, dispatch)
        for source in resolution.sources
        for dispatch in source.directives.dispatches
    ]
    if offenders:
        raise SubagentDispatchError(agent_name, recipe_name, offenders)


def resolve_model(subagent: SubagentConfig, owner: RecipeConfig) -> str:
    return subagent.model or owner.model or DEFAULT_AGENT_MODEL


class SubagentTreeBuilder:
    """Builds and validates the subagents of one owning recipe."""

    def __init__(
        self,
        registry: RecipeRegistry,
        expand: Callable[[str], tuple[LoadedRecipe, Resolution]],
    ):
        """Initialize the builder.

        Args:
            registry: Recipe lookup
            expand: Loads and resolves a recipe by name
        """
        self.registry = registry
        self.expand = expand

    def build(
        self, owner_name: str, owner: RecipeConfig, owner_resolution: Resolution
    ) -> list[SubagentNode]:
        """Validate the owner's dispatches and build its subagents.

        Args:
            owner_name: Name of the owning recipe
            owner: The owning recipe
            owner_resolution: The owning recipe's resolved sources

        Returns:
            One node per distinct subagent name, in registration order

        Raises:
            UnregisteredDispatchError: If an owner file dispatches an
                unregistered name
            RecipeNotFoundError: If a subagent recipe does not exist
            NestedSubagentError: If a subagent recipe has subagents
            SubagentDispatchError: If a subagent recipe file dispatches
            SkillReferenceError: If a subagent recipe has a bad skill reference
        """
        validate_dispatches(owner_name, owner, owner_resolution)

        nodes: list[SubagentNode] = []
        built: set[str] = set()
        for subagent in owner.subagents:
            if subagent.name in built:
                continue
            built.add(subagent.name)
            nodes.append(self._build_one(owner_name, owner, subagent))
        return nodes

    def _build_one(
        self, owner_name: str, owner: RecipeConfig, subagent: SubagentConfig
    ) -> SubagentNode:
        child = self.registry.require(subagent.recipe)
        if child.subagents:
            raise NestedSubagentError(subagent.name, subagent.recipe, child.subagent_names)

        loaded, resolution = self.expand(subagent.recipe)
        validate_no_dispatches(subagent.name, subagent.recipe, resolution)

        return SubagentNode(
            name=subagent.name,
            owning_recipe=owner_name,
            child_recipe=subagent.recipe,
            recipe=child,
            loaded=loaded,
            resolution=resolution,
            model=resolve_model(subagent, owner),
            mcp_servers=unique(child.mcp_servers + servers_from_resolution(resolution)),
        )
