"""Recipe registry: name to recipe lookup over the merged configuration."""

from typing import Iterator, Mapping, Optional

from rule_squash.config.schema import RecipeConfig, RuleSquashConfig
from rule_squash.core.errors import RecipeNotFoundError


class RecipeRegistry:
    """Read-only lookup of recipes by name.

    The registry is assembled from the merged base and user configs; it does
    not load or reload files itself.
    """

    def __init__(self, recipes: Mapping[str, RecipeConfig]):
        self._recipes = dict(recipes)

    @classmethod
    def from_config(cls, config: RuleSquashConfig) -> "RecipeRegistry":
        return cls(config.recipes)

    def get(self, name: str) -> Optional[RecipeConfig]:
        """Return the recipe called ``name``, or None."""
        return self._recipes.get(name)

    def require(self, name: str) -> RecipeConfig:
        """Return the recipe called ``name``.

        Raises:
            RecipeNotFoundError: If no such recipe is registered
        """
        recipe = self._recipes.get(name)
        if recipe is None:
            raise RecipeNotFoundError(name, self._recipes)
        return recipe

    def names(self) -> list[str]:
        return list(self._recipes)

    def items(self) -> Iterator[tuple[str, RecipeConfig]]:
        return iter(self._recipes.items())

    def __contains__(self, name: object) -> bool:
        return name in self._recipes

    def __len__(self) -> int:
        return len(self._recipes)
