"""Exception taxonomy for recipe resolution and squash assembly."""

from typing import Iterable


class RuleSquashError(Exception):
    """Base class for every error raised by rule-squash."""


class RecipeValidationError(RuleSquashError):
    """A hard validation failure; nothing may be written for the run."""


class RecipeNotFoundError(RecipeValidationError):
    """A recipe name that is not present in the registry."""

    def __init__(self, name: str, available: Iterable[str] = ()):
        self.name = name
        self.available = sorted(available)
        message = f"Recipe '{name}' not found"
        if self.available:
            message += f". Available recipes: {', '.join(self.available)}"
        super().__init__(message)


class SkillReferenceError(RecipeValidationError):
    """A ``skills:`` entry that is missing or outside a ``skills`` directory."""

    def __init__(self, reference: str, declared_in: str, resolved: str | None = None):
        self.reference = reference
        self.declared_in = declared_in
        self.resolved = resolved
        if resolved is None:
            message = (
                f"Skill file not found: '{reference}' referenced from '{declared_in}'"
            )
        else:
            message = (
                f"Skill reference '{reference}' in '{declared_in}' must be in a "
                f"skills/ directory (resolved to '{resolved}')"
            )
        super().__init__(message)


class NestedSubagentError(RecipeValidationError):
    """A subagent target recipe that declares subagents of its own."""

    def __init__(self, agent_name: str, recipe_name: str, nested: list[str]):
        self.agent_name = agent_name
        self.recipe_name = recipe_name
        self.nested = nested
        super().__init__(
            f"Recipe '{recipe_name}' (subagent '{agent_name}') has its own subagents "
            f"({', '.join(nested)}). Subagents cannot spawn other subagents. "
            "Convert them to skills and reference them via 'skills:' in the rule "
            "frontmatter instead."
        )


class UnregisteredDispatchError(RecipeValidationError):
    """A ``dispatches:`` target missing from the owning recipe's subagents."""

    def __init__(self, recipe_name: str, filename: str, dispatch: str):
        self.recipe_name = recipe_name
        self.filename = filename
        self.dispatch = dispatch
        super().__init__(
            f"Recipe '{recipe_name}': {filename} dispatches '{dispatch}' but the "
            "recipe does not register it as a subagent. Add to the recipe:\n"
            f"  subagents:\n    - name: {dispatch}\n"
            f"      recipe: {dispatch.replace('_', '-')}"
        )


class SubagentDispatchError(RecipeValidationError):
    """Files in a subagent target recipe that dispatch further subagents."""

    def __init__(
        self, agent_name: str, recipe_name: str, offenders: list[tuple[str, str]]
    ):
        self.agent_name = agent_name
        self.recipe_name = recipe_name
        self.offenders = offenders
        listing = "\n".join(
            f"  - {filename} dispatches: {dispatch}" for filename, dispatch in offenders
        )
        super().__init__(
            f"Subagent '{agent_name}' (recipe: {recipe_name}) contains files that "
            f"dispatch other subagents:\n\n{listing}\n\n"
            "Subagents cannot dispatch other subagents. Remove these files from "
            "the recipe, or inline the functionality without subagent dispatch."
        )
