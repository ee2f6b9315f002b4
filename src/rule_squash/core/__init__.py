"""Recipe resolution engine: canonicalization, loading, resolution, validation."""

from rule_squash.core.canonical import Canonicalizer
from rule_squash.core.errors import RecipeValidationError, RuleSquashError
from rule_squash.core.registry import RecipeRegistry
from rule_squash.core.source import Classification, ProcessedSource, Source, SourceKind

__all__ = [
    "Canonicalizer",
    "Classification",
    "ProcessedSource",
    "RecipeRegistry",
    "RecipeValidationError",
    "RuleSquashError",
    "Source",
    "SourceKind",
]
