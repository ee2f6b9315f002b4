"""Configuration loading and management."""

from rule_squash.config.loader import (
    find_config_files,
    load_config,
    merge_configs,
)
from rule_squash.config.schema import (
    GithubSourceSpec,
    LocalSourceSpec,
    RecipeConfig,
    RuleSquashConfig,
    SettingsConfig,
    SourceSpec,
    SubagentConfig,
)

__all__ = [
    # Loader functions
    "find_config_files",
    "load_config",
    "merge_configs",
    # Schema classes
    "GithubSourceSpec",
    "LocalSourceSpec",
    "RecipeConfig",
    "RuleSquashConfig",
    "SettingsConfig",
    "SourceSpec",
    "SubagentConfig",
]
