"""Configuration loader with merge logic and precedence handling."""

import copy
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from rule_squash.config.defaults import DEFAULT_CONFIG, RECIPES_FILENAME, USER_CONFIG_DIR
from rule_squash.config.schema import RuleSquashConfig
from rule_squash.utils.paths import expand_path


def find_config_files(project_root: Optional[Path] = None) -> list[Path]:
    """Find recipe files in standard locations.

    Searches for configuration files in order of precedence (lowest to highest):
    1. Project config (recipes.yml in the project root)
    2. User config (~/.config/rule-squash/recipes.yml)

    Args:
        project_root: Directory holding the project recipes.yml (default: cwd)

    Returns:
        List of Path objects for existing config files, ordered from lowest
        to highest precedence (so later configs override earlier ones)
    """
    config_files = []

    project_config = (project_root or Path.cwd()) / RECIPES_FILENAME
    if project_config.exists():
        config_files.append(project_config)

    user_config = expand_path(f"{USER_CONFIG_DIR}/{RECIPES_FILENAME}")
    if user_config.exists() and user_config not in config_files:
        config_files.append(user_config)

    return config_files


def load_yaml_file(file_path: Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        file_path: Path to the YAML file

    Returns:
        Dictionary containing the parsed YAML content

    Raises:
        yaml.YAMLError: If the file contains invalid YAML
        FileNotFoundError: If the file doesn't exist
    """
    with open(file_path, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f)
        return content if content is not None else {}


def merge_configs(configs: list[dict[str, Any]]) -> dict[str, Any]:
    """Merge multiple configuration dictionaries.

    Merges configs from lowest to highest precedence. Nested dictionaries
    such as ``settings`` are deep merged. The ``recipes`` map is merged
    key-for-key instead: a recipe defined in a later config replaces the
    earlier definition of the same name as a whole.

    Args:
        configs: List of configuration dictionaries in order from lowest to
                highest precedence

    Returns:
        Merged configuration dictionary
    """
    if not configs:
        return {}

    result: dict[str, Any] = {}
    recipes: dict[str, Any] = {}

    for config in configs:
        config = dict(config)
        recipes.update(config.pop("recipes", None) or {})
        if config.get("settings") is None:
            config.pop("settings", None)
        result = _deep_merge(result, config)

    result["recipes"] = recipes
    return result


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two dictionaries, with override taking precedence.

    Args:
        base: Base dictionary (lower precedence)
        override: Override dictionary (higher precedence)

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            # For non-dict values (including lists), override completely replaces
            result[key] = value

    return result


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides to configuration.

    Supports the following environment variables:
    - RULE_SQUASH_HOME: Override settings.project_root
    - RULE_SQUASH_RULES_DIR: Override settings.rules_dir
    - RULE_SQUASH_OUTPUT_FILE: Override settings.output_file

    Args:
        config: Configuration dictionary to apply overrides to

    Returns:
        Configuration dictionary with environment overrides applied
    """
    result = config.copy()
    result["settings"] = dict(result.get("settings") or {})

    if project_root := os.getenv("RULE_SQUASH_HOME"):
        result["settings"]["project_root"] = project_root

    if rules_dir := os.getenv("RULE_SQUASH_RULES_DIR"):
        result["settings"]["rules_dir"] = rules_dir

    if output_file := os.getenv("RULE_SQUASH_OUTPUT_FILE"):
        result["settings"]["output_file"] = output_file

    return result


def load_config(
    config_path: Optional[Path] = None, project_root: Optional[Path] = None
) -> RuleSquashConfig:
    """Load and merge configuration from all sources.

    Configuration precedence (lowest to highest):
    1. Built-in defaults
    2. Project config (recipes.yml in the project root)
    3. User config (~/.config/rule-squash/recipes.yml)
    4. Environment variables
    5. Explicitly provided config_path (if given)
    6. CLI flags (handled by caller)

    Args:
        config_path: Optional explicit path to a config file, merged on top
                    of all other configs
        project_root: Directory searched for the project recipes.yml. Falls
                    back to RULE_SQUASH_HOME, then the current directory.

    Returns:
        Validated RuleSquashConfig instance

    Raises:
        ValidationError: If the merged configuration is invalid
        yaml.YAMLError: If a config file contains invalid YAML
        FileNotFoundError: If config_path is provided but doesn't exist
    """
    if project_root is None and (env_root := os.getenv("RULE_SQUASH_HOME")):
        project_root = expand_path(env_root)

    configs_to_merge = [copy.deepcopy(DEFAULT_CONFIG)]

    for config_file in find_config_files(project_root):
        try:
            configs_to_merge.append(load_yaml_file(config_file))
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error loading {config_file}: {e}") from e

    merged_config = apply_env_overrides(merge_configs(configs_to_merge))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        merged_config = merge_configs([merged_config, load_yaml_file(config_path)])

    if project_root is not None and not merged_config["settings"].get("project_root"):
        merged_config["settings"]["project_root"] = str(project_root)

    return RuleSquashConfig(**merged_config)
