"""Pydantic models for rule-squash configuration."""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


def _as_list(value: Any) -> Any:
    """Accept a bare string wherever a list of strings is expected."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class SettingsConfig(BaseModel):
    """Global settings for rule-squash."""

    project_root: Optional[str] = Field(
        default=None,
        description="Root searched last for rule files (defaults to cwd)",
    )
    rules_dir: str = Field(
        default="rules",
        description="Rule tree scanned for recipe tags, relative to project_root",
    )
    home_rules_dir: str = Field(
        default="~/rule-squash",
        description="User override directory searched before project_root",
    )
    output_file: str = Field(
        default="CLAUDE.local.md", description="Combined document written by squash"
    )
    claude_dir: str = Field(
        default=".claude",
        description="Directory receiving commands, skills, agents and scripts",
    )
    bin_dir: str = Field(
        default=".rule-squash/bin", description="Directory receiving bin/*.sh files"
    )
    mcp_config: str = Field(
        default="~/.config/rule-squash/mcp.json",
        description="JSON file with MCP server definitions keyed by name",
    )
    keep_frontmatter: bool = Field(
        default=False,
        description="Keep non-directive frontmatter fields in emitted content",
    )


class SubagentConfig(BaseModel):
    """A named subagent backed by another recipe."""

    name: str = Field(description="Subagent name, also the agent file name")
    recipe: str = Field(description="Name of the recipe the subagent is built from")
    model: Optional[str] = Field(default=None, description="Model override")


class GithubSourceSpec(BaseModel):
    """A set of rule paths inside one GitHub repository."""

    github: str = Field(description="Repository in format 'owner/repo'")
    branch: str = Field(default="main", description="Branch to read rules from")
    rules: list[str] = Field(
        default_factory=list, description="Files or directories within the repo"
    )

    @field_validator("github")
    @classmethod
    def validate_repo_format(cls, v: str) -> str:
        """Validate repository format is owner/repo."""
        if v.count("/") != 1:
            raise ValueError("Repository must be in format 'owner/repo'")
        return v

    @field_validator("rules", mode="before")
    @classmethod
    def coerce_rules(cls, v: Any) -> Any:
        """Allow a single rule path."""
        return _as_list(v)


class LocalSourceSpec(BaseModel):
    """One or more local files or directories."""

    local: list[str] = Field(description="Local file or directory paths")

    @field_validator("local", mode="before")
    @classmethod
    def coerce_local(cls, v: Any) -> Any:
        """Allow a single local path."""
        return _as_list(v)


SourceSpec = Union[str, GithubSourceSpec, LocalSourceSpec]


class RecipeConfig(BaseModel):
    """A named bundle of rule files, remote sources and subagents."""

    description: Optional[str] = Field(default=None, description="Recipe summary")
    files: list[str] = Field(
        default_factory=list, description="Local rule files or directories"
    )
    sources: list[SourceSpec] = Field(
        default_factory=list, description="Paths, URLs, github or local specs"
    )
    remote_sources: list[str] = Field(
        default_factory=list, description="Legacy flat list of remote URLs"
    )
    subagents: list[SubagentConfig] = Field(
        default_factory=list, description="Subagents dispatched by this recipe"
    )
    mcp_servers: list[str] = Field(
        default_factory=list, description="MCP servers the recipe needs"
    )
    omit_command_prefix: Optional[Union[str, list[str]]] = Field(
        default=None, description="Prefix(es) stripped from command paths"
    )
    model: Optional[str] = Field(default=None, description="Default subagent model")
    agent_only: bool = Field(
        default=False, description="Recipe was declared as a bare list of files"
    )

    @model_validator(mode="before")
    @classmethod
    def expand_list_shorthand(cls, data: Any) -> Any:
        """Treat a bare list of files as an agent-only recipe."""
        if isinstance(data, list):
            return {"files": data, "agent_only": True}
        if data is None:
            return {}
        return data

    @field_validator("files", "remote_sources", "mcp_servers", mode="before")
    @classmethod
    def coerce_lists(cls, v: Any) -> Any:
        """Allow single strings for list fields."""
        return _as_list(v)

    @field_validator("sources", "subagents", mode="before")
    @classmethod
    def coerce_null(cls, v: Any) -> Any:
        """Treat an explicit null as an empty list."""
        return [] if v is None else v

    @property
    def subagent_names(self) -> list[str]:
        """Names registered under ``subagents:``."""
        return [subagent.name for subagent in self.subagents]

    @property
    def omit_prefixes(self) -> list[str]:
        """``omit_command_prefix`` normalized to a list."""
        return _as_list(self.omit_command_prefix)


class RuleSquashConfig(BaseModel):
    """Root configuration for rule-squash."""

    version: str = Field(description="Config schema version")
    settings: SettingsConfig = Field(default_factory=SettingsConfig)
    recipes: dict[str, RecipeConfig] = Field(
        default_factory=dict, description="Recipes keyed by name"
    )

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str:
        """Validate version format."""
        v = str(v)
        if not v.startswith("1."):
            raise ValueError(
                f"Unsupported config version: {v}. Only version 1.x is supported."
            )
        return v

    @field_validator("recipes", mode="before")
    @classmethod
    def coerce_recipes(cls, v: Any) -> Any:
        """Treat an explicit null as no recipes."""
        return {} if v is None else v
