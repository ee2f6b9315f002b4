"""Squash orchestrator.

This module ties the engine together. For a recipe it:
1. Loads the recipe's top-level sources
2. Resolves ``requires:`` and ``skills:`` dependencies
3. Builds and validates the subagent tree
4. Aggregates MCP servers across the tree
5. Plans every artifact (document, commands, skills, bins, scripts, agents,
   server manifest) in memory
6. Writes the plan, but only when every validation passed

Planning never touches the destination beyond reading an existing
``.mcp.json``; a failed validation leaves the destination untouched.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from rule_squash.config.schema import RecipeConfig, RuleSquashConfig, SettingsConfig
from rule_squash.core.canonical import Canonicalizer
from rule_squash.core.errors import RecipeValidationError
from rule_squash.core.loader import LoadedRecipe, RecipeLoader, filter_essential
from rule_squash.core.mcp import collect_mcp_servers, unique
from rule_squash.core.registry import RecipeRegistry
from rule_squash.core.resolver import DependencyResolver, Resolution
from rule_squash.core.shell import missing_command_warnings
from rule_squash.core.source import ProcessedSource
from rule_squash.core.subagents import SubagentNode, SubagentTreeBuilder
from rule_squash.emit.files import (
    bin_target,
    collect_scripts,
    command_relative_path,
    compile_skill,
    copy_file,
    make_executable,
    skill_name,
)
from rule_squash.emit.markdown import render_agent, render_combined
from rule_squash.emit.mcp_manifest import (
    MANIFEST_FILENAME,
    ServerDefinitions,
    read_manifest,
    render_manifest,
)
from rule_squash.fetch.protocols import RemoteFetcher
from rule_squash.utils.paths import ensure_dir, expand_path


class ArtifactKind(str, Enum):
    DOCUMENT = "document"
    COMMAND = "command"
    SKILL = "skill"
    AGENT = "agent"
    BIN = "bin"
    SCRIPT = "script"
    MANIFEST = "manifest"


@dataclass
class Artifact:
    """A single output file.

    Attributes:
        kind: What the file is
        path: Target path, relative to the destination directory
        content: Text to write, for generated artifacts
        source_path: File to copy, for copied artifacts
        executable: Whether the target gets mode 0755
    """

    kind: ArtifactKind
    path: Path
    content: Optional[str] = None
    source_path: Optional[Path] = None
    executable: bool = False


@dataclass
class SquashPlan:
    """Everything a squash run would write, fully validated."""

    recipe_name: str
    recipe: RecipeConfig
    resolution: Resolution
    subagents: list[SubagentNode] = field(default_factory=list)
    mcp_servers: list[str] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def of(self, kind: ArtifactKind) -> list[Artifact]:
        return [a for a in self.artifacts if a.kind is kind]

    @property
    def document(self) -> Artifact:
        return self.of(ArtifactKind.DOCUMENT)[0]

    def add(self, artifact: Artifact) -> None:
        """Add an artifact unless one already targets the same path."""
        if all(existing.path != artifact.path for existing in self.artifacts):
            self.artifacts.append(artifact)


@dataclass
class SquashOutcome:
    """Result of :func:`squash`.

    Exactly one of ``plan`` and ``error`` is set. ``written`` lists the files
    written, and stays empty for dry runs and failures.
    """

    plan: Optional[SquashPlan] = None
    error: Optional[RecipeValidationError] = None
    warnings: list[str] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SquashContext:
    """Inputs of a squash run.

    Attributes:
        config: Merged configuration
        fetcher: Remote fetch collaborator
        destination: Directory artifacts are written into (default: cwd)
        cwd: First search root for relative references (default: destination)
        essential: Keep only sources marked ``essential: true``
        keep_frontmatter: Override ``settings.keep_frontmatter``
        output_file: Override the combined document path
        generated_at: Timestamp written into agent files (default: now)
    """

    config: RuleSquashConfig
    fetcher: Optional[RemoteFetcher] = None
    destination: Optional[Path] = None
    cwd: Optional[Path] = None
    essential: bool = False
    keep_frontmatter: Optional[bool] = None
    output_file: Optional[str] = None
    generated_at: Optional[datetime] = None

    @property
    def settings(self) -> SettingsConfig:
        return self.config.settings

    @property
    def destination_dir(self) -> Path:
        return Path(self.destination) if self.destination else Path.cwd()


class SquashPlanner:
    """Plans squash runs for one context.

    Recipe expansions are cached per recipe name, so a recipe shared by
    several subagents is loaded and resolved once.
    """

    def __init__(self, context: SquashContext):
        self.context = context
        settings = context.settings
        self.canonicalizer = Canonicalizer.from_settings(
            settings, cwd=context.cwd or context.destination_dir
        )
        self.registry = RecipeRegistry.from_config(context.config)
        project_root = self.canonicalizer.project_root or context.destination_dir
        self.loader = RecipeLoader(
            self.canonicalizer,
            self.registry,
            fetcher=context.fetcher,
            rules_dir=project_root / settings.rules_dir,
        )
        keep = (
            settings.keep_frontmatter
            if context.keep_frontmatter is None
            else context.keep_frontmatter
        )
        self.keep_frontmatter = keep
        self.resolver = DependencyResolver(
            self.canonicalizer, fetcher=context.fetcher, keep_frontmatter=keep
        )
        self._expanded: dict[str, tuple[LoadedRecipe, Resolution]] = {}

    def expand(self, name: str) -> tuple[LoadedRecipe, Resolution]:
        """Load and resolve a recipe by name, once per planner."""
        if name not in self._expanded:
            loaded = self.loader.load(name)
            self._expanded[name] = (loaded, self.resolver.resolve(loaded.sources))
        return self._expanded[name]

    def plan(self, recipe_name: str) -> SquashPlan:
        """Validate a recipe tree and plan its artifacts.

        Raises:
            RecipeValidationError: On any hard validation failure
        """
        loaded = self.loader.load(recipe_name)
        sources = loaded.sources
        if self.context.essential:
            sources = filter_essential(sources)
        resolution = self.resolver.resolve(sources)
        self._expanded[recipe_name] = (loaded, resolution)

        recipe = loaded.recipe
        builder = SubagentTreeBuilder(self.registry, self.expand)
        nodes = builder.build(recipe_name, recipe, resolution)
        mcp_servers = collect_mcp_servers(
            recipe_name, self.registry, lambda name: self.expand(name)[1]
        )

        plan = SquashPlan(
            recipe_name=recipe_name,
            recipe=recipe,
            resolution=resolution,
            subagents=nodes,
            mcp_servers=mcp_servers,
        )
        plan.warnings.extend(loaded.warnings + resolution.warnings)
        for node in nodes:
            plan.warnings.extend(node.warnings)

        self._plan_document(plan)
        self._plan_commands(plan, resolution.commands, recipe, Path())
        self._plan_skills(plan, resolution.skills)
        self._plan_bins(plan, resolution.bins)
        for node in nodes:
            self._plan_subagent(plan, node)
        tree_sources = resolution.sources + [
            source for node in nodes for source in node.resolution.sources
        ]
        self._plan_scripts(plan, tree_sources)
        plan.warnings.extend(missing_command_warnings(tree_sources))
        self._plan_manifest(plan)

        plan.warnings = unique(plan.warnings)
        return plan

    @property
    def claude_dir(self) -> Path:
        return Path(self.context.settings.claude_dir)

    def output_path(self, recipe_name: str, recipe: RecipeConfig) -> Path:
        """Combined document path, relative to the destination."""
        if self.context.output_file:
            return Path(self.context.output_file)
        if recipe.agent_only:
            return self.claude_dir / "agents" / f"{recipe_name}.md"
        return Path(self.context.settings.output_file)

    def _plan_document(self, plan: SquashPlan) -> None:
        plan.add(
            Artifact(
                kind=ArtifactKind.DOCUMENT,
                path=self.output_path(plan.recipe_name, plan.recipe),
                content=render_combined(plan.resolution.content),
            )
        )

    def _plan_commands(
        self,
        plan: SquashPlan,
        commands: list[ProcessedSource],
        recipe: RecipeConfig,
        subdirectory: Path,
    ) -> None:
        for command in commands:
            relative = command_relative_path(
                self.canonicalizer.classification_path(command.source), recipe.omit_prefixes
            )
            plan.add(
                Artifact(
                    kind=ArtifactKind.COMMAND,
                    path=self.claude_dir / "commands" / subdirectory / relative,
                    content=command.content,
                )
            )

    def _skill_name(self, skill: ProcessedSource) -> str:
        return skill_name(self.canonicalizer.classification_path(skill.source))

    def _plan_skills(self, plan: SquashPlan, skills: list[ProcessedSource]) -> None:
        for skill in skills:
            plan.add(
                Artifact(
                    kind=ArtifactKind.SKILL,
                    path=self.claude_dir / "skills" / self._skill_name(skill) / "SKILL.md",
                    content=compile_skill(
                        skill,
                        self.canonicalizer,
                        fetcher=self.context.fetcher,
                        keep_frontmatter=self.keep_frontmatter,
                    ),
                )
            )

    def _plan_bins(self, plan: SquashPlan, bins: list[ProcessedSource]) -> None:
        bin_dir = Path(self.context.settings.bin_dir)
        for source in bins:
            target = bin_dir / bin_target(self.canonicalizer.classification_path(source.source))
            if source.source.is_remote:
                artifact = Artifact(
                    kind=ArtifactKind.BIN,
                    path=target,
                    content=source.original_content,
                    executable=True,
                )
            else:
                artifact = Artifact(
                    kind=ArtifactKind.BIN,
                    path=target,
                    source_path=Path(source.identity),
                    executable=True,
                )
            plan.add(artifact)

    def _plan_subagent(self, plan: SquashPlan, node: SubagentNode) -> None:
        skills = node.resolution.skills
        generated_at = self.context.generated_at or datetime.now()
        plan.add(
            Artifact(
                kind=ArtifactKind.AGENT,
                path=self.claude_dir / "agents" / f"{node.name}.md",
                content=render_agent(
                    node,
                    skill_names=unique(self._skill_name(skill) for skill in skills),
                    mcp_servers=node.mcp_servers,
                    generated_at=generated_at,
                ),
            )
        )
        self._plan_commands(plan, node.resolution.commands, node.recipe, Path(node.name))
        self._plan_skills(plan, skills)
        self._plan_bins(plan, node.resolution.bins)

    def _plan_scripts(self, plan: SquashPlan, sources: list[ProcessedSource]) -> None:
        scripts = collect_scripts(sources, self.canonicalizer)
        plan.warnings.extend(scripts.warnings)
        scripts_dir = self.claude_dir / "scripts"

        for script in scripts.local:
            plan.add(
                Artifact(
                    kind=ArtifactKind.SCRIPT,
                    path=scripts_dir / script.filename,
                    source_path=script.source_path,
                    executable=True,
                )
            )

        for script in scripts.remote:
            text = self.context.fetcher.fetch(script.url) if self.context.fetcher else None
            if text is None:
                plan.warnings.append(f"Failed to fetch script: {script.url}")
                continue
            plan.add(
                Artifact(
                    kind=ArtifactKind.SCRIPT,
                    path=scripts_dir / script.filename,
                    content=text,
                    executable=True,
                )
            )

    def _plan_manifest(self, plan: SquashPlan) -> None:
        if not plan.mcp_servers:
            return

        definitions = ServerDefinitions(expand_path(self.context.settings.mcp_config))
        if not definitions.exists:
            plan.warnings.append(
                f"MCP servers requested but {definitions.path} not found: "
                f"{', '.join(plan.mcp_servers)}"
            )
            return
        try:
            definitions.load()
        except json.JSONDecodeError as e:
            plan.warnings.append(f"Could not parse {definitions.path}: {e}")
            return

        selected, missing = definitions.select(plan.mcp_servers)
        for name in missing:
            plan.warnings.append(f"MCP server '{name}' not found in {definitions.path}")

        existing = read_manifest(self.context.destination_dir / MANIFEST_FILENAME)
        plan.add(
            Artifact(
                kind=ArtifactKind.MANIFEST,
                path=Path(MANIFEST_FILENAME),
                content=render_manifest(selected, existing),
            )
        )


def plan_squash(recipe_name: str, context: SquashContext) -> SquashPlan:
    """Validate ``recipe_name`` and plan its artifacts without writing.

    Raises:
        RecipeValidationError: On any hard validation failure
    """
    return SquashPlanner(context).plan(recipe_name)


def write_plan(plan: SquashPlan, destination: Path) -> list[Path]:
    """Write every planned artifact below ``destination``.

    Returns:
        The paths written, in plan order
    """
    written = []
    for artifact in plan.artifacts:
        target = destination / artifact.path
        if artifact.source_path is not None:
            copy_file(artifact.source_path, target, executable=artifact.executable)
        else:
            ensure_dir(target.parent)
            target.write_text(artifact.content or "", encoding="utf-8")
            if artifact.executable:
                make_executable(target)
        written.append(target)
    return written


def squash(recipe_name: str, context: SquashContext, dry_run: bool = False) -> SquashOutcome:
    """Plan a recipe and, unless ``dry_run``, write its artifacts.

    Hard validation failures are returned on the outcome instead of raised;
    nothing is written in that case.
    """
    try:
        plan = plan_squash(recipe_name, context)
    except RecipeValidationError as e:
        return SquashOutcome(error=e)

    outcome = SquashOutcome(plan=plan, warnings=list(plan.warnings))
    if not dry_run:
        outcome.written = write_plan(plan, context.destination_dir)
    return outcome
