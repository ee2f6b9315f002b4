"""CLI application entry point."""

import json
import os
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich.markup import escape
from rich.table import Table

from rule_squash.config.loader import load_config
from rule_squash.config.schema import RecipeConfig, RuleSquashConfig
from rule_squash.core.canonical import Canonicalizer
from rule_squash.core.diagnostics import analyze_tree
from rule_squash.core.errors import RecipeValidationError
from rule_squash.core.loader import RecipeLoader
from rule_squash.core.mcp import collect_mcp_servers, unique
from rule_squash.core.registry import RecipeRegistry
from rule_squash.emit import assembler
from rule_squash.emit.assembler import (
    ArtifactKind,
    SquashContext,
    SquashPlan,
    SquashPlanner,
)
from rule_squash.emit.clean import clean_targets, remove_targets
from rule_squash.emit.mcp_manifest import (
    MANIFEST_FILENAME,
    ServerDefinitions,
    read_manifest,
    render_manifest,
)
from rule_squash.fetch.github import GitHubFetcher
from rule_squash.utils.output import (
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
    print_warnings,
)
from rule_squash.utils.paths import expand_path, relative_to_root

app = typer.Typer(
    name="rule-squash",
    help="Compile rule recipes into assistant instructions, commands, skills and agents",
    no_args_is_help=True,
)


# Template for init command
TEMPLATE_CONFIG = """version: "1.0"

settings:
  rules_dir: "rules"
  output_file: "CLAUDE.local.md"

recipes:
  starter:
    description: "Basic starter recipe"
    files:
      - rules/core
    # Rules from GitHub repositories:
    # sources:
    #   - github: yourusername/your-rules
    #     branch: main
    #     rules:
    #       - ruby/common.md
    #       - testing
    #
    # Subagents built from other recipes:
    # subagents:
    #   - name: reviewer
    #     recipe: review
    #
    # MCP servers defined in ~/.config/rule-squash/mcp.json:
    # mcp_servers:
    #   - github
"""


def _load_config(config: Optional[Path]) -> RuleSquashConfig:
    try:
        return load_config(config)
    except ValidationError as e:
        print_error("Configuration validation failed:")
        console.print(e)
        raise typer.Exit(1)
    except (yaml.YAMLError, FileNotFoundError) as e:
        print_error(f"Failed to load config: {escape(str(e))}")
        raise typer.Exit(1)


def _print_plan(plan: SquashPlan, dry_run: bool) -> None:
    verb = "Would write" if dry_run else "Wrote"
    content_count = len(plan.resolution.content)
    console.print(
        f"{verb} {escape(str(plan.document.path))} "
        f"({content_count} rule file{'s' if content_count != 1 else ''} combined)"
    )

    sections = [
        (ArtifactKind.COMMAND, "command file(s)"),
        (ArtifactKind.SKILL, "skill file(s)"),
        (ArtifactKind.AGENT, "subagent file(s)"),
        (ArtifactKind.BIN, "bin file(s)"),
        (ArtifactKind.SCRIPT, "script(s)"),
        (ArtifactKind.MANIFEST, "MCP manifest"),
    ]
    for kind, label in sections:
        artifacts = plan.of(kind)
        if not artifacts:
            continue
        console.print(f"\n{verb} {len(artifacts)} {label}:")
        for artifact in artifacts:
            suffix = " (executable)" if artifact.executable else ""
            console.print(f"  • {escape(str(artifact.path))}{suffix}")

    if plan.mcp_servers:
        console.print(f"\nMCP servers: {escape(', '.join(plan.mcp_servers))}")


@app.command()
def squash(
    recipe: str = typer.Argument(..., help="Name of the recipe to squash"),
    output_file: Optional[str] = typer.Option(
        None,
        "--output-file",
        "-o",
        help="Override the combined document path",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-d",
        help="Show what would be written without making changes",
    ),
    essential: bool = typer.Option(
        False,
        "--essential",
        "-e",
        help="Only include files marked 'essential: true'",
    ),
    keep_frontmatter: bool = typer.Option(
        False,
        "--keep-frontmatter",
        help="Keep non-directive frontmatter in the output",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (merged over the default search)",
    ),
):
    """Compile a recipe into its output files.

    Resolves every rule file, validates skills, subagents and dispatches,
    and writes the combined document plus command, skill, agent, bin and
    script files. Nothing is written when validation fails.
    """
    cfg = _load_config(config)

    if dry_run:
        print_warning("DRY RUN MODE - No changes will be made")
        console.print()

    with GitHubFetcher(token=os.getenv("GITHUB_TOKEN")) as fetcher:
        context = SquashContext(
            config=cfg,
            fetcher=fetcher,
            essential=essential,
            keep_frontmatter=True if keep_frontmatter else None,
            output_file=output_file,
        )
        outcome = assembler.squash(recipe, context, dry_run=dry_run)

    print_warnings(outcome.warnings)
    if not outcome.ok:
        print_error(escape(str(outcome.error)))
        raise typer.Exit(1)

    _print_plan(outcome.plan, dry_run)
    if not dry_run:
        console.print()
        print_success(f"Squashed recipe '{escape(recipe)}'")


@app.command()
def validate(
    recipe: str = typer.Argument(..., help="Name of the recipe to validate"),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
):
    """Validate a recipe without writing anything.

    Checks that every skill reference resolves, that subagents are not
    nested and that every dispatch target is registered.
    """
    cfg = _load_config(config)

    with GitHubFetcher(token=os.getenv("GITHUB_TOKEN")) as fetcher:
        context = SquashContext(config=cfg, fetcher=fetcher)
        outcome = assembler.squash(recipe, context, dry_run=True)

    print_warnings(outcome.warnings)
    if not outcome.ok:
        print_error(escape(str(outcome.error)))
        raise typer.Exit(1)

    plan = outcome.plan
    print_success(f"Recipe '{escape(recipe)}' is valid")
    console.print()
    console.print(f"[bold]Rule files:[/bold] {len(plan.resolution.content)}")
    console.print(f"[bold]Commands:[/bold] {len(plan.resolution.commands)}")
    console.print(f"[bold]Skills:[/bold] {len(plan.of(ArtifactKind.SKILL))}")
    console.print(f"[bold]Subagents:[/bold] {len(plan.subagents)}")
    for node in plan.subagents:
        console.print(f"  • {escape(node.name)} ({escape(node.child_recipe)})")
    if plan.mcp_servers:
        console.print(f"[bold]MCP servers:[/bold] {escape(', '.join(plan.mcp_servers))}")


def _recipe_type(recipe: RecipeConfig) -> str:
    return "agent" if recipe.agent_only else "standard"


@app.command("list-recipes")
def list_recipes(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
):
    """List the available recipes."""
    cfg = _load_config(config)

    if not cfg.recipes:
        print_info("No recipes configured")
        print_info("Run 'rule-squash init' to create a recipes.yml")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Type")
    table.add_column("Description")
    table.add_column("Sources", justify="right")
    table.add_column("Subagents")
    table.add_column("MCP")

    for name, recipe in sorted(cfg.recipes.items()):
        source_count = len(recipe.files) + len(recipe.sources) + len(recipe.remote_sources)
        table.add_row(
            escape(name),
            _recipe_type(recipe),
            escape(recipe.description or ""),
            str(source_count),
            escape(", ".join(recipe.subagent_names)),
            escape(", ".join(recipe.mcp_servers)),
        )

    console.print(table)


@app.command()
def stats(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
):
    """Report orphaned rule files and circular requirements.

    A file is orphaned when no recipe loads it, directly or through
    requirements. Cycles follow 'requires:' and '@./path' references.
    """
    cfg = _load_config(config)
    canonicalizer = Canonicalizer.from_settings(cfg.settings)
    registry = RecipeRegistry.from_config(cfg)
    project_root = canonicalizer.project_root or Path.cwd()
    rules_dir = project_root / cfg.settings.rules_dir
    loader = RecipeLoader(canonicalizer, registry, rules_dir=rules_dir)

    report = analyze_tree(loader, rules_dir)

    def show(path: str) -> str:
        return escape(relative_to_root(Path(path), project_root))

    print_info(f"Analyzed {len(report.files)} rule file(s) in {escape(str(rules_dir))}")
    console.print()

    if report.cycles:
        print_warning(f"Found {len(report.cycles)} circular dependency chain(s):")
        for idx, cycle in enumerate(report.cycles, start=1):
            chain = " → ".join(show(path) for path in cycle)
            console.print(f"  {idx}. {chain} → (back to start)")
        console.print()
    else:
        print_success("No circular dependencies")

    if report.orphans:
        print_warning(f"Found {len(report.orphans)} orphaned file(s):")
        for path in report.orphans:
            console.print(f"  • {show(path)}")
    else:
        print_success("No orphaned files")


@app.command()
def mcp(
    servers: Optional[list[str]] = typer.Argument(
        None, help="MCP server names to include"
    ),
    recipe: Optional[str] = typer.Option(
        None,
        "--recipe",
        "-r",
        help="Also include the MCP servers of a recipe and its subagents",
    ),
    append: bool = typer.Option(
        False,
        "--append",
        "-a",
        help="Merge into an existing .mcp.json instead of replacing its servers",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
):
    """Generate .mcp.json from named server definitions."""
    cfg = _load_config(config)

    requested = list(servers or [])
    if recipe:
        try:
            with GitHubFetcher(token=os.getenv("GITHUB_TOKEN")) as fetcher:
                planner = SquashPlanner(SquashContext(config=cfg, fetcher=fetcher))
                planner.registry.require(recipe)
                recipe_servers = collect_mcp_servers(
                    recipe, planner.registry, lambda name: planner.expand(name)[1]
                )
        except RecipeValidationError as e:
            print_error(escape(str(e)))
            raise typer.Exit(1)
        if not recipe_servers:
            print_warning(f"Recipe '{escape(recipe)}' has no MCP servers defined")
        requested.extend(recipe_servers)
    requested = unique(requested)

    if not requested:
        print_error("No servers specified")
        print_info("Usage: rule-squash mcp server1 server2 ... or rule-squash mcp -r <recipe>")
        raise typer.Exit(1)

    definitions = ServerDefinitions(expand_path(cfg.settings.mcp_config))
    if not definitions.exists:
        print_error(f"{definitions.path} not found")
        print_info("Create this file with your MCP server definitions.")
        raise typer.Exit(1)

    try:
        definitions.load()
    except json.JSONDecodeError as e:
        print_error(f"Error parsing JSON: {escape(str(e))}")
        raise typer.Exit(1)

    selected, missing = definitions.select(requested)
    for name in missing:
        print_warning(f"MCP server '{escape(name)}' not found in {definitions.path}")

    manifest_path = Path.cwd() / MANIFEST_FILENAME
    manifest_path.write_text(
        render_manifest(selected, read_manifest(manifest_path), append=append),
        encoding="utf-8",
    )

    if not selected:
        print_warning(f"No valid servers found, created empty {MANIFEST_FILENAME}")
    elif append:
        print_success(f"Appended {len(selected)} server(s) to {MANIFEST_FILENAME}")
    else:
        print_success(f"Created {MANIFEST_FILENAME} with {len(selected)} server(s)")


@app.command()
def clean(
    recipe: Optional[str] = typer.Argument(
        None, help="Recipe whose combined document should be removed"
    ),
    output_file: Optional[str] = typer.Option(
        None,
        "--output-file",
        "-o",
        help="Combined document to remove (overrides the recipe and settings)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-d",
        help="Show what would be removed without deleting anything",
    ),
    deepclean: bool = typer.Option(
        False,
        "--deepclean",
        help="Also remove the bin root directory, CLAUDE.md and CLAUDE.local.md",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file",
    ),
):
    """Remove files generated by squash.

    Removes the assistant directory, the combined document, the bin
    directory and .mcp.json from the current directory.
    """
    cfg = _load_config(config)
    destination = Path.cwd()

    document = output_file
    if recipe and not document:
        planner = SquashPlanner(SquashContext(config=cfg, destination=destination))
        try:
            document = str(planner.output_path(recipe, planner.registry.require(recipe)))
        except RecipeValidationError as e:
            print_error(escape(str(e)))
            raise typer.Exit(1)

    targets = clean_targets(destination, cfg.settings, output_file=document, deep=deepclean)

    if not targets:
        print_success("Already clean - no files to remove")
        return

    if dry_run:
        print_warning("DRY RUN MODE - No files will be deleted")
        console.print("\nWould remove:")
    else:
        remove_targets(destination, targets)
        print_success("Cleaned up files:")
    for target in targets:
        console.print(f"  • {escape(target.as_posix())}")


@app.command()
def init(
    path: Optional[Path] = typer.Argument(
        None,
        help="Path where config should be created (default: ./recipes.yml)",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite existing config file",
    ),
):
    """Create a recipes.yml template.

    Initializes a new configuration file with an example recipe.
    """
    if path is None:
        path = Path.cwd() / "recipes.yml"

    if path.exists() and not force:
        print_error(f"Config file already exists: {path}")
        print_info("Use --force to overwrite")
        raise typer.Exit(1)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(TEMPLATE_CONFIG)
    except OSError as e:
        print_error(f"Failed to create config: {escape(str(e))}")
        raise typer.Exit(1)

    print_success(f"Created config file: {path}")
    print_info("Edit the file to configure your recipes")


if __name__ == "__main__":
    app()
