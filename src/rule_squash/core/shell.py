"""Checks for shell commands that rule files declare they depend on."""

import shutil
from typing import Callable, Iterable, Optional

from rule_squash.core.mcp import unique
from rule_squash.core.source import ProcessedSource


def required_commands(sources: Iterable[ProcessedSource]) -> list[str]:
    """Collect ``require_shell_commands`` from local sources, first-seen order."""
    return unique(
        command
        for source in sources
        if not source.source.is_remote
        for command in source.directives.require_shell_commands
    )


def missing_commands(
    commands: Iterable[str], which: Callable[[str], Optional[str]] = shutil.which
) -> list[str]:
    """Return the commands that cannot be found in PATH."""
    return [command for command in commands if which(command) is None]


def missing_command_warnings(sources: Iterable[ProcessedSource]) -> list[str]:
    return [
        f"Required shell command '{command}' not found in PATH"
        for command in missing_commands(required_commands(sources))
    ]
