"""Frontmatter parsing and directive extraction for rule files.

Rule files may open with a YAML block delimited by ``---`` lines. Some of its
keys are directives that steer resolution (``requires``, ``skills``,
``dispatches``, ``mcp_servers``, ``essential``, ``recipes``, ``scripts``,
``require_shell_commands``); the rest are pass-through fields consumed by the
assistant itself.
Everything in this module is pure: no filesystem or network access.
"""

import re
from dataclasses import dataclass, field
from typing import Any

import yaml

FRONTMATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)

DIRECTIVE_KEYS = (
    "requires",
    "skills",
    "dispatches",
    "mcp_servers",
    "essential",
    "recipes",
    "scripts",
    "require_shell_commands",
)

PASSTHROUGH_KEYS = ("name", "description", "permissionMode", "allowed_tools", "model")

_TOP_LEVEL_KEY = re.compile(r"^([A-Za-z_][\w-]*)\s*:")


@dataclass
class ScriptsDirective:
    """Scripts a rule file wants copied next to the generated output."""

    files: list[str] = field(default_factory=list)
    remote: list[str] = field(default_factory=list)

    @classmethod
    def from_value(cls, value: Any) -> "ScriptsDirective":
        """Accept either ``{files: [...], remote: [...]}`` or a bare list."""
        if isinstance(value, dict):
            return cls(
                files=_string_list(value.get("files")),
                remote=_string_list(value.get("remote")),
            )
        return cls(files=_string_list(value))

    def __bool__(self) -> bool:
        return bool(self.files or self.remote)


@dataclass
class Directives:
    """Resolution directives declared in a rule file's frontmatter."""

    requires: list[str] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)
    dispatches: list[str] = field(default_factory=list)
    mcp_servers: list[str] = field(default_factory=list)
    essential: bool = False
    recipes: list[str] = field(default_factory=list)
    scripts: ScriptsDirective = field(default_factory=ScriptsDirective)
    require_shell_commands: list[str] = field(default_factory=list)

    @classmethod
    def from_frontmatter(cls, data: dict[str, Any]) -> "Directives":
        """Build directives from an already parsed frontmatter mapping."""
        return cls(
            requires=_string_list(data.get("requires")),
            skills=_string_list(data.get("skills")),
            dispatches=_string_list(data.get("dispatches")),
            mcp_servers=_string_list(data.get("mcp_servers")),
            essential=data.get("essential") is True,
            recipes=_string_list(data.get("recipes")),
            scripts=ScriptsDirective.from_value(data.get("scripts")),
            require_shell_commands=_string_list(data.get("require_shell_commands")),
        )


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split raw text into its frontmatter block and the body after it.

    Returns:
        ``(frontmatter_text, body)``; ``frontmatter_text`` is None when the
        content has no frontmatter block.
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return None, content
    return match.group(1).rstrip("\r\n"), content[match.end():]


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML frontmatter from a rule file.

    Invalid YAML or a non-mapping block is treated as no frontmatter.

    Returns:
        ``(frontmatter, body)`` where ``body`` excludes the frontmatter block
    """
    text, body = split_frontmatter(content)
    if text is None:
        return {}, content

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        return {}, body

    if not isinstance(data, dict):
        return {}, body
    return data, body


def read_directives(content: str) -> Directives:
    """Read the directive bag declared by a rule file."""
    frontmatter, _ = parse_frontmatter(content)
    return Directives.from_frontmatter(frontmatter)


def strip_directives(content: str, keep_frontmatter: bool = False) -> str:
    """Remove resolution metadata from a rule file before it is emitted.

    By default only pass-through fields (``name``, ``description``,
    ``permissionMode``, ``allowed_tools``, ``model``) survive, and the block is
    dropped entirely when none are present. With ``keep_frontmatter`` only the
    directive keys are removed and every other line is kept as written.
    """
    text, body = split_frontmatter(content)
    if text is None:
        return content

    if keep_frontmatter:
        kept = "\n".join(_drop_keys(text.splitlines(), DIRECTIVE_KEYS)).strip()
    else:
        kept = "\n".join(
            line
            for line in text.splitlines()
            if (match := _TOP_LEVEL_KEY.match(line))
            and match.group(1) in PASSTHROUGH_KEYS
            and line.split(":", 1)[1].strip()
        )

    if not kept:
        return body
    return f"---\n{kept}\n---\n{body}"


def _drop_keys(lines: list[str], keys: tuple[str, ...]) -> list[str]:
    """Drop top-level ``keys`` and their indented or list continuation lines."""
    kept = []
    dropping = False
    for line in lines:
        match = _TOP_LEVEL_KEY.match(line)
        if match:
            dropping = match.group(1) in keys
        elif dropping and line.strip() and not line[0].isspace() and not line.startswith("-"):
            dropping = False
        if not dropping and line.strip():
            kept.append(line)
    return kept
