"""MCP server manifest (``.mcp.json``) generation."""

import json
from pathlib import Path
from typing import Any, Sequence

MANIFEST_FILENAME = ".mcp.json"


class ServerDefinitions:
    """Named MCP server definitions read from the user's JSON file.

    The file maps server names to their launch configuration. Keys starting
    with an underscore are treated as comments and never copied.
    """

    def __init__(self, path: Path):
        """Initialize the definitions.

        Args:
            path: JSON file holding the server definitions
        """
        self.path = Path(path)
        self._servers: dict[str, Any] = {}

    def load(self) -> dict[str, Any]:
        """Load the definitions from disk.

        Returns:
            The definitions keyed by name; empty if the file does not exist

        Raises:
            json.JSONDecodeError: If the file is not valid JSON
        """
        if not self.path.exists():
            self._servers = {}
            return self._servers

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self._servers = data if isinstance(data, dict) else {}
        return self._servers

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def select(self, names: Sequence[str]) -> tuple[dict[str, Any], list[str]]:
        """Pick server configs by name.

        Args:
            names: Server names in the order they should appear

        Returns:
            ``(selected, missing)``: cleaned configs keyed by name, and the
            requested names without a definition
        """
        selected: dict[str, Any] = {}
        missing = []
        for name in names:
            if name not in self._servers:
                missing.append(name)
                continue
            selected[name] = clean_server(self._servers[name])
        return selected, missing


def clean_server(config: Any) -> Any:
    """Drop ``_``-prefixed keys and mark command servers as ``stdio``."""
    if not isinstance(config, dict):
        return config
    cleaned = {key: value for key, value in config.items() if not key.startswith("_")}
    if "command" in cleaned and "type" not in cleaned:
        cleaned["type"] = "stdio"
    return cleaned


def read_manifest(path: Path) -> dict[str, Any]:
    """Read an existing manifest; a missing or corrupt file reads as empty."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def render_manifest(
    servers: dict[str, Any], existing: dict[str, Any] | None = None, append: bool = False
) -> str:
    """Render manifest JSON.

    Other top-level keys of ``existing`` are preserved. Its ``mcpServers``
    map is replaced, or merged with ``servers`` winning when ``append`` is set.
    """
    manifest = dict(existing or {})
    current = manifest.get("mcpServers") if append else None
    merged = dict(current) if isinstance(current, dict) else {}
    merged.update(servers)
    manifest["mcpServers"] = merged
    return json.dumps(manifest, indent=2, ensure_ascii=False) + "\n"
