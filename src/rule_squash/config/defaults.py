"""Built-in default configuration for rule-squash."""

# Default configuration that serves as the base for all other configs
DEFAULT_CONFIG = {
    "version": "1.0",
    "settings": {
        "rules_dir": "rules",
        "home_rules_dir": "~/rule-squash",
        "output_file": "CLAUDE.local.md",
        "claude_dir": ".claude",
        "bin_dir": ".rule-squash/bin",
        "mcp_config": "~/.config/rule-squash/mcp.json",
        "keep_frontmatter": False,
    },
    "recipes": {},
}

USER_CONFIG_DIR = "~/.config/rule-squash"
RECIPES_FILENAME = "recipes.yml"
