"""
agentconv - convert AI coding-agent customizations between tools.

Discovers global prompts, file rules, skills, ignore lists and manual prompts
with one plugin and emits them with another:
- Cursor IDE (.cursor/, .cursorignore)
- Claude Code (CLAUDE.md, .claude/)

Third-party plugins are picked up from installed ``agentconv_plugin_*``
packages and from .agentconv/plugins/.
"""

__version__ = "0.1.0"

__all__ = [
    "cli",
    "config",
    "converters",
    "core",
    "tui",
    "utils",
]
