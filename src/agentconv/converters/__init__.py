"""Built-in plugins shipped with agentconv."""

from typing import Any, List

from agentconv.core.engine import ConversionEngine
from agentconv.core.loader import ConflictStrategy

from .claude import ClaudePlugin
from .cursor import CursorPlugin


def builtin_plugins() -> List[Any]:
    return [CursorPlugin(), ClaudePlugin()]


def default_engine(conflict_strategy: ConflictStrategy = ConflictStrategy.PREFER_EXISTING) -> ConversionEngine:
    """Engine with the built-in plugins registered. Installed plugins are not discovered here."""
    return ConversionEngine(plugins=builtin_plugins(), conflict_strategy=conflict_strategy)


__all__ = ["ClaudePlugin", "CursorPlugin", "builtin_plugins", "default_engine"]
