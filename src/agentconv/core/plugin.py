"""
Plugin base class and structural validation.

A plugin bridges agentconv's item model and one tool's on-disk format.
Adding a new tool = implement BasePlugin + register it with an engine.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional, Union

from .types import AgentCustomization, CustomizationType, DiscoveryResult, EmitResult, PathPatterns
from .workspace import Workspace

RootOrWorkspace = Union[str, Path, Workspace]


class BasePlugin(ABC):
    id: str = ""
    name: str = ""
    supports: List[CustomizationType] = []
    path_patterns: Optional[PathPatterns] = None

    @abstractmethod
    def discover(self, root_or_workspace: RootOrWorkspace) -> DiscoveryResult:
        """Return every item found, or raise. Never a partial result."""

    @abstractmethod
    def emit(
        self,
        items: List[AgentCustomization],
        root_or_workspace: RootOrWorkspace,
        dry_run: bool = False,
    ) -> EmitResult:
        """
        Write items in this plugin's format.

        With dry_run=True the written/unsupported classification must match a
        real run exactly, but nothing may be written.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"


def is_valid_plugin(obj: Any) -> bool:
    """Check that obj has the plugin shape: id, name, supports, discover, emit."""
    if obj is None:
        return False
    return (
        isinstance(getattr(obj, "id", None), str)
        and isinstance(getattr(obj, "name", None), str)
        and isinstance(getattr(obj, "supports", None), (list, tuple))
        and callable(getattr(obj, "discover", None))
        and callable(getattr(obj, "emit", None))
    )
