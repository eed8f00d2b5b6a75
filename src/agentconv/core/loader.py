"""
Plugin loading: discovery and conflict resolution as separate phases.

    loader = PluginLoader(ConflictStrategy.PREFER_EXISTING)
    candidates = loader.load_installed(search_paths)
    resolved = loader.resolve_conflicts(registry, candidates)
    for registration in resolved.loaded:
        registry.register(registration)

Registration is always the caller's explicit last step; the loader never
touches the registry.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

from .discovery import PluginLoadError, discover_installed_plugins
from .errors import PluginConflictError
from .registry import PluginRegistry
from .types import PluginOrigin, PluginRegistrationInput

logger = logging.getLogger(__name__)


class ConflictStrategy(Enum):
    """What to do when a discovered plugin id is already registered."""
    PREFER_EXISTING = "prefer-existing"
    PREFER_DISCOVERED = "prefer-discovered"
    FAIL = "fail"


@dataclass
class SkippedPlugin:
    plugin: Any
    reason: str
    conflicts_with: str


@dataclass
class PluginLoadResult:
    loaded: List[PluginRegistrationInput] = field(default_factory=list)
    skipped: List[SkippedPlugin] = field(default_factory=list)
    errors: List[PluginLoadError] = field(default_factory=list)


class PluginLoader:
    def __init__(self, conflict_strategy: ConflictStrategy = ConflictStrategy.PREFER_EXISTING):
        self._conflict_strategy = conflict_strategy

    @property
    def conflict_strategy(self) -> ConflictStrategy:
        return self._conflict_strategy

    def load_installed(self, search_paths: Optional[Sequence[str]] = None) -> PluginLoadResult:
        """Phase 1: discover installed plugins and wrap them as registration candidates."""
        discovered = discover_installed_plugins(search_paths)
        return PluginLoadResult(
            loaded=[
                PluginRegistrationInput(
                    plugin=d.plugin,
                    origin=PluginOrigin.DISCOVERED,
                    version=d.version,
                    install_path=d.install_path,
                )
                for d in discovered.plugins
            ],
            errors=list(discovered.errors),
        )

    def resolve_conflicts(self, existing: PluginRegistry, candidates: PluginLoadResult) -> PluginLoadResult:
        """
        Phase 2: apply the conflict strategy to each candidate.

        Does not modify ``existing``. Under ConflictStrategy.FAIL the first
        conflict raises PluginConflictError and nothing after it is processed.
        """
        loaded: List[PluginRegistrationInput] = []
        skipped: List[SkippedPlugin] = list(candidates.skipped)

        for candidate in candidates.loaded:
            plugin_id = candidate.plugin.id
            existing_reg = existing.get(plugin_id)

            if existing_reg is None:
                loaded.append(candidate)
                continue

            if self._conflict_strategy == ConflictStrategy.PREFER_EXISTING:
                reason = f"Conflict: {existing_reg.origin.value} plugin '{plugin_id}' already registered"
                logger.info("Skipping discovered plugin '%s': %s", plugin_id, reason)
                skipped.append(SkippedPlugin(plugin=candidate.plugin, reason=reason, conflicts_with=plugin_id))
            elif self._conflict_strategy == ConflictStrategy.PREFER_DISCOVERED:
                logger.info("Discovered plugin '%s' replaces the %s one", plugin_id, existing_reg.origin.value)
                loaded.append(candidate)
            else:
                raise PluginConflictError(plugin_id)

        return PluginLoadResult(loaded=loaded, skipped=skipped, errors=list(candidates.errors))
