"""
Conversion engine.

Discover with the source plugin -> run transformations -> emit once with the
target plugin. The engine owns its PluginRegistry; nothing here is global.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from .discovery import PluginLoadError
from .errors import UnknownPluginError
from .loader import ConflictStrategy, PluginLoader
from .plugin import RootOrWorkspace
from .registry import PluginRegistry
from .transformation import ContentTransformation, PathRewritingTransformation, run_transformations
from .types import (
    AgentCustomization,
    ConversionWarning,
    CustomizationType,
    DiscoveryResult,
    EmitResult,
    PluginOrigin,
    PluginRegistrationInput,
    WrittenFile,
)
from .workspace import LocalWorkspace, ReadOnlyWorkspace, Workspace, resolve_workspace

logger = logging.getLogger(__name__)


@dataclass
class ConversionOptions:
    source: str
    target: str
    root: Union[str, Path] = "."
    dry_run: bool = False
    source_root: Optional[Union[str, Path]] = None
    target_root: Optional[Union[str, Path]] = None
    source_workspace: Optional[Workspace] = None
    target_workspace: Optional[Workspace] = None
    rewrite_path_refs: bool = False
    transformations: List[ContentTransformation] = field(default_factory=list)


@dataclass
class ConversionResult:
    discovered: List[AgentCustomization] = field(default_factory=list)
    written: List[WrittenFile] = field(default_factory=list)
    warnings: List[ConversionWarning] = field(default_factory=list)
    unsupported: List[AgentCustomization] = field(default_factory=list)


@dataclass
class PluginInfo:
    id: str
    name: str
    supports: List[CustomizationType]
    origin: PluginOrigin
    version: Optional[str] = None


@dataclass
class DiscoverAndRegisterResult:
    registered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[PluginLoadError] = field(default_factory=list)


class ConversionEngine:
    def __init__(
        self,
        plugins: Sequence[Any] = (),
        registry: Optional[PluginRegistry] = None,
        conflict_strategy: ConflictStrategy = ConflictStrategy.PREFER_EXISTING,
    ):
        self.registry = registry if registry is not None else PluginRegistry()
        self.loader = PluginLoader(conflict_strategy)
        for plugin in plugins:
            self.register_plugin(plugin, PluginOrigin.BUILTIN)

    def register_plugin(self, plugin: Any, origin: PluginOrigin = PluginOrigin.BUILTIN) -> None:
        self.registry.register(PluginRegistrationInput(plugin=plugin, origin=origin))

    def discover_and_register_plugins(self, search_paths: Optional[Sequence[str]] = None) -> DiscoverAndRegisterResult:
        """Find installed plugins, resolve id conflicts, register the survivors."""
        candidates = self.loader.load_installed(search_paths)
        resolved = self.loader.resolve_conflicts(self.registry, candidates)

        registered: List[str] = []
        for registration in resolved.loaded:
            self.registry.register(registration)
            registered.append(registration.plugin.id)

        if registered:
            logger.info("Registered installed plugin(s): %s", ", ".join(registered))

        return DiscoverAndRegisterResult(
            registered=registered,
            skipped=[s.plugin.id for s in resolved.skipped],
            errors=resolved.errors,
        )

    def list_plugins(self) -> List[PluginInfo]:
        return [
            PluginInfo(
                id=r.plugin.id,
                name=r.plugin.name,
                supports=list(r.plugin.supports),
                origin=r.origin,
                version=r.version,
            )
            for r in self.registry.list()
        ]

    def get_plugin(self, plugin_id: str) -> Optional[Any]:
        return self.registry.get_plugin(plugin_id)

    def _require_plugin(self, plugin_id: str, role: str = "plugin") -> Any:
        plugin = self.registry.get_plugin(plugin_id)
        if plugin is None:
            raise UnknownPluginError(plugin_id, role)
        return plugin

    def discover(self, plugin_id: str, root_or_workspace: RootOrWorkspace) -> DiscoveryResult:
        plugin = self._require_plugin(plugin_id)
        return plugin.discover(resolve_workspace(root_or_workspace, "discover"))

    def convert(self, options: ConversionOptions) -> ConversionResult:
        """
        Convert customizations from one plugin's format to another's.

        Warnings come back in pipeline order: discovery, transformations,
        emission.
        """
        source_plugin = self._require_plugin(options.source, "source")
        target_plugin = self._require_plugin(options.target, "target")

        source_workspace = options.source_workspace or LocalWorkspace(
            "source", str(options.source_root if options.source_root is not None else options.root)
        )
        target_workspace = options.target_workspace or LocalWorkspace(
            "target", str(options.target_root if options.target_root is not None else options.root)
        )

        discovery = source_plugin.discover(source_workspace)
        warnings: List[ConversionWarning] = list(discovery.warnings)
        logger.info("Discovered %d item(s) with '%s'", len(discovery.items), source_plugin.id)

        transformations = list(options.transformations)
        if options.rewrite_path_refs and not any(t.id == PathRewritingTransformation.id for t in transformations):
            transformations.append(PathRewritingTransformation())

        items = discovery.items
        if transformations:
            trial_workspace = ReadOnlyWorkspace(target_workspace)

            def trial_emit(trial_items: List[AgentCustomization]) -> EmitResult:
                return target_plugin.emit(trial_items, trial_workspace, dry_run=True)

            transformed = run_transformations(
                transformations,
                items,
                source_plugin,
                target_plugin,
                source_workspace.root,
                target_workspace.root,
                trial_emit,
            )
            items = transformed.items
            warnings.extend(transformed.warnings)

        emit_workspace = ReadOnlyWorkspace(target_workspace) if options.dry_run else target_workspace
        emission = target_plugin.emit(items, emit_workspace, dry_run=options.dry_run)
        warnings.extend(emission.warnings)
        logger.info(
            "Emitted %d file(s) with '%s'%s",
            len(emission.written),
            target_plugin.id,
            " (dry run)" if options.dry_run else "",
        )

        return ConversionResult(
            discovered=discovery.items,
            written=emission.written,
            warnings=warnings,
            unsupported=emission.unsupported,
        )
