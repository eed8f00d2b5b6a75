"""Core abstractions for agentconv."""

from .engine import ConversionEngine, ConversionOptions, ConversionResult, PluginInfo
from .errors import AgentConvError, PluginConflictError, ReadOnlyWorkspaceError, UnknownPluginError
from .loader import ConflictStrategy, PluginLoader, PluginLoadResult
from .path_rewriter import build_mapping, detect_orphans, rewrite_content
from .plugin import BasePlugin, is_valid_plugin
from .registry import PluginRegistry
from .transformation import ContentTransformation, PathRewritingTransformation, run_transformations
from .types import (
    AgentCustomization,
    ConversionWarning,
    CustomizationType,
    PluginOrigin,
    WarningCode,
    WrittenFile,
    create_id,
)
from .workspace import LocalWorkspace, MemoryWorkspace, ReadOnlyWorkspace, Workspace

__all__ = [
    "AgentConvError",
    "AgentCustomization",
    "BasePlugin",
    "ConflictStrategy",
    "ContentTransformation",
    "ConversionEngine",
    "ConversionOptions",
    "ConversionResult",
    "ConversionWarning",
    "CustomizationType",
    "LocalWorkspace",
    "MemoryWorkspace",
    "PathRewritingTransformation",
    "PluginConflictError",
    "PluginInfo",
    "PluginLoadResult",
    "PluginLoader",
    "PluginOrigin",
    "PluginRegistry",
    "ReadOnlyWorkspace",
    "ReadOnlyWorkspaceError",
    "UnknownPluginError",
    "WarningCode",
    "Workspace",
    "WrittenFile",
    "build_mapping",
    "create_id",
    "detect_orphans",
    "is_valid_plugin",
    "rewrite_content",
    "run_transformations",
]
