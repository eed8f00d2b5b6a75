"""
Installed plugin discovery.

Scans search directories for ``agentconv_plugin_*`` packages or modules,
imports each one from its file location and validates the result against the
plugin shape. A package that fails to import or validate becomes a
PluginLoadError entry; it never stops discovery of the others.

Plugin package layout:
    agentconv_plugin_foo/
    ├── __init__.py      (defines get_plugin(), or a module-level `plugin`)
    └── ...

WARNING: discovered plugins execute arbitrary Python code on import.
"""

import importlib.util
import inspect
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from .plugin import is_valid_plugin

logger = logging.getLogger(__name__)

PLUGIN_PREFIX = "agentconv_plugin_"
LOCAL_PLUGIN_DIR = Path(".agentconv") / "plugins"
PLUGIN_PATH_ENV = "AGENTCONV_PLUGIN_PATH"


@dataclass
class PluginLoadError:
    """A plugin package that was found but could not be used."""
    package_name: str
    error: str


@dataclass
class DiscoveredPlugin:
    plugin: Any
    package_name: str
    install_path: str
    version: Optional[str] = None


@dataclass
class PluginDiscoveryResult:
    plugins: List[DiscoveredPlugin] = field(default_factory=list)
    errors: List[PluginLoadError] = field(default_factory=list)


# =============================================================================
# SEARCH PATHS
# =============================================================================


def get_default_search_paths() -> List[str]:
    """
    Where installed plugins may live.

    - the site-packages directory agentconv itself is installed in
    - ``.agentconv/plugins`` under the current working directory
    - any directories listed in AGENTCONV_PLUGIN_PATH
    """
    paths: List[str] = []

    for parent in Path(__file__).resolve().parents:
        if parent.name in ("site-packages", "dist-packages"):
            paths.append(str(parent))
            break

    local_dir = str(Path.cwd() / LOCAL_PLUGIN_DIR)
    if local_dir not in paths:
        paths.append(local_dir)

    for extra in os.environ.get(PLUGIN_PATH_ENV, "").split(os.pathsep):
        extra = extra.strip()
        if extra and extra not in paths:
            paths.append(extra)

    return paths


# =============================================================================
# LOADING
# =============================================================================


def _entry_file(candidate: Path) -> Optional[Path]:
    if candidate.is_dir():
        init_file = candidate / "__init__.py"
        return init_file if init_file.exists() else None
    if candidate.suffix == ".py":
        return candidate
    return None


def _package_name(candidate: Path) -> str:
    return candidate.stem if candidate.suffix == ".py" else candidate.name


def _load_module(package_name: str, entry_file: Path):
    is_package = entry_file.name == "__init__.py"
    spec = importlib.util.spec_from_file_location(
        package_name,
        entry_file,
        submodule_search_locations=[str(entry_file.parent)] if is_package else None,
    )
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot build import spec for {entry_file}")

    module = importlib.util.module_from_spec(spec)
    # Registered before exec so relative imports inside the package resolve.
    sys.modules[package_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(package_name, None)
        raise
    return module


def _extract_candidate(module) -> Any:
    """get_plugin() wins, then a module-level `plugin`, then the module itself."""
    factory = getattr(module, "get_plugin", None)
    if callable(factory):
        candidate = factory()
    else:
        candidate = getattr(module, "plugin", module)
    if inspect.isclass(candidate):
        candidate = candidate()
    return candidate


def _list_candidates(search_path: str) -> Optional[List[Path]]:
    try:
        entries = sorted(Path(search_path).iterdir())
    except OSError:
        return None
    return [e for e in entries if e.name.startswith(PLUGIN_PREFIX)]


def discover_installed_plugins(search_paths: Optional[Sequence[str]] = None) -> PluginDiscoveryResult:
    """
    Scan search paths for installed plugins.

    Args:
        search_paths: Directories to scan. Defaults to get_default_search_paths().

    Returns:
        Valid plugins and per-package errors. Duplicate ids within this scan
        are errors; the first one found wins.
    """
    if search_paths is None:
        search_paths = get_default_search_paths()

    result = PluginDiscoveryResult()
    seen_ids: dict = {}

    for search_path in search_paths:
        candidates = _list_candidates(search_path)
        if candidates is None:
            logger.debug("Skipping unreadable plugin search path %s", search_path)
            continue

        for candidate_path in candidates:
            package_name = _package_name(candidate_path)
            entry_file = _entry_file(candidate_path)
            if entry_file is None:
                continue

            plugin, plugin_id, version, error = _load_candidate(package_name, entry_file)
            if error:
                logger.warning("Could not load plugin package %s: %s", package_name, error)
                result.errors.append(PluginLoadError(package_name=package_name, error=error))
                continue

            if plugin_id in seen_ids:
                error = f"Duplicate plugin id '{plugin_id}' (already provided by {seen_ids[plugin_id]})"
                logger.warning("Ignoring plugin package %s: %s", package_name, error)
                result.errors.append(PluginLoadError(package_name=package_name, error=error))
                continue

            seen_ids[plugin_id] = package_name
            result.plugins.append(
                DiscoveredPlugin(
                    plugin=plugin,
                    package_name=package_name,
                    install_path=str(candidate_path),
                    version=version,
                )
            )
            logger.debug("Discovered plugin '%s' in %s", plugin_id, candidate_path)

    return result


def _load_candidate(
    package_name: str, entry_file: Path
) -> Tuple[Any, Optional[str], Optional[str], Optional[str]]:
    """
    Import and validate one package.

    Returns:
        (plugin, plugin_id, version, error). Anything the package raises while
        importing or being inspected, SystemExit included, becomes the error.
        Ctrl-C still propagates.
    """
    try:
        module = _load_module(package_name, entry_file)
        candidate = _extract_candidate(module)
        if not is_valid_plugin(candidate):
            sys.modules.pop(package_name, None)
            return None, None, None, (
                "Invalid plugin export: missing or incorrect required fields "
                "(id, name, supports, discover, emit)"
            )
        plugin_id = candidate.id
        version = _plugin_version(candidate, package_name)
    except KeyboardInterrupt:
        raise
    except BaseException as e:
        sys.modules.pop(package_name, None)
        return None, None, None, f"{type(e).__name__}: {e}"
    return candidate, plugin_id, version, None


def _plugin_version(plugin: Any, package_name: str) -> Optional[str]:
    for source in (plugin, sys.modules.get(package_name)):
        version = getattr(source, "__version__", None) or getattr(source, "version", None)
        if isinstance(version, str):
            return version
    return None
