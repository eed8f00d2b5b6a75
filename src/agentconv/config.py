"""
Project configuration.

Read from ``.agentconv/config.json`` under the project root:

    {
      "conflictStrategy": "prefer-existing",
      "pluginSearchPaths": ["vendor/plugins"],
      "rewritePathRefs": true,
      "discoverPlugins": true
    }

Every key is optional. CLI flags win over the file.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from agentconv.core.loader import ConflictStrategy

logger = logging.getLogger(__name__)

CONFIG_DIR = ".agentconv"
CONFIG_FILE = "config.json"
DISABLE_DISCOVERY_ENV = "AGENTCONV_DISABLE_PLUGIN_DISCOVERY"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class AgentConvConfig:
    conflict_strategy: ConflictStrategy = ConflictStrategy.PREFER_EXISTING
    plugin_search_paths: List[str] = field(default_factory=list)
    rewrite_path_refs: bool = False
    discover_plugins: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_root: Optional[Union[str, Path]] = None) -> "AgentConvConfig":
        """
        Build a config from the parsed JSON object.

        Raises ValueError for an unknown conflict strategy or wrongly typed values.
        """
        config = cls()

        if "conflictStrategy" in data:
            config.conflict_strategy = ConflictStrategy(data["conflictStrategy"])

        paths = data.get("pluginSearchPaths", [])
        if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
            raise ValueError("pluginSearchPaths must be a list of strings")
        root = Path(project_root) if project_root is not None else None
        config.plugin_search_paths = [
            str(root / p) if root is not None and not Path(p).is_absolute() else p
            for p in paths
        ]

        for key, attr in (("rewritePathRefs", "rewrite_path_refs"), ("discoverPlugins", "discover_plugins")):
            if key in data:
                if not isinstance(data[key], bool):
                    raise ValueError(f"{key} must be true or false")
                setattr(config, attr, data[key])

        return config


def config_path(project_root: Union[str, Path]) -> Path:
    return Path(project_root) / CONFIG_DIR / CONFIG_FILE


def load_config(project_root: Union[str, Path] = ".") -> AgentConvConfig:
    """Load the project config, falling back to defaults when absent or broken."""
    path = config_path(project_root)
    config = AgentConvConfig()

    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("top-level value must be an object")
            config = AgentConvConfig.from_dict(data, project_root)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Ignoring invalid config %s: %s", path, e)
            config = AgentConvConfig()

    if os.environ.get(DISABLE_DISCOVERY_ENV, "").strip().lower() in _TRUTHY:
        config.discover_plugins = False

    return config
