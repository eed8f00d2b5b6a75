"""
Plugin registry: which plugins exist and where they came from.

One registry is created per engine and passed explicitly to whoever needs it;
there is no module-level instance. Pure bookkeeping, no I/O.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .types import PluginOrigin, PluginRegistration, PluginRegistrationInput

logger = logging.getLogger(__name__)


class PluginRegistry:
    def __init__(self):
        self._registrations: Dict[str, PluginRegistration] = {}

    def register(self, registration: PluginRegistrationInput) -> None:
        """Insert or overwrite the entry for ``registration.plugin.id``."""
        plugin_id = registration.plugin.id
        if plugin_id in self._registrations:
            # Overwrite keeps the original list position.
            logger.debug("Replacing registration for plugin '%s'", plugin_id)
        self._registrations[plugin_id] = PluginRegistration(
            plugin=registration.plugin,
            origin=registration.origin,
            registered_at=datetime.now(timezone.utc),
            version=registration.version,
            install_path=registration.install_path,
        )

    def get(self, plugin_id: str) -> Optional[PluginRegistration]:
        return self._registrations.get(plugin_id)

    def get_plugin(self, plugin_id: str) -> Optional[Any]:
        registration = self._registrations.get(plugin_id)
        return registration.plugin if registration else None

    def has(self, plugin_id: str) -> bool:
        return plugin_id in self._registrations

    def list(self) -> List[PluginRegistration]:
        return list(self._registrations.values())

    def list_by_origin(self, origin: PluginOrigin) -> List[PluginRegistration]:
        return [r for r in self._registrations.values() if r.origin == origin]

    def ids(self) -> List[str]:
        return list(self._registrations.keys())

    def clear(self) -> None:
        self._registrations.clear()

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)
