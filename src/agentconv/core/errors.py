"""Exception taxonomy for agentconv."""


class AgentConvError(Exception):
    """Base class for all agentconv errors."""


class PluginConflictError(AgentConvError):
    """A discovered plugin id collides with a registered one under the fail strategy."""

    def __init__(self, plugin_id: str):
        self.plugin_id = plugin_id
        super().__init__(f"Plugin conflict: '{plugin_id}' is already registered")


class UnknownPluginError(AgentConvError, KeyError):
    def __init__(self, plugin_id: str, role: str = "plugin"):
        self.plugin_id = plugin_id
        self.role = role
        super().__init__(f"Unknown {role}: {plugin_id}")

    def __str__(self) -> str:
        return self.args[0]


class ReadOnlyWorkspaceError(AgentConvError, PermissionError):
    """Raised when something tries to write through a read-only workspace."""


class GitIgnoreError(AgentConvError):
    """Git-ignore management was asked for something the project cannot support."""
