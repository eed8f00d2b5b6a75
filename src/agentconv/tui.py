"""
Interactive prompts for agentconv convert.

Only used when --from/--to are missing and stdin is a terminal.
"""

from typing import List, Optional, Tuple

import questionary
from questionary import Style

from agentconv.core.engine import PluginInfo
from agentconv.utils import Colors

CUSTOM_STYLE = Style(
    [
        ("qmark", "fg:#00d4ff bold"),
        ("question", "bold"),
        ("answer", "fg:#00d4ff bold"),
        ("pointer", "fg:#00d4ff bold"),
        ("highlighted", "fg:#00d4ff bold bg:default"),
        ("selected", "fg:#00d4ff bold bg:default"),
    ]
)


def _plugin_label(info: PluginInfo) -> str:
    label = f"{info.name} ({info.id})"
    if info.origin.value != "builtin":
        label += f" [{info.origin.value}{' ' + info.version if info.version else ''}]"
    return label


def select_plugin(message: str, plugins: List[PluginInfo], exclude: Optional[str] = None) -> Optional[str]:
    """Ask for one plugin id. Returns None if the user cancels."""
    choices = [
        questionary.Choice(_plugin_label(p), value=p.id)
        for p in plugins
        if p.id != exclude
    ]
    if not choices:
        return None
    return questionary.select(message, choices=choices, style=CUSTOM_STYLE).ask()


def run_convert_tui(
    plugins: List[PluginInfo],
    source: Optional[str] = None,
    target: Optional[str] = None,
) -> Optional[Tuple[str, str]]:
    """
    Fill in whichever of source/target is missing.

    Returns:
        (source, target), or None if cancelled
    """
    if not source:
        source = select_plugin("Convert from:", plugins)
        if not source:
            print(f"{Colors.YELLOW}Cancelled.{Colors.ENDC}")
            return None

    if not target:
        target = select_plugin("Convert to:", plugins, exclude=source)
        if not target:
            print(f"{Colors.YELLOW}Cancelled.{Colors.ENDC}")
            return None

    return source, target
