"""
Shared plumbing for the built-in plugins.

Emission is planned first and written second, so a dry run and a real run
go through the exact same classification code and only differ in whether
``EmissionPlan.commit`` touches the workspace.
"""

import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple

from agentconv.core.errors import ReadOnlyWorkspaceError
from agentconv.core.types import (
    AgentCustomization,
    AgentSkillIO,
    ConversionWarning,
    CustomizationType,
    EmitResult,
    ManualPrompt,
    WarningCode,
    WrittenFile,
)
from agentconv.core.workspace import Workspace
from agentconv.utils import sanitize_name

logger = logging.getLogger(__name__)

SKIP_DIRS = {"node_modules", ".git", "__pycache__", ".venv", "venv", "dist", "build"}


def item_name(item: AgentCustomization, fallback: str = "rule") -> str:
    """Filesystem-safe base name for an item's output file."""
    if isinstance(item, ManualPrompt) and item.prompt_name:
        return sanitize_name(item.prompt_name, fallback)
    if isinstance(item, AgentSkillIO) and item.name:
        return sanitize_name(item.name, fallback)
    path = PurePosixPath(item.source_path.replace("\\", "/"))
    if path.name.upper() == "SKILL.MD" and path.parent.name:
        return sanitize_name(path.parent.name, fallback)
    return sanitize_name(path.name, fallback)


def skipped(message: str, source: str, **details: Any) -> ConversionWarning:
    return ConversionWarning(
        code=WarningCode.SKIPPED,
        message=message,
        sources=[source],
        details=details or None,
    )


class EmissionPlan:
    """Collects the files an emission would write, then writes them unless dry-running."""

    def __init__(self, workspace: Workspace):
        self.workspace = workspace
        self.result = EmitResult()
        self._pending: List[Tuple[str, str, WrittenFile]] = []

    def add(
        self,
        relative_path: str,
        content: str,
        kind: CustomizationType,
        source_items: List[AgentCustomization],
    ) -> WrittenFile:
        written = WrittenFile(
            path=self.workspace.resolve(relative_path),
            type=kind,
            item_count=max(len(source_items), 1),
            is_new_file=not self.workspace.exists(relative_path),
            source_items=list(source_items),
        )
        self.result.written.append(written)
        self._pending.append((relative_path, content, written))
        return written

    def warn(
        self,
        code: WarningCode,
        message: str,
        sources: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.result.warnings.append(ConversionWarning(code=code, message=message, sources=sources, details=details))

    def unsupported(self, item: AgentCustomization) -> None:
        self.result.unsupported.append(item)

    def commit(self, dry_run: bool) -> EmitResult:
        if dry_run:
            return self.result

        for relative_path, content, written in self._pending:
            try:
                self.workspace.write(relative_path, content)
            except ReadOnlyWorkspaceError:
                raise
            except OSError as e:
                logger.warning("Could not write %s: %s", relative_path, e)
                self.result.written = [w for w in self.result.written if w is not written]
                self.warn(
                    WarningCode.SKIPPED,
                    f"Could not write {relative_path}: {e}",
                    sources=[i.source_path for i in written.source_items] or None,
                )
            else:
                logger.debug("Wrote %s", relative_path)
        return self.result
