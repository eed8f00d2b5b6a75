import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from agentconv.core.plugin import BasePlugin
from agentconv.core.types import (
    CustomizationType,
    DiscoveryResult,
    EmitResult,
    GlobalPrompt,
    PathPatterns,
    WrittenFile,
    create_id,
)
from agentconv.core.workspace import resolve_workspace


class StubPlugin(BasePlugin):
    """
    Minimal plugin for pipeline tests.

    ``files`` maps source paths to content for discovery; ``route`` turns an
    item's source path into the target-relative path emit() reports.
    """

    def __init__(
        self,
        plugin_id: str = "stub",
        files: Optional[Dict[str, str]] = None,
        route: Optional[Callable[[str], Optional[str]]] = None,
        path_patterns: Optional[PathPatterns] = None,
    ):
        self.id = plugin_id
        self.name = f"Stub {plugin_id}"
        self.supports = [CustomizationType.GLOBAL_PROMPT]
        self.path_patterns = path_patterns
        self.files = files or {}
        self.route = route or (lambda source_path: None)
        self.emit_calls: List[dict] = []

    def discover(self, root_or_workspace) -> DiscoveryResult:
        return DiscoveryResult(
            items=[
                GlobalPrompt(
                    id=create_id(CustomizationType.GLOBAL_PROMPT, path),
                    source_path=path,
                    content=content,
                )
                for path, content in self.files.items()
            ]
        )

    def emit(self, items, root_or_workspace, dry_run: bool = False) -> EmitResult:
        workspace = resolve_workspace(root_or_workspace)
        self.emit_calls.append({"items": list(items), "workspace": workspace, "dry_run": dry_run})
        result = EmitResult()
        for item in items:
            target = self.route(item.source_path)
            if target is None:
                result.unsupported.append(item)
                continue
            if not dry_run:
                workspace.write(target, item.content)
            result.written.append(
                WrittenFile(path=workspace.resolve(target), type=item.type, source_items=[item])
            )
        return result


@pytest.fixture
def stub_plugin() -> Callable[..., StubPlugin]:
    return StubPlugin


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def write_files() -> Callable[[Path, Dict[str, str]], Path]:
    def _write(root: Path, files: Dict[str, str]) -> Path:
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _write


@pytest.fixture(autouse=True)
def _isolate_plugin_env(monkeypatch):
    """Keep the developer's environment and earlier imports out of each test."""
    monkeypatch.delenv("AGENTCONV_PLUGIN_PATH", raising=False)
    monkeypatch.delenv("AGENTCONV_DISABLE_PLUGIN_DISCOVERY", raising=False)
    yield
    for name in [m for m in sys.modules if m.startswith("agentconv_plugin_")]:
        del sys.modules[name]
