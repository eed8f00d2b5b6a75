"""Tests for plugin conflict resolution."""

import pytest

from agentconv.core.discovery import PluginLoadError
from agentconv.core.errors import PluginConflictError
from agentconv.core.loader import ConflictStrategy, PluginLoader, PluginLoadResult
from agentconv.core.registry import PluginRegistry
from agentconv.core.types import PluginOrigin, PluginRegistrationInput


def _registry_with(*plugins) -> PluginRegistry:
    registry = PluginRegistry()
    for plugin in plugins:
        registry.register(PluginRegistrationInput(plugin=plugin))
    return registry


def _candidates(*plugins) -> PluginLoadResult:
    return PluginLoadResult(
        loaded=[PluginRegistrationInput(plugin=p, origin=PluginOrigin.DISCOVERED) for p in plugins]
    )


def test_default_strategy_is_prefer_existing():
    assert PluginLoader().conflict_strategy == ConflictStrategy.PREFER_EXISTING


def test_prefer_existing_skips_conflicting_candidate(stub_plugin):
    registry = _registry_with(stub_plugin("x"))
    candidate = stub_plugin("x")

    result = PluginLoader(ConflictStrategy.PREFER_EXISTING).resolve_conflicts(registry, _candidates(candidate))

    assert [c.plugin.id for c in result.loaded] == []
    assert len(result.skipped) == 1
    assert result.skipped[0].plugin is candidate
    assert result.skipped[0].conflicts_with == "x"
    assert "x" in result.skipped[0].reason
    assert "builtin" in result.skipped[0].reason


def test_prefer_existing_keeps_non_conflicting(stub_plugin):
    registry = _registry_with(stub_plugin("cursor"))

    result = PluginLoader().resolve_conflicts(registry, _candidates(stub_plugin("windsurf")))

    assert [c.plugin.id for c in result.loaded] == ["windsurf"]
    assert result.skipped == []


def test_prefer_discovered_returns_candidate(stub_plugin):
    registry = _registry_with(stub_plugin("x"))
    candidate = stub_plugin("x")

    result = PluginLoader(ConflictStrategy.PREFER_DISCOVERED).resolve_conflicts(registry, _candidates(candidate))

    assert [c.plugin for c in result.loaded] == [candidate]
    assert result.skipped == []


def test_fail_raises_on_first_conflict(stub_plugin):
    registry = _registry_with(stub_plugin("x"))
    candidates = _candidates(stub_plugin("x"), stub_plugin("y"))

    with pytest.raises(PluginConflictError) as exc_info:
        PluginLoader(ConflictStrategy.FAIL).resolve_conflicts(registry, candidates)

    assert exc_info.value.plugin_id == "x"
    assert "x" in str(exc_info.value)


def test_fail_without_conflict_loads_everything(stub_plugin):
    registry = _registry_with(stub_plugin("cursor"))

    result = PluginLoader(ConflictStrategy.FAIL).resolve_conflicts(
        registry, _candidates(stub_plugin("a"), stub_plugin("b"))
    )

    assert [c.plugin.id for c in result.loaded] == ["a", "b"]


def test_resolve_conflicts_does_not_touch_registry(stub_plugin):
    existing = stub_plugin("x")
    registry = _registry_with(existing)

    PluginLoader(ConflictStrategy.PREFER_DISCOVERED).resolve_conflicts(
        registry, _candidates(stub_plugin("x"), stub_plugin("new"))
    )

    assert registry.ids() == ["x"]
    assert registry.get_plugin("x") is existing


def test_load_errors_pass_through(stub_plugin):
    candidates = _candidates(stub_plugin("a"))
    candidates.errors.append(PluginLoadError(package_name="agentconv_plugin_bad", error="ImportError: nope"))

    result = PluginLoader().resolve_conflicts(PluginRegistry(), candidates)

    assert [e.package_name for e in result.errors] == ["agentconv_plugin_bad"]


def test_load_installed_wraps_as_discovered(tmp_path):
    package_dir = tmp_path / "agentconv_plugin_extra"
    package_dir.mkdir()
    (package_dir / "__init__.py").write_text(
        "version = '0.4.0'\n"
        "class Extra:\n"
        "    id = 'extra'\n"
        "    name = 'Extra'\n"
        "    supports = []\n"
        "    def discover(self, root): ...\n"
        "    def emit(self, items, root, dry_run=False): ...\n"
        "plugin = Extra\n",
        encoding="utf-8",
    )

    result = PluginLoader().load_installed([str(tmp_path)])

    assert len(result.loaded) == 1
    registration = result.loaded[0]
    assert registration.plugin.id == "extra"
    assert registration.origin == PluginOrigin.DISCOVERED
    assert registration.version == "0.4.0"
    assert registration.install_path == str(package_dir)
