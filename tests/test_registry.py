"""Tests for the plugin registry."""

from datetime import datetime

from agentconv.core.registry import PluginRegistry
from agentconv.core.types import PluginOrigin, PluginRegistrationInput


def test_register_and_get(stub_plugin):
    registry = PluginRegistry()
    plugin = stub_plugin("cursor")
    registry.register(PluginRegistrationInput(plugin=plugin))

    registration = registry.get("cursor")
    assert registration is not None
    assert registration.plugin is plugin
    assert registration.origin == PluginOrigin.BUILTIN
    assert isinstance(registration.registered_at, datetime)
    assert registration.registered_at.tzinfo is not None
    assert registry.get_plugin("cursor") is plugin


def test_unknown_id_returns_none():
    registry = PluginRegistry()
    assert registry.get("missing") is None
    assert registry.get_plugin("missing") is None
    assert not registry.has("missing")


def test_register_overwrites_same_id_in_place(stub_plugin):
    registry = PluginRegistry()
    first = stub_plugin("a")
    registry.register(PluginRegistrationInput(plugin=first))
    registry.register(PluginRegistrationInput(plugin=stub_plugin("b")))

    replacement = stub_plugin("a")
    registry.register(
        PluginRegistrationInput(plugin=replacement, origin=PluginOrigin.DISCOVERED, version="2.0.0")
    )

    assert len(registry) == 2
    assert registry.ids() == ["a", "b"]
    registration = registry.get("a")
    assert registration.plugin is replacement
    assert registration.origin == PluginOrigin.DISCOVERED
    assert registration.version == "2.0.0"


def test_list_by_origin(stub_plugin):
    registry = PluginRegistry()
    registry.register(PluginRegistrationInput(plugin=stub_plugin("cursor")))
    registry.register(PluginRegistrationInput(plugin=stub_plugin("claude")))
    registry.register(
        PluginRegistrationInput(
            plugin=stub_plugin("windsurf"),
            origin=PluginOrigin.DISCOVERED,
            install_path="/plugins/agentconv_plugin_windsurf",
        )
    )

    builtin = [r.plugin.id for r in registry.list_by_origin(PluginOrigin.BUILTIN)]
    discovered = registry.list_by_origin(PluginOrigin.DISCOVERED)

    assert builtin == ["cursor", "claude"]
    assert [r.plugin.id for r in discovered] == ["windsurf"]
    assert discovered[0].install_path == "/plugins/agentconv_plugin_windsurf"


def test_list_preserves_insertion_order(stub_plugin):
    registry = PluginRegistry()
    for plugin_id in ("z", "a", "m"):
        registry.register(PluginRegistrationInput(plugin=stub_plugin(plugin_id)))

    assert [r.plugin.id for r in registry.list()] == ["z", "a", "m"]


def test_clear_and_membership(stub_plugin):
    registry = PluginRegistry()
    registry.register(PluginRegistrationInput(plugin=stub_plugin("cursor")))
    assert "cursor" in registry
    assert registry.has("cursor")

    registry.clear()

    assert "cursor" not in registry
    assert len(registry) == 0
    assert registry.list() == []
