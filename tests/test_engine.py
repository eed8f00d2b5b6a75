"""Tests for the conversion engine."""

import pytest

from agentconv.converters import ClaudePlugin, CursorPlugin, default_engine
from agentconv.core.engine import ConversionEngine, ConversionOptions
from agentconv.core.errors import PluginConflictError, ReadOnlyWorkspaceError, UnknownPluginError
from agentconv.core.loader import ConflictStrategy
from agentconv.core.types import CustomizationType, EmitResult, PluginOrigin, WarningCode
from agentconv.core.workspace import MemoryWorkspace


def _write_plugin_package(search_dir, plugin_id):
    package_dir = search_dir / f"agentconv_plugin_{plugin_id}"
    package_dir.mkdir(parents=True)
    (package_dir / "__init__.py").write_text(
        "__version__ = '9.9.9'\n"
        "class P:\n"
        f"    id = '{plugin_id}'\n"
        f"    name = 'Installed {plugin_id}'\n"
        "    supports = []\n"
        "    def discover(self, root): ...\n"
        "    def emit(self, items, root, dry_run=False): ...\n"
        "def get_plugin():\n"
        "    return P()\n",
        encoding="utf-8",
    )


# =============================================================================
# PLUGIN MANAGEMENT
# =============================================================================


def test_default_engine_lists_builtin_plugins():
    plugins = default_engine().list_plugins()

    assert [p.id for p in plugins] == ["cursor", "claude"]
    assert all(p.origin == PluginOrigin.BUILTIN for p in plugins)
    assert set(plugins[0].supports) == set(CustomizationType)


def test_discover_and_register_prefer_existing(tmp_path):
    _write_plugin_package(tmp_path, "cursor")
    _write_plugin_package(tmp_path, "windsurf")
    engine = default_engine()

    result = engine.discover_and_register_plugins([str(tmp_path)])

    assert result.registered == ["windsurf"]
    assert result.skipped == ["cursor"]
    assert result.errors == []
    assert isinstance(engine.get_plugin("cursor"), CursorPlugin)
    windsurf = [p for p in engine.list_plugins() if p.id == "windsurf"][0]
    assert windsurf.origin == PluginOrigin.DISCOVERED
    assert windsurf.version == "9.9.9"


def test_discover_and_register_prefer_discovered(tmp_path):
    _write_plugin_package(tmp_path, "cursor")
    engine = default_engine(ConflictStrategy.PREFER_DISCOVERED)

    result = engine.discover_and_register_plugins([str(tmp_path)])

    assert result.registered == ["cursor"]
    assert engine.get_plugin("cursor").name == "Installed cursor"
    assert [p.id for p in engine.list_plugins()] == ["cursor", "claude"]


def test_discover_and_register_fail_strategy(tmp_path):
    _write_plugin_package(tmp_path, "claude")
    engine = default_engine(ConflictStrategy.FAIL)

    with pytest.raises(PluginConflictError):
        engine.discover_and_register_plugins([str(tmp_path)])

    assert isinstance(engine.get_plugin("claude"), ClaudePlugin)


def test_unknown_plugin_raises():
    engine = ConversionEngine()

    with pytest.raises(UnknownPluginError) as exc_info:
        engine.discover("nope", MemoryWorkspace("x"))
    assert str(exc_info.value) == "Unknown plugin: nope"

    with pytest.raises(UnknownPluginError, match="Unknown source: nope"):
        engine.convert(ConversionOptions(source="nope", target="nope"))


# =============================================================================
# CONVERSION
# =============================================================================


def test_convert_cursor_to_claude_with_path_rewriting():
    source = MemoryWorkspace(
        "source",
        {
            ".cursor/rules/main.mdc": "---\nalwaysApply: true\n---\n\nSee .cursor/rules/ts.mdc and .cursor/rules/gone.mdc.",
            ".cursor/rules/ts.mdc": "---\nglobs: *.ts\n---\n\nStrict.",
        },
    )
    target = MemoryWorkspace("target")

    result = default_engine().convert(
        ConversionOptions(
            source="cursor",
            target="claude",
            source_workspace=source,
            target_workspace=target,
            rewrite_path_refs=True,
        )
    )

    assert target.all_paths() == [".claude/rules/main.md", ".claude/rules/ts.md"]
    main = target.read(".claude/rules/main.md")
    assert ".claude/rules/ts.md" in main
    assert ".cursor/rules/ts.mdc" not in main
    assert [w.code for w in result.warnings] == [WarningCode.ORPHAN_PATH_REF]
    assert len(result.discovered) == 2
    # discovered items are the originals, not the rewritten copies
    assert ".cursor/rules/ts.mdc" in result.discovered[0].content


def test_convert_without_rewriting_leaves_content():
    source = MemoryWorkspace("source", {"CLAUDE.md": "Read .claude/rules/x.md"})
    target = MemoryWorkspace("target")

    default_engine().convert(
        ConversionOptions(source="claude", target="cursor", source_workspace=source, target_workspace=target)
    )

    assert "Read .claude/rules/x.md" in target.read(".cursor/rules/claude.mdc")


def test_convert_dry_run_writes_nothing():
    source = MemoryWorkspace("source", {"CLAUDE.md": "Be brief."})
    target = MemoryWorkspace("target")

    result = default_engine().convert(
        ConversionOptions(
            source="claude",
            target="cursor",
            source_workspace=source,
            target_workspace=target,
            dry_run=True,
            rewrite_path_refs=True,
        )
    )

    assert target.all_paths() == []
    assert [w.path for w in result.written] == ["/memory/.cursor/rules/claude.mdc"]


def test_trial_emission_is_dry_run_on_read_only_workspace(stub_plugin):
    source = stub_plugin("src", files={"a.md": "x"})
    target = stub_plugin("dst", route=lambda p: f"out/{p}")
    engine = ConversionEngine(plugins=[source, target])
    target_workspace = MemoryWorkspace("target")

    engine.convert(
        ConversionOptions(
            source="src",
            target="dst",
            source_workspace=MemoryWorkspace("source"),
            target_workspace=target_workspace,
            rewrite_path_refs=True,
        )
    )

    trial, real = target.emit_calls
    assert trial["dry_run"] is True
    with pytest.raises(ReadOnlyWorkspaceError):
        trial["workspace"].write("x", "y")
    assert real["dry_run"] is False
    assert real["workspace"] is target_workspace
    assert target_workspace.all_paths() == ["out/a.md"]


def test_trial_emission_that_writes_fails_loudly(stub_plugin):
    class CarelessPlugin:
        id = "careless"
        name = "Careless"
        supports = []

        def discover(self, root):
            raise NotImplementedError

        def emit(self, items, workspace, dry_run=False):
            workspace.write("oops.md", "ignored dry_run")
            return EmitResult()

    engine = ConversionEngine(plugins=[stub_plugin("src", files={"a.md": "x"}), CarelessPlugin()])
    target_workspace = MemoryWorkspace("target")

    with pytest.raises(ReadOnlyWorkspaceError):
        engine.convert(
            ConversionOptions(
                source="src",
                target="careless",
                source_workspace=MemoryWorkspace("source"),
                target_workspace=target_workspace,
                rewrite_path_refs=True,
            )
        )
    assert target_workspace.all_paths() == []


def test_convert_warning_order(stub_plugin):
    source_ws = MemoryWorkspace(
        "source",
        {
            ".cursor/commands/complex.md": "Run $ARGUMENTS",
            ".cursor/rules/a.mdc": "---\nalwaysApply: true\n---\n\nSee .cursor/rules/missing.mdc",
            ".cursorignore": ".env\n!keep\n",
        },
    )
    target_ws = MemoryWorkspace("target")

    result = default_engine().convert(
        ConversionOptions(
            source="cursor",
            target="claude",
            source_workspace=source_ws,
            target_workspace=target_ws,
            rewrite_path_refs=True,
        )
    )

    assert [w.code for w in result.warnings] == [
        WarningCode.SKIPPED,
        WarningCode.ORPHAN_PATH_REF,
        WarningCode.SKIPPED,
        WarningCode.APPROXIMATED,
    ]


def test_convert_between_local_directories(tmp_path, write_files):
    source_dir = write_files(tmp_path / "src", {".cursor/rules/a.mdc": "---\nalwaysApply: true\n---\n\nHello"})
    target_dir = tmp_path / "dst"

    result = default_engine().convert(
        ConversionOptions(source="cursor", target="claude", source_root=source_dir, target_root=target_dir)
    )

    assert (target_dir / ".claude" / "rules" / "a.md").read_text(encoding="utf-8") == "Hello\n"
    assert [w.path for w in result.written] == [str(target_dir / ".claude" / "rules" / "a.md")]
    assert not (source_dir / ".claude").exists()
