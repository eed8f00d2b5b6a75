"""Tests for workspace implementations."""

from pathlib import Path

import pytest

from agentconv.core.errors import ReadOnlyWorkspaceError
from agentconv.core.workspace import (
    LocalWorkspace,
    MemoryWorkspace,
    ReadOnlyWorkspace,
    join_relative,
    resolve_workspace,
    walk_files,
)


def test_local_workspace_write_creates_parents(tmp_path):
    workspace = LocalWorkspace("local", tmp_path)

    workspace.write(".claude/rules/deep/a.md", "hello")

    assert (tmp_path / ".claude" / "rules" / "deep" / "a.md").read_text(encoding="utf-8") == "hello"
    assert workspace.exists(".claude/rules/deep/a.md")
    assert workspace.read(".claude/rules/deep/a.md") == "hello"
    assert workspace.resolve("x.md") == str(tmp_path / "x.md")


def test_local_workspace_readdir_sorted(tmp_path):
    (tmp_path / "b.md").write_text("", encoding="utf-8")
    (tmp_path / "a").mkdir()

    entries = LocalWorkspace("local", tmp_path).readdir("")

    assert [(e.name, e.is_file, e.is_directory) for e in entries] == [("a", False, True), ("b.md", True, False)]


def test_read_only_workspace_passes_reads_and_blocks_writes(tmp_path):
    (tmp_path / "a.md").write_text("content", encoding="utf-8")
    workspace = ReadOnlyWorkspace(LocalWorkspace("target", tmp_path))

    assert workspace.id == "target"
    assert workspace.root == str(tmp_path)
    assert workspace.read("a.md") == "content"

    with pytest.raises(ReadOnlyWorkspaceError):
        workspace.write("b.md", "nope")
    with pytest.raises(PermissionError):
        workspace.mkdir("dir")
    assert not (tmp_path / "b.md").exists()
    assert not (tmp_path / "dir").exists()


def test_memory_workspace_roundtrip_and_listing():
    workspace = MemoryWorkspace("mem", {".cursor/rules/a.mdc": "A", ".cursor/rules/sub/b.mdc": "B"})

    workspace.write("CLAUDE.md", "root")

    assert workspace.read("CLAUDE.md") == "root"
    assert workspace.exists(".cursor/rules")
    assert not workspace.exists(".cursor/skills")
    assert [e.name for e in workspace.readdir(".cursor/rules")] == ["a.mdc", "sub"]
    assert workspace.readdir(".cursor/rules")[1].is_directory
    assert workspace.resolve(".cursor/rules/a.mdc") == "/memory/.cursor/rules/a.mdc"
    assert workspace.all_paths() == [".cursor/rules/a.mdc", ".cursor/rules/sub/b.mdc", "CLAUDE.md"]


def test_memory_workspace_missing_file_raises():
    workspace = MemoryWorkspace("mem")

    with pytest.raises(FileNotFoundError):
        workspace.read("missing.md")
    with pytest.raises(FileNotFoundError):
        workspace.readdir("missing")


def test_memory_workspace_mkdir_makes_empty_directory():
    workspace = MemoryWorkspace("mem")

    workspace.mkdir(".claude/skills")

    assert workspace.exists(".claude/skills")
    assert workspace.readdir(".claude/skills") == []


def test_walk_files_recursive_with_suffix_filter():
    workspace = MemoryWorkspace(
        "mem",
        {
            "rules/a.mdc": "",
            "rules/nested/b.mdc": "",
            "rules/nested/notes.txt": "",
        },
    )

    assert walk_files(workspace, "rules", (".mdc",)) == ["a.mdc", "nested/b.mdc"]
    assert walk_files(workspace, "rules") == ["a.mdc", "nested/b.mdc", "nested/notes.txt"]
    assert walk_files(workspace, "missing") == []


def test_resolve_workspace_accepts_path_or_workspace(tmp_path):
    memory = MemoryWorkspace("mem")

    assert resolve_workspace(memory) is memory
    local = resolve_workspace(tmp_path)
    assert isinstance(local, LocalWorkspace)
    assert Path(local.root) == tmp_path


def test_join_relative_drops_empty_parts():
    assert join_relative("", "a.md") == "a.md"
    assert join_relative(".claude/rules", "", "x.md") == ".claude/rules/x.md"
