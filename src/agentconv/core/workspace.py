"""
Workspace abstraction over file operations.

Plugins read and write through a Workspace so the same discover/emit code runs
against the local filesystem, a read-only view (trial emission) or an
in-memory tree (tests). All paths are relative to the workspace root.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Set, Tuple, Union

from .errors import ReadOnlyWorkspaceError


@dataclass
class WorkspaceEntry:
    name: str
    is_file: bool
    is_directory: bool


class Workspace(ABC):
    id: str
    root: str

    @abstractmethod
    def resolve(self, relative_path: str) -> str: ...

    @abstractmethod
    def exists(self, relative_path: str) -> bool: ...

    @abstractmethod
    def read(self, relative_path: str) -> str: ...

    @abstractmethod
    def write(self, relative_path: str, content: str) -> None:
        """Write UTF-8 text, creating missing parent directories."""

    @abstractmethod
    def readdir(self, relative_path: str) -> List[WorkspaceEntry]: ...

    @abstractmethod
    def mkdir(self, relative_path: str) -> None: ...


class LocalWorkspace(Workspace):
    """Workspace backed by the local filesystem."""

    def __init__(self, id: str, root: Union[str, Path]):
        self.id = id
        self.root = str(root)

    def resolve(self, relative_path: str) -> str:
        if not relative_path:
            return self.root
        return str(Path(self.root) / relative_path)

    def exists(self, relative_path: str) -> bool:
        return Path(self.resolve(relative_path)).exists()

    def read(self, relative_path: str) -> str:
        return Path(self.resolve(relative_path)).read_text(encoding="utf-8")

    def write(self, relative_path: str, content: str) -> None:
        full_path = Path(self.resolve(relative_path))
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(content, encoding="utf-8")

    def readdir(self, relative_path: str) -> List[WorkspaceEntry]:
        return [
            WorkspaceEntry(name=p.name, is_file=p.is_file(), is_directory=p.is_dir())
            for p in sorted(Path(self.resolve(relative_path)).iterdir())
        ]

    def mkdir(self, relative_path: str) -> None:
        Path(self.resolve(relative_path)).mkdir(parents=True, exist_ok=True)


class ReadOnlyWorkspace(Workspace):
    """
    Read-only view of another workspace.

    Reads pass through; write and mkdir raise ReadOnlyWorkspaceError instead
    of silently doing nothing.
    """

    def __init__(self, underlying: Workspace):
        self._underlying = underlying

    @property
    def id(self) -> str:
        return self._underlying.id

    @property
    def root(self) -> str:
        return self._underlying.root

    def resolve(self, relative_path: str) -> str:
        return self._underlying.resolve(relative_path)

    def exists(self, relative_path: str) -> bool:
        return self._underlying.exists(relative_path)

    def read(self, relative_path: str) -> str:
        return self._underlying.read(relative_path)

    def write(self, relative_path: str, content: str) -> None:
        raise ReadOnlyWorkspaceError(f"Cannot write to read-only workspace: {relative_path}")

    def readdir(self, relative_path: str) -> List[WorkspaceEntry]:
        return self._underlying.readdir(relative_path)

    def mkdir(self, relative_path: str) -> None:
        raise ReadOnlyWorkspaceError(f"Cannot mkdir in read-only workspace: {relative_path}")


class MemoryWorkspace(Workspace):
    """In-memory workspace for tests. Files live in a dict keyed by POSIX path."""

    def __init__(self, id: str, initial_files: Optional[Dict[str, str]] = None):
        self.id = id
        self.root = "/memory"
        self._files: Dict[str, str] = {}
        self._directories: Set[str] = set()
        for path, content in (initial_files or {}).items():
            self._files[self._normalize(path)] = content

    @staticmethod
    def _normalize(path: str) -> str:
        return path.replace("\\", "/").lstrip("/")

    def resolve(self, relative_path: str) -> str:
        normalized = self._normalize(relative_path)
        if not normalized:
            return self.root
        return f"{self.root}/{normalized}"

    def exists(self, relative_path: str) -> bool:
        normalized = self._normalize(relative_path)
        if not normalized or normalized in self._files or normalized in self._directories:
            return True
        prefix = normalized + "/"
        return any(key.startswith(prefix) for key in self._files)

    def read(self, relative_path: str) -> str:
        normalized = self._normalize(relative_path)
        if normalized not in self._files:
            raise FileNotFoundError(f"File not found: {relative_path} in workspace {self.id}")
        return self._files[normalized]

    def write(self, relative_path: str, content: str) -> None:
        self._files[self._normalize(relative_path)] = content

    def readdir(self, relative_path: str) -> List[WorkspaceEntry]:
        normalized = self._normalize(relative_path)
        if not self.exists(normalized):
            raise FileNotFoundError(f"Directory not found: {relative_path} in workspace {self.id}")

        prefix = normalized + "/" if normalized else ""
        entries: Dict[str, WorkspaceEntry] = {}
        for key in list(self._files) + sorted(self._directories):
            if not key.startswith(prefix) or key == normalized:
                continue
            rest = key[len(prefix):]
            if not rest:
                continue
            head, sep, _ = rest.partition("/")
            if sep or key in self._directories:
                entries.setdefault(head, WorkspaceEntry(name=head, is_file=False, is_directory=True))
            else:
                entries[head] = WorkspaceEntry(name=head, is_file=True, is_directory=False)
        return [entries[name] for name in sorted(entries)]

    def mkdir(self, relative_path: str) -> None:
        normalized = self._normalize(relative_path)
        if normalized:
            self._directories.add(normalized)

    def all_paths(self) -> List[str]:
        return sorted(self._files)


def resolve_workspace(root_or_workspace: Union[str, Path, Workspace], id: str = "local") -> Workspace:
    """Accept either a root path or a ready-made workspace."""
    if isinstance(root_or_workspace, Workspace):
        return root_or_workspace
    return LocalWorkspace(id, root_or_workspace)


def join_relative(*parts: str) -> str:
    """Join path parts with POSIX separators, dropping empty parts."""
    return str(PurePosixPath(*[p for p in parts if p]))


def walk_files(workspace: Workspace, directory: str, suffixes: Tuple[str, ...] = ()) -> List[str]:
    """
    All files under ``directory``, as POSIX paths relative to it, sorted.

    A missing or unreadable directory yields an empty list.
    """
    results: List[str] = []
    if not workspace.exists(directory):
        return results
    try:
        entries = workspace.readdir(directory)
    except OSError:
        return results

    for entry in sorted(entries, key=lambda e: e.name):
        if entry.is_directory:
            for sub in walk_files(workspace, join_relative(directory, entry.name), suffixes):
                results.append(join_relative(entry.name, sub))
        elif entry.is_file and (not suffixes or entry.name.endswith(suffixes)):
            results.append(entry.name)
    return results
