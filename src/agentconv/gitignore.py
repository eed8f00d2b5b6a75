"""
Git-ignore management for conversion output.

Entries agentconv adds live between two marker lines, so a later run merges
into its own section and never touches anything else in the file:

    # BEGIN agentconv managed
    .claude/rules/style.md
    # END agentconv managed

Styles:
    none     leave git alone
    ignore   add new output files to .gitignore
    exclude  add them to .git/info/exclude
    hook     unstage them from a pre-commit hook
    match    give each output file the git status of its sources
"""

import logging
import os
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from agentconv.core.engine import ConversionResult
from agentconv.core.errors import GitIgnoreError
from agentconv.core.types import ConversionWarning, WarningCode

logger = logging.getLogger(__name__)

MANAGED_BEGIN = "# BEGIN agentconv managed"
MANAGED_END = "# END agentconv managed"

GITIGNORE_FILE = ".gitignore"
EXCLUDE_FILE = ".git/info/exclude"
HOOK_FILE = ".git/hooks/pre-commit"

PathLike = Union[str, Path]


class GitIgnoreStyle(Enum):
    NONE = "none"
    IGNORE = "ignore"
    EXCLUDE = "exclude"
    HOOK = "hook"
    MATCH = "match"


class GitIgnoreConflict(Enum):
    """What ``match`` does when sources and output disagree on git status."""
    SKIP = "skip"
    IGNORE = "ignore"
    EXCLUDE = "exclude"
    HOOK = "hook"
    COMMIT = "commit"


@dataclass
class GitIgnoreChange:
    file: str
    added: List[str] = field(default_factory=list)


@dataclass
class GitIgnorePlan:
    """Entries per managed file, plus outputs whose managed entries should be dropped."""
    additions: Dict[str, List[str]] = field(default_factory=dict)
    to_commit: List[str] = field(default_factory=list)

    def add(self, target_file: str, entry: str) -> None:
        entries = self.additions.setdefault(target_file, [])
        if entry not in entries:
            entries.append(entry)

    @property
    def changes(self) -> List[GitIgnoreChange]:
        return [GitIgnoreChange(file=f, added=list(e)) for f, e in self.additions.items() if e]


# =============================================================================
# GIT QUERIES
# =============================================================================


def _git(root: PathLike, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(["git", "--no-pager", *args], cwd=str(root), capture_output=True, text=True)


def is_git_repo(root: PathLike) -> bool:
    return (Path(root) / ".git").is_dir()


def is_git_ignored(root: PathLike, path: str) -> bool:
    try:
        return _git(root, "check-ignore", "-q", path).returncode == 0
    except OSError:
        return False


def is_git_tracked(root: PathLike, path: str) -> bool:
    try:
        return bool(_git(root, "ls-files", "--", path).stdout.strip())
    except OSError:
        return False


def get_ignore_source(root: PathLike, path: str) -> Optional[str]:
    """
    Which file makes git ignore ``path``.

    Returns:
        The ignore file as git reports it (e.g. ``.gitignore``,
        ``.git/info/exclude``), or None if the path is not ignored.
    """
    try:
        proc = _git(root, "check-ignore", "-v", "--", path)
    except OSError:
        return None
    if proc.returncode != 0 or not proc.stdout.strip():
        return None
    # <source>:<line>:<pattern>\t<path>
    origin = proc.stdout.split("\t", 1)[0]
    return origin.rsplit(":", 2)[0].replace("\\", "/")


# =============================================================================
# MANAGED SECTIONS
# =============================================================================


def _section_bounds(lines: List[str]) -> Optional[tuple]:
    begin = next((i for i, line in enumerate(lines) if line.strip() == MANAGED_BEGIN), None)
    if begin is None:
        return None
    end = next((i for i in range(begin + 1, len(lines)) if lines[i].strip() == MANAGED_END), None)
    if end is None:
        return None
    return begin, end


def update_managed_section(content: str, entries: Sequence[str]) -> str:
    """Merge entries into the managed section, creating it at the end if absent."""
    lines = content.splitlines()
    bounds = _section_bounds(lines)

    if bounds is None:
        head = lines[:]
        if head and head[-1].strip():
            head.append("")
        merged = list(dict.fromkeys(entries))
        return "\n".join(head + [MANAGED_BEGIN] + merged + [MANAGED_END]) + "\n"

    begin, end = bounds
    merged = list(dict.fromkeys(lines[begin + 1:end] + list(entries)))
    return "\n".join(lines[:begin + 1] + merged + lines[end:]) + "\n"


def remove_from_managed_section(content: str, entries: Sequence[str]) -> str:
    """Drop entries from the managed section. Lines outside it are never touched."""
    lines = content.splitlines()
    bounds = _section_bounds(lines)
    if bounds is None:
        return content

    begin, end = bounds
    drop = set(entries)
    kept = [line for line in lines[begin + 1:end] if line not in drop]
    return "\n".join(lines[:begin + 1] + kept + lines[end:]) + "\n"


def _hook_line(entry: str) -> str:
    return f'git reset -q HEAD -- "{entry}" 2>/dev/null || true'


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8") if path.exists() else ""


def require_git_repo(root: PathLike, action: str) -> None:
    if not is_git_repo(root):
        raise GitIgnoreError(f"Cannot use {action}: {Path(root).resolve()} is not a git repository")


def add_to_gitignore(root: PathLike, entries: Sequence[str]) -> GitIgnoreChange:
    path = Path(root) / GITIGNORE_FILE
    path.write_text(update_managed_section(_read(path), entries), encoding="utf-8")
    return GitIgnoreChange(file=GITIGNORE_FILE, added=list(entries))


def add_to_git_exclude(root: PathLike, entries: Sequence[str]) -> GitIgnoreChange:
    require_git_repo(root, "git exclude")
    path = Path(root) / EXCLUDE_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(update_managed_section(_read(path), entries), encoding="utf-8")
    return GitIgnoreChange(file=EXCLUDE_FILE, added=list(entries))


def update_pre_commit_hook(root: PathLike, entries: Sequence[str]) -> GitIgnoreChange:
    """Add one ``git reset`` line per entry to the pre-commit hook and make it executable."""
    require_git_repo(root, "a pre-commit hook")
    path = Path(root) / HOOK_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    content = _read(path)
    if not content.startswith("#!"):
        content = "#!/bin/sh\n\n" + content
    path.write_text(update_managed_section(content, [_hook_line(e) for e in entries]), encoding="utf-8")
    path.chmod(0o755)
    return GitIgnoreChange(file=HOOK_FILE, added=list(entries))


def remove_managed_entries(root: PathLike, entries: Sequence[str]) -> None:
    """Take entries out of every managed section agentconv may have written."""
    targets = [(GITIGNORE_FILE, list(entries)), (EXCLUDE_FILE, list(entries)), (HOOK_FILE, [_hook_line(e) for e in entries])]
    for relative, lines in targets:
        path = Path(root) / relative
        if not path.exists():
            continue
        content = path.read_text(encoding="utf-8")
        updated = remove_from_managed_section(content, lines)
        if updated != content:
            path.write_text(updated, encoding="utf-8")


# =============================================================================
# PLANNING
# =============================================================================

_STYLE_FILES = {
    GitIgnoreStyle.IGNORE: GITIGNORE_FILE,
    GitIgnoreStyle.EXCLUDE: EXCLUDE_FILE,
    GitIgnoreStyle.HOOK: HOOK_FILE,
}

_CONFLICT_FILES = {
    GitIgnoreConflict.IGNORE: GITIGNORE_FILE,
    GitIgnoreConflict.EXCLUDE: EXCLUDE_FILE,
    GitIgnoreConflict.HOOK: HOOK_FILE,
}


def _relative_to(root: PathLike, path: PathLike) -> Optional[str]:
    relative = os.path.relpath(os.path.abspath(str(path)), os.path.abspath(str(root)))
    if relative == ".." or relative.startswith(".." + os.sep) or os.path.isabs(relative):
        return None
    return relative.replace(os.sep, "/")


def _route_conflict(
    plan: GitIgnorePlan,
    result: ConversionResult,
    conflict: GitIgnoreConflict,
    output: str,
    message: str,
    sources: List[str],
) -> None:
    if conflict is GitIgnoreConflict.SKIP:
        result.warnings.append(
            ConversionWarning(code=WarningCode.GIT_STATUS_CONFLICT, message=message, sources=sources)
        )
    elif conflict is GitIgnoreConflict.COMMIT:
        if output not in plan.to_commit:
            plan.to_commit.append(output)
    else:
        plan.add(_CONFLICT_FILES[conflict], output)
    logger.debug("Git status conflict for %s resolved with %s", output, conflict.value)


def plan_gitignore(
    result: ConversionResult,
    root: PathLike,
    style: GitIgnoreStyle,
    conflict: GitIgnoreConflict = GitIgnoreConflict.SKIP,
    source_root: Optional[PathLike] = None,
) -> GitIgnorePlan:
    """
    Decide which output files go into which managed section.

    Only files inside ``root`` are managed. ``match`` adds a
    ``git-status-conflict`` warning to ``result`` for every output it cannot
    place when ``conflict`` is SKIP.

    Raises:
        GitIgnoreError: exclude, hook and match outside a git repository
    """
    plan = GitIgnorePlan()
    if style is GitIgnoreStyle.NONE or not result.written:
        return plan
    if style is not GitIgnoreStyle.IGNORE:
        require_git_repo(root, f"--gitignore-output-with {style.value}")

    if style is not GitIgnoreStyle.MATCH:
        for written in result.written:
            output = _relative_to(root, written.path)
            if written.is_new_file and output is not None:
                plan.add(_STYLE_FILES[style], output)
        return plan

    source_root = source_root if source_root is not None else root
    for written in result.written:
        output = _relative_to(root, written.path)
        if output is None or not written.source_items:
            continue

        sources = [item.source_path for item in written.source_items]
        statuses = {}
        for source in sources:
            relative_source = _relative_to(root, Path(source_root) / source)
            statuses[source] = get_ignore_source(root, relative_source) if relative_source else None
        ignored = [s for s in sources if statuses[s] is not None]
        tracked = [s for s in sources if statuses[s] is None]

        if not written.is_new_file:
            output_tracked = is_git_tracked(root, output)
            output_ignored = not output_tracked and is_git_ignored(root, output)
            if output_tracked and ignored:
                _route_conflict(
                    plan, result, conflict, output,
                    f"Git status conflict: output '{output}' is tracked, but {len(ignored)} source(s) are ignored",
                    ignored,
                )
            elif output_ignored and tracked:
                _route_conflict(
                    plan, result, conflict, output,
                    f"Git status conflict: output '{output}' is ignored, but {len(tracked)} source(s) are tracked",
                    tracked,
                )
            continue

        if ignored and not tracked:
            origins = {statuses[s] for s in ignored}
            if len(origins) > 1:
                _route_conflict(
                    plan, result, conflict, output,
                    f"Git status conflict: cannot determine status for '{output}' (sources ignored by different files)",
                    sources,
                )
            else:
                plan.add(EXCLUDE_FILE if origins == {EXCLUDE_FILE} else GITIGNORE_FILE, output)
        elif ignored and tracked:
            _route_conflict(
                plan, result, conflict, output,
                f"Git status conflict: cannot determine status for '{output}' (sources have mixed status)",
                sources,
            )
    return plan


def apply_gitignore_plan(root: PathLike, plan: GitIgnorePlan) -> List[GitIgnoreChange]:
    """Write the plan. Returns the changes made."""
    writers = {
        GITIGNORE_FILE: add_to_gitignore,
        EXCLUDE_FILE: add_to_git_exclude,
        HOOK_FILE: update_pre_commit_hook,
    }
    changes = [writers[change.file](root, change.added) for change in plan.changes]
    if plan.to_commit:
        remove_managed_entries(root, plan.to_commit)
    return changes
