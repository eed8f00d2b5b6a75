"""
Path reference rewriting.

Keeps textual references between configuration files valid when a format
change moves or renames them. The source→target mapping is read off the
``source_items`` of the files an emission wrote, so merges, extension changes
and directory flattening come out right without any format knowledge here.
"""

import copy
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

from .types import AgentCustomization, ConversionWarning, WarningCode, WrittenFile

PathMapping = Dict[str, str]


@dataclass
class RewriteResult:
    items: List[AgentCustomization] = field(default_factory=list)
    replacement_count: int = 0


def normalize_path(path: str) -> str:
    """Single canonical separator regardless of host path style."""
    return path.replace(os.sep, "/").replace("\\", "/")


def build_mapping(written: Sequence[WrittenFile], target_root: str) -> PathMapping:
    """
    Map every contributing item's source path to the target-relative path of
    the file it ended up in. Items without a source path contribute nothing;
    if a source path shows up in several files, the last one wins.
    """
    mapping: PathMapping = {}

    for written_file in written:
        target_relative = normalize_path(os.path.relpath(written_file.path, target_root))
        for source_item in written_file.source_items:
            if source_item.source_path:
                mapping[normalize_path(source_item.source_path)] = target_relative

    return mapping


def _copy_item(item: AgentCustomization, content: str) -> AgentCustomization:
    copied = copy.deepcopy(item)
    copied.content = content
    return copied


def rewrite_content(items: Sequence[AgentCustomization], mapping: PathMapping) -> RewriteResult:
    """
    Replace every occurrence of each mapped source path in item content.

    Keys are applied longest first: with both ``rule.mdc`` and
    ``rule.mdc.bak`` mapped, the shorter key must not eat into the longer one.
    Replacement is plain substring replacement. Returns deep copies; input
    items and their metadata, globs and files are never shared or modified.
    """
    if not mapping:
        return RewriteResult(items=[_copy_item(item, item.content) for item in items])

    ordered: List[Tuple[str, str]] = sorted(mapping.items(), key=lambda kv: len(kv[0]), reverse=True)
    total = 0
    rewritten: List[AgentCustomization] = []

    for item in items:
        content = item.content
        # Sequential replacement is safe as long as source and target formats
        # use different directory prefixes.
        for source_path, target_path in ordered:
            count = content.count(source_path)
            if count:
                content = content.replace(source_path, target_path)
                total += count
        rewritten.append(_copy_item(item, content))

    return RewriteResult(items=rewritten, replacement_count=total)


def _orphan_pattern(prefixes: Sequence[str], extensions: Sequence[str]) -> "re.Pattern[str]":
    prefix_alt = "|".join(re.escape(p) for p in prefixes)
    ext_alt = "|".join(re.escape(e) for e in extensions)
    return re.compile(rf"(?:{prefix_alt})[^\s)\]}}>,\"']+(?:{ext_alt})")


def detect_orphans(
    items: Sequence[AgentCustomization],
    mapping: PathMapping,
    prefixes: Sequence[str],
    extensions: Sequence[str],
) -> List[ConversionWarning]:
    """
    Find path-shaped strings that point into the source format but were not
    converted.

    A best-effort heuristic: anything starting with a known prefix and ending
    in a known extension counts. One warning per (item, path) pair.
    """
    if not prefixes or not extensions:
        return []

    pattern = _orphan_pattern(prefixes, extensions)
    warnings: List[ConversionWarning] = []
    seen: Set[Tuple[str, str]] = set()

    for item in items:
        source_path = item.source_path or ""
        for match in pattern.finditer(item.content):
            found = match.group(0)
            key = (source_path, found)
            if found in mapping or key in seen:
                continue
            seen.add(key)
            warnings.append(
                ConversionWarning(
                    code=WarningCode.ORPHAN_PATH_REF,
                    message=f"Orphan path reference: '{found}' is not in the conversion set",
                    sources=[item.source_path] if item.source_path else None,
                )
            )

    return warnings
