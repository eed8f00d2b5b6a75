import re
from pathlib import PurePosixPath
from typing import Any, Dict, Optional, Set, Tuple

import yaml


# ANSI colors
class Colors:
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    ENDC = '\033[0m'


_RE_FRONTMATTER = re.compile(r"^---\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)", re.DOTALL)


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a markdown document into its YAML frontmatter and body.

    Unparseable or non-mapping frontmatter is treated as absent; the whole
    text is then returned as body.
    """
    match = _RE_FRONTMATTER.match(text)
    if not match:
        return {}, text.strip()
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError:
        return {}, text.strip()
    if not isinstance(meta, dict):
        return {}, text.strip()
    return meta, text[match.end():].strip()


def render_frontmatter(meta: Dict[str, Any], body: str) -> str:
    """Markdown with a YAML frontmatter block; no block when meta is empty."""
    if not meta:
        return f"{body.strip()}\n"
    yaml_str = yaml.dump(meta, default_flow_style=False, allow_unicode=True, sort_keys=False, width=1000)
    return f"---\n{yaml_str}---\n\n{body.strip()}\n"


def sanitize_name(name: str, fallback: str = "rule") -> str:
    """Lowercase, filesystem-safe slug. Path separators never survive."""
    stem = PurePosixPath(name.replace("\\", "/")).name
    stem = re.sub(r"\.[^.]+$", "", stem)
    slug = re.sub(r"[^a-z0-9]+", "-", stem.lower()).strip("-")
    return slug or fallback


def unique_name(name: str, used: Set[str]) -> Tuple[str, bool]:
    """
    Return ``name`` or ``name-1``, ``name-2``... whichever is not in ``used``,
    and whether a rename happened. The chosen name is added to ``used``.
    """
    candidate = name
    counter = 1
    while candidate in used:
        candidate = f"{name}-{counter}"
        counter += 1
    used.add(candidate)
    return candidate, candidate != name


def first_line(text: str, limit: int = 120) -> Optional[str]:
    for line in text.splitlines():
        line = line.strip().lstrip("#").strip()
        if line:
            return line[:limit]
    return None
