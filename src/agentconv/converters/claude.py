"""
Claude Code plugin.

Layout:
- CLAUDE.md (anywhere in the tree)     -> global prompts
- .claude/rules/**/*.md                 -> file rule with `paths`, else global prompt
- .claude/skills/<name>/SKILL.md        -> skill, manual prompt or skill bundle
- .claude/settings.json permissions.deny Read(...) rules -> agent ignore
"""

import json
import logging
import re
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml

from agentconv.core.plugin import BasePlugin, RootOrWorkspace
from agentconv.core.types import (
    AgentCustomization,
    AgentIgnore,
    AgentSkillIO,
    CustomizationType,
    DiscoveryResult,
    EmitResult,
    FileRule,
    GlobalPrompt,
    ManualPrompt,
    PathPatterns,
    SimpleAgentSkill,
    WarningCode,
    create_id,
)
from agentconv.core.workspace import Workspace, join_relative, resolve_workspace, walk_files
from agentconv.utils import first_line, render_frontmatter, split_frontmatter, unique_name

from ._base import SKIP_DIRS, EmissionPlan, item_name, skipped

logger = logging.getLogger(__name__)

MEMORY_FILE = "CLAUDE.md"
RULES_DIR = ".claude/rules"
SKILLS_DIR = ".claude/skills"
SETTINGS_FILE = ".claude/settings.json"


# =============================================================================
# RULE FRONTMATTER
# =============================================================================

_RE_BLOCK = re.compile(r"^\s*---[ \t]*\r?\n((?:.*\r?\n)*?)---[ \t]*(?:\r?\n|$)")
_RE_PATHS_INLINE = re.compile(r"^paths:\s*(.+?)\s*$")
_RE_LIST_ITEM = re.compile(r"^\s*-\s*[\"']?(.+?)[\"']?\s*$")


def parse_rule(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a rule file into (frontmatter, body).

    Rule authors often write unquoted globs such as ``paths: **/*.ts``, which
    YAML rejects; those blocks fall back to a line-based read of ``paths``.
    """
    block = _RE_BLOCK.match(text)
    if not block:
        return {}, text.strip()

    body = text[block.end():].strip()
    try:
        meta = yaml.safe_load(block.group(1)) or {}
        if isinstance(meta, dict):
            return meta, body
    except yaml.YAMLError:
        pass
    return _parse_paths_lines(block.group(1).splitlines()), body


def _parse_paths_lines(lines: List[str]) -> Dict[str, Any]:
    paths: List[str] = []
    in_list = False
    for line in lines:
        if in_list:
            match = _RE_LIST_ITEM.match(line)
            if match:
                paths.append(match.group(1))
                continue
            in_list = False
        if re.match(r"^paths:\s*$", line):
            in_list = True
            continue
        match = _RE_PATHS_INLINE.match(line)
        if match:
            paths.extend(p.strip().strip("\"'") for p in match.group(1).strip("[]").split(",") if p.strip())
    return {"paths": paths} if paths else {}


def normalize_paths(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if isinstance(v, str) and v.strip()]
    return []


# =============================================================================
# PERMISSIONS <-> IGNORE PATTERNS
# =============================================================================

_RE_READ_RULE = re.compile(r"^Read\(\./(.+)\)$")


def read_rule_to_pattern(rule: str) -> Optional[str]:
    """``Read(./dist/**)`` -> ``dist/``; ``Read(./**/*.log)`` -> ``*.log``."""
    match = _RE_READ_RULE.match(rule)
    if not match:
        return None
    pattern = match.group(1)
    if pattern.endswith("/**"):
        return pattern[:-2]
    if pattern.startswith("**/"):
        return pattern[3:]
    return pattern


def pattern_to_read_rule(pattern: str) -> Optional[str]:
    """Inverse of read_rule_to_pattern. Negated patterns have no deny equivalent."""
    if pattern.startswith("!"):
        return None
    if pattern.endswith("/"):
        return f"Read(./{pattern}**)"
    if pattern.startswith("*") and not pattern.startswith("**"):
        return f"Read(./**/{pattern})"
    return f"Read(./{pattern})"


# =============================================================================
# PLUGIN
# =============================================================================


class ClaudePlugin(BasePlugin):
    id = "claude"
    name = "Claude Code"
    supports = list(CustomizationType)
    path_patterns = PathPatterns(
        prefixes=[".claude/rules/", ".claude/skills/"],
        extensions=[".md"],
    )

    # --- discovery ---

    def discover(self, root_or_workspace: RootOrWorkspace) -> DiscoveryResult:
        workspace = resolve_workspace(root_or_workspace, "claude")
        result = DiscoveryResult()

        for source_path in _find_memory_files(workspace, ""):
            try:
                content = workspace.read(source_path)
            except (OSError, UnicodeDecodeError) as e:
                result.warnings.append(skipped(f"Could not read {source_path}: {e}", source_path))
                continue
            parent = str(PurePosixPath(source_path).parent)
            depth = len(PurePosixPath(source_path).parts) - 1
            result.items.append(
                GlobalPrompt(
                    id=create_id(CustomizationType.GLOBAL_PROMPT, source_path),
                    source_path=source_path,
                    content=content,
                    metadata={"nested": depth > 0, "depth": depth},
                    relative_dir=None if parent == "." else parent,
                )
            )

        self._discover_rules(workspace, result)
        self._discover_skills(workspace, result)

        ignore = self._discover_ignore(workspace, result)
        if ignore is not None:
            result.items.append(ignore)

        logger.debug("Claude discovery found %d item(s)", len(result.items))
        return result

    def _discover_rules(self, workspace: Workspace, result: DiscoveryResult) -> None:
        for relative in walk_files(workspace, RULES_DIR, (".md",)):
            source_path = join_relative(RULES_DIR, relative)
            try:
                text = workspace.read(source_path)
            except (OSError, UnicodeDecodeError) as e:
                result.warnings.append(skipped(f"Could not read {source_path}: {e}", source_path))
                continue

            meta, body = parse_rule(text)
            paths = normalize_paths(meta.get("paths"))
            parent = str(PurePosixPath(relative).parent)
            relative_dir = None if parent == "." else parent

            if paths:
                result.items.append(
                    FileRule(
                        id=create_id(CustomizationType.FILE_RULE, source_path),
                        source_path=source_path,
                        content=body,
                        globs=paths,
                        metadata=meta,
                        relative_dir=relative_dir,
                    )
                )
            else:
                result.items.append(
                    GlobalPrompt(
                        id=create_id(CustomizationType.GLOBAL_PROMPT, source_path),
                        source_path=source_path,
                        content=body,
                        metadata=meta,
                        relative_dir=relative_dir,
                    )
                )

    def _discover_skills(self, workspace: Workspace, result: DiscoveryResult) -> None:
        if not workspace.exists(SKILLS_DIR):
            return
        try:
            entries = workspace.readdir(SKILLS_DIR)
        except OSError as e:
            result.warnings.append(skipped(f"Could not list {SKILLS_DIR}: {e}", SKILLS_DIR))
            return
        for entry in entries:
            if not entry.is_directory:
                continue
            skill_dir = join_relative(SKILLS_DIR, entry.name)
            source_path = join_relative(skill_dir, "SKILL.md")
            if not workspace.exists(source_path):
                continue
            try:
                meta, body = split_frontmatter(workspace.read(source_path))
                files = {
                    relative: workspace.read(join_relative(skill_dir, relative))
                    for relative in walk_files(workspace, skill_dir)
                    if relative != "SKILL.md"
                }
            except (OSError, UnicodeDecodeError) as e:
                result.warnings.append(skipped(f"Could not read {source_path}: {e}", source_path))
                continue

            name = str(meta.get("name") or entry.name)
            if "hooks" in meta:
                result.warnings.append(
                    skipped(f"Skipped skill '{name}': contains hooks, which only Claude supports", source_path)
                )
                continue

            description = str(meta.get("description") or "")
            if files:
                item: AgentCustomization = AgentSkillIO(
                    id=create_id(CustomizationType.AGENT_SKILL_IO, source_path),
                    source_path=source_path,
                    content=body,
                    name=name,
                    description=description,
                    files=files,
                    metadata=meta,
                )
            elif meta.get("disable-model-invocation") is True:
                item = ManualPrompt(
                    id=create_id(CustomizationType.MANUAL_PROMPT, source_path),
                    source_path=source_path,
                    content=body,
                    prompt_name=name,
                    metadata=meta,
                )
            else:
                item = SimpleAgentSkill(
                    id=create_id(CustomizationType.SIMPLE_AGENT_SKILL, source_path),
                    source_path=source_path,
                    content=body,
                    description=description or first_line(body) or name,
                    metadata=meta,
                )
            result.items.append(item)

    def _discover_ignore(self, workspace: Workspace, result: DiscoveryResult) -> Optional[AgentIgnore]:
        if not workspace.exists(SETTINGS_FILE):
            return None
        try:
            settings = json.loads(workspace.read(SETTINGS_FILE))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            result.warnings.append(skipped(f"Could not read {SETTINGS_FILE}: {e}", SETTINGS_FILE))
            return None

        permissions = settings.get("permissions") if isinstance(settings, dict) else None
        deny = permissions.get("deny") if isinstance(permissions, dict) else None
        read_rules = [r for r in (deny or []) if isinstance(r, str) and r.startswith("Read(")]
        patterns = [p for p in (read_rule_to_pattern(r) for r in read_rules) if p]
        if not patterns:
            return None

        return AgentIgnore(
            id=create_id(CustomizationType.AGENT_IGNORE, SETTINGS_FILE),
            source_path=SETTINGS_FILE,
            content=json.dumps({"permissions": {"deny": read_rules}}, indent=2),
            patterns=patterns,
            metadata={"originalRules": read_rules},
        )

    # --- emission ---

    def emit(self, items: List[AgentCustomization], root_or_workspace: RootOrWorkspace, dry_run: bool = False) -> EmitResult:
        workspace = resolve_workspace(root_or_workspace, "claude")
        plan = EmissionPlan(workspace)
        used_rules: Set[str] = set()
        used_skills: Set[str] = set()
        ignores: List[AgentIgnore] = []

        for item in items:
            if isinstance(item, GlobalPrompt):
                path = self._rule_path(plan, item, used_rules)
                plan.add(path, render_frontmatter({}, item.content), item.type, [item])
            elif isinstance(item, FileRule):
                path = self._rule_path(plan, item, used_rules)
                plan.add(path, render_frontmatter({"paths": list(item.globs)}, item.content), item.type, [item])
            elif isinstance(item, SimpleAgentSkill):
                skill_dir = self._skill_dir(plan, item, used_skills)
                meta = {
                    "name": PurePosixPath(skill_dir).name,
                    "description": item.description or first_line(item.content) or PurePosixPath(skill_dir).name,
                }
                plan.add(join_relative(skill_dir, "SKILL.md"), render_frontmatter(meta, item.content), item.type, [item])
            elif isinstance(item, ManualPrompt):
                skill_dir = self._skill_dir(plan, item, used_skills)
                meta = {
                    "name": PurePosixPath(skill_dir).name,
                    "description": first_line(item.content) or PurePosixPath(skill_dir).name,
                    "disable-model-invocation": True,
                }
                plan.add(join_relative(skill_dir, "SKILL.md"), render_frontmatter(meta, item.content), item.type, [item])
            elif isinstance(item, AgentSkillIO):
                skill_dir = self._skill_dir(plan, item, used_skills)
                meta = {
                    "name": item.name or PurePosixPath(skill_dir).name,
                    "description": item.description or first_line(item.content) or PurePosixPath(skill_dir).name,
                }
                plan.add(join_relative(skill_dir, "SKILL.md"), render_frontmatter(meta, item.content), item.type, [item])
                for relative, text in sorted(item.files.items()):
                    plan.add(join_relative(skill_dir, relative), text, item.type, [])
            elif isinstance(item, AgentIgnore):
                ignores.append(item)
            else:
                plan.unsupported(item)

        if ignores:
            self._emit_ignores(workspace, plan, ignores)

        return plan.commit(dry_run)

    def _rule_path(self, plan: EmissionPlan, item: AgentCustomization, used: Set[str]) -> str:
        desired = join_relative(item.relative_dir or "", item_name(item))
        chosen, renamed = unique_name(desired, used)
        if renamed:
            plan.warn(
                WarningCode.FILE_RENAMED,
                f"Renamed '{desired}.md' to '{chosen}.md' to avoid a collision",
                sources=[item.source_path],
                details={"original": desired + ".md", "renamed": chosen + ".md"},
            )
        return join_relative(RULES_DIR, chosen + ".md")

    def _skill_dir(self, plan: EmissionPlan, item: AgentCustomization, used: Set[str]) -> str:
        desired = item_name(item, "skill")
        chosen, renamed = unique_name(desired, used)
        if renamed:
            plan.warn(
                WarningCode.FILE_RENAMED,
                f"Renamed skill '{desired}' to '{chosen}' to avoid a collision",
                sources=[item.source_path],
                details={"original": desired, "renamed": chosen},
            )
        return join_relative(SKILLS_DIR, chosen)

    def _emit_ignores(self, workspace: Workspace, plan: EmissionPlan, ignores: List[AgentIgnore]) -> None:
        sources = [i.source_path for i in ignores]
        patterns = [p for ignore in ignores for p in ignore.patterns]
        negated = [p for p in patterns if p.startswith("!")]
        deny_rules = [r for r in (pattern_to_read_rule(p) for p in patterns) if r]

        if negated:
            plan.warn(
                WarningCode.SKIPPED,
                f"Negation patterns cannot be expressed as permissions.deny (skipped: {', '.join(negated)})",
                sources=sources,
            )

        settings: Dict[str, Any] = {}
        if workspace.exists(SETTINGS_FILE):
            try:
                loaded = json.loads(workspace.read(SETTINGS_FILE))
                if isinstance(loaded, dict):
                    settings = loaded
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                plan.warn(
                    WarningCode.SKIPPED,
                    f"Could not parse existing {SETTINGS_FILE}, overwriting: {e}",
                    sources=[SETTINGS_FILE],
                )

        permissions = settings.get("permissions")
        permissions = dict(permissions) if isinstance(permissions, dict) else {}
        existing = permissions.get("deny") if isinstance(permissions.get("deny"), list) else []
        merged: List[Any] = []
        for rule in list(existing) + deny_rules:
            if rule not in merged:
                merged.append(rule)
        permissions["deny"] = merged
        settings["permissions"] = permissions

        plan.add(SETTINGS_FILE, json.dumps(settings, indent=2) + "\n", CustomizationType.AGENT_IGNORE, ignores)
        plan.warn(
            WarningCode.APPROXIMATED,
            "Ignore patterns approximated as permissions.deny Read() rules (behavior may differ slightly)",
            sources=sources,
        )


def _find_memory_files(workspace: Workspace, directory: str) -> List[str]:
    """Every CLAUDE.md below ``directory``, skipping hidden and vendored directories."""
    results: List[str] = []
    try:
        entries = workspace.readdir(directory)
    except OSError:
        return results

    for entry in entries:
        if entry.name.startswith(".") or entry.name in SKIP_DIRS:
            continue
        path = join_relative(directory, entry.name)
        if entry.is_file and entry.name == MEMORY_FILE:
            results.append(path)
        elif entry.is_directory:
            results.extend(_find_memory_files(workspace, path))
    return results
