"""
Cursor IDE plugin.

Layout:
- .cursor/rules/**/*.mdc        (rules with MDC frontmatter)
- .cursor/commands/**/*.md      (slash commands)
- .cursor/skills/<name>/SKILL.md (skills, optionally with resource files)
- .cursorignore                 (ignore patterns)

MDC rule activation:
1. alwaysApply: true                     -> global prompt
2. globs: <comma separated patterns>     -> file rule
3. description: <text>                   -> agent-requested skill
4. none of the above                     -> manual (@mention) prompt
"""

import logging
import re
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Set, Tuple

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

RULES_DIR = ".cursor/rules"
COMMANDS_DIR = ".cursor/commands"
SKILLS_DIR = ".cursor/skills"
IGNORE_FILE = ".cursorignore"


# =============================================================================
# MDC FORMAT
# =============================================================================

# Cursor writes globs unquoted (e.g. `globs: *.ts,*.tsx`), which is not valid
# YAML, so MDC frontmatter is parsed line by line.
_RE_ALWAYS_APPLY = re.compile(r"^alwaysApply:\s*(true|false)\s*$")
_RE_DESCRIPTION = re.compile(r"^description:\s*[\"']?(.+?)[\"']?\s*$")
_RE_GLOBS = re.compile(r"^globs:\s*(.+?)\s*$")
_RE_MDC_BLOCK = re.compile(r"^\s*---[ \t]*\r?\n((?:.*\r?\n)*?)---[ \t]*(?:\r?\n|$)")


def parse_mdc(text: str) -> Tuple[Dict[str, Any], str]:
    """Split an .mdc file into (frontmatter, body)."""
    block = _RE_MDC_BLOCK.match(text)
    if not block:
        return {}, text.strip()

    frontmatter: Dict[str, Any] = {}
    for line in block.group(1).splitlines():
        line = line.strip()
        match = _RE_ALWAYS_APPLY.match(line)
        if match:
            frontmatter["alwaysApply"] = match.group(1) == "true"
            continue
        match = _RE_DESCRIPTION.match(line)
        if match:
            frontmatter["description"] = match.group(1)
            continue
        match = _RE_GLOBS.match(line)
        if match:
            frontmatter["globs"] = match.group(1)

    return frontmatter, text[block.end():].strip()


def parse_globs(globs: Any) -> List[str]:
    if isinstance(globs, (list, tuple)):
        return [str(g).strip() for g in globs if str(g).strip()]
    return [g.strip() for g in str(globs or "").split(",") if g.strip()]


def format_mdc(body: str, description: str = "", globs: Optional[List[str]] = None, always_apply: bool = False) -> str:
    lines = ["---"]
    if description:
        lines.append(f"description: {_quote(description)}")
    if globs:
        lines.append(f"globs: {','.join(globs)}")
    lines.append(f"alwaysApply: {'true' if always_apply else 'false'}")
    lines.append("---")
    return "\n".join(lines) + f"\n\n{body.strip()}\n"


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def classify_rule(frontmatter: Dict[str, Any], body: str, source_path: str, relative_dir: Optional[str]) -> AgentCustomization:
    """Map MDC activation fields to an item kind, in priority order."""
    metadata = dict(frontmatter)

    if frontmatter.get("alwaysApply") is True:
        return GlobalPrompt(
            id=create_id(CustomizationType.GLOBAL_PROMPT, source_path),
            source_path=source_path,
            content=body,
            metadata=metadata,
            relative_dir=relative_dir,
        )

    globs = parse_globs(frontmatter.get("globs"))
    if globs:
        return FileRule(
            id=create_id(CustomizationType.FILE_RULE, source_path),
            source_path=source_path,
            content=body,
            globs=globs,
            metadata=metadata,
            relative_dir=relative_dir,
        )

    if frontmatter.get("description"):
        return SimpleAgentSkill(
            id=create_id(CustomizationType.SIMPLE_AGENT_SKILL, source_path),
            source_path=source_path,
            content=body,
            description=frontmatter["description"],
            metadata=metadata,
            relative_dir=relative_dir,
        )

    return ManualPrompt(
        id=create_id(CustomizationType.MANUAL_PROMPT, source_path),
        source_path=source_path,
        content=body,
        prompt_name=PurePosixPath(source_path).stem,
        metadata=metadata,
        relative_dir=relative_dir,
    )


# Command features with no equivalent outside Cursor.
_COMPLEX_COMMAND_PATTERNS = {
    "$ARGUMENTS or positional parameters": re.compile(r"\$ARGUMENTS|\$[1-9]"),
    "bash execution (!)": re.compile(r"!\s*`[^`]+`"),
    "file references (@)": re.compile(r"(?:^|\s)@\S+"),
    "allowed-tools frontmatter": re.compile(r"^---[\s\S]*?allowed-tools:", re.MULTILINE),
}


def complex_command_reasons(content: str) -> List[str]:
    return [reason for reason, pattern in _COMPLEX_COMMAND_PATTERNS.items() if pattern.search(content)]


def _relative_dir(relative: str) -> Optional[str]:
    parent = str(PurePosixPath(relative).parent)
    return None if parent == "." else parent


# =============================================================================
# PLUGIN
# =============================================================================


class CursorPlugin(BasePlugin):
    id = "cursor"
    name = "Cursor IDE"
    supports = list(CustomizationType)
    path_patterns = PathPatterns(
        prefixes=[".cursor/rules/", ".cursor/skills/", ".cursor/commands/"],
        extensions=[".mdc", ".md"],
    )

    # --- discovery ---

    def discover(self, root_or_workspace: RootOrWorkspace) -> DiscoveryResult:
        workspace = resolve_workspace(root_or_workspace, "cursor")
        result = DiscoveryResult()
        self._discover_rules(workspace, result)
        self._discover_commands(workspace, result)
        self._discover_skills(workspace, result)
        self._discover_ignore(workspace, result)
        logger.debug("Cursor discovery found %d item(s)", len(result.items))
        return result

    def _discover_rules(self, workspace: Workspace, result: DiscoveryResult) -> None:
        for relative in walk_files(workspace, RULES_DIR, (".mdc",)):
            source_path = join_relative(RULES_DIR, relative)
            try:
                text = workspace.read(source_path)
            except (OSError, UnicodeDecodeError) as e:
                result.warnings.append(skipped(f"Could not read {source_path}: {e}", source_path))
                continue
            frontmatter, body = parse_mdc(text)
            result.items.append(classify_rule(frontmatter, body, source_path, _relative_dir(relative)))

    def _discover_commands(self, workspace: Workspace, result: DiscoveryResult) -> None:
        for relative in walk_files(workspace, COMMANDS_DIR, (".md",)):
            source_path = join_relative(COMMANDS_DIR, relative)
            try:
                text = workspace.read(source_path)
            except (OSError, UnicodeDecodeError) as e:
                result.warnings.append(skipped(f"Could not read {source_path}: {e}", source_path))
                continue

            reasons = complex_command_reasons(text)
            if reasons:
                result.warnings.append(
                    skipped(
                        f"Skipped command '{PurePosixPath(relative).stem}': uses {', '.join(reasons)}",
                        source_path,
                        reasons=reasons,
                    )
                )
                continue

            result.items.append(
                ManualPrompt(
                    id=create_id(CustomizationType.MANUAL_PROMPT, source_path),
                    source_path=source_path,
                    content=text.strip(),
                    prompt_name=PurePosixPath(relative).stem,
                    relative_dir=_relative_dir(relative),
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
                item = _read_skill(workspace, skill_dir, entry.name)
            except (OSError, UnicodeDecodeError) as e:
                result.warnings.append(skipped(f"Could not read skill {entry.name}: {e}", source_path))
                continue
            result.items.append(item)

    def _discover_ignore(self, workspace: Workspace, result: DiscoveryResult) -> None:
        if not workspace.exists(IGNORE_FILE):
            return
        try:
            text = workspace.read(IGNORE_FILE)
        except (OSError, UnicodeDecodeError) as e:
            result.warnings.append(skipped(f"Could not read {IGNORE_FILE}: {e}", IGNORE_FILE))
            return
        patterns = [
            line.strip() for line in text.splitlines()
            if line.strip() and not line.strip().startswith("#")
        ]
        if patterns:
            result.items.append(
                AgentIgnore(
                    id=create_id(CustomizationType.AGENT_IGNORE, IGNORE_FILE),
                    source_path=IGNORE_FILE,
                    content=text,
                    patterns=patterns,
                )
            )

    # --- emission ---

    def emit(self, items: List[AgentCustomization], root_or_workspace: RootOrWorkspace, dry_run: bool = False) -> EmitResult:
        workspace = resolve_workspace(root_or_workspace, "cursor")
        plan = EmissionPlan(workspace)
        used_rules: Set[str] = set()
        used_commands: Set[str] = set()
        used_skills: Set[str] = set()
        ignores: List[AgentIgnore] = []

        for item in items:
            if isinstance(item, GlobalPrompt):
                path = self._unique_path(plan, RULES_DIR, item, used_rules, ".mdc")
                plan.add(path, format_mdc(item.content, always_apply=True), item.type, [item])
            elif isinstance(item, FileRule):
                path = self._unique_path(plan, RULES_DIR, item, used_rules, ".mdc")
                plan.add(path, format_mdc(item.content, globs=item.globs), item.type, [item])
            elif isinstance(item, SimpleAgentSkill):
                path = self._unique_path(plan, RULES_DIR, item, used_rules, ".mdc")
                description = item.description or first_line(item.content) or item_name(item)
                plan.add(path, format_mdc(item.content, description=description), item.type, [item])
            elif isinstance(item, ManualPrompt):
                path = self._unique_path(plan, COMMANDS_DIR, item, used_commands, ".md")
                plan.add(path, f"{item.content.strip()}\n", item.type, [item])
            elif isinstance(item, AgentSkillIO):
                self._emit_skill_bundle(plan, item, used_skills)
            elif isinstance(item, AgentIgnore):
                ignores.append(item)
            else:
                plan.unsupported(item)

        if ignores:
            self._emit_ignores(plan, ignores)

        return plan.commit(dry_run)

    def _unique_path(self, plan: EmissionPlan, base_dir: str, item: AgentCustomization, used: Set[str], suffix: str) -> str:
        desired = join_relative(item.relative_dir or "", item_name(item))
        chosen, renamed = unique_name(desired, used)
        if renamed:
            plan.warn(
                WarningCode.FILE_RENAMED,
                f"Renamed '{desired}{suffix}' to '{chosen}{suffix}' to avoid a collision",
                sources=[item.source_path],
                details={"original": desired + suffix, "renamed": chosen + suffix},
            )
        return join_relative(base_dir, chosen + suffix)

    def _emit_skill_bundle(self, plan: EmissionPlan, item: AgentSkillIO, used: Set[str]) -> None:
        desired = item_name(item, "skill")
        chosen, renamed = unique_name(desired, used)
        if renamed:
            plan.warn(
                WarningCode.FILE_RENAMED,
                f"Renamed skill '{desired}' to '{chosen}' to avoid a collision",
                sources=[item.source_path],
            )
        skill_dir = join_relative(SKILLS_DIR, chosen)
        frontmatter = {"name": item.name or chosen, "description": item.description or first_line(item.content) or chosen}
        plan.add(join_relative(skill_dir, "SKILL.md"), render_frontmatter(frontmatter, item.content), item.type, [item])
        for relative, text in sorted(item.files.items()):
            # Resource files carry no source items: only SKILL.md stands in for the skill's path.
            plan.add(join_relative(skill_dir, relative), text, item.type, [])

    def _emit_ignores(self, plan: EmissionPlan, ignores: List[AgentIgnore]) -> None:
        patterns: List[str] = []
        for ignore in ignores:
            for pattern in ignore.patterns:
                if pattern not in patterns:
                    patterns.append(pattern)

        if len(ignores) > 1:
            plan.warn(
                WarningCode.MERGED,
                f"Merged {len(ignores)} ignore sources into {IGNORE_FILE}",
                sources=[i.source_path for i in ignores],
            )
        written = plan.add(IGNORE_FILE, "\n".join(patterns) + "\n", CustomizationType.AGENT_IGNORE, ignores)
        if not written.is_new_file:
            plan.warn(
                WarningCode.OVERWRITTEN,
                f"Replaced existing {IGNORE_FILE}",
                sources=[i.source_path for i in ignores],
            )


def _read_skill(workspace: Workspace, skill_dir: str, dir_name: str) -> AgentCustomization:
    source_path = join_relative(skill_dir, "SKILL.md")
    meta, body = split_frontmatter(workspace.read(source_path))
    files = {
        relative: workspace.read(join_relative(skill_dir, relative))
        for relative in walk_files(workspace, skill_dir)
        if relative != "SKILL.md" and not any(part in SKIP_DIRS for part in PurePosixPath(relative).parts)
    }
    description = str(meta.get("description") or "")

    if files:
        return AgentSkillIO(
            id=create_id(CustomizationType.AGENT_SKILL_IO, source_path),
            source_path=source_path,
            content=body,
            name=str(meta.get("name") or dir_name),
            description=description,
            files=files,
            metadata=meta,
        )
    if meta.get("disable-model-invocation") is True:
        return ManualPrompt(
            id=create_id(CustomizationType.MANUAL_PROMPT, source_path),
            source_path=source_path,
            content=body,
            prompt_name=str(meta.get("name") or dir_name),
            metadata=meta,
        )
    return SimpleAgentSkill(
        id=create_id(CustomizationType.SIMPLE_AGENT_SKILL, source_path),
        source_path=source_path,
        content=body,
        description=description or first_line(body) or dir_name,
        metadata=meta,
    )
