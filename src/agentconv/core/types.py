"""Shared types and data structures for agentconv."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class CustomizationType(Enum):
    """The closed set of agent customization kinds."""
    GLOBAL_PROMPT = "global-prompt"
    SIMPLE_AGENT_SKILL = "simple-agent-skill"
    AGENT_SKILL_IO = "agent-skill-io"
    FILE_RULE = "file-rule"
    AGENT_IGNORE = "agent-ignore"
    MANUAL_PROMPT = "manual-prompt"


class WarningCode(Enum):
    MERGED = "merged"
    APPROXIMATED = "approximated"
    SKIPPED = "skipped"
    OVERWRITTEN = "overwritten"
    FILE_RENAMED = "file-renamed"
    ORPHAN_PATH_REF = "orphan-path-ref"
    GIT_STATUS_CONFLICT = "git-status-conflict"


class PluginOrigin(Enum):
    BUILTIN = "builtin"
    DISCOVERED = "discovered"


def create_id(kind: CustomizationType, source_path: str) -> str:
    """Deterministic item id from its kind and source location."""
    return f"{kind.value}:{source_path}"


# =============================================================================
# CUSTOMIZATION ITEMS
# =============================================================================


@dataclass
class GlobalPrompt:
    """Always-applied prompt (CLAUDE.md, alwaysApply rules)."""
    id: str
    source_path: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    relative_dir: Optional[str] = None
    type: CustomizationType = field(default=CustomizationType.GLOBAL_PROMPT, init=False)


@dataclass
class SimpleAgentSkill:
    """Skill activated by description matching."""
    id: str
    source_path: str
    content: str
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    relative_dir: Optional[str] = None
    type: CustomizationType = field(default=CustomizationType.SIMPLE_AGENT_SKILL, init=False)


@dataclass
class AgentSkillIO:
    """
    Full skill bundle: SKILL.md body plus the resource files next to it.

    ``files`` maps a path relative to the skill directory to its text.
    """
    id: str
    source_path: str
    content: str
    name: str = ""
    description: str = ""
    files: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    relative_dir: Optional[str] = None
    type: CustomizationType = field(default=CustomizationType.AGENT_SKILL_IO, init=False)


@dataclass
class FileRule:
    """Rule triggered by file glob patterns."""
    id: str
    source_path: str
    content: str
    globs: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    relative_dir: Optional[str] = None
    type: CustomizationType = field(default=CustomizationType.FILE_RULE, init=False)


@dataclass
class AgentIgnore:
    """Gitignore-style patterns the agent should not read."""
    id: str
    source_path: str
    content: str
    patterns: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    relative_dir: Optional[str] = None
    type: CustomizationType = field(default=CustomizationType.AGENT_IGNORE, init=False)


@dataclass
class ManualPrompt:
    """Prompt only activated when explicitly invoked (slash command)."""
    id: str
    source_path: str
    content: str
    prompt_name: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    relative_dir: Optional[str] = None
    type: CustomizationType = field(default=CustomizationType.MANUAL_PROMPT, init=False)


AgentCustomization = Union[
    GlobalPrompt,
    SimpleAgentSkill,
    AgentSkillIO,
    FileRule,
    AgentIgnore,
    ManualPrompt,
]


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class ConversionWarning:
    """Non-fatal conversion note. Never aborts a conversion."""
    code: WarningCode
    message: str
    sources: Optional[List[str]] = None
    details: Optional[Dict[str, Any]] = None


@dataclass
class WrittenFile:
    """
    One file produced by an emission (trial or real).

    ``source_items`` links the file back to the items that produced it;
    path rewriting derives its mapping from this back-reference.
    """
    path: str
    type: CustomizationType
    item_count: int = 1
    is_new_file: bool = True
    source_items: List[AgentCustomization] = field(default_factory=list)


@dataclass
class DiscoveryResult:
    items: List[AgentCustomization] = field(default_factory=list)
    warnings: List[ConversionWarning] = field(default_factory=list)


@dataclass
class EmitResult:
    written: List[WrittenFile] = field(default_factory=list)
    warnings: List[ConversionWarning] = field(default_factory=list)
    unsupported: List[AgentCustomization] = field(default_factory=list)


@dataclass
class PathPatterns:
    """Directory prefixes and extensions that make a string look like a path of this format."""
    prefixes: List[str] = field(default_factory=list)
    extensions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PluginRegistration:
    """A registered plugin plus where it came from. Replaced, never mutated."""
    plugin: Any
    origin: PluginOrigin
    registered_at: datetime
    version: Optional[str] = None
    install_path: Optional[str] = None


@dataclass
class PluginRegistrationInput:
    """Registration request; ``registered_at`` is stamped by the registry."""
    plugin: Any
    origin: PluginOrigin = PluginOrigin.BUILTIN
    version: Optional[str] = None
    install_path: Optional[str] = None
