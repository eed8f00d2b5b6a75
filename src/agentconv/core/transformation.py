"""
Content transformations between discovery and emission.

Transformations run in declared order; each one receives the previous one's
items. A transformation that needs to know where items will land calls
``context.trial_emit`` instead of waiting for the real emission.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Sequence

from .path_rewriter import build_mapping, detect_orphans, rewrite_content
from .types import AgentCustomization, ConversionWarning, EmitResult

logger = logging.getLogger(__name__)

TrialEmit = Callable[[List[AgentCustomization]], EmitResult]


@dataclass
class TransformationContext:
    items: List[AgentCustomization]
    source_plugin: Any
    target_plugin: Any
    source_root: str
    target_root: str
    trial_emit: TrialEmit


@dataclass
class TransformationResult:
    items: List[AgentCustomization] = field(default_factory=list)
    warnings: List[ConversionWarning] = field(default_factory=list)


class ContentTransformation(ABC):
    id: str = ""
    name: str = ""

    @abstractmethod
    def transform(self, context: TransformationContext) -> TransformationResult: ...


class PathRewritingTransformation(ContentTransformation):
    """
    Rewrite file path references so they point at the converted files.

    Trial-emits the items to learn the source→target mapping, rewrites the
    content, then reports references into the source format that were left
    behind. Orphan detection needs the source plugin's ``path_patterns``;
    without them it is skipped.
    """

    id = "path-rewriting"
    name = "Path Reference Rewriting"

    def transform(self, context: TransformationContext) -> TransformationResult:
        trial = context.trial_emit(context.items)

        if not trial.written:
            return TransformationResult(items=[replace(item) for item in context.items])

        mapping = build_mapping(trial.written, context.target_root)
        rewritten = rewrite_content(context.items, mapping)
        logger.debug(
            "Rewrote %d path reference(s) using %d mapping entries",
            rewritten.replacement_count,
            len(mapping),
        )

        warnings: List[ConversionWarning] = []
        patterns = getattr(context.source_plugin, "path_patterns", None)
        if patterns and patterns.prefixes and patterns.extensions:
            warnings.extend(detect_orphans(rewritten.items, mapping, patterns.prefixes, patterns.extensions))

        return TransformationResult(items=rewritten.items, warnings=warnings)


def run_transformations(
    transformations: Sequence[ContentTransformation],
    items: List[AgentCustomization],
    source_plugin: Any,
    target_plugin: Any,
    source_root: str,
    target_root: str,
    trial_emit: TrialEmit,
) -> TransformationResult:
    """Run each transformation on the previous one's output, collecting warnings in order."""
    warnings: List[ConversionWarning] = []

    for transformation in transformations:
        context = TransformationContext(
            items=items,
            source_plugin=source_plugin,
            target_plugin=target_plugin,
            source_root=source_root,
            target_root=target_root,
            trial_emit=trial_emit,
        )
        result = transformation.transform(context)
        logger.debug(
            "Transformation '%s' produced %d item(s), %d warning(s)",
            transformation.id,
            len(result.items),
            len(result.warnings),
        )
        items = result.items
        warnings.extend(result.warnings)

    return TransformationResult(items=items, warnings=warnings)
