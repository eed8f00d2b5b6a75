"""
CLI entry point. Thin dispatcher only.

Parse args -> build engine -> run -> print result.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from agentconv import __version__
from agentconv.config import AgentConvConfig, load_config
from agentconv.converters import default_engine
from agentconv.core.discovery import LOCAL_PLUGIN_DIR, get_default_search_paths
from agentconv.core.engine import ConversionEngine, ConversionOptions, ConversionResult
from agentconv.core.errors import AgentConvError
from agentconv.core.loader import ConflictStrategy
from agentconv.core.types import AgentCustomization, ConversionWarning, DiscoveryResult, WarningCode
from agentconv.gitignore import (
    GitIgnoreChange,
    GitIgnoreConflict,
    GitIgnoreStyle,
    apply_gitignore_plan,
    plan_gitignore,
    require_git_repo,
)
from agentconv.utils import Colors

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    try:
        return _main(argv)
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Cancelled.{Colors.ENDC}")
        return 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentconv",
        description="agentconv - convert agent rules, skills and prompts between tools",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", help="Command")

    # --- plugins ---
    p_plugins = sub.add_parser("plugins", help="List registered plugins")
    p_plugins.add_argument("--root", default=".", help="Project root (for config)")
    p_plugins.add_argument("--json", action="store_true", help="Output as JSON")

    # --- discover ---
    p_discover = sub.add_parser("discover", help="List customizations a plugin finds")
    p_discover.add_argument("plugin", help="Plugin id")
    p_discover.add_argument("--root", default=".", help="Project root")
    p_discover.add_argument("--json", action="store_true", help="Output as JSON")

    # --- convert ---
    p_convert = sub.add_parser("convert", help="Convert customizations between plugins")
    p_convert.add_argument("--from", dest="source", help="Source plugin id")
    p_convert.add_argument("--to", dest="target", help="Target plugin id")
    p_convert.add_argument("--root", default=".", help="Project root")
    p_convert.add_argument("--from-dir", dest="source_dir", help="Read from this directory instead of --root")
    p_convert.add_argument("--to-dir", dest="target_dir", help="Write to this directory instead of --root")
    p_convert.add_argument("--dry-run", action="store_true", help="Show what would be written, don't write")
    p_convert.add_argument(
        "--rewrite-path-refs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Rewrite references to converted files in item content",
    )
    p_convert.add_argument(
        "--conflict-strategy",
        choices=[s.value for s in ConflictStrategy],
        default=None,
        help="How installed plugins with a taken id are handled",
    )
    p_convert.add_argument("--json", action="store_true", help="Output as JSON")
    p_convert.add_argument("-q", "--quiet", action="store_true", help="Suppress non-error output")
    p_convert.add_argument(
        "--delete-source",
        action="store_true",
        help="Delete source files that were converted without a skip warning",
    )
    p_convert.add_argument(
        "--gitignore-output-with",
        choices=[s.value for s in GitIgnoreStyle],
        default=GitIgnoreStyle.NONE.value,
        help="How new output files are kept out of git",
    )
    p_convert.add_argument(
        "--if-gitignore-conflict",
        choices=[c.value for c in GitIgnoreConflict],
        default=GitIgnoreConflict.SKIP.value,
        help="With --gitignore-output-with match: what to do when sources and output disagree",
    )

    return parser


def _main(argv: Optional[List[str]]) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    config = load_config(args.root)
    strategy_value = getattr(args, "conflict_strategy", None)
    strategy = ConflictStrategy(strategy_value) if strategy_value else config.conflict_strategy

    try:
        engine = _build_engine(config, strategy, args.root)
        if args.command == "plugins":
            return _handle_plugins(args, engine)
        if args.command == "discover":
            return _handle_discover(args, engine)
        if args.command == "convert":
            return _handle_convert(args, engine, config)
    except AgentConvError as e:
        print(f"{Colors.RED}Error: {e}{Colors.ENDC}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.debug("Unhandled error in %s", args.command, exc_info=True)
        print(f"{Colors.RED}Error: {type(e).__name__}: {e}{Colors.ENDC}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


def _build_engine(config: AgentConvConfig, strategy: ConflictStrategy, root: str = ".") -> ConversionEngine:
    engine = default_engine(strategy)
    if not config.discover_plugins:
        logger.debug("Installed plugin discovery disabled")
        return engine

    search_paths = get_default_search_paths()
    for extra in [str(Path(root).resolve() / LOCAL_PLUGIN_DIR)] + config.plugin_search_paths:
        if extra not in search_paths:
            search_paths.append(extra)
    result = engine.discover_and_register_plugins(search_paths)
    for error in result.errors:
        print(
            f"{Colors.YELLOW}Warning: could not load plugin {error.package_name}: {error.error}{Colors.ENDC}",
            file=sys.stderr,
        )
    for plugin_id in result.skipped:
        logger.info("Skipped installed plugin '%s' (id already registered)", plugin_id)
    return engine


# =============================================================================
# HANDLERS
# =============================================================================


def _handle_plugins(args, engine: ConversionEngine) -> int:
    plugins = engine.list_plugins()

    if args.json:
        print(json.dumps([
            {
                "id": p.id,
                "name": p.name,
                "supports": [s.value for s in p.supports],
                "origin": p.origin.value,
                "version": p.version,
            }
            for p in plugins
        ], indent=2))
        return 0

    print(f"{Colors.BLUE}Registered plugins:{Colors.ENDC}")
    for p in plugins:
        version = f" {p.version}" if p.version else ""
        print(f"  - {Colors.BOLD}{p.id}{Colors.ENDC}: {p.name} [{p.origin.value}{version}]")
    return 0


def _handle_discover(args, engine: ConversionEngine) -> int:
    result = engine.discover(args.plugin, Path(args.root))

    if args.json:
        print(json.dumps(_discovery_to_dict(result), indent=2))
        return 0

    print(f"{Colors.BLUE}Found {len(result.items)} customization(s) with '{args.plugin}':{Colors.ENDC}")
    for item in result.items:
        print(f"  - {Colors.CYAN}{item.type.value}{Colors.ENDC} {item.source_path}")
    _print_warnings(result.warnings)
    return 0


def _is_interactive() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _handle_convert(args, engine: ConversionEngine, config: AgentConvConfig) -> int:
    source, target = args.source, args.target
    if not (source and target):
        if not _is_interactive():
            print(f"{Colors.RED}Error: --from and --to are required{Colors.ENDC}", file=sys.stderr)
            return 1
        from agentconv.tui import run_convert_tui

        picked = run_convert_tui(engine.list_plugins(), source, target)
        if picked is None:
            return 130
        source, target = picked

    rewrite = args.rewrite_path_refs if args.rewrite_path_refs is not None else config.rewrite_path_refs
    options = ConversionOptions(
        source=source,
        target=target,
        root=args.root,
        dry_run=args.dry_run,
        source_root=args.source_dir,
        target_root=args.target_dir,
        rewrite_path_refs=rewrite,
    )

    project_root = Path(args.target_dir or args.root)
    style = GitIgnoreStyle(args.gitignore_output_with)
    if style not in (GitIgnoreStyle.NONE, GitIgnoreStyle.IGNORE):
        require_git_repo(project_root, f"--gitignore-output-with {style.value}")

    result = engine.convert(options)

    plan = plan_gitignore(
        result,
        project_root,
        style,
        GitIgnoreConflict(args.if_gitignore_conflict),
        source_root=Path(args.source_dir or args.root),
    )
    git_changes = plan.changes if args.dry_run else apply_gitignore_plan(project_root, plan)

    deleted: List[str] = []
    if args.delete_source:
        deleted = _delete_sources(result, Path(args.source_dir or args.root), args.dry_run)

    if args.json:
        data = _conversion_to_dict(result)
        data["gitIgnoreChanges"] = [{"file": c.file, "added": c.added} for c in git_changes]
        data["deletedSources"] = deleted
        print(json.dumps(data, indent=2))
        return 0

    if not args.quiet:
        _print_conversion(result, source, target, args.dry_run, git_changes, deleted)
    return 0


def _delete_sources(result: ConversionResult, source_root: Path, dry_run: bool) -> List[str]:
    """
    Remove source files that fed a written file.

    Sources named by a ``skipped`` warning are kept, as are paths that
    resolve outside ``source_root``. Returns the relative paths deleted (or,
    on a dry run, that would be).
    """
    root = source_root.resolve()
    used: List[str] = []
    for written in result.written:
        for item in written.source_items:
            if item.source_path not in used:
                used.append(item.source_path)

    kept = {
        source
        for warning in result.warnings
        if warning.code == WarningCode.SKIPPED and warning.sources
        for source in warning.sources
    }

    deleted: List[str] = []
    for relative in used:
        if relative in kept:
            continue
        path = (root / relative).resolve()
        if root not in path.parents:
            print(f"{Colors.YELLOW}Warning: refusing to delete source outside project: {relative}{Colors.ENDC}", file=sys.stderr)
            continue
        if dry_run:
            deleted.append(relative)
            continue
        try:
            path.unlink()
        except OSError as e:
            print(f"{Colors.YELLOW}Warning: failed to delete {relative}: {e}{Colors.ENDC}", file=sys.stderr)
            continue
        logger.debug("Deleted source %s", relative)
        deleted.append(relative)
    return deleted


# =============================================================================
# OUTPUT
# =============================================================================


def _print_conversion(
    result: ConversionResult,
    source: str,
    target: str,
    dry_run: bool,
    git_changes: Optional[List[GitIgnoreChange]] = None,
    deleted: Optional[List[str]] = None,
) -> None:
    print(f"{Colors.HEADER}{source} -> {target}{Colors.ENDC}")
    print(f"  Discovered: {len(result.discovered)} item(s)")

    verb = "Would write" if dry_run else "Wrote"
    print(f"{Colors.BLUE}{verb} {len(result.written)} file(s):{Colors.ENDC}")
    for written in result.written:
        marker = f"{Colors.GREEN}+{Colors.ENDC}" if written.is_new_file else f"{Colors.YELLOW}~{Colors.ENDC}"
        print(f"  {marker} {written.path}")

    for change in git_changes or []:
        verb = "Would update" if dry_run else "Updated"
        print(f"{Colors.BLUE}{verb} {change.file} ({len(change.added)} entries){Colors.ENDC}")

    if deleted:
        verb = "Would delete" if dry_run else "Deleted"
        print(f"{Colors.BLUE}{verb} {len(deleted)} source file(s):{Colors.ENDC}")
        for path in deleted:
            print(f"  {Colors.RED}-{Colors.ENDC} {path}")

    if result.unsupported:
        print(f"{Colors.YELLOW}Unsupported by {target}:{Colors.ENDC}")
        for item in result.unsupported:
            print(f"  - {item.source_path} ({item.type.value})")

    _print_warnings(result.warnings)

    if dry_run:
        print(f"\n{Colors.CYAN}Dry run: no files were written.{Colors.ENDC}")
    elif result.warnings:
        print(f"\n{Colors.YELLOW}Conversion completed with {len(result.warnings)} warning(s).{Colors.ENDC}")
    else:
        print(f"\n{Colors.GREEN}Conversion completed.{Colors.ENDC}")


def _print_warnings(warnings: List[ConversionWarning]) -> None:
    if not warnings:
        return
    print(f"{Colors.YELLOW}Warnings:{Colors.ENDC}")
    for warning in warnings:
        print(f"  ! [{warning.code.value}] {warning.message}")


def _item_to_dict(item: AgentCustomization) -> Dict[str, Any]:
    return {"id": item.id, "type": item.type.value, "sourcePath": item.source_path}


def _warning_to_dict(warning: ConversionWarning) -> Dict[str, Any]:
    data: Dict[str, Any] = {"code": warning.code.value, "message": warning.message}
    if warning.sources:
        data["sources"] = warning.sources
    return data


def _discovery_to_dict(result: DiscoveryResult) -> Dict[str, Any]:
    return {
        "items": [_item_to_dict(i) for i in result.items],
        "warnings": [_warning_to_dict(w) for w in result.warnings],
    }


def _conversion_to_dict(result: ConversionResult) -> Dict[str, Any]:
    return {
        "discovered": [_item_to_dict(i) for i in result.discovered],
        "written": [
            {
                "path": w.path,
                "type": w.type.value,
                "itemCount": w.item_count,
                "isNewFile": w.is_new_file,
            }
            for w in result.written
        ],
        "warnings": [_warning_to_dict(w) for w in result.warnings],
        "unsupported": [_item_to_dict(i) for i in result.unsupported],
    }


if __name__ == "__main__":
    sys.exit(main())
