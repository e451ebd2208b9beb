#!/usr/bin/env python3
"""
deadexport command line

Reports the public declarations of a module that nothing else in the scope
references:

    deadexport mypkg.values
    deadexport --scope "mypkg.**" --format json mypkg.values
    deadexport --graph --output out mypkg.values
    deadexport --init
"""
from __future__ import annotations

import argparse
import json
import logging
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from .errors import DeadExportError

logger = logging.getLogger(__name__)

_handler: Optional[logging.StreamHandler] = None


def _setup_logging(verbose: bool, debug: bool) -> None:
    global _handler
    log = logging.getLogger("deadexport")
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter("deadexport: %(message)s"))
        log.addHandler(_handler)
    elif _handler.stream is not sys.stderr:
        _handler.setStream(sys.stderr)
    log.setLevel(logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING)


def _repo_root(start: Optional[Path] = None) -> Optional[Path]:
    """Top directory of the git work tree containing ``start``, None outside one."""
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            cwd=str(start) if start else None,
        )
    except FileNotFoundError as e:
        raise DeadExportError(f"unable to run git: {e}") from e
    if proc.returncode == 128:
        # not a repository
        return None
    if proc.returncode != 0:
        raise DeadExportError(f"git rev-parse --show-toplevel failed: {(proc.stderr or '').strip()}")
    return Path(proc.stdout.strip())


def _within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deadexport",
        description="Report exported declarations of a module that are not used anywhere else",
    )
    parser.add_argument("target", nargs="?", help="Dotted name of the module to check")
    parser.add_argument("--scope", action="append", default=None, metavar="PATTERN",
                        help="Module pattern whose references count (repeatable; default: the repository)")
    parser.add_argument("--path", action="append", default=None, metavar="ROOT",
                        help="Source root to scan (repeatable; default from config)")
    parser.add_argument("--config", default=None, help="Config file (YAML or pyproject.toml)")
    parser.add_argument("--no-tests", action="store_true",
                        help="Do not attach the target's own test files")
    parser.add_argument("--count-test-usage", action="store_true",
                        help="Let test files other than the target's own count as uses")
    parser.add_argument("--include-vendor", action="store_true",
                        help="Also count references from vendored modules")
    parser.add_argument("--format", choices=["text", "json"], default=None, help="Report format")
    parser.add_argument("--graph", action="store_true", help="Also render a usage graph (Graphviz)")
    parser.add_argument("--output", default=None, metavar="DIR",
                        help="Override the graph output directory (default from config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress")
    parser.add_argument("--debug", action="store_true", help="Log every target and module visited")
    parser.add_argument("--init", action="store_true", help="Write an example deadexport.yaml")
    parser.add_argument("--force", action="store_true", help="With --init, overwrite an existing file")
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration")
    return parser


def _report(result, fmt: str, scope_label: str) -> None:
    from .analysis import describe, format_unused

    if fmt == "json":
        payload = [
            {
                "file": d.position.file,
                "line": d.position.line,
                "column": d.position.column,
                "kind": d.kind.value,
                "name": d.qualname,
                "descriptor": describe(d),
            }
            for d in result.unused
        ]
        print(json.dumps(payload, indent=2))
        return
    for d in result.unused:
        print(format_unused(d.position, describe(d), scope_label))


def _render_graph(result, directory: str, fmt: str) -> None:
    from .graphviz_render import render_usage_graph

    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    base = out_dir / f"{result.target}_usage"
    dot_path, svg_path = render_usage_graph(result, str(base), fmt)
    print(f"📊 Usage graph: {svg_path or dot_path}", file=sys.stderr)
    if not svg_path:
        print("⚠️  Graphviz 'dot' executable not found; only the DOT file was written", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Lazy import to keep --help fast
    from .config_init import init_config, show_current_config
    from .config_loader import load_config

    if args.init:
        init_config(force=args.force)
        return 0

    _setup_logging(args.verbose, args.debug)

    try:
        config_path = Path(args.config) if args.config else None
        if args.show_config:
            show_current_config(config_path)
            return 0
        if not args.target:
            parser.error("the target module is required")

        config = load_config(config_path)
        if args.path:
            config.paths = list(args.path)
        if args.no_tests:
            config.include_own_tests = False
        if args.count_test_usage:
            config.count_test_usage = True
        if args.include_vendor:
            config.skip_vendor = False
        if args.format:
            config.format = args.format
        if args.output:
            config.output = args.output
        config.verbose = config.verbose or args.verbose
        config.debug = config.debug or args.debug
        _setup_logging(config.verbose, config.debug)

        scope = list(args.scope or config.scope)
        scope_label = ", ".join(scope)
        if not scope:
            root = _repo_root()
            if root is not None:
                inside = [p for p in config.paths if _within(Path(p), root)]
                dropped = [p for p in config.paths if p not in inside]
                if dropped:
                    logger.info("ignoring search roots outside %s: %s", root, ", ".join(dropped))
                config.paths = inside or [str(root)]
            scope = ["**"]
            scope_label = str(root) if root is not None else "**"

        from .analysis import UnusedFinder

        result = UnusedFinder(config).run(args.target, scope)
        _report(result, config.format, scope_label)
        if args.graph:
            _render_graph(result, config.output, config.graph_format)
    except (DeadExportError, FileNotFoundError, ValueError, ImportError) as e:
        print(f"deadexport: FATAL: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
