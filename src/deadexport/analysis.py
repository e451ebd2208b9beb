"""
Orchestration of an unused-export search.

Loads the program, selects the target's candidate declarations, walks the
scope until every candidate has been seen used (or the scope is exhausted),
and reports what is left.
"""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .config_loader import ExportConfig
from .errors import ScopeResolutionError
from .loader import Program, load_program
from .node_types import DeclKind, Declaration, Reference, SourcePosition
from .query import QueryState
from .targets import select_targets
from .walker import ReferenceWalker

logger = logging.getLogger(__name__)


def is_standard_module(name: str) -> bool:
    return name.split(".")[0] in sys.stdlib_module_names


def is_vendored(name: str) -> bool:
    return any("vendor" in part for part in name.split("."))


def describe(decl: Declaration) -> str:
    if decl.kind is DeclKind.CONSTANT:
        return f"constant {decl.name}"
    if decl.kind is DeclKind.VARIABLE:
        return f"variable {decl.name}"
    if decl.kind is DeclKind.FUNCTION:
        return f"function {decl.name}"
    if decl.kind is DeclKind.TYPE:
        return f"class {decl.name}" if decl.is_class else f"type {decl.name}"
    if decl.kind is DeclKind.METHOD:
        return f"method {decl.qualname}"
    return f"{decl.kind.value} {decl.qualname}"


def format_unused(position: SourcePosition, descriptor: str, scope_label: str) -> str:
    return f"{position}: {descriptor} is exported but not used anywhere else in {scope_label}"


@dataclass
class UnusedSearchResult:
    target: str
    scope: List[str]
    targets: List[Declaration] = field(default_factory=list)
    unused: List[Declaration] = field(default_factory=list)
    found: Dict[Declaration, Optional[Reference]] = field(default_factory=dict)
    program: Optional[Program] = None

    def entries(self) -> List[Tuple[SourcePosition, str]]:
        return [(d.position, describe(d)) for d in self.unused]


class UnusedFinder:
    """Runs the unused-export search for one target module at a time."""

    def __init__(self, config: Optional[ExportConfig] = None):
        self.config = config or ExportConfig()

    def _info(self, msg: str, *args) -> None:
        if self.config.verbose or self.config.debug:
            logger.info(msg, *args)

    def _debug(self, msg: str, *args) -> None:
        if self.config.debug:
            logger.debug(msg, *args)

    def run(
        self,
        target: str,
        scope: Optional[Sequence[str]] = None,
        include_own_tests: Optional[bool] = None,
    ) -> UnusedSearchResult:
        cfg = self.config
        patterns = list(scope or cfg.scope or ["**"])
        own_tests = cfg.include_own_tests if include_own_tests is None else include_own_tests
        self._info("loading %s (scope %s)", target, ", ".join(patterns))
        program = load_program(
            target,
            patterns,
            include_own_tests=own_tests,
            paths=cfg.paths,
            include=cfg.include,
            exclude=cfg.exclude,
            count_test_usage=cfg.count_test_usage,
        )
        return self.search(program, target)

    def search(self, program: Program, target: str) -> UnusedSearchResult:
        """Search an already loaded program; the program may be reused."""
        cfg = self.config
        module = program.module(target)
        if module is None:
            raise ScopeResolutionError(target, program.scope_patterns)

        targets = select_targets(module, cfg.protocol_methods, cfg.ignore)
        scope = self._scope_modules(program, target)
        result = UnusedSearchResult(target=target, scope=scope, targets=targets, program=program)
        if not targets:
            self._info("%s has no exported declarations to check", target)
            return result
        for decl in targets:
            self._debug("target %s", describe(decl))

        query = QueryState(targets, program.binder.type_of)
        walker = ReferenceWalker(program, target, query, debug=cfg.debug)
        for name in scope:
            self._debug("checking %s", name)
            if walker.walk_module(name):
                self._info("all %d declarations of %s are used", len(targets), target)
                break

        result.unused = query.unfound()
        result.found = dict(query.found)
        self._info("%d of %d declarations unused", len(result.unused), len(targets))
        return result

    def _scope_modules(self, program: Program, target: str) -> List[str]:
        out = []
        for name in program.scope:
            if name == target or is_standard_module(name):
                continue
            if self.config.skip_vendor and is_vendored(name):
                continue
            out.append(name)
        return out


def find_unused(
    target_module: str,
    scope_patterns: Optional[Sequence[str]] = None,
    include_own_tests: bool = True,
    config: Optional[ExportConfig] = None,
) -> List[Tuple[SourcePosition, str]]:
    """Unused exported declarations of ``target_module``, ordered by position."""
    finder = UnusedFinder(config)
    return finder.run(target_module, scope_patterns, include_own_tests).entries()
