"""
Reference walker: depth-first traversal of scope modules that reports every
reference to the target module's declarations to the query state.
"""
from __future__ import annotations

import ast
import logging
from typing import Optional, Set

from .binder import FileBindings
from .errors import FrontEndError
from .loader import Program
from .node_types import AliasKind, Declaration, Reference, SourceFile, SourcePosition
from .query import QueryState

logger = logging.getLogger(__name__)

WILDCARD = "*"

# pure syntax, nothing below can reference a declaration
_PRUNED = (
    ast.expr_context,
    ast.operator,
    ast.boolop,
    ast.cmpop,
    ast.unaryop,
    ast.Pass,
    ast.TypeIgnore,
)


class ReferenceWalker(ast.NodeVisitor):
    """Visits the files of scope modules, one file at a time."""

    def __init__(self, program: Program, target: str, query: QueryState, debug: bool = False):
        self.program = program
        self.target = target
        self.query = query
        self.debug = debug
        self._file: Optional[SourceFile] = None
        self._info: Optional[FileBindings] = None
        self._aliases: Set[str] = set()

    def walk_module(self, name: str) -> bool:
        """Walk every file of a module; True once all targets are found."""
        module = self.program.module(name)
        if module is not None:
            for f in module.files:
                if self.walk_file(f):
                    return True
        return self.query.all_found()

    def walk_file(self, file: SourceFile) -> bool:
        if self.query.all_found():
            return True
        if file.tree is None or not file.imports_module(self.target):
            return False
        if self.debug:
            logger.debug("walking %s (%s)", file.path, file.module)
        self._file = file
        self._aliases = set()
        try:
            self._info = self.program.binder.bind_file(file)
            self.visit(file.tree)
        except RecursionError:
            # expression nesting deeper than the interpreter stack
            self.program.tolerate(FrontEndError("expression nested too deeply, file skipped", file.path))
        finally:
            self._file = None
            self._info = None
        return self.query.all_found()

    def _discover(self, obj: Optional[Declaration], node: ast.AST) -> None:
        if obj is None:
            return
        pos = SourcePosition(str(self._file.path), getattr(node, "lineno", 0), getattr(node, "col_offset", 0) + 1)
        self.query.discover(obj, Reference(self._file.module, pos))

    # -- traversal ----------------------------------------------------------

    def visit(self, node: ast.AST):
        if self.query.all_found() or isinstance(node, _PRUNED):
            return None
        if isinstance(node, ast.Constant):
            # string annotations were parsed by the binder
            parsed = self._info.annotations.get(node)
            if parsed is not None:
                self.visit(parsed)
            return None
        return super().visit(node)

    def visit_Import(self, node: ast.AST) -> None:
        for b in self._file.bindings_at(node):
            if b.module != self.target:
                continue
            if b.kind is AliasKind.WILDCARD:
                self._aliases.add(WILDCARD)
            elif b.kind is AliasKind.MEMBER:
                self._aliases.add(b.alias)
                member = self.program.binder.module_member(self.target, b.member)
                if isinstance(member, Declaration):
                    self._discover(member, node)
            elif b.alias:
                self._aliases.add(b.alias)

    visit_ImportFrom = visit_Import

    def visit_Attribute(self, node: ast.Attribute) -> None:
        owner = node.value
        if self._info.module_of(owner) == self.target:
            module = self.program.module(self.target)
            self._discover(module.lookup(node.attr) if module else None, node)
        elif isinstance(owner, ast.Name):
            self._discover(self._info.object_of(owner), owner)
        self._discover(self._info.object_of(node), node)
        self.visit(owner)

    def visit_Name(self, node: ast.Name) -> None:
        if WILDCARD in self._aliases:
            self._discover(self._info.object_of(node), node)
