"""
Front end: source discovery, tolerant parsing, declaration collection and the
Program view handed to the analysis.

Modules are discovered eagerly (file names only) and parsed lazily, the first
time something asks for them. A module that fails to parse is replaced by the
best tree that can be recovered; the failure is recorded on
``Program.errors`` and the run carries on.
"""
from __future__ import annotations

import ast
import fnmatch
import logging
import os
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from .errors import FrontEndError
from .node_types import (
    AliasKind,
    DeclKind,
    Declaration,
    ImportBinding,
    Module,
    SourceFile,
    SourcePosition,
)

logger = logging.getLogger(__name__)

DEFAULT_PATHS = ["src", "."]
DEFAULT_INCLUDE = ["**/*.py"]
DEFAULT_EXCLUDE = [
    "**/.git/**",
    "**/.tox/**",
    "**/.venv/**",
    "**/venv/**",
    "**/__pycache__/**",
    "**/build/**",
    "**/dist/**",
]

TEST_DIRS = {"tests", "test"}

_CONSTANT_NAME = re.compile(r"^_*[A-Z][A-Z0-9_]*$")
_TRY_NODES = tuple(t for t in (ast.Try, getattr(ast, "TryStar", None)) if t is not None)


# ---------------------------------------------------------------------------
# source discovery
# ---------------------------------------------------------------------------


def _matches(rel: str, patterns: Iterable[str], is_dir: bool = False) -> bool:
    # anchor with slashes so that "**/venv/**" also matches a top-level venv/
    anchored = f"/{rel}/" if is_dir else f"/{rel}"
    return any(fnmatch.fnmatch(anchored, pat) or fnmatch.fnmatch(rel, pat) for pat in patterns)


def _collect_py_files(paths: List[str], include: List[str], exclude: List[str]) -> List[Tuple[Path, Path]]:
    """Return (file, root) pairs for every Python file under the roots."""
    collected: List[Tuple[Path, Path]] = []
    for root in paths:
        base = Path(root)
        if not base.is_dir():
            continue
        for dirpath, dirnames, filenames in os.walk(base):
            # prune excluded dirs
            for d in list(dirnames):
                rel = (Path(dirpath) / d).relative_to(base).as_posix()
                if _matches(rel, exclude, is_dir=True):
                    dirnames.remove(d)
            dirnames.sort()
            for fn in sorted(filenames):
                if not fn.endswith(".py"):
                    continue
                f_path = Path(dirpath) / fn
                rel = f_path.relative_to(base).as_posix()
                if _matches(rel, exclude):
                    continue
                if include and not _matches(rel, include):
                    continue
                collected.append((f_path, base))
    return collected


def _path_to_module_fqn(file_path: Path, root: Path) -> Optional[str]:
    try:
        rel = file_path.relative_to(root)
    except ValueError:
        return None
    parts = list(rel.parts)
    if not parts:
        return None
    if parts[-1] == "__init__.py":
        parts = parts[:-1]
    else:
        parts[-1] = Path(parts[-1]).stem
    if not parts or not all(p.isidentifier() for p in parts):
        return None
    return ".".join(parts)


def is_test_file(rel: Path) -> bool:
    """Whether a path (relative to its search root) holds test code."""
    name = rel.name
    if name == "conftest.py" or name.startswith("test_") or rel.stem.endswith("_test"):
        return True
    return any(part in TEST_DIRS for part in rel.parts[:-1])


def _owns_test(target: str, rel: Path) -> bool:
    """Whether a test file (relative to its search root) tests ``target``.

    The file must sit beside the target module, or in a ``tests``/``test``
    tree whose remaining directories mirror the tail of the target's package.
    """
    package, _, leaf = target.rpartition(".")
    if rel.stem not in (f"test_{leaf}", f"{leaf}_test"):
        return False
    pkg_parts = package.split(".") if package else []
    dirs = list(rel.parts[:-1])
    if dirs == pkg_parts:
        return True
    for i, part in enumerate(dirs):
        if part in TEST_DIRS:
            rest = dirs[:i] + dirs[i + 1:]
            return not rest or pkg_parts[-len(rest):] == rest
    return False


def name_match(name: str, pat: str) -> bool:
    """Match a dotted module name against a scope pattern.

    - ``module``     only the module itself
    - ``module.*``   direct submodules only
    - ``module.**``  any descendant (not the module itself)
    - ``*``/``**``   everything
    - other ``*``/``?`` patterns use fnmatch
    """
    if pat in ("*", "**"):
        return True
    if pat.endswith(".**"):
        prefix = pat[:-3]
        return name.startswith(prefix + ".") and name != prefix
    if pat.endswith(".*"):
        prefix = pat[:-2]
        if not name.startswith(prefix + "."):
            return False
        rest = name[len(prefix) + 1:]
        return rest != "" and "." not in rest
    if "*" in pat or "?" in pat:
        return fnmatch.fnmatch(name, pat)
    return name == pat


def matches_scope(name: str, patterns: Sequence[str]) -> bool:
    return any(name_match(name, p) for p in patterns)


# ---------------------------------------------------------------------------
# syntax helpers
# ---------------------------------------------------------------------------


def toplevel_statements(body: List[ast.stmt]) -> Iterator[ast.stmt]:
    """Module-level statements, looking through if/try/with blocks."""
    for st in body:
        if isinstance(st, ast.If):
            yield from toplevel_statements(st.body)
            yield from toplevel_statements(st.orelse)
        elif isinstance(st, _TRY_NODES):
            yield from toplevel_statements(st.body)
            for handler in st.handlers:
                yield from toplevel_statements(handler.body)
            yield from toplevel_statements(st.orelse)
            yield from toplevel_statements(st.finalbody)
        elif isinstance(st, (ast.With, ast.AsyncWith)):
            yield from toplevel_statements(st.body)
        else:
            yield st


def target_names(target: ast.AST) -> Iterator[ast.Name]:
    if isinstance(target, ast.Name):
        yield target
    elif isinstance(target, (ast.Tuple, ast.List)):
        for elt in target.elts:
            yield from target_names(elt)
    elif isinstance(target, ast.Starred):
        yield from target_names(target.value)


def decorator_names(node: ast.AST) -> List[str]:
    out: List[str] = []
    for dec in getattr(node, "decorator_list", []) or []:
        if isinstance(dec, ast.Call):
            dec = dec.func
        if isinstance(dec, ast.Name):
            out.append(dec.id)
        elif isinstance(dec, ast.Attribute):
            out.append(dec.attr)
    return out


def _tail_name(expr: Optional[ast.AST]) -> str:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    return ""


def _position(file: SourceFile, node: ast.AST) -> SourcePosition:
    return SourcePosition(
        str(file.path),
        getattr(node, "lineno", 0) or 0,
        (getattr(node, "col_offset", 0) or 0) + 1,
    )


def _literal_names(value: ast.AST) -> Optional[List[str]]:
    # list/tuple/set of strings, or a "+" chain of them
    if isinstance(value, ast.BinOp) and isinstance(value.op, ast.Add):
        left, right = _literal_names(value.left), _literal_names(value.right)
        if left is None or right is None:
            return None
        return left + right
    if not isinstance(value, (ast.List, ast.Tuple, ast.Set)):
        return None
    names = []
    for elt in value.elts:
        if not (isinstance(elt, ast.Constant) and isinstance(elt.value, str)):
            return None
        names.append(elt.value)
    return names


def _parse_all(tree: ast.Module) -> Optional[List[str]]:
    """Literal ``__all__`` of a module, else None.

    Handles ``=``, ``+=``, ``.extend()`` and ``.append()``. Any form that
    cannot be read statically gives None so the underscore convention applies.
    """
    names: Optional[List[str]] = None
    for node in toplevel_statements(tree.body):
        if isinstance(node, ast.Assign):
            if any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
                names = _literal_names(node.value)
                if names is None:
                    return None
        elif isinstance(node, ast.AnnAssign):
            if isinstance(node.target, ast.Name) and node.target.id == "__all__" and node.value is not None:
                names = _literal_names(node.value)
                if names is None:
                    return None
        elif isinstance(node, ast.AugAssign):
            if isinstance(node.target, ast.Name) and node.target.id == "__all__" and names is not None:
                extra = _literal_names(node.value) if isinstance(node.op, ast.Add) else None
                if extra is None:
                    return None
                names.extend(extra)
        elif isinstance(node, ast.Expr) and isinstance(node.value, ast.Call) and names is not None:
            func = node.value.func
            if (
                isinstance(func, ast.Attribute)
                and isinstance(func.value, ast.Name)
                and func.value.id == "__all__"
            ):
                args = node.value.args
                if func.attr == "extend" and len(args) == 1:
                    extra = _literal_names(args[0])
                elif func.attr == "append" and len(args) == 1:
                    extra = _literal_names(ast.List(elts=list(args), ctx=ast.Load()))
                else:
                    extra = None
                if extra is None:
                    return None
                names.extend(extra)
    return names


def _absolute_module(module: Optional[str], level: int, current: str, is_package: bool) -> Optional[str]:
    if not level:
        return module or ""
    package = current if is_package else current.rpartition(".")[0]
    parts = package.split(".") if package else []
    drop = level - 1
    if drop > len(parts):
        return None
    if drop:
        parts = parts[:-drop]
    base = ".".join(parts)
    if module:
        base = f"{base}.{module}" if base else module
    return base


def _import_bindings(
    tree: ast.Module,
    module_fqn: str,
    is_package: bool,
    is_module: Callable[[str], bool],
) -> Tuple[List[ImportBinding], Dict[ast.AST, List[ImportBinding]]]:
    bindings: List[ImportBinding] = []
    by_node: Dict[ast.AST, List[ImportBinding]] = {}

    def for_import(node: ast.Import, toplevel: bool) -> List[ImportBinding]:
        out = []
        for alias in node.names:
            if alias.asname:
                out.append(ImportBinding(alias.name, AliasKind.EXPLICIT, alias=alias.asname,
                                         bound=alias.name, line=node.lineno, toplevel=toplevel))
            else:
                head = alias.name.split(".")[0]
                out.append(ImportBinding(alias.name, AliasKind.DEFAULT, alias=head,
                                         bound=head, line=node.lineno, toplevel=toplevel))
        return out

    def for_import_from(node: ast.ImportFrom, toplevel: bool) -> List[ImportBinding]:
        base = _absolute_module(node.module, node.level or 0, module_fqn, is_package)
        if base is None:
            return []
        out = []
        for alias in node.names:
            if alias.name == "*":
                out.append(ImportBinding(base, AliasKind.WILDCARD, line=node.lineno, toplevel=toplevel))
                continue
            local = alias.asname or alias.name
            sub = f"{base}.{alias.name}" if base else alias.name
            if is_module(sub):
                kind = AliasKind.EXPLICIT if alias.asname else AliasKind.DEFAULT
                out.append(ImportBinding(sub, kind, alias=local, bound=sub, line=node.lineno, toplevel=toplevel))
            else:
                out.append(ImportBinding(base, AliasKind.MEMBER, alias=local, member=alias.name,
                                         line=node.lineno, toplevel=toplevel))
        return out

    def visit(node: ast.AST, toplevel: bool) -> None:
        for child in ast.iter_child_nodes(node):
            found: List[ImportBinding] = []
            if isinstance(child, ast.Import):
                found = for_import(child, toplevel)
            elif isinstance(child, ast.ImportFrom):
                found = for_import_from(child, toplevel)
            if found:
                bindings.extend(found)
                by_node[child] = found
            nested = isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef))
            visit(child, toplevel and not nested)

    visit(tree, True)
    return bindings, by_node


# ---------------------------------------------------------------------------
# declarations
# ---------------------------------------------------------------------------


class DeclCollector:
    """Collects the declarations a source file contributes to its module."""

    def __init__(self, module: Module, file: SourceFile):
        self.module = module
        self.file = file

    def _public(self, name: str) -> bool:
        if self.module.all_names is not None:
            return name in self.module.all_names
        return not name.startswith("_")

    def _add(self, decl: Declaration) -> None:
        self.module.declarations.setdefault(decl.name, decl)

    def _uid(self, name: str) -> str:
        return f"{self.module.name}.{name}" if self.module.name else name

    def collect(self, tree: ast.Module) -> None:
        for st in toplevel_statements(tree.body):
            if isinstance(st, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._add(self.function(st))
            elif isinstance(st, ast.ClassDef):
                self._add(self.declare_class(st))
            elif isinstance(st, ast.Assign):
                for target in st.targets:
                    value = st.value if isinstance(target, ast.Name) else None
                    for name_node in target_names(target):
                        self._add(self._variable(name_node, value=value))
            elif isinstance(st, ast.AnnAssign) and isinstance(st.target, ast.Name):
                if _tail_name(st.annotation) == "TypeAlias":
                    self._add(self._type_alias(st.target, st.value))
                else:
                    self._add(self._variable(st.target, value=st.value, annotation=st.annotation))
            elif hasattr(ast, "TypeAlias") and isinstance(st, ast.TypeAlias):
                self._add(self._type_alias(st.name, st.value))

    def _variable(self, node: ast.Name, value=None, annotation=None) -> Declaration:
        kind = DeclKind.CONSTANT if _CONSTANT_NAME.match(node.id) else DeclKind.VARIABLE
        return Declaration(
            uid=self._uid(node.id),
            name=node.id,
            kind=kind,
            module=self.module.name,
            position=_position(self.file, node),
            public=self._public(node.id),
            in_test=self.file.is_test,
            file=self.file,
            node=node,
            annotation=annotation,
            value=value,
        )

    def _type_alias(self, node: ast.Name, value) -> Declaration:
        decl = self._variable(node, value=value)
        decl.kind = DeclKind.TYPE
        return decl

    def function(self, node: ast.AST, cls: Optional[Declaration] = None) -> Declaration:
        name = getattr(node, "name", "")
        if cls is not None:
            uid = f"{cls.uid}.{name}"
            kind = DeclKind.METHOD
            public = not name.startswith("_")
        else:
            uid = self._uid(name)
            kind = DeclKind.FUNCTION
            public = self._public(name)
        return Declaration(
            uid=uid,
            name=name,
            kind=kind,
            module=self.module.name,
            position=_position(self.file, node),
            public=public,
            receiver=cls,
            in_test=self.file.is_test,
            file=self.file,
            node=node,
            returns=getattr(node, "returns", None),
            decorators=decorator_names(node),
        )

    def declare_class(self, node: ast.ClassDef, owner: Optional[Declaration] = None,
                      uid: Optional[str] = None) -> Declaration:
        if uid is None:
            uid = f"{owner.uid}.{node.name}" if owner is not None else self._uid(node.name)
        public = not node.name.startswith("_") if owner is not None else self._public(node.name)
        cls = Declaration(
            uid=uid,
            name=node.name,
            kind=DeclKind.TYPE,
            module=self.module.name,
            position=_position(self.file, node),
            public=public,
            receiver=owner,
            in_test=self.file.is_test,
            file=self.file,
            node=node,
            bases=list(node.bases),
            decorators=decorator_names(node),
        )
        methods: List[ast.AST] = []
        for st in node.body:
            if isinstance(st, (ast.FunctionDef, ast.AsyncFunctionDef)):
                cls.members.setdefault(st.name, self.function(st, cls))
                methods.append(st)
            elif isinstance(st, ast.ClassDef):
                cls.members.setdefault(st.name, self.declare_class(st, owner=cls))
            elif isinstance(st, ast.Assign):
                for target in st.targets:
                    value = st.value if isinstance(target, ast.Name) else None
                    for name_node in target_names(target):
                        cls.members.setdefault(name_node.id, self._field(cls, name_node, value=value))
            elif isinstance(st, ast.AnnAssign) and isinstance(st.target, ast.Name):
                cls.members.setdefault(
                    st.target.id,
                    self._field(cls, st.target, value=st.value, annotation=st.annotation),
                )
        for fn in methods:
            self._instance_fields(cls, fn)
        return cls

    def _field(self, cls: Declaration, node: ast.AST, name: Optional[str] = None,
               value=None, annotation=None) -> Declaration:
        name = name or getattr(node, "id", "")
        return Declaration(
            uid=f"{cls.uid}.{name}",
            name=name,
            kind=DeclKind.FIELD,
            module=self.module.name,
            position=_position(self.file, node),
            public=not name.startswith("_"),
            receiver=cls,
            in_test=self.file.is_test,
            file=self.file,
            node=node,
            annotation=annotation,
            value=value,
        )

    def _instance_fields(self, cls: Declaration, fn: ast.AST) -> None:
        """Learn ``self.<attr>`` fields assigned inside a method body."""
        args = getattr(fn, "args", None)
        positional = list(getattr(args, "posonlyargs", []) or []) + list(getattr(args, "args", []) or [])
        if not positional or "staticmethod" in decorator_names(fn):
            return
        self_name = positional[0].arg
        param_types = {
            a.arg: a.annotation
            for a in positional[1:] + list(getattr(args, "kwonlyargs", []) or [])
            if a.annotation is not None
        }
        for st in ast.walk(fn):
            targets: List[ast.AST] = []
            value = annotation = None
            if isinstance(st, ast.Assign):
                targets, value = st.targets, st.value
            elif isinstance(st, ast.AnnAssign):
                targets, value, annotation = [st.target], st.value, st.annotation
            for tgt in targets:
                if not (
                    isinstance(tgt, ast.Attribute)
                    and isinstance(tgt.value, ast.Name)
                    and tgt.value.id == self_name
                ):
                    continue
                ann = annotation
                if ann is None and isinstance(value, ast.Name):
                    ann = param_types.get(value.id)
                # only constructor-like values resolve outside the method scope
                field_value = value if isinstance(value, ast.Call) else None
                cls.members.setdefault(
                    tgt.attr,
                    self._field(cls, tgt, name=tgt.attr, value=field_value, annotation=ann),
                )


# ---------------------------------------------------------------------------
# program view
# ---------------------------------------------------------------------------


class Program:
    """Read-only view over the modules found under the search roots."""

    def __init__(
        self,
        sources: Dict[str, Path],
        target: str,
        scope_patterns: Sequence[str],
        own_tests: Sequence[Path] = (),
    ):
        self.sources = dict(sources)
        self.target = target
        self.scope_patterns = list(scope_patterns)
        self.own_tests = list(own_tests)
        self.scope: List[str] = [n for n in sorted(self.sources) if matches_scope(n, self.scope_patterns)]
        self.errors: List[FrontEndError] = []
        self._modules: Dict[str, Module] = {}
        self._names: Set[str] = set()
        for name in self.sources:
            parts = name.split(".")
            for i in range(1, len(parts) + 1):
                self._names.add(".".join(parts[:i]))
        self._binder = None

    def is_module(self, name: str) -> bool:
        return name in self._names

    def module(self, name: str) -> Optional[Module]:
        if name in self._modules:
            return self._modules[name]
        if name not in self.sources:
            return None
        mod = self._load(name)
        self._modules[name] = mod
        return mod

    @property
    def binder(self):
        if self._binder is None:
            from .binder import Binder

            self._binder = Binder(self)
        return self._binder

    def _load(self, name: str) -> Module:
        path = self.sources[name]
        is_package = path.name == "__init__.py"
        mod = Module(name=name, is_package=is_package)
        primary = self._parse_file(path, name, is_package, is_test=False)
        mod.files.append(primary)
        if primary.tree is not None:
            mod.all_names = _parse_all(primary.tree)
        if name == self.target:
            for test_path in self.own_tests:
                mod.files.append(self._parse_file(test_path, name, is_package, is_test=True))
        for f in mod.files:
            if f.tree is not None:
                DeclCollector(mod, f).collect(f.tree)
        return mod

    def _parse_file(self, path: Path, name: str, is_package: bool, is_test: bool) -> SourceFile:
        tree = self._parse(path)
        sf = SourceFile(path=path, module=name, tree=tree, is_test=is_test)
        if tree is not None:
            try:
                sf.imports, sf.by_node = _import_bindings(tree, name, is_package, self.is_module)
            except RecursionError:
                self.tolerate(FrontEndError("expression nested too deeply, file skipped", path))
                sf.tree = None
        return sf

    def _parse(self, path: Path) -> Optional[ast.Module]:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self.tolerate(FrontEndError(f"unable to read source: {e}", path))
            return None
        try:
            return ast.parse(source, filename=str(path))
        except (SyntaxError, ValueError, RecursionError) as e:
            line = getattr(e, "lineno", None)
            self.tolerate(FrontEndError(str(getattr(e, "msg", e)), path, line))
            # best effort: keep everything before the failing line
            if line and line > 1:
                partial = "\n".join(source.splitlines()[: line - 1])
                try:
                    return ast.parse(partial, filename=str(path))
                except (SyntaxError, ValueError):
                    pass
            return ast.Module(body=[], type_ignores=[])

    def tolerate(self, err: FrontEndError) -> None:
        """Record a front-end problem and carry on."""
        self.errors.append(err)
        logger.warning("%s", err)


def load_program(
    target: str,
    scope: Sequence[str],
    include_own_tests: bool = True,
    paths: Optional[List[str]] = None,
    include: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
    count_test_usage: bool = False,
) -> Program:
    """Index the sources under ``paths`` and return the Program view.

    Test files are left out of the index unless ``count_test_usage`` is set;
    the target's own test files are attached to the target module when
    ``include_own_tests`` is set, and never count as scope.
    """
    paths = list(paths or DEFAULT_PATHS)
    include = list(include or DEFAULT_INCLUDE)
    exclude = list(DEFAULT_EXCLUDE if exclude is None else exclude)

    files = _collect_py_files(paths, include, exclude)
    if not files:
        raise FrontEndError(f"no Python sources found under {', '.join(paths)}")

    sources: Dict[str, Path] = {}
    own_tests: List[Path] = []
    seen: Set[Path] = set()
    for f, root in files:
        key = f.resolve()
        if key in seen:
            continue
        seen.add(key)
        name = _path_to_module_fqn(f, root)
        if not name:
            continue
        rel = f.relative_to(root)
        if is_test_file(rel) and name != target:
            if _owns_test(target, rel):
                if include_own_tests:
                    own_tests.append(f)
                continue
            if not count_test_usage:
                continue
        sources.setdefault(name, f)

    logger.debug("indexed %d modules (%d own test files)", len(sources), len(own_tests))
    return Program(sources, target, scope, own_tests)
