"""
Name binding for the front end.

Resolves the ``ast.Name`` and ``ast.Attribute`` nodes of a source file to the
declaration or module they denote, and infers the static type of simple
value expressions. Best-effort: anything dynamic stays unresolved.
"""
from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from .loader import DeclCollector, decorator_names, target_names, toplevel_statements
from .node_types import (
    AliasKind,
    Binding,
    DeclKind,
    Declaration,
    ImportBinding,
    IndirectType,
    ModuleRef,
    NamedType,
    SourceFile,
    SourcePosition,
    TypeRef,
)

logger = logging.getLogger(__name__)

# typing constructs treated as one level of indirection around a type
INDIRECTIONS = frozenset(
    {
        "Optional",
        "Type",
        "type",
        "ClassVar",
        "Final",
        "Annotated",
        "Required",
        "NotRequired",
        "ReadOnly",
    }
)

_MAX_HOPS = 10
_CALLABLE_KINDS = (DeclKind.FUNCTION, DeclKind.METHOD)
_VALUE_KINDS = (DeclKind.CONSTANT, DeclKind.VARIABLE, DeclKind.FIELD, DeclKind.PARAMETER)

Lookup = Callable[[str], Optional[Binding]]


@dataclass(frozen=True)
class _Pending:
    """``from module import member``, resolved on first lookup."""

    module: str
    member: str


def _tail_name(expr: Optional[ast.AST]) -> str:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    return ""


def _is_none(expr: ast.AST) -> bool:
    if isinstance(expr, ast.Constant):
        return expr.value is None
    return isinstance(expr, ast.Name) and expr.id == "None"


def _is_super_call(expr: ast.AST) -> bool:
    return isinstance(expr, ast.Call) and isinstance(expr.func, ast.Name) and expr.func.id == "super"


def parse_annotation(text: str) -> Optional[ast.expr]:
    try:
        return ast.parse(text.strip(), mode="eval").body
    except SyntaxError:
        return None


def _all_args(args: ast.arguments) -> List[ast.arg]:
    out = list(args.posonlyargs) + list(args.args)
    if args.vararg is not None:
        out.append(args.vararg)
    out.extend(args.kwonlyargs)
    if args.kwarg is not None:
        out.append(args.kwarg)
    return out


class Namespace:
    """Module-level names of one source file, in statement order."""

    def __init__(self, binder: "Binder", file: SourceFile):
        self.binder = binder
        self.names: Dict[str, Union[Binding, _Pending]] = {}
        self.wildcards: List[str] = []
        module = binder.program.module(file.module)
        if file.tree is not None and module is not None:
            self._collect(file, module)

    def _collect(self, file: SourceFile, module) -> None:
        for st in toplevel_statements(file.tree.body):
            if isinstance(st, (ast.Import, ast.ImportFrom)):
                for b in file.bindings_at(st):
                    self._bind_import(b)
            elif isinstance(st, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                self._bind_own(module, st.name)
            elif isinstance(st, ast.Assign):
                for target in st.targets:
                    for name_node in target_names(target):
                        self._bind_own(module, name_node.id)
            elif isinstance(st, ast.AnnAssign) and isinstance(st.target, ast.Name):
                self._bind_own(module, st.target.id)
            elif hasattr(ast, "TypeAlias") and isinstance(st, ast.TypeAlias):
                self._bind_own(module, st.name.id)

    def _bind_own(self, module, name: str) -> None:
        decl = module.lookup(name)
        if decl is not None:
            self.names[name] = decl

    def _bind_import(self, b: ImportBinding) -> None:
        if b.kind is AliasKind.WILDCARD:
            self.wildcards.append(b.module)
        elif b.kind is AliasKind.MEMBER:
            self.names[b.alias] = _Pending(b.module, b.member)
        elif b.alias:
            self.names[b.alias] = ModuleRef(b.bound)

    def lookup(self, name: str, hops: int = 0) -> Optional[Binding]:
        b = self.names.get(name)
        if isinstance(b, _Pending):
            return self.binder.module_member(b.module, b.member, hops + 1)
        if b is not None:
            return b
        for mod in reversed(self.wildcards):
            found = self.binder.exported_member(mod, name, hops + 1)
            if found is not None:
                return found
        return None


@dataclass
class FileBindings:
    """What the nodes of one source file denote."""

    uses: Dict[ast.AST, Declaration] = field(default_factory=dict)
    modules: Dict[ast.AST, str] = field(default_factory=dict)
    # string annotation constant -> parsed expression
    annotations: Dict[ast.AST, ast.expr] = field(default_factory=dict)

    def object_of(self, node: ast.AST) -> Optional[Declaration]:
        return self.uses.get(node)

    def module_of(self, node: ast.AST) -> Optional[str]:
        return self.modules.get(node)


class Binder:
    """Resolves names across the modules of a Program."""

    def __init__(self, program):
        self.program = program
        self._namespaces: Dict[SourceFile, Namespace] = {}
        self._files: Dict[SourceFile, FileBindings] = {}
        self._bases: Dict[Declaration, List[Declaration]] = {}

    def namespace(self, file: SourceFile) -> Namespace:
        ns = self._namespaces.get(file)
        if ns is None:
            ns = Namespace(self, file)
            self._namespaces[file] = ns
        return ns

    def bind_file(self, file: SourceFile) -> FileBindings:
        info = self._files.get(file)
        if info is None:
            info = _FileBinder(self, file).run()
            self._files[file] = info
        return info

    # -- module members -----------------------------------------------------

    def module_member(self, module: str, name: str, hops: int = 0) -> Optional[Binding]:
        """What ``module.name`` denotes, following re-exports."""
        if hops > _MAX_HOPS:
            logger.debug("re-export chain too long resolving %s.%s", module, name)
            return None
        sub = f"{module}.{name}" if module else name
        if self.program.is_module(sub):
            return ModuleRef(sub)
        mod = self.program.module(module)
        if mod is None:
            return None
        decl = mod.lookup(name)
        if decl is not None:
            return decl
        if not mod.files:
            return None
        return self.namespace(mod.files[0]).lookup(name, hops)

    def exported_member(self, module: str, name: str, hops: int = 0) -> Optional[Binding]:
        """What ``from module import *`` binds to ``name``, if anything."""
        mod = self.program.module(module)
        if mod is None or not mod.exports(name):
            return None
        return self.module_member(module, name, hops)

    # -- classes ------------------------------------------------------------

    def class_bases(self, cls: Declaration) -> List[Declaration]:
        cached = self._bases.get(cls)
        if cached is not None:
            return cached
        self._bases[cls] = []
        out: List[Declaration] = []
        if cls.file is not None:
            lookup = self.namespace(cls.file).lookup
            for expr in cls.bases:
                if isinstance(expr, ast.Subscript):
                    expr = expr.value
                b = self.resolve(expr, lookup)
                if not isinstance(b, Declaration):
                    continue
                if b.kind is DeclKind.TYPE:
                    out.append(b)
                else:
                    t = self.type_of(b)
                    if isinstance(t, NamedType):
                        out.append(t.decl)
        self._bases[cls] = out
        return out

    def class_member(self, cls: Declaration, name: str, inherited_only: bool = False) -> Optional[Declaration]:
        """Look ``name`` up along the class hierarchy, depth-first."""
        seen = set()

        def find(c: Declaration, skip: bool) -> Optional[Declaration]:
            if c in seen:
                return None
            seen.add(c)
            if not skip and name in c.members:
                return c.members[name]
            for base in self.class_bases(c):
                hit = find(base, False)
                if hit is not None:
                    return hit
            return None

        return find(cls, inherited_only)

    def member_of_type(self, t: Optional[TypeRef], name: str) -> Optional[Declaration]:
        while isinstance(t, IndirectType):
            t = t.elem
        if isinstance(t, NamedType):
            return self.class_member(t.decl, name)
        return None

    # -- types --------------------------------------------------------------

    def type_of(self, decl: Declaration) -> Optional[TypeRef]:
        if decl.typed:
            return decl.type
        decl.typed = True
        if decl.kind is DeclKind.TYPE:
            decl.type = NamedType(decl)
        elif decl.kind in _CALLABLE_KINDS:
            decl.type = None
        elif decl.file is not None:
            lookup = self.namespace(decl.file).lookup
            if decl.annotation is not None:
                decl.type = self.annotation_type(decl.annotation, lookup)
            if decl.type is None and decl.value is not None:
                decl.type = self.value_type(decl.value, lookup)
        return decl.type

    def return_type(self, decl: Declaration) -> Optional[TypeRef]:
        if decl.return_typed:
            return decl.return_type
        decl.return_typed = True
        if decl.returns is not None and decl.file is not None:
            decl.return_type = self.annotation_type(decl.returns, self.namespace(decl.file).lookup)
        return decl.return_type

    def resolve(self, expr: ast.AST, lookup: Lookup, current_class: Optional[Declaration] = None) -> Optional[Binding]:
        if isinstance(expr, ast.Name):
            return lookup(expr.id)
        if isinstance(expr, ast.Attribute):
            value = expr.value
            if current_class is not None and _is_super_call(value):
                return self.class_member(current_class, expr.attr, inherited_only=True)
            if isinstance(value, (ast.Name, ast.Attribute)):
                owner = self.resolve(value, lookup, current_class)
                if isinstance(owner, ModuleRef):
                    return self.module_member(owner.name, expr.attr)
            return self.member_of_type(self.value_type(value, lookup, current_class), expr.attr)
        return None

    def value_type(self, expr: ast.AST, lookup: Lookup, current_class: Optional[Declaration] = None) -> Optional[TypeRef]:
        """Static type of a value expression, when it is simple enough to know."""
        if isinstance(expr, (ast.Name, ast.Attribute)):
            b = self.resolve(expr, lookup, current_class)
            if not isinstance(b, Declaration):
                return None
            if b.kind is DeclKind.TYPE:
                return NamedType(b)
            if b.kind in _CALLABLE_KINDS:
                return self.return_type(b) if b.is_property else None
            return self.type_of(b)
        if isinstance(expr, ast.Call):
            func = expr.func
            if not isinstance(func, (ast.Name, ast.Attribute)):
                return None
            b = self.resolve(func, lookup, current_class)
            if not isinstance(b, Declaration):
                return None
            if b.kind is DeclKind.TYPE:
                return NamedType(b)
            if b.kind in _CALLABLE_KINDS:
                return self.return_type(b)
            if b.kind in _VALUE_KINDS and isinstance(b.value, (ast.Name, ast.Attribute)):
                # alias of a class: Alias = SomeClass
                return self.type_of(b)
            return None
        if isinstance(expr, ast.Await):
            return self.value_type(expr.value, lookup, current_class)
        if isinstance(expr, ast.NamedExpr):
            return self.value_type(expr.value, lookup, current_class)
        return None

    def annotation_type(self, expr: Optional[ast.AST], lookup: Lookup, depth: int = 0) -> Optional[TypeRef]:
        """Type denoted by an annotation expression."""
        if expr is None or depth > _MAX_HOPS:
            return None
        if isinstance(expr, ast.Constant):
            if isinstance(expr.value, str):
                return self.annotation_type(parse_annotation(expr.value), lookup, depth + 1)
            return None
        if isinstance(expr, (ast.Name, ast.Attribute)):
            b = self.resolve(expr, lookup)
            if not isinstance(b, Declaration):
                return None
            if b.kind is DeclKind.TYPE:
                return NamedType(b)
            if b.kind in (DeclKind.CONSTANT, DeclKind.VARIABLE) and b.value is not None and b.file is not None:
                # module-level alias such as MaybeT = Optional[T]
                if isinstance(b.value, (ast.Name, ast.Attribute)):
                    return self.type_of(b)
                return self.annotation_type(b.value, self.namespace(b.file).lookup, depth + 1)
            return None
        if isinstance(expr, ast.Subscript):
            wrapper = _tail_name(expr.value)
            args = list(expr.slice.elts) if isinstance(expr.slice, ast.Tuple) else [expr.slice]
            if wrapper in INDIRECTIONS and args:
                inner = self.annotation_type(args[0], lookup, depth + 1)
                return IndirectType(inner, wrapper) if inner is not None else None
            if wrapper == "Union":
                rest = [a for a in args if not _is_none(a)]
                if len(rest) == 1 and len(args) > 1:
                    inner = self.annotation_type(rest[0], lookup, depth + 1)
                    return IndirectType(inner, "Optional") if inner is not None else None
            return None
        if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
            if _is_none(expr.right):
                inner = self.annotation_type(expr.left, lookup, depth + 1)
            elif _is_none(expr.left):
                inner = self.annotation_type(expr.right, lookup, depth + 1)
            else:
                return None
            return IndirectType(inner, "Optional") if inner is not None else None
        return None


class _FileBinder(ast.NodeVisitor):
    """Walks one file and records what each name and attribute denotes."""

    def __init__(self, binder: Binder, file: SourceFile):
        self.binder = binder
        self.file = file
        self.module = binder.program.module(file.module)
        self.namespace = binder.namespace(file)
        self.scopes: List[Tuple[str, Dict[str, Binding]]] = []
        self.class_stack: List[Declaration] = []
        self.info = FileBindings()

    def run(self) -> FileBindings:
        if self.file.tree is not None:
            self.visit(self.file.tree)
        return self.info

    # -- scopes -------------------------------------------------------------

    def lookup(self, name: str) -> Optional[Binding]:
        for depth, (kind, names) in enumerate(reversed(self.scopes)):
            # class bodies are not visible from nested functions
            if kind == "class" and depth > 0:
                continue
            if name in names:
                return names[name]
        return self.namespace.lookup(name)

    @property
    def current_class(self) -> Optional[Declaration]:
        return self.class_stack[-1] if self.class_stack else None

    def _record(self, node: ast.AST, binding: Optional[Binding]) -> None:
        if isinstance(binding, Declaration):
            self.info.uses[node] = binding
        elif isinstance(binding, ModuleRef):
            self.info.modules[node] = binding.name

    def _bind(self, name: str, binding: Optional[Binding]) -> None:
        # module-level names come from the namespace
        if self.scopes and binding is not None:
            self.scopes[-1][1][name] = binding

    def _local(self, node: ast.AST, name: str, kind: DeclKind = DeclKind.VARIABLE,
               type: Optional[TypeRef] = None, value: Optional[ast.expr] = None) -> Declaration:
        pos = SourcePosition(str(self.file.path), getattr(node, "lineno", 0), getattr(node, "col_offset", 0) + 1)
        return Declaration(
            uid=f"{self.file.module}:{pos.line}:{pos.column}:{name}",
            name=name,
            kind=kind,
            module=self.file.module,
            position=pos,
            file=self.file,
            node=node,
            value=value,
            type=type,
            typed=True,
        )

    def _assign(self, target: ast.AST, value: Optional[ast.expr], annotation: Optional[ast.expr] = None) -> None:
        if not self.scopes:
            return
        kind, names = self.scopes[-1]
        if isinstance(target, ast.Name):
            if kind == "class":
                member = self.current_class.members.get(target.id) if self.current_class else None
                if member is not None:
                    names[target.id] = member
                return
            t = None
            if annotation is not None:
                t = self.binder.annotation_type(annotation, self.lookup)
            if t is None and value is not None:
                t = self.binder.value_type(value, self.lookup, self.current_class)
            names[target.id] = self._local(target, target.id, type=t, value=value)
        elif isinstance(target, (ast.Tuple, ast.List)):
            for elt in target.elts:
                self._assign(elt, None)
        elif isinstance(target, ast.Starred):
            self._assign(target.value, None)

    def _annotation(self, expr: ast.expr) -> None:
        self.visit(expr)
        literal = set()
        for sub in ast.walk(expr):
            if isinstance(sub, ast.Subscript) and _tail_name(sub.value) == "Literal":
                literal.update(id(n) for n in ast.walk(sub.slice))
        for sub in ast.walk(expr):
            if not (isinstance(sub, ast.Constant) and isinstance(sub.value, str)) or id(sub) in literal:
                continue
            parsed = parse_annotation(sub.value)
            if parsed is None:
                continue
            for n in ast.walk(parsed):
                if hasattr(n, "lineno"):
                    n.lineno, n.col_offset = sub.lineno, sub.col_offset
            self.info.annotations[sub] = parsed
            self.visit(parsed)

    # -- handlers -----------------------------------------------------------

    def visit_Name(self, node: ast.Name) -> None:
        if not isinstance(node.ctx, ast.Store):
            self._record(node, self.lookup(node.id))

    def visit_Attribute(self, node: ast.Attribute) -> None:
        self.generic_visit(node)
        self._record(node, self.binder.resolve(node, self.lookup, self.current_class))

    def visit_Import(self, node: ast.AST) -> None:
        if not self.scopes:
            return
        for b in self.file.bindings_at(node):
            if b.kind is AliasKind.WILDCARD:
                continue
            if b.kind is AliasKind.MEMBER:
                self._bind(b.alias, self.binder.module_member(b.module, b.member))
            else:
                self._bind(b.alias, ModuleRef(b.bound))

    visit_ImportFrom = visit_Import

    def _visit_defaults(self, args: ast.arguments) -> None:
        for d in list(args.defaults) + [d for d in args.kw_defaults if d is not None]:
            self.visit(d)

    def visit_FunctionDef(self, node: ast.AST) -> None:
        for dec in node.decorator_list:
            self.visit(dec)
        self._visit_defaults(node.args)
        params = _all_args(node.args)
        for a in params:
            if a.annotation is not None:
                self._annotation(a.annotation)
        if node.returns is not None:
            self._annotation(node.returns)

        cls = self.current_class if self.scopes and self.scopes[-1][0] == "class" else None
        positional = list(node.args.posonlyargs) + list(node.args.args)
        receiver = positional[0] if positional and cls is not None else None
        if "staticmethod" in decorator_names(node):
            receiver = None
        names: Dict[str, Binding] = {}
        for a in params:
            if a is receiver:
                t = NamedType(cls)
            elif a.annotation is not None:
                t = self.binder.annotation_type(a.annotation, self.lookup)
            else:
                t = None
            names[a.arg] = self._local(a, a.arg, DeclKind.PARAMETER, type=t)

        self.scopes.append(("function", names))
        for st in node.body:
            self.visit(st)
        self.scopes.pop()

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._visit_defaults(node.args)
        names = {a.arg: self._local(a, a.arg, DeclKind.PARAMETER) for a in _all_args(node.args)}
        self.scopes.append(("function", names))
        self.visit(node.body)
        self.scopes.pop()

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for dec in node.decorator_list:
            self.visit(dec)
        for base in node.bases:
            self.visit(base)
        for kw in node.keywords:
            self.visit(kw.value)
        cls = self._class_decl(node)
        self.class_stack.append(cls)
        self.scopes.append(("class", {}))
        for st in node.body:
            self.visit(st)
        self.scopes.pop()
        self.class_stack.pop()
        self._bind(node.name, cls)

    def _class_decl(self, node: ast.ClassDef) -> Declaration:
        if not self.scopes and self.module is not None:
            decl = self.module.lookup(node.name)
            if decl is not None and decl.node is node:
                return decl
        if self.scopes and self.scopes[-1][0] == "class" and self.current_class is not None:
            decl = self.current_class.members.get(node.name)
            if decl is not None and decl.node is node:
                return decl
        # a class local to a function body
        uid = f"{self.file.module}:{node.lineno}:{node.col_offset + 1}:{node.name}"
        return DeclCollector(self.module, self.file).declare_class(node, uid=uid)

    def visit_Assign(self, node: ast.Assign) -> None:
        self.visit(node.value)
        for target in node.targets:
            self.visit(target)
            self._assign(target, node.value)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        self._annotation(node.annotation)
        if node.value is not None:
            self.visit(node.value)
        self.visit(node.target)
        self._assign(node.target, node.value, annotation=node.annotation)

    def visit_For(self, node: ast.AST) -> None:
        self.visit(node.iter)
        self.visit(node.target)
        self._assign(node.target, None)
        for st in node.body + node.orelse:
            self.visit(st)

    visit_AsyncFor = visit_For

    def visit_With(self, node: ast.AST) -> None:
        for item in node.items:
            self.visit(item.context_expr)
            if item.optional_vars is not None:
                self.visit(item.optional_vars)
                self._assign(item.optional_vars, None)
        for st in node.body:
            self.visit(st)

    visit_AsyncWith = visit_With

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.type is not None:
            self.visit(node.type)
        if node.name and self.scopes and self.scopes[-1][0] == "function":
            t = self.binder.annotation_type(node.type, self.lookup) if node.type is not None else None
            self._bind(node.name, self._local(node, node.name, type=t))
        for st in node.body:
            self.visit(st)

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.visit(node.value)
        self._assign(node.target, node.value)

    def _comprehension(self, node: ast.AST, *results: ast.AST) -> None:
        self.scopes.append(("function", {}))
        for gen in node.generators:
            self.visit(gen.iter)
            self.visit(gen.target)
            self._assign(gen.target, None)
            for cond in gen.ifs:
                self.visit(cond)
        for r in results:
            self.visit(r)
        self.scopes.pop()

    def visit_ListComp(self, node: ast.AST) -> None:
        self._comprehension(node, node.elt)

    visit_SetComp = visit_ListComp
    visit_GeneratorExp = visit_ListComp

    def visit_DictComp(self, node: ast.DictComp) -> None:
        self._comprehension(node, node.key, node.value)
