"""
Core data types shared by the front end, the binder and the analysis.
"""
from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union


class DeclKind(Enum):
    CONSTANT = "constant"
    VARIABLE = "variable"
    FUNCTION = "function"
    TYPE = "type"
    METHOD = "method"
    # never targets; produced for binding only
    FIELD = "field"
    PARAMETER = "parameter"


class AliasKind(Enum):
    EXPLICIT = "explicit"  # import a.b as x / from a import b as x
    DEFAULT = "default"  # import a.b / from a import b
    WILDCARD = "wildcard"  # from a import *
    MEMBER = "member"  # from a import name [as x]


@dataclass(frozen=True, order=True)
class SourcePosition:
    file: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(eq=False)
class Declaration:
    """A named entity introduced by a module, a class body or a function scope.

    Identity is the ``uid``: two Declaration objects with the same uid are the
    same declaration for the lifetime of one run.
    """

    uid: str
    name: str
    kind: DeclKind
    module: str
    position: SourcePosition
    public: bool = False
    receiver: Optional["Declaration"] = None  # owning class of methods/fields
    in_test: bool = False
    file: Optional["SourceFile"] = field(default=None, repr=False)
    node: Optional[ast.AST] = field(default=None, repr=False)
    annotation: Optional[ast.expr] = field(default=None, repr=False)
    value: Optional[ast.expr] = field(default=None, repr=False)
    returns: Optional[ast.expr] = field(default=None, repr=False)
    bases: List[ast.expr] = field(default_factory=list, repr=False)
    decorators: List[str] = field(default_factory=list, repr=False)
    members: Dict[str, "Declaration"] = field(default_factory=dict, repr=False)
    # lazily resolved by the binder
    type: Optional["TypeRef"] = field(default=None, repr=False)
    typed: bool = field(default=False, repr=False)
    return_type: Optional["TypeRef"] = field(default=None, repr=False)
    return_typed: bool = field(default=False, repr=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Declaration):
            return NotImplemented
        return self.uid == other.uid

    def __hash__(self) -> int:
        return hash(self.uid)

    @property
    def qualname(self) -> str:
        if self.receiver is not None:
            return f"{self.receiver.name}.{self.name}"
        return self.name

    @property
    def is_class(self) -> bool:
        return isinstance(self.node, ast.ClassDef)

    @property
    def is_property(self) -> bool:
        return any(d in {"property", "cached_property"} for d in self.decorators)


@dataclass(frozen=True)
class ModuleRef:
    """A name bound to a module namespace."""

    name: str


@dataclass(frozen=True)
class NamedType:
    """The type introduced by a type declaration."""

    decl: Declaration


@dataclass(frozen=True)
class IndirectType:
    """One level of indirection around another type, e.g. ``Optional[T]``."""

    elem: "TypeRef"
    wrapper: str


TypeRef = Union[NamedType, IndirectType]
Binding = Union[Declaration, ModuleRef]


@dataclass(frozen=True)
class ImportBinding:
    module: str  # absolute dotted path of the imported module
    kind: AliasKind
    alias: Optional[str] = None  # local name; None for wildcard imports
    member: Optional[str] = None  # imported name of a MEMBER binding
    bound: Optional[str] = None  # module path the alias denotes
    line: int = 0
    toplevel: bool = True

    def refers_to(self, module: str) -> bool:
        """Whether executing this import imports ``module``."""
        return self.module == module or self.module.startswith(module + ".")


@dataclass(eq=False)
class SourceFile:
    path: Path
    module: str
    tree: Optional[ast.Module] = field(default=None, repr=False)
    imports: List[ImportBinding] = field(default_factory=list, repr=False)
    is_test: bool = False
    by_node: Dict[ast.AST, List[ImportBinding]] = field(default_factory=dict, repr=False)

    def imports_module(self, module: str) -> bool:
        return any(b.refers_to(module) for b in self.imports)

    def bindings_at(self, node: ast.AST) -> List[ImportBinding]:
        return self.by_node.get(node, [])


@dataclass(eq=False)
class Module:
    name: str
    files: List[SourceFile] = field(default_factory=list)
    declarations: Dict[str, Declaration] = field(default_factory=dict)
    is_package: bool = False
    all_names: Optional[List[str]] = None  # literal __all__, if any

    @property
    def path(self) -> Optional[Path]:
        return self.files[0].path if self.files else None

    def lookup(self, name: str) -> Optional[Declaration]:
        return self.declarations.get(name)

    def exports(self, name: str) -> bool:
        """Whether ``from module import *`` binds ``name``."""
        if self.all_names is not None:
            return name in self.all_names
        return not name.startswith("_")


@dataclass(frozen=True)
class Reference:
    """Where a target declaration was first seen referenced."""

    module: str
    position: SourcePosition
