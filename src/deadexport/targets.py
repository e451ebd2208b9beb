"""
Target selection: which declarations of a module are candidates for the
unused check.
"""
from __future__ import annotations

import fnmatch
from typing import Iterable, List, Optional

from .node_types import DeclKind, Declaration, Module

# methods satisfying the sorting protocol are implicitly used by the caller
SORT_PROTOCOL_METHODS = frozenset({"len", "less", "swap"})

TARGET_KINDS = (
    DeclKind.CONSTANT,
    DeclKind.VARIABLE,
    DeclKind.FUNCTION,
    DeclKind.TYPE,
)


def _is_test_name(decl: Declaration) -> bool:
    if decl.kind is DeclKind.TYPE:
        return decl.name.startswith("Test")
    if decl.kind in (DeclKind.FUNCTION, DeclKind.METHOD):
        return decl.name.startswith("test_") or decl.name == "test"
    return False


def _ignored(decl: Declaration, ignore: Iterable[str]) -> bool:
    names = [decl.name, f"{decl.module}.{decl.qualname}", decl.qualname]
    return any(fnmatch.fnmatch(n, pat) for pat in ignore for n in names)


def should_check(
    decl: Declaration,
    protocol_methods: Iterable[str] = SORT_PROTOCOL_METHODS,
    ignore: Iterable[str] = (),
) -> bool:
    """Whether a single declaration is subject to the unused check."""
    if not decl.public or decl.in_test:
        return False
    if decl.kind is DeclKind.METHOD:
        if decl.name in SORT_PROTOCOL_METHODS or decl.name in set(protocol_methods):
            return False
        receiver = decl.receiver
        if receiver is None or not receiver.public:
            return False
    elif decl.kind not in TARGET_KINDS:
        return False
    if _is_test_name(decl):
        return False
    return not _ignored(decl, ignore)


def select_targets(
    module: Module,
    protocol_methods: Optional[Iterable[str]] = None,
    ignore: Iterable[str] = (),
) -> List[Declaration]:
    """Public top-level declarations and public methods of public top-level
    classes, ordered by source position."""
    # configured names only add to the sorting protocol
    protocol = SORT_PROTOCOL_METHODS | frozenset(protocol_methods or ())
    ignore = list(ignore)
    out: List[Declaration] = []
    for decl in module.declarations.values():
        if should_check(decl, protocol, ignore):
            out.append(decl)
        if decl.kind is DeclKind.TYPE and decl.is_class:
            for member in decl.members.values():
                if member.kind is DeclKind.METHOD and should_check(member, protocol, ignore):
                    out.append(member)
    out.sort(key=lambda d: d.position)
    return out
