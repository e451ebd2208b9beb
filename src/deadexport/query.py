"""
Query state: the shrinking set of target declarations not yet seen used.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from .node_types import DeclKind, Declaration, IndirectType, NamedType, Reference, TypeRef

logger = logging.getLogger(__name__)


class QueryState:
    """Tracks which targets are still unfound.

    ``type_of`` maps a candidate declaration to its resolved static type; it
    is what lets a variable of type ``Optional[T]`` count as a use of ``T``.
    """

    def __init__(
        self,
        targets: Iterable[Declaration],
        type_of: Optional[Callable[[Declaration], Optional[TypeRef]]] = None,
    ):
        self._unfound: Dict[Declaration, None] = dict.fromkeys(targets)
        self._types: Dict[NamedType, Declaration] = {
            NamedType(d): d for d in self._unfound if d.kind is DeclKind.TYPE
        }
        self._type_of = type_of
        self.found: Dict[Declaration, Optional[Reference]] = {}

    def __len__(self) -> int:
        return len(self._unfound)

    def is_target(self, decl: Optional[Declaration]) -> bool:
        return decl is not None and (decl in self._unfound or decl in self.found)

    def all_found(self) -> bool:
        return not self._unfound

    def unfound(self) -> List[Declaration]:
        return sorted(self._unfound, key=lambda d: d.position)

    def discover(self, obj: Optional[Declaration], reference: Optional[Reference] = None) -> bool:
        """Remove the target ``obj`` denotes, by identity or by type.

        Returns True when a target was removed by this call.
        """
        if obj is None or not self._unfound:
            return False
        if obj in self._unfound:
            return self._remove(obj, reference)
        if not self._types or self._type_of is None:
            return False
        t = self._type_of(obj)
        while t is not None:
            decl = self._types.get(t) if isinstance(t, NamedType) else None
            if decl is not None and decl in self._unfound:
                return self._remove(decl, reference)
            t = t.elem if isinstance(t, IndirectType) else None
        return False

    def _remove(self, decl: Declaration, reference: Optional[Reference]) -> bool:
        del self._unfound[decl]
        self.found[decl] = reference
        logger.debug("found %s.%s%s", decl.module, decl.qualname, f" at {reference.position}" if reference else "")
        return True
