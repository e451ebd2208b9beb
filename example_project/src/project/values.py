"""Exported declarations exercised by the sibling modules."""
from __future__ import annotations

from typing import Optional, Protocol

USED_EXPORTED_CONST = 1
UNUSED_EXPORTED_CONST = 2
ONLY_TEST_EXPORTED_CONST = 3
_UNEXPORTED_CONST = 4

used_exported_var = "used"
unused_exported_var = "unused"
only_test_exported_var = "test"
_unexported_var = "private"


class UsedExportedInterface(Protocol):
    def used_interface_method(self) -> int: ...


class UnusedExportedInterface(Protocol):
    def unused_interface_method(self) -> int: ...


class UsedExportedStruct:
    def __init__(self, count: int = 0):
        self.count = count

    def used_exported_method(self) -> int:
        return self.count

    def unused_exported_method(self) -> int:
        return -self.count

    def len(self) -> int:
        return self.count


class UnusedExportedStruct:
    pass


class OnlyTestExportedStruct:
    def only_test_method(self) -> None:
        pass


class EmbeddedBase:
    def inherited_method(self) -> str:
        return "base"


class OptionalTarget:
    def reached_through_optional(self) -> str:
        return "reached"


class _S:
    def method(self) -> None:
        pass


def used_exported_func() -> UsedExportedStruct:
    return UsedExportedStruct(_UNEXPORTED_CONST)


def maybe_optional_target() -> Optional[OptionalTarget]:
    return None


def unused_exported_func() -> None:
    pass


def only_test_exported_func() -> None:
    pass


def _unexported_func() -> _S:
    return _S()
