from __future__ import annotations

import pytest

from deadexport.analysis import UnusedFinder
from deadexport.config_loader import ExportConfig
from deadexport.errors import ScopeResolutionError
from deadexport.loader import load_program


def test_qualified_use_in_scope_module(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\nD = 2\n",
        "project/m.py": "import project.values\n\nx = project.values.C\n",
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == ["constant D"]


def test_aliased_import_class_and_method(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": """\
            class T:
                def foo(self):
                    pass
            """,
        "project/m.py": "import project.values as q\n\nq.T().foo()\n",
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == []


def test_fields_are_never_reported(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": """\
            class S:
                f: int = 0

                def __init__(self):
                    self.g = 1
            """,
        "project/m.py": "import project.values\n\nholder = project.values.S\n",
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == []


def test_sort_protocol_method_not_reported(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": """\
            class U:
                def len(self):
                    return 0

                def less(self, i, j):
                    return i < j
            """,
        "project/m.py": "from project import values\n\nvalues.U\n",
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == []


def test_own_test_usage_does_not_count(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "def g():\n    pass\n",
        "project/test_values.py": "from project import values\n\nvalues.g()\n",
        "project/m.py": "import project.values\n",
    })
    assert unused_descriptors(src, "project.values") == ["function g"]
    # even when other test files count as uses
    assert unused_descriptors(src, "project.values", count_test_usage=True) == ["function g"]


def test_other_test_files_count_when_enabled(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "def g():\n    pass\n",
        "tests/test_other.py": "from project import values\n\nvalues.g()\n",
    })
    assert unused_descriptors(src, "project.values") == ["function g"]
    assert unused_descriptors(src, "project.values", count_test_usage=True) == []


def test_wildcard_import_with_bare_identifier(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\nD = 2\n",
        "project/m.py": "from project.values import *\n\nprint(C)\n",
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == ["constant D"]


def test_wildcard_honours_dunder_all(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "__all__ = ['C']\nC = 1\nD = 2\n",
        "project/m.py": "from project.values import *\n\nprint(C)\n",
    })
    # D is not exported, so it is not a candidate
    assert unused_descriptors(src, "project.values", ["project.m"]) == []


def test_member_import_counts_as_use(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\nD = 2\n",
        "project/m.py": "from project.values import D as renamed\n",
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == ["constant C"]


def test_relative_import_from_sibling(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\nD = 2\n",
        "project/m.py": "from . import values\n\nvalues.C\n",
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == ["constant D"]


def test_inherited_method_through_subclass(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": """\
            class Base:
                def inherited(self):
                    return 1

                def other(self):
                    return 2
            """,
        "project/m.py": """\
            from project import values


            class Derived(values.Base):
                def run(self):
                    return self.inherited()
            """,
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == ["method Base.other"]


def test_optional_field_counts_as_type_use(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": """\
            from typing import Optional


            class T:
                def ping(self):
                    return "pong"


            def find() -> Optional[T]:
                return None
            """,
        "project/m.py": """\
            import project.values


            class Holder:
                def __init__(self):
                    self.item = project.values.find()

                def run(self):
                    return self.item.ping()
            """,
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == []


def test_string_annotation_counts(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "class T:\n    pass\n\nclass U:\n    pass\n",
        "project/m.py": """\
            import project.values


            def use(item: "project.values.T") -> None:
                pass
            """,
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == ["class U"]


def test_file_not_importing_target_is_ignored(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\n",
        "project/other.py": "C = 1\n",
        "project/m.py": "from project.other import C\nprint(C)\n",
    })
    assert unused_descriptors(src, "project.values") == ["constant C"]


def test_vendored_modules_are_skipped_by_default(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\n",
        "project/vendor/lib.py": "import project.values\n\nproject.values.C\n",
    })
    assert unused_descriptors(src, "project.values") == ["constant C"]
    assert unused_descriptors(src, "project.values", skip_vendor=False) == []


def test_missing_target_raises(make_project):
    src = make_project({"project/__init__.py": "", "project/values.py": "C = 1\n"})
    finder = UnusedFinder(ExportConfig(paths=[str(src)]))
    with pytest.raises(ScopeResolutionError):
        finder.run("project.nope", ["**"])


def test_unparsable_scope_file_is_tolerated(make_project):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\nD = 2\n",
        "project/broken.py": "import project.values\nx = project.values.C\ndef (:\n",
    })
    result = UnusedFinder(ExportConfig(paths=[str(src)])).run("project.values", ["**"])
    assert [d.name for d in result.unused] == ["D"]
    assert len(result.program.errors) == 1
    assert result.program.errors[0].line == 3


def test_search_stops_once_everything_is_found(make_project):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\n",
        "project/a.py": "import project.values\n\nproject.values.C\n",
        "project/z.py": "import project.values\ndef (:\n",
    })
    result = UnusedFinder(ExportConfig(paths=[str(src)])).run("project.values", ["**"])
    assert result.unused == []
    # project.z was never parsed
    assert result.program.errors == []


def test_repeated_search_is_idempotent(make_project):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\nD = 2\n\ndef f():\n    pass\n",
        "project/m.py": "import project.values\n\nproject.values.C\n",
    })
    finder = UnusedFinder(ExportConfig(paths=[str(src)]))
    program = load_program("project.values", ["**"], paths=[str(src)])
    first = finder.search(program, "project.values").entries()
    second = finder.search(program, "project.values").entries()
    assert first == second
    assert [desc for _, desc in first] == ["constant D", "function f"]


@pytest.mark.parametrize("terms", [600, 1500])
def test_deeply_nested_scope_file_is_skipped(make_project, terms):
    deep = " + ".join(["1"] * terms)
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "C = 1\nD = 2\n",
        "project/deep.py": f"import project.values\n\ny = {deep}\n",
        "project/m.py": "import project.values\n\nx = project.values.C\n",
    })
    result = UnusedFinder(ExportConfig(paths=[str(src)])).run("project.values", ["**"])
    assert [d.name for d in result.unused] == ["D"]
    assert len(result.program.errors) == 1
    assert "deep.py" in str(result.program.errors[0])


def test_same_named_test_elsewhere_is_not_own(make_project, unused_descriptors):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": "def g():\n    pass\n",
        "other/__init__.py": "",
        "other/test_values.py": "from project import values\n\nvalues.g()\n",
    })
    assert unused_descriptors(src, "project.values") == ["function g"]
    assert unused_descriptors(src, "project.values", count_test_usage=True) == []


@pytest.mark.parametrize(
    "header",
    [
        "_BASE = ['C']\n__all__ = _BASE + ['D']\n",
        "__all__ = ['C'] + ['D']\n",
        "__all__ = []\n__all__.extend(['C', 'D'])\n",
    ],
)
def test_computed_dunder_all_keeps_targets(make_project, unused_descriptors, header):
    src = make_project({
        "project/__init__.py": "",
        "project/values.py": header + "C = 1\nD = 2\n",
        "project/m.py": "import project.values\n\nx = project.values.C\n",
    })
    assert unused_descriptors(src, "project.values", ["project.m"]) == ["constant D"]
