from __future__ import annotations

import ast

from deadexport.loader import load_program
from deadexport.node_types import IndirectType, ModuleRef, NamedType

MODELS = """\
    from __future__ import annotations

    from typing import ClassVar, Optional, Type, Union


    class Node:
        def walk(self):
            pass


    class Leaf(Node):
        pass


    MaybeNode = Optional[Node]

    plain: Node = Node()
    optional: Optional[Node] = None
    union: Union[Node, None] = None
    pep604: Node | None = None
    as_string: "Node" = None
    node_class: Type[Node] = Node
    aliased: MaybeNode = None
    made = Leaf()
    alias = Leaf


    class Holder:
        shared: ClassVar[Node]

        def __init__(self, node: Node):
            self.node = node
            self.leaf = Leaf()
    """


def _program(make_project, extra=None):
    files = {"pkg/__init__.py": "", "pkg/models.py": MODELS}
    files.update(extra or {})
    src = make_project(files)
    return load_program("pkg.models", ["**"], paths=[str(src)])


def test_annotation_types(make_project):
    program = _program(make_project)
    mod = program.module("pkg.models")
    node = mod.lookup("Node")
    type_of = program.binder.type_of

    assert type_of(mod.lookup("plain")) == NamedType(node)
    for name in ("optional", "union", "pep604", "aliased"):
        assert type_of(mod.lookup(name)) == IndirectType(NamedType(node), "Optional"), name
    assert type_of(mod.lookup("as_string")) == NamedType(node)
    assert type_of(mod.lookup("node_class")) == IndirectType(NamedType(node), "Type")
    assert type_of(mod.lookup("made")) == NamedType(mod.lookup("Leaf"))


def test_fields_typed_from_parameters_and_constructors(make_project):
    program = _program(make_project)
    mod = program.module("pkg.models")
    holder = mod.lookup("Holder")
    type_of = program.binder.type_of

    assert type_of(holder.members["node"]) == NamedType(mod.lookup("Node"))
    assert type_of(holder.members["leaf"]) == NamedType(mod.lookup("Leaf"))
    assert type_of(holder.members["shared"]) == IndirectType(NamedType(mod.lookup("Node")), "ClassVar")


def test_member_lookup_follows_bases(make_project):
    program = _program(make_project)
    mod = program.module("pkg.models")
    walk = mod.lookup("Node").members["walk"]
    assert program.binder.class_member(mod.lookup("Leaf"), "walk") is walk
    assert program.binder.class_member(mod.lookup("Leaf"), "missing") is None


def test_file_bindings(make_project):
    program = _program(make_project, {
        "pkg/user.py": """\
            import pkg.models as m
            from pkg.models import Leaf as L


            def run(holder: m.Holder):
                factory = m.alias
                leaf = factory()
                holder.node.walk()
                for item in [L()]:
                    item.walk()
                return leaf.walk
            """,
    })
    mod = program.module("pkg.models")
    user = program.module("pkg.user").files[0]
    info = program.binder.bind_file(user)
    walk = mod.lookup("Node").members["walk"]

    attrs = [n for n in ast.walk(user.tree) if isinstance(n, ast.Attribute)]
    resolved = {ast.unparse(n): info.object_of(n) for n in attrs}
    assert resolved["m.Holder"] is mod.lookup("Holder")
    assert resolved["m.alias"] is mod.lookup("alias")
    assert resolved["holder.node"] is mod.lookup("Holder").members["node"]
    assert resolved["holder.node.walk"] is walk
    assert resolved["leaf.walk"] is walk
    # loop targets are bound untyped
    assert resolved["item.walk"] is None

    names = {n.id: n for n in ast.walk(user.tree) if isinstance(n, ast.Name) and n.id == "m"}
    assert info.module_of(names["m"]) == "pkg.models"
    calls = [n for n in ast.walk(user.tree) if isinstance(n, ast.Name) and n.id == "L"]
    assert info.object_of(calls[0]) is mod.lookup("Leaf")


def test_module_member_follows_reexports(make_project):
    program = _program(make_project, {
        "pkg/api.py": "from .models import Node as PublicNode\n",
        "pkg/facade.py": "from pkg.api import *\n",
    })
    binder = program.binder
    node = program.module("pkg.models").lookup("Node")
    assert binder.module_member("pkg.api", "PublicNode") is node
    assert binder.exported_member("pkg.facade", "PublicNode") is node
    assert binder.module_member("pkg", "models") == ModuleRef("pkg.models")
