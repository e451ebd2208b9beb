from __future__ import annotations

from typing import Tuple

from graphviz import Digraph
from graphviz.backend import ExecutableNotFound

from .analysis import UnusedSearchResult, describe


def _color_for_usage(used: bool) -> str:
    return "#4CAF50" if used else "#F44336"  # green / red


def _get_short_name(module_name: str) -> str:
    """Get a shortened display name for a module - only last part."""
    if not module_name:
        return "root"
    return module_name.split(".")[-1]


def render_usage_graph(
    result: UnusedSearchResult,
    output_base: str,
    fmt: str = "svg",
) -> Tuple[str, str]:
    """
    Render the target's declarations (green used, red unused) and, for each
    used one, an edge from the first module seen referencing it.
    """
    dot = Digraph(
        "deadexport",
        graph_attr={
            "rankdir": "LR",
            "splines": "spline",
            "label": f"Exported declarations of {result.target}",
            "labelloc": "t",
        },
        node_attr={"shape": "box", "style": "rounded,filled", "fontname": "Helvetica"},
        edge_attr={"arrowhead": "vee"},
    )

    unused = set(result.unused)
    with dot.subgraph(name="cluster_target") as target:
        target.attr(label=result.target, style="rounded", color="#9E9E9E")
        for decl in result.targets:
            label = f"{describe(decl)}\n:{decl.position.line}"
            target.node(decl.uid, label=label, fillcolor=_color_for_usage(decl not in unused))

    users = set()
    for decl, ref in sorted(result.found.items(), key=lambda kv: kv[0].position):
        if ref is None:
            continue
        if ref.module not in users:
            users.add(ref.module)
            dot.node(
                ref.module,
                label=_get_short_name(ref.module),
                tooltip=ref.module,
                fillcolor="#E3F2FD",
            )
        dot.edge(ref.module, decl.uid, color="black", style="solid", tooltip=str(ref.position))

    dot_path = f"{output_base}.dot"
    svg_path = f"{output_base}.{fmt}"
    dot.save(dot_path)

    try:
        dot.render(output_base, format=fmt, cleanup=True)
    except ExecutableNotFound:
        # Only DOT written; caller should inform user
        svg_path = ""
    return dot_path, svg_path
