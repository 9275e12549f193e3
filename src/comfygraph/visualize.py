from __future__ import annotations

from .workflow import Workflow


def ascii_plan(workflow: Workflow) -> str:
    g = workflow.to_digraph()
    lines = ["# ASCII Plan (topological order)"]
    for i, nid in enumerate(workflow.topological_order(), 1):
        node = g.nodes[nid]
        meta = workflow.get_node(nid).meta
        label = f'  "{meta.title}"' if meta is not None and meta.title else ""
        lines.append(f"{i:02d}. {nid} [{node['class_type']}]{label}")
        for _, succ, data in g.out_edges(nid, data=True):
            lines.append(f"    └─▶ {succ}  ({data['port']}->{data['input']})")
    return "\n".join(lines)
