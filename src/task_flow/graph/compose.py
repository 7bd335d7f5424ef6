"""Composition operators that build larger workflows from smaller ones.

Both operators merge the operands' node and edge tables into a new workflow and
never mutate an operand.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from task_flow.graph.edges import DEFAULT_BRANCH, ControlFlowEdge, Edge, to_edge
from task_flow.graph.nodes import Task, Workflow


def then(first: Workflow, second: Workflow) -> Workflow:
    """Sequence ``second`` after ``first``.

    ``first``'s result becomes ``second``'s sole input.
    """

    nodes = {**first.nodes, **second.nodes}
    edges: dict[str, Edge] = {
        **first.edges,
        **second.edges,
        first.end_node_id: to_edge(second.start_node_id),
    }

    return Workflow(
        id=f"{first.id} -> {second.id}",
        start=first.start_node_id,
        end=second.end_node_id,
        nodes=nodes,
        edges=edges,
    )


async def _passthrough(_state: Any, result: Any = None) -> Any:
    return result


def when(source: Workflow, branches: Mapping[object, Workflow]) -> Workflow:
    """Continue with the branch whose key matches ``source``'s result.

    Keys are compared with ``str(result) == str(key)``. The optional ``"__"`` entry
    is the default branch. Without one, an unmatched result is returned unchanged
    through a synthetic return node, which ends the run. Every branch
    reconverges on a synthetic merge node, the end node of the new workflow.
    """

    merge_node = Task.wrap(_passthrough, f"{source.id}_complete-value")
    return_node = Task.wrap(_passthrough, f"{source.id}_return")

    default_branch = branches.get(DEFAULT_BRANCH)
    keyed = [(str(key), branch) for key, branch in branches.items() if key != DEFAULT_BRANCH]
    continuations = [branch for _, branch in keyed]
    if default_branch is not None:
        # The default transition is a catch-all and must come last.
        continuations.append(default_branch)

    nodes: dict[str, Workflow] = dict(source.nodes)
    edges: dict[str, Edge] = dict(source.edges)
    for branch in continuations:
        nodes.update(branch.nodes)
        edges.update(branch.edges)
    nodes[merge_node.id] = merge_node
    nodes[return_node.id] = return_node

    edges[source.end_node_id] = ControlFlowEdge(
        branches=tuple((key, branch.start_node_id) for key, branch in keyed),
        default=default_branch.start_node_id if default_branch is not None else return_node.id,
    )
    for branch in continuations:
        edges[branch.end_node_id] = to_edge(merge_node.id)

    return Workflow(
        id=f"{source.id} ? [{', '.join(key for key, _ in keyed)}]",
        start=source.start_node_id,
        end=merge_node.id,
        nodes=nodes,
        edges=edges,
    )
