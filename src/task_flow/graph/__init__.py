"""Graph model and composition operators.

This package provides:
- Leaf tasks and composite workflows (`nodes`)
- Simple and control-flow edges (`edges`)
- The `then` / `when` composition operators (`compose`)
"""

from task_flow.graph.compose import then, when
from task_flow.graph.edges import DEFAULT_BRANCH, ControlFlowEdge, Edge, SimpleEdge, to_edge
from task_flow.graph.nodes import Node, NodeType, Task, TaskFn, Workflow

__all__ = [
    "DEFAULT_BRANCH",
    "ControlFlowEdge",
    "Edge",
    "Node",
    "NodeType",
    "SimpleEdge",
    "Task",
    "TaskFn",
    "Workflow",
    "then",
    "to_edge",
    "when",
]
