"""task-flow.

Describe multi-step, branching asynchronous computations as a graph of tasks,
compile the graph into a flat state machine and run it:
- `Task` / `Workflow` with the `then` and `when` composition operators
- a deterministic compiler to a flat transition table
- an execution engine with input injection, resumption and a timeout
"""

__version__ = "0.1.0"

from task_flow.config import FlowSettings
from task_flow.errors import TaskFailure, UnknownNodeError, WorkflowError, WorkflowTimeout
from task_flow.graph import ControlFlowEdge, SimpleEdge, Task, Workflow
from task_flow.logging import FlowLogger, StructuredLogger, build_logger

__all__ = [
    "__version__",
    "ControlFlowEdge",
    "FlowLogger",
    "FlowSettings",
    "SimpleEdge",
    "StructuredLogger",
    "Task",
    "TaskFailure",
    "UnknownNodeError",
    "Workflow",
    "WorkflowError",
    "WorkflowTimeout",
    "build_logger",
]
