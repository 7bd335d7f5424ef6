"""Errors raised by workflow compilation and execution.

Every failure of a `run` call surfaces as a single exception derived from
:class:`WorkflowError`. Nothing here is retried; retry policy belongs to the caller.
"""

from __future__ import annotations


class WorkflowError(Exception):
    pass


class TaskFailure(WorkflowError):
    """A leaf task raised while the workflow was running.

    Attributes:
        node_id: Id of the state that was active when the failure was observed.
        stack: Formatted traceback of the underlying exception.
    """

    def __init__(self, message: str, *, node_id: str | None, stack: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.node_id = node_id
        self.stack = stack

    def __str__(self) -> str:
        return f"Task '{self.node_id}' failed: {self.message}"


class WorkflowTimeout(WorkflowError, TimeoutError):
    """The workflow did not reach its terminal state within the time budget."""

    def __init__(self, timeout_ms: float) -> None:
        super().__init__(f"Timeout after {timeout_ms:g} ms")
        self.timeout_ms = timeout_ms


class UnknownNodeError(WorkflowError, LookupError):
    """A node id referenced by an edge (or as start node) exists in no node table."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Unknown node: {node_id}")
        self.node_id = node_id
