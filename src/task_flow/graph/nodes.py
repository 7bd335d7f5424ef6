"""Graph model: leaf tasks and composite workflows.

A :class:`Workflow` is an immutable value: a node table, an edge table (at most one
outgoing edge per node id) and the ids of its start and end nodes. Composition via
:meth:`Workflow.then` and :meth:`Workflow.when` always builds a new workflow.

A :class:`Task` is the leaf variant. It is itself a one-node workflow whose table maps
its own id to itself, so tasks compose exactly like larger graphs.
"""

from __future__ import annotations

import inspect
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, ClassVar, Literal

from task_flow.engine import synchronize
from task_flow.graph.edges import Edge
from task_flow.logging import FlowLogger, default_logger

NodeType = Literal["task", "workflow"]

# execute(state, *inputs) -> output (awaitable or plain value)
TaskFn = Callable[..., Awaitable[Any] | Any]


class Workflow:
    type: ClassVar[NodeType] = "workflow"

    def __init__(
        self,
        *,
        id: str,
        start: str,
        end: str,
        nodes: Mapping[str, Workflow],
        edges: Mapping[str, Edge],
    ) -> None:
        self._id = id
        self._start_node_id = start
        self._end_node_id = end
        self._nodes: Mapping[str, Workflow] = MappingProxyType(dict(nodes))
        self._edges: Mapping[str, Edge] = MappingProxyType(dict(edges))

    @property
    def id(self) -> str:
        return self._id

    @property
    def start_node_id(self) -> str:
        return self._start_node_id

    @property
    def end_node_id(self) -> str:
        return self._end_node_id

    @property
    def nodes(self) -> Mapping[str, Workflow]:
        return self._nodes

    @property
    def edges(self) -> Mapping[str, Edge]:
        return self._edges

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self._id!r}, start={self._start_node_id!r}, "
            f"end={self._end_node_id!r}, nodes={len(self._nodes)}, edges={len(self._edges)})"
        )

    def then(self, next: Workflow) -> Workflow:
        """Run ``next`` after this workflow, feeding it this workflow's result."""

        from task_flow.graph.compose import then

        return then(self, next)

    def when(self, branches: Mapping[object, Workflow]) -> Workflow:
        """Branch on this workflow's result.

        See :func:`task_flow.graph.compose.when`.
        """

        from task_flow.graph.compose import when

        return when(self, branches)

    async def execute(self, state: Any, *inputs: Any) -> Any:
        return await self.run(state, list(inputs))

    async def run(
        self,
        state: Any,
        inputs: Sequence[Any],
        *,
        timeout_ms: float | None = None,
        logger: FlowLogger | None = None,
        saved_state: str | None = None,
    ) -> Any:
        """Compile this workflow and run it to completion.

        Args:
            state: Caller context handed to every task as its first argument. It is
                copied; the caller's mapping is never mutated.
            inputs: Arguments for the start node.
            timeout_ms: Wall-clock budget. Defaults to ``FlowSettings.default_timeout_ms``.
            logger: Logger for compilation and execution. Defaults to the
                settings-configured :class:`~task_flow.logging.StructuredLogger`.
            saved_state: State id to resume from (see :meth:`Executor.snapshot`).

        Returns:
            The result recorded by the last task before the terminal state.

        Raises:
            TaskFailure: A task raised.
            WorkflowTimeout: The terminal state was not reached in time.
        """

        from task_flow.compiler import compile_workflow

        logger = logger or default_logger()
        definition = compile_workflow(self, logger)
        executor = synchronize(definition, saved_context=state, saved_state=saved_state)
        return await executor.execute(inputs, timeout_ms=timeout_ms, logger=logger)


class Task(Workflow):
    type: ClassVar[NodeType] = "task"

    def __init__(self, execute: TaskFn, id: str | None = None) -> None:
        node_id = id if id is not None else uuid.uuid4().hex
        self._fn = execute
        super().__init__(id=node_id, start=node_id, end=node_id, nodes={node_id: self}, edges={})

    @property
    def fn(self) -> TaskFn:
        return self._fn

    async def execute(self, state: Any, *inputs: Any) -> Any:
        result = self._fn(state, *inputs)
        if inspect.isawaitable(result):
            result = await result
        return result

    @classmethod
    def wrap(cls, task: Task | TaskFn, id: str | None = None) -> Task:
        """Return a task for ``task`` under ``id``.

        An existing task is returned unchanged when the id matches (or none is
        given); under a different id its function is rewrapped. Plain callables get
        a generated id when none is supplied.
        """

        if isinstance(task, Task):
            if id is None or task.id == id:
                return task
            return cls(task.fn, id)

        return cls(task, id)


Node = Task | Workflow
