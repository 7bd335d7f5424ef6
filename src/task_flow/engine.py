"""Execution engine: hydrate a flat table and drive it to a terminal state.

A run races three outcomes:
- the interpreter reaches the terminal state (success, the recorded result)
- a task failure is recorded in the context (:class:`TaskFailure`)
- the wall-clock budget expires (:class:`WorkflowTimeout`)

On timeout the interpreter is stopped and the in-flight task is cancelled. A task that
shields itself from cancellation keeps running, but its result is ignored.
"""

from __future__ import annotations

import asyncio
import traceback
from collections.abc import Mapping, Sequence
from typing import Any

from task_flow.config import FlowSettings
from task_flow.errors import TaskFailure, WorkflowTimeout
from task_flow.logging import FlowLogger, build_logger
from task_flow.machine.definition import ERROR_KEY, RESULT_KEY, MachineDefinition
from task_flow.machine.events import INPUT_EVENT, MachineEvent
from task_flow.machine.results import FailureInfo
from task_flow.machine.state_machine import IllegalTransitionError, Interpreter, MachineSnapshot


def _as_task_failure(node_id: str, error: object) -> TaskFailure:
    if isinstance(error, FailureInfo):
        return TaskFailure(error.message, node_id=node_id, stack=error.stack)
    if isinstance(error, BaseException):
        stack = "".join(traceback.format_exception(error))
        return TaskFailure(str(error), node_id=node_id, stack=stack)
    return TaskFailure(str(error), node_id=node_id)


class Executor:
    """A hydrated flat table, ready to be driven by :meth:`execute`."""

    def __init__(self, definition: MachineDefinition, restored: MachineSnapshot) -> None:
        self._definition = definition
        self._restored = restored
        self._snapshot = restored

    @property
    def definition(self) -> MachineDefinition:
        return self._definition

    @property
    def snapshot(self) -> MachineSnapshot:
        """The last snapshot observed (the restored one before any execution)."""

        return self._snapshot

    async def execute(
        self,
        inputs: Sequence[Any],
        *,
        timeout_ms: float | None = None,
        logger: FlowLogger | None = None,
    ) -> Any:
        if timeout_ms is None or logger is None:
            settings = FlowSettings()
            timeout_ms = settings.default_timeout_ms if timeout_ms is None else timeout_ms
            logger = logger or build_logger(settings.log_level)

        outcome: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        interpreter = Interpreter(self._definition, logger=logger)

        def on_transition(snapshot: MachineSnapshot, event: MachineEvent) -> None:
            self._snapshot = snapshot
            logger.debug(
                "Entered state",
                {"value": snapshot.value, "context": dict(snapshot.context), "event": event.type},
            )
            if outcome.done():
                return

            error = snapshot.context.get(ERROR_KEY)
            if error is not None:
                failure = _as_task_failure(snapshot.value, error)
                logger.error(
                    "Workflow failed", {"node_id": failure.node_id, "message": failure.message}
                )
                outcome.set_exception(failure)
                return

            if snapshot.value == self._definition.terminal:
                interpreter.off(on_transition)
                outcome.set_result(snapshot.context.get(RESULT_KEY))

        logger.debug("Initial state", self._restored.to_json())
        interpreter.on_transition(on_transition)
        try:
            interpreter.start(self._restored)
            interpreter.send(MachineEvent(INPUT_EVENT, list(inputs)))
            return await asyncio.wait_for(outcome, timeout=timeout_ms / 1000)
        except TimeoutError:
            logger.error(
                "Workflow timed out", {"timeout_ms": timeout_ms, "state": self._snapshot.value}
            )
            raise WorkflowTimeout(timeout_ms) from None
        finally:
            interpreter.stop()


def synchronize(
    definition: MachineDefinition,
    *,
    saved_context: Mapping[str, Any] | None = None,
    saved_state: str | None = None,
) -> Executor:
    """Hydrate ``definition`` with a saved context and state.

    Without ``saved_state`` this is a fresh start at ``definition.initial`` with
    ``saved_context`` as the initial context. The saved context is copied.

    Raises:
        IllegalTransitionError: ``saved_state`` is not a state of ``definition``.
    """

    value = saved_state or definition.initial
    if value not in definition.states:
        raise IllegalTransitionError(f"Unknown saved state: {value}")
    context = dict(saved_context or {})
    return Executor(definition, MachineSnapshot(value=value, context=context))
