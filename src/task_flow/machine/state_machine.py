"""Event-driven interpreter for a flat :class:`MachineDefinition`.

The interpreter owns one context mapping and one current state. Entering a state
that has an invocation starts the task as an asyncio task; its outcome selects the
next transition. At most one invocation is live at a time, and completions of
superseded invocations are ignored.

Listeners are notified after every transition, including the initial entry and
context-only updates (a task failure records an error but keeps the state).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from task_flow.errors import WorkflowError
from task_flow.logging import FlowLogger
from task_flow.machine.definition import (
    INPUT_KEY,
    RESULT_KEY,
    FlatState,
    MachineDefinition,
)
from task_flow.machine.events import (
    DONE_EVENT,
    ERROR_EVENT,
    INIT_EVENT,
    INPUT_EVENT,
    MachineEvent,
)
from task_flow.machine.results import FailureInfo, TaskOutcome


class IllegalTransitionError(WorkflowError, ValueError):
    pass


@dataclass(frozen=True, slots=True)
class MachineSnapshot:
    """Current state id plus context. Enough to resume a suspended run."""

    value: str
    context: Mapping[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, object]:
        return {"value": self.value, "context": dict(self.context)}


Listener = Callable[[MachineSnapshot, MachineEvent], None]


class Interpreter:
    def __init__(self, definition: MachineDefinition, *, logger: FlowLogger) -> None:
        self._definition = definition
        self._logger = logger
        self._listeners: list[Listener] = []
        self._value: str = definition.initial
        self._context: dict[str, Any] = {}
        self._running = False
        self._generation = 0
        self._inflight: set[asyncio.Task[None]] = set()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def snapshot(self) -> MachineSnapshot:
        return MachineSnapshot(value=self._value, context=dict(self._context))

    def on_transition(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def off(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self, snapshot: MachineSnapshot | None = None) -> None:
        """Enter ``snapshot`` (or the initial state with an empty context)."""

        if self._running:
            return
        snapshot = snapshot or MachineSnapshot(value=self._definition.initial)
        self._state(snapshot.value)

        self._running = True
        self._context = dict(snapshot.context)
        self._enter(snapshot.value, MachineEvent(INIT_EVENT))

    def send(self, event: MachineEvent) -> None:
        if not self._running:
            self._logger.debug("Event ignored, interpreter stopped", {"event": event.type})
            return

        state = self._state(self._value)
        if event.type == INPUT_EVENT and state.accepts_input:
            self._context[INPUT_KEY] = list(event.data or ())
            self._enter(state.id, event)
            return

        self._logger.debug("Event ignored", {"state": self._value, "event": event.type})

    def stop(self) -> None:
        """Stop reacting to completions and cancel the in-flight invocation."""

        self._running = False
        self._generation += 1
        self._cancel_inflight()

    def _state(self, state_id: str) -> FlatState:
        try:
            return self._definition.states[state_id]
        except KeyError:
            raise IllegalTransitionError(f"Unknown state: {state_id}") from None

    def _notify(self, event: MachineEvent) -> None:
        snapshot = self.snapshot
        for listener in list(self._listeners):
            listener(snapshot, event)

    def _enter(self, state_id: str, event: MachineEvent) -> None:
        state = self._state(state_id)
        self._generation += 1
        self._cancel_inflight()
        self._value = state.id
        self._notify(event)

        if not self._running or state.final or state.invocation is None:
            return
        # The start state waits for the caller's input before running its task.
        if state.accepts_input and event.type != INPUT_EVENT:
            return

        task = asyncio.get_running_loop().create_task(
            self._invoke(state, self._generation), name=f"task-flow:{state.id}"
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def _cancel_inflight(self) -> None:
        if not self._inflight:
            return
        current = asyncio.current_task()
        for task in list(self._inflight):
            if task is not current:
                task.cancel()

    async def _invoke(self, state: FlatState, generation: int) -> None:
        assert state.invocation is not None
        outcome = await state.invocation.call(self._context)

        if not self._running or generation != self._generation:
            self._logger.debug("Stale completion ignored", {"state": state.id})
            return

        try:
            self._settle(state, outcome)
        except IllegalTransitionError as exc:
            self._settle(state, TaskOutcome.failed(FailureInfo.from_exception(state.id, exc)))

    def _settle(self, state: FlatState, outcome: TaskOutcome) -> None:
        if not outcome.ok:
            self._logger.debug(
                "Invocation failed", {"state": state.id, "failure": outcome.failure}
            )
            if state.on_error is not None:
                self._context[state.on_error.context_key] = outcome.failure
            self._notify(MachineEvent(ERROR_EVENT, outcome.failure))
            return

        for transition in state.on_done:
            if not transition.accepts(outcome.value):
                continue
            self._context[RESULT_KEY] = outcome.value
            self._context[INPUT_KEY] = [outcome.value]
            self._enter(transition.target, MachineEvent(DONE_EVENT, outcome.value))
            return

        self._logger.warn(
            "No transition matched task output",
            {"state": state.id, "output": outcome.value},
        )
