"""Flat state/transition table consumed by the interpreter.

The table is plain data: one :class:`FlatState` per leaf task plus a final terminal
state. Guards and context assignments are described declaratively so two
compilations of the same workflow compare equal.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from task_flow.machine.results import FailureInfo, TaskOutcome

TERMINAL_STATE = "_complete"

# Context keys written by the interpreter.
INPUT_KEY = "input"
RESULT_KEY = "result"
ERROR_KEY = "error"


class Invocable(Protocol):
    async def execute(self, state: Any, *inputs: Any) -> Any: ...


@dataclass(frozen=True, slots=True)
class Invocation:
    """Calls a task with the context's stored input."""

    node_id: str
    node: Invocable

    async def call(self, context: Mapping[str, Any]) -> TaskOutcome:
        inputs = context.get(INPUT_KEY) or ()
        try:
            value = await self.node.execute(context, *inputs)
        except Exception as exc:
            return TaskOutcome.failed(FailureInfo.from_exception(self.node_id, exc))
        return TaskOutcome.succeeded(value)


@dataclass(frozen=True, slots=True)
class BranchGuard:
    """Matches when the stringified task output equals ``key``."""

    key: str

    def matches(self, output: object) -> bool:
        return f"{output}" == self.key


@dataclass(frozen=True, slots=True)
class Transition:
    """Success transition.

    Taking it records the task output as ``context["result"]`` and as the sole input
    of the next task (``context["input"] = [output]``).
    """

    target: str
    guard: BranchGuard | None = None

    def accepts(self, output: object) -> bool:
        return self.guard is None or self.guard.matches(output)

    def to_json(self) -> dict[str, object]:
        return {"target": self.target, "guard": self.guard.key if self.guard else None}


@dataclass(frozen=True, slots=True)
class ErrorRule:
    """Failure transition: record the failure descriptor, stay in the state."""

    context_key: str = ERROR_KEY


@dataclass(frozen=True, slots=True)
class FlatState:
    id: str
    invocation: Invocation | None = None
    on_done: tuple[Transition, ...] = ()
    on_error: ErrorRule | None = None
    # Only the root start state accepts the external INPUT event.
    accepts_input: bool = False
    final: bool = False

    def to_json(self) -> dict[str, object]:
        if self.final:
            return {"type": "final"}
        out: dict[str, object] = {
            "invoke": self.invocation.node_id if self.invocation else None,
            "on_done": [t.to_json() for t in self.on_done],
        }
        if self.on_error is not None:
            out["on_error"] = {"assign": self.on_error.context_key}
        if self.accepts_input:
            out["on"] = {"INPUT": {"assign": INPUT_KEY}}
        return out


@dataclass(frozen=True)
class MachineDefinition:
    id: str
    initial: str
    states: Mapping[str, FlatState] = field(default_factory=dict)
    terminal: str = TERMINAL_STATE

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "initial": self.initial,
            "states": {state_id: state.to_json() for state_id, state in self.states.items()},
        }
