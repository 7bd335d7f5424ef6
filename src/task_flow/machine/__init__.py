"""Flat state machine: table types, events, task outcomes and the interpreter.

The intent is to keep control flow explicit and data-driven: the compiler emits a
plain transition table and the interpreter is the only place that mutates a run's
context.
"""

from task_flow.machine.definition import (
    ERROR_KEY,
    INPUT_KEY,
    RESULT_KEY,
    TERMINAL_STATE,
    BranchGuard,
    ErrorRule,
    FlatState,
    Invocation,
    MachineDefinition,
    Transition,
)
from task_flow.machine.events import INIT_EVENT, INPUT_EVENT, MachineEvent
from task_flow.machine.results import FailureInfo, TaskOutcome
from task_flow.machine.state_machine import IllegalTransitionError, Interpreter, MachineSnapshot

__all__ = [
    "ERROR_KEY",
    "INIT_EVENT",
    "INPUT_EVENT",
    "INPUT_KEY",
    "RESULT_KEY",
    "TERMINAL_STATE",
    "BranchGuard",
    "ErrorRule",
    "FailureInfo",
    "FlatState",
    "IllegalTransitionError",
    "Interpreter",
    "Invocation",
    "MachineDefinition",
    "MachineEvent",
    "MachineSnapshot",
    "TaskOutcome",
    "Transition",
]
