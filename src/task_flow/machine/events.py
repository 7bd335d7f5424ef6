from __future__ import annotations

from dataclasses import dataclass

INIT_EVENT = "init"
INPUT_EVENT = "INPUT"
DONE_EVENT = "done"
ERROR_EVENT = "error"


@dataclass(frozen=True, slots=True)
class MachineEvent:
    """A signal delivered to the interpreter.

    Callers only ever send ``INPUT`` (to the initial state). ``done`` and ``error``
    are produced by the interpreter itself when an invocation settles.
    """

    type: str
    data: object = None
