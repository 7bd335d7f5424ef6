"""Explicit outcome of a single task invocation.

Task errors are turned into data at the invocation boundary, so the failure path is
an ordinary transition of the compiled table rather than exception propagation.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FailureInfo:
    node_id: str
    message: str
    stack: str = ""
    error_type: str = "Exception"

    @staticmethod
    def from_exception(node_id: str, exc: BaseException) -> FailureInfo:
        return FailureInfo(
            node_id=node_id,
            message=str(exc),
            stack="".join(traceback.format_exception(exc)),
            error_type=type(exc).__name__,
        )

    def to_json(self) -> dict[str, object]:
        return {
            "node_id": self.node_id,
            "message": self.message,
            "stack": self.stack,
            "error_type": self.error_type,
        }


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    ok: bool
    value: object = None
    failure: FailureInfo | None = None

    @staticmethod
    def succeeded(value: object) -> TaskOutcome:
        return TaskOutcome(ok=True, value=value)

    @staticmethod
    def failed(failure: FailureInfo) -> TaskOutcome:
        return TaskOutcome(ok=False, failure=failure)
