"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from task_flow.config import FlowSettings
from task_flow.graph.nodes import Task, Workflow


class RecordingLogger:
    """FlowLogger that keeps every call for assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, object]]] = []

    def _record(self, level: str, message: str, data: Mapping[str, object] | None) -> None:
        self.records.append((level, message, dict(data or {})))

    def debug(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._record("debug", message, data)

    def info(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._record("info", message, data)

    def warn(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._record("warn", message, data)

    def error(self, message: str, data: Mapping[str, object] | None = None) -> None:
        self._record("error", message, data)

    def messages(self, level: str) -> list[str]:
        return [message for lvl, message, _ in self.records if lvl == level]


@pytest.fixture
def flow_logger() -> RecordingLogger:
    """Provide a logger that records calls."""
    return RecordingLogger()


@pytest.fixture
def flow_settings(monkeypatch: pytest.MonkeyPatch) -> FlowSettings:
    """Provide settings isolated from the developer's environment."""
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("TASK_FLOW_TIMEOUT_MS", raising=False)
    return FlowSettings(_env_file=None)


BRANCHES = {0: "NEW_QUERY", 1: "REFINE_QUERY", 2: "NEW_QUERY"}


@pytest.fixture
def search_flow() -> Workflow:
    """Provide the verify -> control-flow -> query-construction workflow."""

    async def verify_query(_state: Any, query: str) -> str:
        return "yes" if query.endswith("?") else "You need to end your question with a ?"

    async def control_flow(state: Any, *_: Any) -> str:
        [query] = state["invocationArgs"]
        return BRANCHES[len(query) % 3]

    async def to_query(state: Any, *_: Any) -> str:
        [query] = state["invocationArgs"]
        return f'{{"query": "a&b:{query}"}}'

    async def refine_query(state: Any, *_: Any) -> str:
        [query] = state["invocationArgs"]
        history = state["history"]
        previous = history[-1]["content"] if history else "None"
        return f'{{"query": "a&b:{previous}&c:{query}"}}'

    query_construction = Task.wrap(control_flow, "control-flow").when(
        {
            "NEW_QUERY": Task.wrap(to_query, "to-query"),
            "REFINE_QUERY": Task.wrap(refine_query, "refine-query"),
        }
    )
    return Task.wrap(verify_query, "verify-query").when({"yes": query_construction})


def state_for(messages: list[str]) -> dict[str, Any]:
    return {
        "history": [{"role": "user", "content": m} for m in messages[:-1]],
        "invocationArgs": [messages[-1]],
    }


@pytest.fixture
def make_state() -> Any:
    """Provide the conversation -> task state helper."""
    return state_for
