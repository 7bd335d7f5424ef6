"""Unit tests for running compiled workflows."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import pytest

from task_flow.compiler import compile_workflow
from task_flow.engine import synchronize
from task_flow.errors import TaskFailure, WorkflowError, WorkflowTimeout
from task_flow.graph import DEFAULT_BRANCH, Task
from task_flow.machine import IllegalTransitionError


async def _add_one(_state: Any, value: int) -> int:
    return value + 1


@pytest.mark.asyncio
async def test_sequence_feeds_each_result_forward(flow_logger: Any) -> None:
    flow = Task(_add_one, "a").then(Task(_add_one, "b")).then(Task(_add_one, "c"))

    assert await flow.run({}, [1], logger=flow_logger) == 4


@pytest.mark.asyncio
async def test_single_task_receives_all_inputs(flow_logger: Any) -> None:
    flow = Task(lambda _state, *args: "-".join(args), "join")

    assert await flow.run({}, ["a", "b", "c"], logger=flow_logger) == "a-b-c"


@pytest.mark.asyncio
async def test_tasks_see_caller_state(flow_logger: Any) -> None:
    flow = Task(lambda state, *_: state["greeting"], "read")

    assert await flow.run({"greeting": "hi"}, [], logger=flow_logger) == "hi"


@pytest.mark.asyncio
async def test_branch_matches_on_stringified_result(flow_logger: Any) -> None:
    flow = Task(lambda _state, n: n % 3, "mod").when(
        {
            0: Task(lambda _state, _: "zero", "zero"),
            "1": Task(lambda _state, _: "one", "one"),
        }
    )

    assert await flow.run({}, [3], logger=flow_logger) == "zero"
    assert await flow.run({}, [4], logger=flow_logger) == "one"


@pytest.mark.asyncio
async def test_unmatched_result_without_default_is_returned_unchanged(flow_logger: Any) -> None:
    flow = Task(lambda _state, value: value, "echo").when({"x": Task(lambda *_: "x", "x")})

    assert await flow.run({}, ["nope"], logger=flow_logger) == "nope"


@pytest.mark.asyncio
async def test_unmatched_result_skips_tasks_after_the_branch(flow_logger: Any) -> None:
    flow = (
        Task(lambda _state, value: value, "s")
        .when({"x": Task(lambda *_: "x", "x")})
        .then(Task(lambda _state, value: f"next:{value}", "n"))
    )

    assert await flow.run({}, ["nope"], logger=flow_logger) == "nope"
    assert await flow.run({}, ["x"], logger=flow_logger) == "next:x"
    assert "Node s_return has no outgoing edges and is not the end" in flow_logger.messages("warn")


@pytest.mark.asyncio
async def test_default_branch_catches_everything_else(flow_logger: Any) -> None:
    flow = Task(lambda _state, value: value, "echo").when(
        {
            "x": Task(lambda *_: "matched", "x"),
            DEFAULT_BRANCH: Task(lambda _state, value: f"default:{value}", "fallback"),
        }
    )

    assert await flow.run({}, ["x"], logger=flow_logger) == "matched"
    assert await flow.run({}, ["y"], logger=flow_logger) == "default:y"


@pytest.mark.asyncio
async def test_task_failure_carries_node_id_and_stack(flow_logger: Any) -> None:
    def explode(_state: Any, _value: Any) -> None:
        raise ValueError("bad input")

    flow = Task(_add_one, "ok").then(Task(explode, "explode"))

    with pytest.raises(TaskFailure) as excinfo:
        await flow.run({}, [1], logger=flow_logger)

    failure = excinfo.value
    assert isinstance(failure, WorkflowError)
    assert failure.node_id == "explode"
    assert failure.message == "bad input"
    assert "ValueError: bad input" in failure.stack
    assert str(failure) == "Task 'explode' failed: bad input"
    assert flow_logger.messages("error") == ["Workflow failed"]


@pytest.mark.asyncio
async def test_timeout_stops_the_run_and_cancels_the_task(flow_logger: Any) -> None:
    cancelled = asyncio.Event()

    async def stall(_state: Any, *_: Any) -> None:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    flow = Task(stall, "stall")
    started = time.monotonic()

    with pytest.raises(WorkflowTimeout) as excinfo:
        await flow.run({}, [], timeout_ms=50, logger=flow_logger)

    elapsed = time.monotonic() - started
    assert 0.045 <= elapsed < 2
    assert excinfo.value.timeout_ms == 50
    assert str(excinfo.value) == "Timeout after 50 ms"
    assert isinstance(excinfo.value, TimeoutError)
    await asyncio.wait_for(cancelled.wait(), 1)


@pytest.mark.asyncio
async def test_timeout_defaults_to_settings(
    flow_logger: Any, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TASK_FLOW_TIMEOUT_MS", "30")

    with pytest.raises(WorkflowTimeout) as excinfo:
        await Task(lambda *_: asyncio.sleep(5), "slow").run({}, [], logger=flow_logger)

    assert excinfo.value.timeout_ms == 30


@pytest.mark.asyncio
async def test_caller_state_is_not_mutated(flow_logger: Any) -> None:
    state: dict[str, Any] = {"history": []}
    flow = Task(_add_one, "a").then(Task(_add_one, "b"))

    await flow.run(state, [1], logger=flow_logger)

    assert state == {"history": []}


@pytest.mark.asyncio
async def test_execute_runs_workflow_as_a_task(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.delenv("TASK_FLOW_TIMEOUT_MS", raising=False)
    flow = Task(_add_one, "a").then(Task(_add_one, "b"))

    assert await flow.execute({}, 10) == 12


@pytest.mark.asyncio
async def test_resume_from_saved_state_skips_earlier_tasks(flow_logger: Any) -> None:
    calls: list[str] = []

    def step(name: str) -> Task:
        def run(_state: Any, value: int) -> int:
            calls.append(name)
            return value * 10

        return Task(run, name)

    flow = step("a").then(step("b")).then(step("c"))
    definition = compile_workflow(flow, flow_logger)
    executor = synchronize(definition, saved_context={"input": [2]}, saved_state="b")

    result = await executor.execute(["ignored"], timeout_ms=1000, logger=flow_logger)

    assert result == 200
    assert calls == ["b", "c"]
    assert executor.snapshot.value == definition.terminal


@pytest.mark.asyncio
async def test_resume_from_saved_state_through_run(flow_logger: Any) -> None:
    flow = Task(_add_one, "a").then(Task(_add_one, "b"))

    result = await flow.run({"input": [5]}, [], saved_state="b", logger=flow_logger)

    assert result == 6


@pytest.mark.asyncio
async def test_resume_from_terminal_state_returns_saved_result(flow_logger: Any) -> None:
    definition = compile_workflow(Task(_add_one, "a"), flow_logger)
    executor = synchronize(
        definition, saved_context={"result": "cached"}, saved_state=definition.terminal
    )

    assert await executor.execute([], timeout_ms=1000, logger=flow_logger) == "cached"


@pytest.mark.asyncio
async def test_resume_with_recorded_error_fails_immediately(flow_logger: Any) -> None:
    definition = compile_workflow(Task(_add_one, "a"), flow_logger)
    executor = synchronize(definition, saved_context={"error": "earlier crash"}, saved_state="a")

    with pytest.raises(TaskFailure) as excinfo:
        await executor.execute([1], timeout_ms=1000, logger=flow_logger)

    assert excinfo.value.node_id == "a"
    assert excinfo.value.message == "earlier crash"


def test_synchronize_rejects_unknown_saved_state(flow_logger: Any) -> None:
    definition = compile_workflow(Task(_add_one, "a"), flow_logger)

    with pytest.raises(IllegalTransitionError):
        synchronize(definition, saved_state="missing")


def test_synchronize_copies_saved_context(flow_logger: Any) -> None:
    definition = compile_workflow(Task(_add_one, "a"), flow_logger)
    saved = {"k": [1]}

    executor = synchronize(definition, saved_context=saved)

    assert executor.snapshot.value == "a"
    assert executor.snapshot.context == saved
    assert executor.snapshot.context is not saved
