#!/usr/bin/env python3
"""Three-task branching example.

* verify that the latest message is a question
* decide whether to build a new query or refine the previous one
* build the query

Run it directly, or through the CLI:

    task-flow run examples.search_flow:search_flow --input "hello?" \
        --state '{"history": [], "invocationArgs": ["hello?"]}'
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Any, Sequence

from task_flow import Task
from task_flow.config import FlowSettings
from task_flow.logging import build_logger, configure_logging

BRANCHES = {0: "NEW_QUERY", 1: "REFINE_QUERY", 2: "NEW_QUERY"}


async def verify_query(_state: dict[str, Any], query: str) -> str:
    return "yes" if query.endswith("?") else "You need to end your question with a ?"


async def choose_query_kind(state: dict[str, Any], *_: Any) -> str:
    [query] = state["invocationArgs"]
    return BRANCHES[len(query) % 3]


async def to_query(state: dict[str, Any], *_: Any) -> str:
    [query] = state["invocationArgs"]
    return f'{{"query": "a&b:{query}"}}'


async def refine_query(state: dict[str, Any], *_: Any) -> str:
    [query] = state["invocationArgs"]
    history = state["history"]
    previous = history[-1]["content"] if history else "None"
    return f'{{"query": "a&b:{previous}&c:{query}"}}'


query_construction = Task.wrap(choose_query_kind, "control-flow").when(
    {
        "NEW_QUERY": Task.wrap(to_query, "to-query"),
        "REFINE_QUERY": Task.wrap(refine_query, "refine-query"),
    }
)

search_flow = Task.wrap(verify_query, "verify-query").when({"yes": query_construction})


def state_for(messages: Sequence[dict[str, str]]) -> dict[str, Any]:
    return {
        "history": list(messages[:-1]),
        "invocationArgs": [messages[-1]["content"]],
    }


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the search-query workflow.")
    parser.add_argument("messages", nargs="+", help="Conversation, oldest message first")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = FlowSettings()
    configure_logging(settings.log_level)

    messages = [{"role": "user", "content": content} for content in args.messages]
    result = asyncio.run(
        search_flow.run(
            state_for(messages),
            [messages[-1]["content"]],
            logger=build_logger(settings.log_level),
        )
    )
    print(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
