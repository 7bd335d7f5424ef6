"""CLI entrypoint: inspect or run a workflow defined in an importable module.

Targets are given as ``package.module:attribute`` where the attribute is a
:class:`~task_flow.graph.nodes.Workflow` (a `Task` works too).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from importlib import import_module

from pydantic import ValidationError

from task_flow import __version__
from task_flow.compiler import compile_workflow
from task_flow.config import FlowSettings
from task_flow.errors import TaskFailure, WorkflowTimeout
from task_flow.graph.nodes import Workflow
from task_flow.logging import build_logger, configure_logging

logger = logging.getLogger(__name__)


class TargetError(ValueError):
    pass


def load_target(path: str) -> Workflow:
    """Import ``module:attribute`` and return the workflow it names."""

    module_path, sep, attribute = path.partition(":")
    if not sep or not module_path or not attribute:
        raise TargetError(f"Invalid target (expected 'module:attribute'): {path}")

    # Workflows usually live next to the caller, not in site-packages.
    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        target = getattr(import_module(module_path), attribute)
    except (ImportError, AttributeError) as e:
        raise TargetError(f"Could not import '{path}': {e}") from e

    if not isinstance(target, Workflow):
        raise TargetError(f"Target '{path}' is not a Workflow: {type(target).__name__}")
    return target


def _parse_state(raw: str | None) -> dict[str, object]:
    if raw is None:
        return {}
    try:
        state = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TargetError(f"--state is not valid JSON: {e}") from e
    if not isinstance(state, dict):
        raise TargetError("--state must be a JSON object")
    return state


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-flow",
        description="Compile and run task-flow workflows",
    )
    parser.add_argument("--version", action="version", version=f"task-flow {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    describe = subparsers.add_parser(
        "describe", help="Compile a workflow and print its flat state table as JSON"
    )
    describe.add_argument("target", help="Workflow to compile, as 'module:attribute'")

    run = subparsers.add_parser("run", help="Run a workflow and print its result as JSON")
    run.add_argument("target", help="Workflow to run, as 'module:attribute'")
    run.add_argument(
        "--input",
        dest="inputs",
        action="append",
        default=[],
        help="Input for the start task (repeat for several arguments)",
    )
    run.add_argument(
        "--state",
        default=None,
        help="JSON object handed to every task as its state",
    )
    run.add_argument(
        "--timeout-ms",
        type=float,
        default=None,
        help="Wall-clock budget in milliseconds (defaults to TASK_FLOW_TIMEOUT_MS)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = FlowSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    flow_logger = build_logger(settings.log_level)

    try:
        workflow = load_target(args.target)

        if args.command == "describe":
            definition = compile_workflow(workflow, flow_logger)
            print(json.dumps(definition.to_json(), indent=2, ensure_ascii=False))
            return 0

        timeout_ms = args.timeout_ms
        if timeout_ms is None:
            timeout_ms = settings.default_timeout_ms
        state = _parse_state(args.state)
        result = asyncio.run(
            workflow.run(state, args.inputs, timeout_ms=timeout_ms, logger=flow_logger)
        )
        print(json.dumps(result, ensure_ascii=False, default=str))
        return 0

    except TargetError as e:
        print(str(e), file=sys.stderr)
        return 2

    except TaskFailure as e:
        logger.warning(str(e), extra={"node_id": e.node_id})
        print(str(e), file=sys.stderr)
        return 3

    except WorkflowTimeout as e:
        print(str(e), file=sys.stderr)
        return 4

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
