"""Flatten a (possibly nested) workflow into a :class:`MachineDefinition`.

Traversal is depth-first from the root start node using an explicit stack and a
``visited`` set owned by the call. Re-converging or cyclic graphs therefore compile
in finite time; an already visited node is simply not expanded again.

Only leaf tasks become states. A nested workflow node is entered through its start
node, and its end node (when it has no edge of its own) continues along the edge that
leaves the nested node in the enclosing workflow. Lookups that miss in a scope fall
back to the root workflow's tables.
"""

from __future__ import annotations

from dataclasses import dataclass

from task_flow.errors import UnknownNodeError
from task_flow.graph.edges import ControlFlowEdge, Edge, SimpleEdge
from task_flow.graph.nodes import Task, Workflow
from task_flow.logging import FlowLogger
from task_flow.machine.definition import (
    TERMINAL_STATE,
    BranchGuard,
    ErrorRule,
    FlatState,
    Invocation,
    MachineDefinition,
    Transition,
)

MACHINE_ID = "workflow"


@dataclass(frozen=True, slots=True)
class _Scope:
    workflow: Workflow
    parent: _Scope | None = None


class _Compiler:
    def __init__(self, root: Workflow, logger: FlowLogger) -> None:
        self.root = root
        self.root_scope = _Scope(root)
        self.logger = logger

    def lookup(self, node_id: str, scope: _Scope) -> Workflow:
        node = scope.workflow.nodes.get(node_id)
        if node is None:
            node = self.root.nodes.get(node_id)
        if node is None:
            raise UnknownNodeError(node_id)
        return node

    def resolve(self, node_id: str, scope: _Scope) -> tuple[str, _Scope]:
        """Map a node id to the leaf task a transition into it actually enters."""

        seen: set[int] = set()
        while True:
            match self.lookup(node_id, scope):
                case Task():
                    return node_id, scope
                case Workflow() as nested:
                    if id(nested) in seen:
                        raise UnknownNodeError(node_id)
                    seen.add(id(nested))
                    scope = _Scope(nested, parent=scope)
                    node_id = nested.start_node_id
                case other:
                    raise TypeError(f"Unsupported node: {other!r}")

    def outgoing(self, node_id: str, scope: _Scope) -> tuple[Edge | None, _Scope]:
        edge = scope.workflow.edges.get(node_id)
        if edge is not None:
            return edge, scope
        if scope.parent is not None and node_id == scope.workflow.end_node_id:
            return self.outgoing(scope.workflow.id, scope.parent)
        return self.root.edges.get(node_id), self.root_scope

    def is_end(self, node_id: str, scope: _Scope) -> bool:
        if node_id != scope.workflow.end_node_id:
            return node_id == self.root.end_node_id
        if scope.parent is None:
            return True
        return self.is_end(scope.workflow.id, scope.parent)

    def transitions(
        self, node_id: str, scope: _Scope
    ) -> tuple[tuple[Transition, ...], list[tuple[str, _Scope]]]:
        """Success transitions of a leaf plus the (target, scope) pairs to visit next."""

        edge, edge_scope = self.outgoing(node_id, scope)

        match edge:
            case None:
                if not self.is_end(node_id, scope):
                    self.logger.warn(
                        f"Node {node_id} has no outgoing edges and is not the end",
                        {"node_id": node_id, "workflow": scope.workflow.id},
                    )
                return (Transition(target=TERMINAL_STATE),), []

            case SimpleEdge(target=target):
                leaf, leaf_scope = self.resolve(target, edge_scope)
                return (Transition(target=leaf),), [(leaf, leaf_scope)]

            case ControlFlowEdge(branches=branches, default=default):
                rules: list[Transition] = []
                successors: list[tuple[str, _Scope]] = []
                for key, target in branches:
                    leaf, leaf_scope = self.resolve(target, edge_scope)
                    rules.append(Transition(target=leaf, guard=BranchGuard(key)))
                    successors.append((leaf, leaf_scope))
                if default is not None:
                    leaf, leaf_scope = self.resolve(default, edge_scope)
                    rules.append(Transition(target=leaf))
                    successors.append((leaf, leaf_scope))
                return tuple(rules), successors

        raise TypeError(f"Unsupported edge: {edge!r}")

    def compile(self) -> MachineDefinition:
        initial, initial_scope = self.resolve(self.root.start_node_id, self.root_scope)
        states: dict[str, FlatState] = {}
        visited: set[str] = set()
        stack: list[tuple[str, _Scope]] = [(initial, initial_scope)]

        while stack:
            node_id, scope = stack.pop()
            self.logger.debug(
                "Processing node", {"node_id": node_id, "workflow": scope.workflow.id}
            )
            if node_id in visited:
                self.logger.debug("Already visited node", {"node_id": node_id})
                continue
            visited.add(node_id)

            node = self.lookup(node_id, scope)
            on_done, successors = self.transitions(node_id, scope)
            self.logger.debug("Adding node", {"node_id": node_id})
            states[node_id] = FlatState(
                id=node_id,
                invocation=Invocation(node_id=node_id, node=node),
                on_done=on_done,
                on_error=ErrorRule(),
                accepts_input=node_id == initial,
            )

            # Reversed so the first branch is expanded first.
            stack.extend(reversed(successors))

        states[TERMINAL_STATE] = FlatState(id=TERMINAL_STATE, final=True)
        return MachineDefinition(id=MACHINE_ID, initial=initial, states=states)


def compile_workflow(workflow: Workflow, logger: FlowLogger) -> MachineDefinition:
    """Compile ``workflow`` into a flat state/transition table.

    Deterministic for a given workflow value; performs no I/O besides logging.

    Raises:
        UnknownNodeError: A referenced node id exists in no node table.
    """

    return _Compiler(workflow, logger).compile()
