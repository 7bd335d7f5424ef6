"""Outgoing transition rules between graph nodes.

An edge is owned by the workflow whose table holds it and is never mutated after
creation. There are exactly two variants:

- :class:`SimpleEdge`: an unconditional transition to one node.
- :class:`ControlFlowEdge`: keyed branches plus an optional default target.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

# Key of the unconditional / fallback possibility.
DEFAULT_BRANCH = "__"


@dataclass(frozen=True, slots=True)
class SimpleEdge:
    target: str

    @property
    def possibilities(self) -> dict[str, str]:
        return {DEFAULT_BRANCH: self.target}

    @property
    def targets(self) -> tuple[str, ...]:
        return (self.target,)


@dataclass(frozen=True, slots=True)
class ControlFlowEdge:
    """A multi-branch edge selected by the source node's output.

    ``branches`` keeps the table order in which branch keys are matched. The
    default target, when present, is only considered after every branch key.
    """

    branches: tuple[tuple[str, str], ...]
    default: str | None = None

    def __post_init__(self) -> None:
        # Keys are discriminants compared as strings.
        normalized = tuple((str(key), target) for key, target in self.branches)
        object.__setattr__(self, "branches", normalized)

    @classmethod
    def from_possibilities(cls, possibilities: Mapping[object, str]) -> ControlFlowEdge:
        branches = tuple(
            (str(key), target) for key, target in possibilities.items() if key != DEFAULT_BRANCH
        )
        return cls(branches=branches, default=possibilities.get(DEFAULT_BRANCH))

    @property
    def possibilities(self) -> dict[str, str]:
        out = dict(self.branches)
        if self.default is not None:
            out[DEFAULT_BRANCH] = self.default
        return out

    @property
    def targets(self) -> tuple[str, ...]:
        targets = tuple(target for _, target in self.branches)
        if self.default is not None:
            targets += (self.default,)
        return targets


Edge = SimpleEdge | ControlFlowEdge


def to_edge(target: str) -> SimpleEdge:
    return SimpleEdge(target=target)
