"""
Canonical workflow types (``practice_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines, defined once so that every
practice module describes its document lifecycle the same way.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``automatic=True`` marks transitions the owning service may fire on its
    own after a successful write; the others need an explicit caller action.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    automatic: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                "is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} references "
                    f"an undeclared state ({t.from_state} -> {t.to_state})"
                )

    def transitions_from(self, state: str) -> tuple[Transition, ...]:
        """All transitions leaving ``state``, in declaration order."""
        return tuple(t for t in self.transitions if t.from_state == state)

    def find(self, from_state: str, action: str) -> Transition | None:
        """The transition fired by ``action`` from ``from_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def allows(self, from_state: str, to_state: str) -> bool:
        return any(
            t.from_state == from_state and t.to_state == to_state
            for t in self.transitions
        )
