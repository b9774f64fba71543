"""
Lifecycle transition engine (``workflow_kernel.domain.lifecycle``).

Responsibility
--------------
Pure value objects for the four entity state machines (approval task,
step instance, workflow instance, work item).  A ``Lifecycle`` is an
explicit transition table: (source status, event) -> target status, with
an optional ``Guard``.  Services own side effects (timestamps, decision
records, version snapshots) and apply them after ``fire()`` returns.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from ``workflow_kernel.exceptions``.

Invariants enforced
-------------------
* At most one transition per (source, event) pair.
* Transitions reference only states declared in ``Lifecycle.states``.
* ``initial`` is a member of ``states``.
* Guards are pure functions over the entity passed to ``fire()``; no
  machine state is rehydrated or stashed between calls.

Failure modes
-------------
* ``InvalidTransitionError`` when no transition exists for the pair.
* ``TransitionGuardFailedError`` when the guard returns False.
* ``ValueError`` at construction for a malformed table.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from workflow_kernel.exceptions import (
    InvalidTransitionError,
    TransitionGuardFailedError,
)

S = TypeVar("S", bound=Enum)
E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class Guard:
    """A condition that must hold before a transition fires.

    ``check(entity, params)`` receives the entity and the keyword
    parameters given to ``Lifecycle.fire``.
    """

    name: str
    description: str
    check: Callable[[Any, Mapping[str, Any]], bool] = field(compare=False)

    def evaluate(self, entity: Any, params: Mapping[str, Any]) -> bool:
        return bool(self.check(entity, params))


@dataclass(frozen=True)
class Transition(Generic[S, E]):
    """A single edge in a lifecycle table."""

    source: S
    event: E
    target: S
    guard: Guard | None = None


@dataclass(frozen=True)
class Lifecycle(Generic[S, E]):
    """A state machine definition for one entity kind.

    Contract: frozen; built once at import time as a module-level constant.
    Guarantees: ``fire`` either returns the target status or raises; it
    never mutates the entity.
    """

    name: str
    states: tuple[S, ...]
    initial: S
    transitions: tuple[Transition[S, E], ...]
    _index: dict[tuple[S, E], Transition[S, E]] = field(
        init=False, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        if self.initial not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial!r} not in states"
            )
        index: dict[tuple[S, E], Transition[S, E]] = {}
        for t in self.transitions:
            if t.source not in self.states or t.target not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.source!r} -[{t.event!r}]-> "
                    f"{t.target!r} references an undeclared state"
                )
            key = (t.source, t.event)
            if key in index:
                raise ValueError(
                    f"{self.name}: duplicate transition for {key!r}"
                )
            index[key] = t
        object.__setattr__(self, "_index", index)

    @property
    def terminal(self) -> frozenset[S]:
        """States with no outgoing transitions."""
        sources = {t.source for t in self.transitions}
        return frozenset(s for s in self.states if s not in sources)

    def find(self, source: S, event: E) -> Transition[S, E] | None:
        return self._index.get((source, event))

    def allowed_events(self, source: S) -> frozenset[E]:
        return frozenset(t.event for t in self.transitions if t.source == source)

    def can_fire(self, source: S, event: E) -> bool:
        return (source, event) in self._index

    def fire(
        self,
        entity_id: Any,
        source: S,
        event: E,
        entity: Any = None,
        **params: Any,
    ) -> S:
        """Resolve the target status for ``event`` fired from ``source``.

        Args:
            entity_id: Identifier used in error messages.
            source: The entity's current status.
            event: The requested event.
            entity: The entity handed to the guard, if any.
            **params: Extra guard inputs (e.g. ``actor``).

        Returns:
            The target status.

        Raises:
            InvalidTransitionError: No transition for (source, event).
            TransitionGuardFailedError: The guard rejected the transition.
        """
        transition = self.find(source, event)
        if transition is None:
            raise InvalidTransitionError(
                self.name, str(entity_id), _label(source), _label(event),
            )
        if transition.guard is not None and not transition.guard.evaluate(entity, params):
            raise TransitionGuardFailedError(
                self.name,
                str(entity_id),
                _label(source),
                _label(event),
                guard_name=transition.guard.name,
                reason=transition.guard.description,
            )
        return transition.target


def _label(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)
