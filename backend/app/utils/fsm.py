from __future__ import annotations
"""Finite state machine utility for enforcing allowed, actor-gated status transitions.

The canonical source of truth is an edge table mapping (from, to) to the actor
kinds allowed to take that edge. Per-actor graphs are derived from it so callers
can ask "which targets may this actor reach from here?".

Usage:
    from app.utils.fsm import TransitionValidator
    FSM = TransitionValidator({
        ('QUEUED', 'STARTED'): {'operator'},
        ('STARTED', 'COMPLETED'): {'operator', 'admin'},
    })
    FSM.assert_can_transition(current_status, target_status, actor_kinds={'operator'})

Raises InvalidStatusTransition if the edge is unknown or no actor kind may take it.
"""
from typing import Dict, FrozenSet, Iterable, Optional, Set, Tuple
from app.errors import InvalidStatusTransition

Edge = Tuple[str, str]


class TransitionValidator:
    def __init__(self, edges: Dict[Edge, Iterable[str]], field_name: str = 'status'):
        self.edges: Dict[Edge, FrozenSet[str]] = {k: frozenset(v) for k, v in edges.items()}
        self.field_name = field_name

    @property
    def graph(self) -> Dict[str, Set[str]]:
        out: Dict[str, Set[str]] = {}
        for src, dst in self.edges:
            out.setdefault(src, set()).add(dst)
        return out

    def graph_for(self, actor_kind: str) -> Dict[str, Set[str]]:
        out: Dict[str, Set[str]] = {}
        for (src, dst), kinds in self.edges.items():
            if actor_kind in kinds:
                out.setdefault(src, set()).add(dst)
        return out

    def allowed_targets(self, current: str, actor_kinds: Optional[Iterable[str]] = None) -> Set[str]:
        kinds = set(actor_kinds) if actor_kinds is not None else None
        return {
            dst for (src, dst), allowed in self.edges.items()
            if src == current and (kinds is None or allowed & kinds)
        }

    def assert_can_transition(self, current: str, target: str, actor_kinds: Optional[Iterable[str]] = None):
        if current == target:
            raise InvalidStatusTransition(description=f"{self.field_name} is already {current}")
        allowed = self.edges.get((current, target))
        if allowed is None:
            raise InvalidStatusTransition(description=f"Invalid {self.field_name} transition {current} -> {target}")
        if actor_kinds is not None and not (allowed & set(actor_kinds)):
            raise InvalidStatusTransition(
                description=f"{self.field_name} transition {current} -> {target} not permitted for this actor"
            )
        return True


__all__ = ['TransitionValidator', 'Edge']
