from __future__ import annotations
"""Authorization context and role/ownership rules.

Tokens are issued by the external auth service; we only read the identity
(user id) and the `role` claim from them.
"""
from dataclasses import dataclass
from typing import Optional, Set
from flask_jwt_extended import get_jwt, get_jwt_identity
from app.constants.lifecycle import (
    ADMIN_ROLES, READ_ONLY_ROLES, ROLE_CUSTOMER, ROLE_SUPER_ADMIN, ROLE_SYSTEM, ROLE_TECHNICIAN,
)
from app.errors import Forbidden

# Actor kinds used by the transition table
KIND_ADMIN = 'admin'
KIND_ASSIGNEE = 'assignee'
KIND_REQUESTER = 'requester'
KIND_SYSTEM = 'system'
# Edges only the assignment manager may drive
KIND_ASSIGNMENT = 'assignment'


@dataclass(frozen=True)
class Actor:
    id: Optional[int]
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role == ROLE_CUSTOMER

    @property
    def is_technician(self) -> bool:
        return self.role == ROLE_TECHNICIAN

    @property
    def is_read_only(self) -> bool:
        return self.role in READ_ONLY_ROLES


SYSTEM_ACTOR = Actor(id=None, role=ROLE_SYSTEM)


def current_actor() -> Actor:
    claims = get_jwt()
    ident = get_jwt_identity()
    return Actor(id=int(ident) if ident is not None else None, role=claims.get('role', ''))


def has_roles(*roles: str) -> bool:
    return current_actor().role in roles


def actor_kinds(actor: Actor, req) -> Set[str]:
    """Resolve which rows of the transition table `actor` matches for `req`."""
    if actor.role == ROLE_SYSTEM:
        return {KIND_SYSTEM}
    kinds: Set[str] = set()
    if actor.is_admin:
        kinds.add(KIND_ADMIN)
    if actor.id is not None and req.assigned_to_id == actor.id:
        kinds.add(KIND_ASSIGNEE)
    if actor.id is not None and req.requested_by_id == actor.id:
        kinds.add(KIND_REQUESTER)
    return kinds


def assert_can_view(actor: Actor, req):
    if actor.is_customer and req.requested_by_id != actor.id:
        raise Forbidden(description='Access denied')


def assert_can_mutate(actor: Actor, req):
    """Visibility plus the read-only role rule; edge legality is checked by the state machine."""
    assert_can_view(actor, req)
    if actor.is_read_only:
        raise Forbidden(description=f'Role {actor.role} is read-only')