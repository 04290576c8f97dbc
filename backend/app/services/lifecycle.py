from __future__ import annotations
"""Request state machine.

REQUEST_FSM is the single source of truth for which status edges exist and
which actor kinds may take them. `apply_transition` is the only code path that
writes `MaintenanceRequest.status`; interactive updates, the assignment manager
and the auto-close sweep all go through it, so each successful change appends
exactly one status-history row.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from app.constants.lifecycle import RequestStatus as S, EVENT_STATUS_CHANGED
from app.errors import Conflict, InvalidStatusTransition, NotFound
from app.models.maintenance_request import MaintenanceRequest, RequestStatusHistory
from app.services.notifications import publish, event_payload
from app.services.policy import (
    Actor, actor_kinds, assert_can_mutate,
    KIND_ADMIN, KIND_ASSIGNEE, KIND_REQUESTER, KIND_SYSTEM, KIND_ASSIGNMENT,
)
from app.utils.fsm import TransitionValidator
from app.utils.validation import validate_status

logger = logging.getLogger(__name__)

_EDGES = {
    (S.SUBMITTED, S.ASSIGNED): {KIND_ASSIGNMENT},
    (S.ASSIGNED, S.SUBMITTED): {KIND_ASSIGNMENT},
    (S.ASSIGNED, S.IN_PROGRESS): {KIND_ASSIGNEE, KIND_ADMIN},
    (S.IN_PROGRESS, S.COMPLETED): {KIND_ASSIGNEE, KIND_ADMIN},
    (S.COMPLETED, S.CUSTOMER_REJECTED): {KIND_REQUESTER},
    (S.COMPLETED, S.CLOSED): {KIND_REQUESTER, KIND_SYSTEM},
    (S.CUSTOMER_REJECTED, S.IN_PROGRESS): {KIND_ADMIN},
}
# Admin cancellation from every non-terminal state
for _status in S.ALL:
    if _status not in S.TERMINAL and _status != S.REJECTED:
        _EDGES[(_status, S.REJECTED)] = {KIND_ADMIN}

REQUEST_FSM = TransitionValidator(_EDGES)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def load_request(session: Session, request_id: int, for_update: bool = False) -> MaintenanceRequest:
    stmt = select(MaintenanceRequest).where(MaintenanceRequest.id == request_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    req = session.execute(stmt).scalar_one_or_none()
    if req is None:
        raise NotFound(description='Request not found')
    return req


def record_status(req: MaintenanceRequest, from_status: Optional[str], to_status: str,
                  reason: Optional[str], changed_by_id: Optional[int]) -> RequestStatusHistory:
    row = RequestStatusHistory(
        from_status=from_status,
        to_status=to_status,
        reason=reason,
        changed_by_id=changed_by_id,
    )
    req.status_history.append(row)
    return row


def apply_transition(req: MaintenanceRequest, target: str, reason: Optional[str], actor: Actor,
                     kinds: Optional[Iterable[str]] = None) -> RequestStatusHistory:
    """Validate and apply one edge in memory; the caller owns the transaction.

    `kinds` overrides the actor-kind resolution; the assignment manager passes
    KIND_ASSIGNMENT for the edges only it may drive.
    """
    validate_status(target, S.ALL)
    current = req.status
    REQUEST_FSM.assert_can_transition(current, target, kinds if kinds is not None else actor_kinds(actor, req))
    if current == S.SUBMITTED and target == S.ASSIGNED and req.assigned_to_id is None:
        raise InvalidStatusTransition(description='A technician must be assigned before the request is ASSIGNED')
    req.status = target
    if target == S.COMPLETED:
        req.completed_date = _utcnow()
    elif target == S.IN_PROGRESS:
        req.completed_date = None
    return record_status(req, current, target, reason, actor.id)


def commit_or_conflict(session: Session, what: str):
    try:
        session.commit()
    except StaleDataError:
        session.rollback()
        raise Conflict(description=f'{what} was modified concurrently, retry')
    except IntegrityError:
        session.rollback()
        raise Conflict(description=f'{what} conflicts with existing data')


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive values for timezone-aware columns
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def is_stale_completed(req: MaintenanceRequest, cutoff: datetime) -> bool:
    return (
        req.status == S.COMPLETED
        and req.completed_date is not None
        and _as_utc(req.completed_date) < _as_utc(cutoff)
    )


def update_status(session: Session, request_id: int, target: str, reason: Optional[str], actor: Actor,
                  completed_before: Optional[datetime] = None) -> Optional[MaintenanceRequest]:
    """Move one request to `target` in its own transaction.

    With `completed_before`, the locked row must still be COMPLETED with an
    older `completed_date`; otherwise nothing changes and None is returned.
    """
    try:
        req = load_request(session, request_id, for_update=True)
        if completed_before is not None and not is_stale_completed(req, completed_before):
            session.rollback()
            return None
        assert_can_mutate(actor, req)
        from_status = req.status
        apply_transition(req, target, reason, actor)
    except Exception:
        session.rollback()
        raise
    commit_or_conflict(session, f'Request {request_id}')
    logger.info('request %s status %s -> %s by %s', req.id, from_status, target, actor.id or actor.role)
    publish(EVENT_STATUS_CHANGED, event_payload(
        req, from_status=from_status, to_status=target, reason=reason, actor_id=actor.id,
    ))
    return req
