from __future__ import annotations
"""Technician assignment manager.

Each operation writes the assignee columns, one assignment-history row and, when
the status moves, one status-history row (through the state machine), then
commits them together.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
from app.constants.lifecycle import (
    AssignmentType, RequestStatus as S, EVENT_REQUEST_ASSIGNED, EVENT_STATUS_CHANGED,
)
from app.errors import Forbidden, InvalidStatusTransition, InvalidTechnician, RequestClosed, ValidationError
from app.models.maintenance_request import MaintenanceRequest, RequestAssignmentHistory
from app.models.user import User
from app.services.lifecycle import load_request, apply_transition, commit_or_conflict
from app.services.notifications import publish, event_payload
from app.services.policy import Actor, KIND_ASSIGNMENT

logger = logging.getLogger(__name__)


def _load_open_request(session: Session, request_id: int) -> MaintenanceRequest:
    req = load_request(session, request_id, for_update=True)
    if req.is_terminal:
        raise RequestClosed(description=f'Request is {req.status}; assignment changes are not allowed')
    return req


def _active_technician(session: Session, user_id) -> User:
    tech = session.get(User, user_id) if user_id is not None else None
    if tech is None or not tech.is_technician:
        raise InvalidTechnician(description='Invalid technician')
    return tech


def _record_assignment(req: MaintenanceRequest, assignment_type: str, from_id: Optional[int], to_id: Optional[int],
                       assigned_by_id: int, reason: Optional[str]) -> RequestAssignmentHistory:
    row = RequestAssignmentHistory(
        from_technician_id=from_id,
        to_technician_id=to_id,
        assignment_type=assignment_type,
        reason=reason,
        assigned_by_id=assigned_by_id,
    )
    req.assignment_history.append(row)
    return row


def _finish(session: Session, req: MaintenanceRequest, actor: Actor, row: RequestAssignmentHistory,
            from_status: str, reason: Optional[str]) -> MaintenanceRequest:
    commit_or_conflict(session, f'Request {req.id}')
    logger.info('request %s %s %s -> %s by %s', req.id, row.assignment_type, row.from_technician_id,
                row.to_technician_id, actor.id)
    publish(EVENT_REQUEST_ASSIGNED, event_payload(
        req,
        assignment_type=row.assignment_type,
        from_technician_id=row.from_technician_id,
        to_technician_id=row.to_technician_id,
        actor_id=actor.id,
        reason=reason,
    ))
    if from_status != req.status:
        publish(EVENT_STATUS_CHANGED, event_payload(
            req, from_status=from_status, to_status=req.status, reason=reason, actor_id=actor.id,
        ))
    return req


def assign(session: Session, request_id: int, technician_id: int, actor: Actor, reason: Optional[str] = None) -> MaintenanceRequest:
    if not actor.is_admin:
        raise Forbidden(description='Only admins can assign technicians')
    try:
        req = _load_open_request(session, request_id)
        tech = _active_technician(session, technician_id)
        if req.status == S.DRAFT:
            raise InvalidStatusTransition(description='Draft requests cannot be assigned')
        previous = req.assigned_to_id
        if previous == tech.id:
            raise ValidationError(description='Request is already assigned to this technician')
        from_status = req.status
        req.assigned_to_id = tech.id
        req.assigned_by_id = actor.id
        if from_status == S.SUBMITTED:
            apply_transition(req, S.ASSIGNED, reason or 'Request assigned to technician', actor, kinds={KIND_ASSIGNMENT})
        row = _record_assignment(
            req,
            AssignmentType.INITIAL_ASSIGNMENT if previous is None else AssignmentType.REASSIGNMENT,
            previous, tech.id, actor.id, reason,
        )
    except Exception:
        session.rollback()
        raise
    return _finish(session, req, actor, row, from_status, reason)


def self_assign(session: Session, request_id: int, actor: Actor) -> MaintenanceRequest:
    if not actor.is_technician:
        raise Forbidden(description='Only technicians can self-assign')
    reason = 'Self-assigned by technician'
    try:
        req = _load_open_request(session, request_id)
        _active_technician(session, actor.id)
        if req.status != S.SUBMITTED or req.assigned_to_id is not None:
            raise InvalidStatusTransition(description='Request is not available for assignment')
        from_status = req.status
        req.assigned_to_id = actor.id
        req.assigned_by_id = actor.id
        apply_transition(req, S.ASSIGNED, reason, actor, kinds={KIND_ASSIGNMENT})
        row = _record_assignment(req, AssignmentType.SELF_ASSIGNMENT, None, actor.id, actor.id, reason)
    except Exception:
        session.rollback()
        raise
    return _finish(session, req, actor, row, from_status, reason)


def unassign(session: Session, request_id: int, actor: Actor, reason: Optional[str] = None) -> MaintenanceRequest:
    if not actor.is_admin:
        raise Forbidden(description='Only admins can unassign technicians')
    try:
        req = _load_open_request(session, request_id)
        if req.status != S.ASSIGNED:
            raise InvalidStatusTransition(description=f'Only ASSIGNED requests can be unassigned (status is {req.status})')
        from_status = req.status
        previous = req.assigned_to_id
        req.assigned_to_id = None
        req.assigned_by_id = None
        apply_transition(req, S.SUBMITTED, reason or 'Technician unassigned', actor, kinds={KIND_ASSIGNMENT})
        row = _record_assignment(req, AssignmentType.UNASSIGNMENT, previous, None, actor.id, reason)
    except Exception:
        session.rollback()
        raise
    return _finish(session, req, actor, row, from_status, reason)
