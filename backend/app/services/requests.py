from __future__ import annotations
"""Maintenance request creation, lookup, listing, descriptive edits and comments.

Status and assignee columns are never written here; see lifecycle.py and
assignment.py.
"""
import logging
from typing import Any, Dict, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.constants.lifecycle import RequestStatus as S, Priority, EVENT_REQUEST_CREATED, EVENT_REQUEST_COMMENTED
from app.errors import Forbidden, RequestClosed, ValidationError
from app.models.maintenance_request import MaintenanceRequest, RequestComment
from app.models.user import Category
from app.services import identifiers
from app.services.lifecycle import load_request, record_status, commit_or_conflict
from app.services.notifications import publish, event_payload
from app.services.policy import Actor, assert_can_view, assert_can_mutate
from app.utils.filters import apply_filters
from app.utils.listing import paginate, Page
from app.utils.sorting import apply_multi_sort
from app.utils.validation import (
    validate_status, require_str, optional_int, optional_number, optional_bool, parse_datetime,
    validate_custom_identifier,
)

logger = logging.getLogger(__name__)

CREATION_REASON = 'Request created'
EDITABLE_FIELDS = (
    'title', 'description', 'priority', 'category_id', 'location', 'specific_location',
    'estimated_cost', 'actual_cost', 'scheduled_date',
)
LIFECYCLE_FIELDS = ('status', 'assigned_to_id', 'assigned_by_id', 'custom_identifier', 'completed_date', 'building')

SORTABLE = {
    'id': MaintenanceRequest.id,
    'title': MaintenanceRequest.title,
    'status': MaintenanceRequest.status,
    'priority': MaintenanceRequest.priority,
    'building': MaintenanceRequest.building,
    'created_at': MaintenanceRequest.created_at,
    'updated_at': MaintenanceRequest.updated_at,
    'scheduled_date': MaintenanceRequest.scheduled_date,
    'completed_date': MaintenanceRequest.completed_date,
}


def _iso(dt):
    return dt.isoformat() if dt is not None else None


def status_history_json(h):
    return {
        'from_status': h.from_status,
        'to_status': h.to_status,
        'reason': h.reason,
        'changed_by_id': h.changed_by_id,
        'created_at': _iso(h.created_at),
    }


def assignment_history_json(h):
    return {
        'from_technician_id': h.from_technician_id,
        'to_technician_id': h.to_technician_id,
        'assignment_type': h.assignment_type,
        'reason': h.reason,
        'assigned_by_id': h.assigned_by_id,
        'created_at': _iso(h.created_at),
    }


def request_json(r: MaintenanceRequest, include_history: bool = False) -> Dict[str, Any]:
    body = {
        'id': r.id,
        'identifier': r.custom_identifier,
        'title': r.title,
        'description': r.description,
        'priority': r.priority,
        'status': r.status,
        'category_id': r.category_id,
        'location': r.location,
        'building': r.building,
        'specific_location': r.specific_location,
        'requested_by_id': r.requested_by_id,
        'assigned_to_id': r.assigned_to_id,
        'assigned_by_id': r.assigned_by_id,
        'estimated_cost': r.estimated_cost,
        'actual_cost': r.actual_cost,
        'scheduled_date': _iso(r.scheduled_date),
        'completed_date': _iso(r.completed_date),
        'version': r.version,
    }
    if include_history:
        body['status_history'] = [status_history_json(h) for h in r.status_history]
        body['assignment_history'] = [assignment_history_json(h) for h in r.assignment_history]
    return body


def _validated_category(session: Session, category_id: Optional[int]) -> int:
    if category_id is None:
        raise ValidationError(description='category_id required')
    cat = session.get(Category, category_id)
    if cat is None or not cat.is_active:
        raise ValidationError(description='Invalid category')
    return category_id


def _validated_priority(raw) -> str:
    return validate_status(raw, Priority.ALL, field_name='priority')


def create_request(session: Session, data: dict, actor: Actor) -> MaintenanceRequest:
    if actor.is_read_only:
        raise Forbidden(description=f'Role {actor.role} is read-only')
    title = require_str(data, 'title', 3, 200)
    description = require_str(data, 'description', 10, 5000)
    priority = _validated_priority(data.get('priority') or Priority.MEDIUM)
    category_id = _validated_category(session, optional_int(data, 'category_id'))
    location = require_str(data, 'location', 2, 100)
    building = require_str(data, 'building', 1, 100)
    specific_location = require_str(data, 'specific_location', 2, 200, required=False)
    estimated_cost = optional_number(data, 'estimated_cost')
    scheduled_date = parse_datetime(data.get('scheduled_date'), 'scheduled_date')
    custom = data.get('custom_identifier')
    if custom is not None:
        if not actor.is_admin:
            raise Forbidden(description='custom_identifier may only be set by admins')
        validate_custom_identifier(custom)
    # Identifier reservation is the first write of this transaction
    if custom is not None:
        identifier = identifiers.allocate_custom(session, building, custom, actor.id)
    else:
        identifier = identifiers.allocate(session, building, identifiers.current_year(), actor.id)
    req = MaintenanceRequest(
        title=title,
        description=description,
        priority=priority,
        category_id=category_id,
        location=location,
        building=building,
        specific_location=specific_location,
        estimated_cost=estimated_cost,
        scheduled_date=scheduled_date,
        requested_by_id=actor.id,
        custom_identifier=identifier,
        status=S.INITIAL,
    )
    session.add(req)
    record_status(req, None, S.INITIAL, CREATION_REASON, actor.id)
    commit_or_conflict(session, f'Request {identifier}')
    logger.info('request %s created as %s in %s by %s', req.id, identifier, building, actor.id)
    publish(EVENT_REQUEST_CREATED, event_payload(req, actor_id=actor.id))
    return req


def get_request(session: Session, request_id: int, actor: Actor) -> MaintenanceRequest:
    req = load_request(session, request_id)
    assert_can_view(actor, req)
    return req


def _search(q, term: str):
    like = f"%{term}%"
    return q.filter(or_(
        MaintenanceRequest.title.ilike(like),
        MaintenanceRequest.description.ilike(like),
        MaintenanceRequest.location.ilike(like),
        MaintenanceRequest.custom_identifier.ilike(like),
    ))


FILTER_SPECS = {
    'status': {
        'validate': lambda v: v in S.ALL,
        'op': lambda q, v: q.filter(MaintenanceRequest.status == v),
    },
    'priority': {
        'validate': lambda v: v in Priority.ALL,
        'op': lambda q, v: q.filter(MaintenanceRequest.priority == v),
    },
    'category_id': {'coerce': int, 'op': lambda q, v: q.filter(MaintenanceRequest.category_id == v)},
    'assigned_to_id': {'coerce': int, 'op': lambda q, v: q.filter(MaintenanceRequest.assigned_to_id == v)},
    'requested_by_id': {'coerce': int, 'op': lambda q, v: q.filter(MaintenanceRequest.requested_by_id == v)},
    'building': {'op': lambda q, v: q.filter(MaintenanceRequest.building.ilike(f"%{v}%"))},
    'search': {'op': _search},
    'date_from': {
        'coerce': lambda v: parse_datetime(v, 'date_from'),
        'op': lambda q, v: q.filter(MaintenanceRequest.created_at >= v),
    },
    'date_to': {
        'coerce': lambda v: parse_datetime(v, 'date_to'),
        'op': lambda q, v: q.filter(MaintenanceRequest.created_at <= v),
    },
}


def list_requests(session: Session, filters: Dict[str, Any], actor: Actor, sort: Optional[str] = None,
                  limit=None, offset=None) -> Page:
    """Filtered, sorted page of requests; customers only ever see their own."""
    q = session.query(MaintenanceRequest)
    if actor.is_customer:
        q = q.filter(MaintenanceRequest.requested_by_id == actor.id)
    q = apply_filters(q, FILTER_SPECS, filters)
    q = apply_multi_sort(q, sort, SORTABLE, MaintenanceRequest.id, default=[MaintenanceRequest.created_at.desc()])
    return paginate(q, limit, offset)


def update_request(session: Session, request_id: int, data: dict, actor: Actor) -> MaintenanceRequest:
    """Edit descriptive fields; lifecycle columns are rejected."""
    blocked = [k for k in LIFECYCLE_FIELDS if k in data]
    if blocked:
        raise ValidationError(description=f'Fields not editable here: {", ".join(blocked)}')
    if not any(k in data for k in EDITABLE_FIELDS):
        raise ValidationError(description='No editable fields supplied')
    try:
        req = load_request(session, request_id, for_update=True)
        assert_can_view(actor, req)
        if not (actor.is_admin or actor.id in (req.requested_by_id, req.assigned_to_id)):
            raise Forbidden(description='Access denied')
        if req.is_terminal:
            raise RequestClosed(description=f'Request is {req.status}')
        if 'title' in data:
            req.title = require_str(data, 'title', 3, 200)
        if 'description' in data:
            req.description = require_str(data, 'description', 10, 5000)
        if 'priority' in data:
            req.priority = _validated_priority(data.get('priority'))
        if 'category_id' in data:
            req.category_id = _validated_category(session, optional_int(data, 'category_id'))
        if 'location' in data:
            req.location = require_str(data, 'location', 2, 100)
        if 'specific_location' in data:
            req.specific_location = require_str(data, 'specific_location', 2, 200, required=False)
        if 'estimated_cost' in data:
            req.estimated_cost = optional_number(data, 'estimated_cost')
        if 'actual_cost' in data:
            req.actual_cost = optional_number(data, 'actual_cost')
        if 'scheduled_date' in data:
            req.scheduled_date = parse_datetime(data.get('scheduled_date'), 'scheduled_date')
    except Exception:
        session.rollback()
        raise
    commit_or_conflict(session, f'Request {request_id}')
    return req


def delete_request(session: Session, request_id: int, actor: Actor):
    try:
        req = load_request(session, request_id, for_update=True)
        if not (actor.is_super_admin or req.requested_by_id == actor.id):
            raise Forbidden(description='Access denied')
        session.delete(req)
    except Exception:
        session.rollback()
        raise
    commit_or_conflict(session, f'Request {request_id}')
    logger.info('request %s deleted by %s', request_id, actor.id)


def comment_json(c: RequestComment) -> Dict[str, Any]:
    return {
        'id': c.id,
        'request_id': c.request_id,
        'user_id': c.user_id,
        'text': c.text,
        'is_internal': c.is_internal,
        'created_at': _iso(c.created_at),
    }


def list_comments(session: Session, request_id: int, actor: Actor):
    """Comments newest first; internal notes are left out for customers."""
    req = get_request(session, request_id, actor)
    q = session.query(RequestComment).filter(RequestComment.request_id == req.id)
    if actor.is_customer:
        q = q.filter(RequestComment.is_internal.is_(False))
    return q.order_by(RequestComment.id.desc()).all()


def add_comment(session: Session, request_id: int, data: dict, actor: Actor) -> RequestComment:
    text = require_str(data, 'text', 1, 2000)
    is_internal = optional_bool(data, 'is_internal') or False
    try:
        req = load_request(session, request_id)
        assert_can_mutate(actor, req)
        if is_internal and actor.is_customer:
            raise Forbidden(description='Customers cannot add internal comments')
        comment = RequestComment(request_id=req.id, user_id=actor.id, text=text, is_internal=is_internal)
        session.add(comment)
    except Exception:
        session.rollback()
        raise
    commit_or_conflict(session, f'Comment on request {request_id}')
    logger.info('request %s comment %s by %s (internal=%s)', req.id, comment.id, actor.id, is_internal)
    if not is_internal:
        publish(EVENT_REQUEST_COMMENTED, event_payload(req, comment_id=comment.id, actor_id=actor.id))
    return comment
