from __future__ import annotations
from flask import Blueprint, request
from app import get_db
from app.decorators.auth import require_roles
from app.services import assignment, lifecycle
from app.services import requests as svc
from app.services.policy import current_actor
from app.utils.listing import make_cached_list_response
from app.utils.validation import require_str, optional_int

req_bp = Blueprint('requests', __name__)

LIST_FILTER_KEYS = tuple(svc.FILTER_SPECS.keys())


@req_bp.get('')
@require_roles()
def list_requests():
    session = get_db()
    filters = {k: request.args.get(k) for k in LIST_FILTER_KEYS}
    page = svc.list_requests(
        session, filters, current_actor(),
        sort=request.args.get('sort'),
        limit=request.args.get('limit'),
        offset=request.args.get('offset'),
    )
    rows = page.items
    version_seed = ','.join(str(r.version) for r in rows)
    return make_cached_list_response(page.map(svc.request_json), version_seed)


@req_bp.post('')
@require_roles()
def create_request():
    session = get_db()
    req = svc.create_request(session, request.json or {}, current_actor())
    return svc.request_json(req), 201


@req_bp.get('/<int:request_id>')
@require_roles()
def get_request(request_id: int):
    session = get_db()
    req = svc.get_request(session, request_id, current_actor())
    return svc.request_json(req, include_history=True)


@req_bp.patch('/<int:request_id>')
@require_roles()
def update_request(request_id: int):
    session = get_db()
    req = svc.update_request(session, request_id, request.json or {}, current_actor())
    return svc.request_json(req)


@req_bp.delete('/<int:request_id>')
@require_roles()
def delete_request(request_id: int):
    session = get_db()
    svc.delete_request(session, request_id, current_actor())
    return {'message': 'Request deleted successfully'}


@req_bp.post('/<int:request_id>/status')
@require_roles()
def update_status(request_id: int):
    session = get_db()
    data = request.json or {}
    target = require_str(data, 'status', 1, 32)
    reason = require_str(data, 'reason', 0, 500, required=False)
    req = lifecycle.update_status(session, request_id, target, reason, current_actor())
    return svc.request_json(req)


@req_bp.post('/<int:request_id>/assign')
@require_roles()
def assign_request(request_id: int):
    session = get_db()
    data = request.json or {}
    technician_id = optional_int(data, 'assigned_to_id')
    reason = require_str(data, 'reason', 0, 500, required=False)
    req = assignment.assign(session, request_id, technician_id, current_actor(), reason)
    return svc.request_json(req)


@req_bp.post('/<int:request_id>/self-assign')
@require_roles()
def self_assign_request(request_id: int):
    session = get_db()
    req = assignment.self_assign(session, request_id, current_actor())
    return svc.request_json(req)


@req_bp.post('/<int:request_id>/unassign')
@require_roles()
def unassign_request(request_id: int):
    session = get_db()
    data = request.get_json(silent=True) or {}
    reason = require_str(data, 'reason', 0, 500, required=False)
    req = assignment.unassign(session, request_id, current_actor(), reason)
    return svc.request_json(req)


@req_bp.get('/<int:request_id>/history')
@require_roles()
def request_history(request_id: int):
    session = get_db()
    req = svc.get_request(session, request_id, current_actor())
    return {
        'id': req.id,
        'status_history': [svc.status_history_json(h) for h in req.status_history],
        'assignment_history': [svc.assignment_history_json(h) for h in req.assignment_history],
    }


@req_bp.get('/<int:request_id>/comments')
@require_roles()
def list_comments(request_id: int):
    session = get_db()
    comments = svc.list_comments(session, request_id, current_actor())
    return {'data': [svc.comment_json(c) for c in comments]}


@req_bp.post('/<int:request_id>/comments')
@require_roles()
def add_comment(request_id: int):
    session = get_db()
    comment = svc.add_comment(session, request_id, request.json or {}, current_actor())
    return svc.comment_json(comment), 201
