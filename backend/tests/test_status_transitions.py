import itertools
import pytest
from flask import Flask
from app.constants.lifecycle import RequestStatus as S
from app.errors import InvalidStatusTransition, ValidationError
from app.models.maintenance_request import MaintenanceRequest
from app.services.lifecycle import REQUEST_FSM, apply_transition, update_status
from app.services.policy import Actor, KIND_ADMIN, KIND_ASSIGNEE, KIND_REQUESTER, KIND_SYSTEM, KIND_ASSIGNMENT
from tests.test_utils_seed import force_status
from tests.test_lifecycle_helpers import (
    seed_cast, actor_of, create_request_and_assert, post_status, assert_transition, exercise_happy_path,
)

ALL_KINDS = (KIND_ADMIN, KIND_ASSIGNEE, KIND_REQUESTER, KIND_SYSTEM, KIND_ASSIGNMENT)


def _transient(status: str) -> MaintenanceRequest:
    return MaintenanceRequest(status=status, assigned_to_id=5, requested_by_id=7)


@pytest.mark.parametrize('current,target', list(itertools.product(S.ALL, S.ALL)))
def test_transition_closure(current, target):
    """Every (status, actor kind) pair succeeds exactly when the edge table lists it."""
    for kind in ALL_KINDS:
        req = _transient(current)
        allowed = kind in REQUEST_FSM.edges.get((current, target), ())
        if allowed:
            row = apply_transition(req, target, 'r', Actor(1, 'X'), kinds={kind})
            assert req.status == target
            assert (row.from_status, row.to_status) == (current, target)
            assert len(req.status_history) == 1
        else:
            with pytest.raises(InvalidStatusTransition):
                apply_transition(req, target, 'r', Actor(1, 'X'), kinds={kind})
            assert req.status == current
            assert req.status_history == []


def test_unknown_target_status_is_validation_error():
    with pytest.raises(ValidationError):
        apply_transition(_transient(S.SUBMITTED), 'BOGUS', None, Actor(1, 'X'), kinds={KIND_ADMIN})


def test_assigned_requires_assignee():
    req = MaintenanceRequest(status=S.SUBMITTED, assigned_to_id=None)
    with pytest.raises(InvalidStatusTransition):
        apply_transition(req, S.ASSIGNED, None, Actor(1, 'X'), kinds={KIND_ASSIGNMENT})
    assert req.status == S.SUBMITTED


def test_completed_date_stamped_and_cleared():
    req = _transient(S.IN_PROGRESS)
    apply_transition(req, S.COMPLETED, None, Actor(1, 'X'), kinds={KIND_ADMIN})
    assert req.completed_date is not None
    apply_transition(req, S.CUSTOMER_REJECTED, None, Actor(1, 'X'), kinds={KIND_REQUESTER})
    apply_transition(req, S.IN_PROGRESS, None, Actor(1, 'X'), kinds={KIND_ADMIN})
    assert req.completed_date is None


def test_happy_path_history(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    body = exercise_happy_path(client, cast)
    assert body['status'] == S.CLOSED
    assert body['completed_date'] is not None
    pairs = [(h['from_status'], h['to_status']) for h in body['status_history']]
    assert pairs == [
        (None, S.SUBMITTED),
        (S.SUBMITTED, S.ASSIGNED),
        (S.ASSIGNED, S.IN_PROGRESS),
        (S.IN_PROGRESS, S.COMPLETED),
        (S.COMPLETED, S.CLOSED),
    ]
    assert body['status_history'][-1]['changed_by_id'] == cast.customer.id
    assert len(body['assignment_history']) == 1


def test_noop_transition_rejected_without_history(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    rid = create_request_and_assert(client, cast)['id']
    force_status(rid, S.IN_PROGRESS, assigned_to_id=cast.technician.id)
    resp = post_status(client, rid, cast.headers(cast.technician), S.IN_PROGRESS)
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'InvalidStatusTransition'
    history = client.get(f'/requests/{rid}/history', headers=cast.headers(cast.admin)).get_json()['status_history']
    assert len(history) == 1


def test_direct_assigned_status_is_refused(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    rid = create_request_and_assert(client, cast)['id']
    resp = post_status(client, rid, cast.headers(cast.admin), S.ASSIGNED)
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'InvalidStatusTransition'


def test_role_gates_on_interactive_edges(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    rid = create_request_and_assert(client, cast)['id']
    force_status(rid, S.ASSIGNED, assigned_to_id=cast.technician.id)
    # another technician is neither assignee nor admin
    resp = post_status(client, rid, cast.headers(cast.other_technician), S.IN_PROGRESS)
    assert resp.status_code == 400
    # the requester cannot start work
    resp = post_status(client, rid, cast.headers(cast.customer), S.IN_PROGRESS)
    assert resp.status_code == 400
    assert_transition(client, rid, cast.headers(cast.admin), S.IN_PROGRESS)
    assert_transition(client, rid, cast.headers(cast.technician), S.COMPLETED)
    # only the requester rejects a completion
    resp = post_status(client, rid, cast.headers(cast.admin), S.CUSTOMER_REJECTED)
    assert resp.status_code == 400
    assert_transition(client, rid, cast.headers(cast.customer), S.CUSTOMER_REJECTED)
    # reopen is admin only
    resp = post_status(client, rid, cast.headers(cast.technician), S.IN_PROGRESS)
    assert resp.status_code == 400
    assert_transition(client, rid, cast.headers(cast.admin), S.IN_PROGRESS)


def test_admin_cancellation_and_terminal_lock(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    rid = create_request_and_assert(client, cast)['id']
    resp = post_status(client, rid, cast.headers(cast.customer), S.REJECTED)
    assert resp.status_code == 400
    assert_transition(client, rid, cast.headers(cast.admin), S.REJECTED)
    for target in (S.SUBMITTED, S.IN_PROGRESS, S.CLOSED):
        resp = post_status(client, rid, cast.headers(cast.admin), target)
        assert resp.status_code == 400


def test_customer_on_foreign_request_is_forbidden(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    rid = create_request_and_assert(client, cast)['id']
    force_status(rid, S.COMPLETED, assigned_to_id=cast.technician.id)
    resp = post_status(client, rid, cast.headers(cast.other_customer), S.CLOSED)
    assert resp.status_code == 403
    assert resp.get_json()['error']['kind'] == 'Forbidden'
    body = client.get(f'/requests/{rid}', headers=cast.headers(cast.customer)).get_json()
    assert body['status'] == S.COMPLETED


def test_read_only_role_cannot_transition(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    rid = create_request_and_assert(client, cast)['id']
    resp = post_status(client, rid, cast.headers(cast.viewer), S.REJECTED)
    assert resp.status_code == 403


def test_update_status_service_appends_one_row(app_context: Flask):
    from app import get_db
    session = get_db()
    client = app_context.test_client()
    cast = seed_cast()
    rid = create_request_and_assert(client, cast)['id']
    req = update_status(session, rid, S.REJECTED, 'duplicate', actor_of(cast.admin))
    assert req.status == S.REJECTED
    assert [h.to_status for h in req.status_history] == [S.SUBMITTED, S.REJECTED]
    assert req.status_history[-1].reason == 'duplicate'
