from flask import Flask
from app.errors import (
    ValidationError, NotFound, Forbidden, InvalidTransition, Conflict, RequestClosed,
    BuildingNotFound, CustomIdNotAllowed, InvalidTechnician, InvalidStatusTransition, DuplicateIdentifier,
)


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_taxonomy_status_codes():
    expected = {
        ValidationError: 400, NotFound: 404, Forbidden: 403, InvalidTransition: 400, Conflict: 409,
        RequestClosed: 409, BuildingNotFound: 404, CustomIdNotAllowed: 400, InvalidTechnician: 400,
        InvalidStatusTransition: 400, DuplicateIdentifier: 409,
    }
    for cls, code in expected.items():
        assert cls.code == code
        assert cls.kind == cls.__name__
    assert issubclass(DuplicateIdentifier, Conflict)
    assert issubclass(InvalidStatusTransition, InvalidTransition)
    assert issubclass(BuildingNotFound, NotFound)


def test_domain_error_shape(app_context: Flask):
    from tests.test_lifecycle_helpers import seed_cast
    client = app_context.test_client()
    cast = seed_cast()
    resp = client.get('/requests/987654321', headers=cast.headers(cast.admin))
    assert resp.status_code == 404
    err = resp.get_json()['error']
    assert err == {'status': 404, 'title': 'Not Found', 'detail': 'Request not found', 'kind': 'NotFound'}


def test_internal_error_shape(app_context: Flask, monkeypatch):
    from tests.test_lifecycle_helpers import seed_cast
    import app.routes.requests as req_mod
    client = app_context.test_client()
    cast = seed_cast()

    def boom(*a, **k):
        raise RuntimeError('explode')
    monkeypatch.setattr(req_mod.svc, 'list_requests', boom)
    resp = client.get('/requests', headers=cast.headers(cast.admin))
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'
    assert 'explode' not in body['error']['detail']
