from flask import Flask
from app import get_db
from app.models.audit import AuditLog
from app.services.identifiers import current_year
from tests.test_utils_seed import unique, ensure_user, ensure_building
from tests.test_lifecycle_helpers import jwt_headers, seed_cast, create_request_and_assert


def _admin_headers():
    admin = ensure_user(f'bld_admin_{unique("")}@example.com', 'MAINTENANCE_ADMIN')
    return admin, jwt_headers(admin.id, admin.role)


def test_create_building_generates_code(app_context: Flask):
    client = app_context.test_client()
    admin, headers = _admin_headers()
    name = unique('Tower ')
    resp = client.post('/buildings', json={'building_name': name}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['building_code'] == name.upper().replace(' ', '')[:10]
    assert body['display_name'] == f'Building {name}'
    assert body['current_sequence'] == 0
    assert body['last_reset_year'] == current_year()
    assert body['allow_custom_id'] is False
    assert body['created_by'] == admin.id
    audit = get_db().query(AuditLog).filter_by(action='BUILDING.CREATE', entity_id=name).one()
    assert audit.actor_user_id == admin.id
    assert audit.role_snapshot == 'MAINTENANCE_ADMIN'


def test_create_building_validation_and_conflicts(app_context: Flask):
    client = app_context.test_client()
    _, headers = _admin_headers()
    code = unique('C')
    name = unique('N-')
    assert client.post('/buildings', json={'building_name': name, 'building_code': code.lower()},
                       headers=headers).get_json()['building_code'] == code
    resp = client.post('/buildings', json={'building_name': name, 'building_code': unique('Z')}, headers=headers)
    assert resp.status_code == 409
    resp = client.post('/buildings', json={'building_name': unique('N-'), 'building_code': code}, headers=headers)
    assert resp.status_code == 409
    resp = client.post('/buildings', json={'building_name': unique('N-'), 'building_code': 'bad code!'}, headers=headers)
    assert resp.status_code == 400
    resp = client.post('/buildings', json={'building_name': '--'}, headers=headers)
    assert resp.status_code == 400


def test_building_registry_requires_admin(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    name = cast.building.building_name
    assert client.get('/buildings', headers=cast.headers(cast.customer)).status_code == 403
    assert client.post('/buildings', json={'building_name': unique('X-')},
                       headers=cast.headers(cast.technician)).status_code == 403
    # read-only admins may look but not touch
    assert client.get(f'/buildings/{name}', headers=cast.headers(cast.viewer)).status_code == 200
    assert client.post(f'/buildings/{name}/reset-sequence', headers=cast.headers(cast.viewer)).status_code == 403


def test_update_and_reset_sequence(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    name = cast.building.building_name
    headers = cast.headers(cast.admin)
    create_request_and_assert(client, cast)
    create_request_and_assert(client, cast)
    body = client.get(f'/buildings/{name}', headers=headers).get_json()
    assert body['current_sequence'] == 2
    yy = f"{current_year() % 100:02d}"
    nxt = client.get(f'/buildings/{name}/next-identifier', headers=headers).get_json()
    assert nxt['next_identifier'] == f"{yy}-{body['building_code']}-003"

    resp = client.patch(f'/buildings/{name}', json={'allow_custom_id': True, 'display_name': 'East wing'}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['allow_custom_id'] is True
    assert resp.get_json()['display_name'] == 'East wing'

    resp = client.post(f'/buildings/{name}/reset-sequence', headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()['error']['kind'] == 'Conflict'
    # the PATCH flag is refused the same way and nothing else in the payload is applied
    resp = client.patch(f'/buildings/{name}', json={'reset_sequence': True, 'display_name': 'West wing'}, headers=headers)
    assert resp.status_code == 409
    body = client.get(f'/buildings/{name}', headers=headers).get_json()
    assert body['current_sequence'] == 2
    assert body['display_name'] == 'East wing'
    # allocation carries on from the untouched counter
    nxt = create_request_and_assert(client, cast)
    assert nxt['identifier'] == f"{yy}-{body['building_code']}-003"


def test_reset_sequence_allowed_without_issued_identifiers(app_context: Flask):
    client = app_context.test_client()
    _, headers = _admin_headers()
    name = unique('R-')
    ensure_building(name, current_sequence=7)
    resp = client.post(f'/buildings/{name}/reset-sequence', headers=headers)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['current_sequence'] == 0
    assert resp.get_json()['last_reset_year'] == current_year()


def test_inactive_building_rejects_allocation(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    name = cast.building.building_name
    resp = client.patch(f'/buildings/{name}', json={'is_active': False}, headers=cast.headers(cast.admin))
    assert resp.status_code == 200
    resp = client.post('/requests', json=cast.payload(), headers=cast.headers(cast.customer))
    assert resp.status_code == 404
    names = [b['building_name'] for b in client.get('/buildings', headers=cast.headers(cast.admin)).get_json()['data']]
    assert name not in names


def test_delete_building_refused_while_referenced(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    name = cast.building.building_name
    headers = cast.headers(cast.admin)
    create_request_and_assert(client, cast)
    assert client.delete(f'/buildings/{name}', headers=headers).status_code == 409
    _, other_headers = _admin_headers()
    empty = unique('E-')
    client.post('/buildings', json={'building_name': empty}, headers=other_headers)
    assert client.delete(f'/buildings/{empty}', headers=other_headers).status_code == 200
    assert client.get(f'/buildings/{empty}', headers=other_headers).status_code == 404


def test_statistics_and_identifier_history(app_context: Flask):
    client = app_context.test_client()
    cast = seed_cast()
    name = cast.building.building_name
    headers = cast.headers(cast.admin)
    create_request_and_assert(client, cast, priority='LOW')
    create_request_and_assert(client, cast, priority='URGENT')
    stats = client.get(f'/buildings/{name}/statistics', headers=headers).get_json()
    assert stats['total_requests'] == 2
    assert stats['by_status'] == {'SUBMITTED': 2}
    assert stats['by_priority'] == {'LOW': 1, 'URGENT': 1}
    assert len(stats['recent']) == 2
    hist = client.get(f'/buildings/identifiers?building={name}', headers=headers).get_json()
    assert hist['pagination']['total'] == 2
    assert [i['sequence'] for i in hist['data']] == [2, 1]
    assert client.get(f'/buildings/{unique("NONE-")}/statistics', headers=headers).status_code == 404
