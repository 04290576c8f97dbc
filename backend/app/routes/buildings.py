from __future__ import annotations
from flask import Blueprint, request
from app import get_db
from app.constants.lifecycle import ROLE_MAINTENANCE_ADMIN, ROLE_SUPER_ADMIN, ROLE_BASMA_ADMIN
from app.decorators.audit import audit_log
from app.decorators.auth import require_roles
from app.services import buildings as svc
from app.services import identifiers
from app.services.policy import current_actor
from app.utils.listing import make_cached_list_response
from app.utils.validation import optional_int

bld_bp = Blueprint('buildings', __name__)

MANAGE_ROLES = (ROLE_MAINTENANCE_ADMIN, ROLE_SUPER_ADMIN)
READ_ROLES = MANAGE_ROLES + (ROLE_BASMA_ADMIN,)


@bld_bp.get('')
@require_roles(*READ_ROLES)
def list_buildings():
    session = get_db()
    return {'data': [svc.building_json(b) for b in svc.list_buildings(session)]}


@bld_bp.post('')
@require_roles(*MANAGE_ROLES)
@audit_log('BUILDING.CREATE', entity='BuildingConfig', entity_id_key='building_name',
           meta_keys=['building_code', 'allow_custom_id'])
def create_building():
    session = get_db()
    b = svc.create_building(session, request.json or {}, current_actor().id)
    return svc.building_json(b), 201


@bld_bp.get('/identifiers')
@require_roles(*READ_ROLES)
def list_identifiers():
    session = get_db()
    year = optional_int(request.args, 'year')
    page = identifiers.identifier_history(
        session,
        building=request.args.get('building'),
        year=year,
        limit=request.args.get('limit'),
        offset=request.args.get('offset'),
    )
    return make_cached_list_response(page.map(identifiers.identifier_json))


@bld_bp.get('/<building_name>')
@require_roles(*READ_ROLES)
def get_building(building_name: str):
    session = get_db()
    return svc.building_json(svc.get_building(session, building_name))


@bld_bp.patch('/<building_name>')
@require_roles(*MANAGE_ROLES)
@audit_log('BUILDING.UPDATE', entity='BuildingConfig', entity_id_arg='building_name',
           meta_builder=lambda data, args, kwargs: {
               k: data.get(k) for k in ('building_code', 'display_name', 'allow_custom_id', 'is_active')
           })
def update_building(building_name: str):
    session = get_db()
    b = svc.update_building(session, building_name, request.json or {})
    return svc.building_json(b)


@bld_bp.delete('/<building_name>')
@require_roles(*MANAGE_ROLES)
@audit_log('BUILDING.DELETE', entity='BuildingConfig', entity_id_arg='building_name')
def delete_building(building_name: str):
    session = get_db()
    svc.delete_building(session, building_name)
    return {'message': 'Building configuration deleted successfully'}


@bld_bp.post('/<building_name>/reset-sequence')
@require_roles(*MANAGE_ROLES)
@audit_log('BUILDING.RESET_SEQUENCE', entity='BuildingConfig', entity_id_arg='building_name',
           meta_keys=['last_reset_year'])
def reset_sequence(building_name: str):
    session = get_db()
    b = svc.reset_sequence(session, building_name)
    return svc.building_json(b)


@bld_bp.get('/<building_name>/next-identifier')
@require_roles(*READ_ROLES)
def next_identifier(building_name: str):
    session = get_db()
    return {
        'building_name': building_name,
        'next_identifier': identifiers.preview_next_identifier(session, building_name),
    }


@bld_bp.get('/<building_name>/statistics')
@require_roles(*READ_ROLES)
def building_statistics(building_name: str):
    session = get_db()
    return svc.building_statistics(session, building_name)
