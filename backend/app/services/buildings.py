from __future__ import annotations
"""Building registry: per-building identifier configuration managed by admins."""
from typing import Any, Dict, List
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from app.errors import BuildingNotFound, Conflict, ValidationError
from app.models.building import BuildingConfig, RequestIdentifier
from app.models.maintenance_request import MaintenanceRequest
from app.services.identifiers import current_year, generate_building_code
from app.utils.validation import require_str, optional_bool, validate_building_code


def building_json(b: BuildingConfig) -> Dict[str, Any]:
    return {
        'building_name': b.building_name,
        'building_code': b.building_code,
        'display_name': b.display_name,
        'current_sequence': b.current_sequence,
        'last_reset_year': b.last_reset_year,
        'allow_custom_id': b.allow_custom_id,
        'is_active': b.is_active,
        'created_by': b.created_by,
    }


def list_buildings(session: Session) -> List[BuildingConfig]:
    return list(session.execute(
        select(BuildingConfig).where(BuildingConfig.is_active.is_(True)).order_by(BuildingConfig.building_name.asc())
    ).scalars())


def get_building(session: Session, building_name: str) -> BuildingConfig:
    b = session.execute(
        select(BuildingConfig).where(BuildingConfig.building_name == building_name)
    ).scalar_one_or_none()
    if b is None:
        raise BuildingNotFound(description='Building configuration not found')
    return b


def _code_taken(session: Session, code: str, exclude_name: str | None = None) -> bool:
    stmt = select(BuildingConfig.id).where(BuildingConfig.building_code == code)
    if exclude_name is not None:
        stmt = stmt.where(BuildingConfig.building_name != exclude_name)
    return session.execute(stmt).first() is not None


def _commit(session: Session, what: str):
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict(description=f'{what} conflicts with an existing building')
    except StaleDataError:
        session.rollback()
        raise Conflict(description=f'{what} was modified concurrently, retry')


def create_building(session: Session, data: dict, creator_id: int) -> BuildingConfig:
    name = require_str(data, 'building_name', 1, 100)
    display_name = require_str(data, 'display_name', 2, 100, required=False)
    allow_custom = optional_bool(data, 'allow_custom_id') or False
    if data.get('building_code') is not None:
        code = validate_building_code(data['building_code'])
    else:
        code = generate_building_code(name)
        if len(code) < 2:
            raise ValidationError(description='building_code required: name yields no usable code')
    if session.execute(select(BuildingConfig.id).where(BuildingConfig.building_name == name)).first():
        raise Conflict(description='Building configuration already exists')
    if _code_taken(session, code):
        raise Conflict(description='Building code already exists')
    b = BuildingConfig(
        building_name=name,
        building_code=code,
        display_name=display_name or f'Building {name}',
        allow_custom_id=allow_custom,
        current_sequence=0,
        last_reset_year=current_year(),
        created_by=creator_id,
    )
    session.add(b)
    _commit(session, f'Building {name}')
    return b


def update_building(session: Session, building_name: str, data: dict) -> BuildingConfig:
    b = get_building(session, building_name)
    reset = optional_bool(data, 'reset_sequence')
    if reset:
        _assert_resettable(session, b)
    if data.get('building_code') is not None:
        code = validate_building_code(data['building_code'])
        if _code_taken(session, code, exclude_name=building_name):
            raise Conflict(description='Building code already exists')
        b.building_code = code
    display_name = require_str(data, 'display_name', 2, 100, required=False)
    if display_name is not None:
        b.display_name = display_name
    allow_custom = optional_bool(data, 'allow_custom_id')
    if allow_custom is not None:
        b.allow_custom_id = allow_custom
    is_active = optional_bool(data, 'is_active')
    if is_active is not None:
        b.is_active = is_active
    if reset:
        b.current_sequence = 0
        b.last_reset_year = current_year()
    _commit(session, f'Building {building_name}')
    return b


def _assert_resettable(session: Session, b: BuildingConfig):
    """A reset would reissue this year's generated identifiers, so it is refused while any exist."""
    year = current_year()
    issued = session.execute(
        select(func.count(RequestIdentifier.id)).where(
            RequestIdentifier.building == b.building_name,
            RequestIdentifier.year == year,
            RequestIdentifier.sequence > 0,
        )
    ).scalar_one()
    if issued:
        raise Conflict(
            description=f'{issued} identifiers already issued for {b.building_name} in {year}; '
                        'resetting the sequence would reissue them'
        )


def reset_sequence(session: Session, building_name: str) -> BuildingConfig:
    b = get_building(session, building_name)
    _assert_resettable(session, b)
    b.current_sequence = 0
    b.last_reset_year = current_year()
    _commit(session, f'Building {building_name}')
    return b


def delete_building(session: Session, building_name: str):
    b = get_building(session, building_name)
    in_use = session.execute(
        select(func.count(MaintenanceRequest.id)).where(MaintenanceRequest.building == building_name)
    ).scalar_one()
    if in_use:
        raise Conflict(description='Cannot delete building configuration while maintenance requests reference it')
    session.delete(b)
    _commit(session, f'Building {building_name}')


def building_statistics(session: Session, building_name: str) -> Dict[str, Any]:
    get_building(session, building_name)
    where = MaintenanceRequest.building == building_name
    total = session.execute(select(func.count(MaintenanceRequest.id)).where(where)).scalar_one()
    by_status = dict(session.execute(
        select(MaintenanceRequest.status, func.count(MaintenanceRequest.id)).where(where).group_by(MaintenanceRequest.status)
    ).all())
    by_priority = dict(session.execute(
        select(MaintenanceRequest.priority, func.count(MaintenanceRequest.id)).where(where).group_by(MaintenanceRequest.priority)
    ).all())
    recent = session.execute(
        select(MaintenanceRequest).where(where).order_by(MaintenanceRequest.id.desc()).limit(5)
    ).scalars().all()
    return {
        'building_name': building_name,
        'total_requests': total,
        'by_status': by_status,
        'by_priority': by_priority,
        'recent': [
            {'id': r.id, 'identifier': r.custom_identifier, 'title': r.title, 'status': r.status, 'priority': r.priority}
            for r in recent
        ],
    }
