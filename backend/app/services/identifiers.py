from __future__ import annotations
"""Building-scoped request identifier allocator.

Generated identifiers look like `25-ABRAJ1-007`: two-digit year, building code,
zero-padded per-building sequence. The counter lives in `building_configs` and is
advanced with a locked read plus a versioned UPDATE; the unique index on
`request_identifiers.identifier` is the final guard against duplicates.

Allocation must be the first write of the caller's transaction: on a conflict
the transaction is rolled back before the single retry.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from app.errors import BuildingNotFound, Conflict, CustomIdNotAllowed, DuplicateIdentifier
from app.models.building import BuildingConfig, RequestIdentifier
from app.utils.listing import paginate, Page
from app.utils.validation import validate_custom_identifier

logger = logging.getLogger(__name__)

ALLOCATION_ATTEMPTS = 2


def current_year() -> int:
    return datetime.now(timezone.utc).year


def format_identifier(year: int, building_code: str, sequence: int) -> str:
    return f"{year % 100:02d}-{building_code}-{sequence:03d}"


def generate_building_code(building_name: str) -> str:
    """'ABRAJ-1' -> 'ABRAJ1', 'Building A' -> 'BUILDINGA' (max 10 chars)."""
    return re.sub(r'[^A-Z0-9]', '', building_name.upper())[:10]


def _active_building(session: Session, building: str, lock: bool = False) -> BuildingConfig:
    stmt = select(BuildingConfig).where(
        BuildingConfig.building_name == building,
        BuildingConfig.is_active.is_(True),
    ).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()
    cfg = session.execute(stmt).scalar_one_or_none()
    if cfg is None:
        raise BuildingNotFound(description=f"No active building configuration for '{building}'")
    return cfg


def _flush_or_conflict(session: Session, identifier: str):
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise DuplicateIdentifier(description=f"Identifier {identifier} already exists")
    except StaleDataError:
        session.rollback()
        raise Conflict(description=f"Sequence for identifier {identifier} was changed concurrently")


def _allocate_once(session: Session, building: str, year: int, creator_id: Optional[int]) -> str:
    cfg = _active_building(session, building, lock=True)
    if cfg.last_reset_year != year:
        cfg.current_sequence = 0
        cfg.last_reset_year = year
    cfg.current_sequence = cfg.current_sequence + 1
    identifier = format_identifier(year, cfg.building_code, cfg.current_sequence)
    # Counter UPDATE goes out first: a racing allocator surfaces as a stale version, not a duplicate row
    _flush_or_conflict(session, identifier)
    session.add(RequestIdentifier(
        identifier=identifier,
        building=building,
        year=year,
        sequence=cfg.current_sequence,
        created_by=creator_id,
    ))
    _flush_or_conflict(session, identifier)
    return identifier


def allocate(session: Session, building: str, year: Optional[int] = None, creator_id: Optional[int] = None) -> str:
    """Reserve the next sequence of `building` for `year` and record the identifier.

    The caller commits. A concurrent counter update (Conflict) is retried once
    against a fresh read of the counter; a second Conflict is raised as-is.
    DuplicateIdentifier means the minted value is already taken and is never retried.
    """
    year = year if year is not None else current_year()
    attempt = 1
    while True:
        try:
            return _allocate_once(session, building, year, creator_id)
        except DuplicateIdentifier:
            raise
        except Conflict:
            if attempt >= ALLOCATION_ATTEMPTS:
                raise
            attempt += 1
            logger.warning('Identifier allocation conflict for building %s, retrying', building)


def allocate_custom(session: Session, building: str, pattern: str, creator_id: Optional[int] = None) -> str:
    """Reserve an admin-supplied identifier; the building counter is untouched."""
    validate_custom_identifier(pattern)
    cfg = _active_building(session, building)
    if not cfg.allow_custom_id:
        raise CustomIdNotAllowed(description=f"Custom identifiers are not enabled for building '{building}'")
    exists = session.execute(
        select(RequestIdentifier.id).where(RequestIdentifier.identifier == pattern)
    ).scalar_one_or_none()
    if exists is not None:
        raise DuplicateIdentifier(description='This identifier already exists. Please use a different one.')
    session.add(RequestIdentifier(
        identifier=pattern,
        building=building,
        year=current_year(),
        sequence=0,
        custom_pattern=pattern,
        custom_sequence=0,
        created_by=creator_id,
    ))
    _flush_or_conflict(session, pattern)
    return pattern


def preview_next_identifier(session: Session, building: str, year: Optional[int] = None) -> str:
    """Identifier the next allocation would mint; nothing is reserved."""
    year = year if year is not None else current_year()
    cfg = _active_building(session, building)
    sequence = cfg.current_sequence if cfg.last_reset_year == year else 0
    return format_identifier(year, cfg.building_code, sequence + 1)


def identifier_exists(session: Session, identifier: str) -> bool:
    return session.execute(
        select(RequestIdentifier.id).where(RequestIdentifier.identifier == identifier)
    ).scalar_one_or_none() is not None


def identifier_history(session: Session, building: Optional[str] = None, year: Optional[int] = None,
                       limit=None, offset=None) -> Page:
    q = session.query(RequestIdentifier).filter(RequestIdentifier.is_active.is_(True))
    if building:
        q = q.filter(RequestIdentifier.building == building)
    if year:
        q = q.filter(RequestIdentifier.year == year)
    q = q.order_by(RequestIdentifier.id.desc())
    return paginate(q, limit, offset)


def identifier_json(ri: RequestIdentifier):
    return {
        'identifier': ri.identifier,
        'building': ri.building,
        'year': ri.year,
        'sequence': ri.sequence,
        'is_custom': ri.sequence == 0,
        'created_by': ri.created_by,
        'created_at': ri.created_at.isoformat() if ri.created_at else None,
    }
