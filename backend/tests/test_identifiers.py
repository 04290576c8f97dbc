import pytest
from sqlalchemy import select
from app.errors import BuildingNotFound, Conflict, CustomIdNotAllowed, DuplicateIdentifier, ValidationError
from app.models.building import BuildingConfig, RequestIdentifier
from app.services import identifiers
from tests.test_utils_seed import unique, ensure_building


def test_format_identifier_pads_year_and_sequence():
    assert identifiers.format_identifier(2025, 'ABRAJ1', 1) == '25-ABRAJ1-001'
    assert identifiers.format_identifier(2030, 'MAIN', 42) == '30-MAIN-042'
    assert identifiers.format_identifier(2025, 'MAIN', 1234) == '25-MAIN-1234'


def test_generate_building_code():
    assert identifiers.generate_building_code('ABRAJ-1') == 'ABRAJ1'
    assert identifiers.generate_building_code('Building a tower 99') == 'BUILDINGAT'


def test_abraj_allocation_scenario(session):
    name = 'ABRAJ-1'
    ensure_building(name, code='ABRAJ1', last_reset_year=2025)
    first = identifiers.allocate(session, name, 2025, creator_id=1)
    session.commit()
    second = identifiers.allocate(session, name, 2025, creator_id=1)
    session.commit()
    assert first == '25-ABRAJ1-001'
    assert second == '25-ABRAJ1-002'
    cfg = session.execute(select(BuildingConfig).where(BuildingConfig.building_name == name)).scalar_one()
    assert cfg.current_sequence == 2


def test_sequential_allocations_are_unique_and_contiguous(session):
    name = unique('SEQ-')
    ensure_building(name, last_reset_year=2025)
    minted = []
    for _ in range(12):
        minted.append(identifiers.allocate(session, name, 2025))
        session.commit()
    assert len(set(minted)) == 12
    rows = session.execute(
        select(RequestIdentifier.sequence).where(RequestIdentifier.building == name).order_by(RequestIdentifier.sequence)
    ).scalars().all()
    assert rows == list(range(1, 13))


def test_year_rollover_resets_sequence(session):
    name = unique('ROLL-')
    b = ensure_building(name, last_reset_year=2025, current_sequence=57)
    ident = identifiers.allocate(session, name, 2026)
    session.commit()
    assert ident == f'26-{b.building_code}-001'
    cfg = session.execute(select(BuildingConfig).where(BuildingConfig.building_name == name)).scalar_one()
    assert cfg.last_reset_year == 2026
    assert cfg.current_sequence == 1


def test_preview_does_not_reserve(session):
    name = unique('PRE-')
    b = ensure_building(name, last_reset_year=2025, current_sequence=4)
    assert identifiers.preview_next_identifier(session, name, 2025) == f'25-{b.building_code}-005'
    assert identifiers.preview_next_identifier(session, name, 2026) == f'26-{b.building_code}-001'
    session.rollback()
    assert identifiers.allocate(session, name, 2025) == f'25-{b.building_code}-005'
    session.commit()


def test_unknown_or_inactive_building(session):
    with pytest.raises(BuildingNotFound):
        identifiers.allocate(session, unique('NOPE-'), 2025)
    session.rollback()
    name = unique('OFF-')
    b = ensure_building(name)
    b.is_active = False
    session.commit()
    with pytest.raises(BuildingNotFound):
        identifiers.allocate(session, name, 2025)
    session.rollback()


def test_custom_identifier_allowed(session):
    name = unique('CUS-')
    b = ensure_building(name, allow_custom_id=True, current_sequence=3)
    custom = unique('VIP-')
    assert identifiers.allocate_custom(session, name, custom, creator_id=9) == custom
    session.commit()
    row = session.execute(select(RequestIdentifier).where(RequestIdentifier.identifier == custom)).scalar_one()
    assert row.sequence == 0
    assert row.custom_pattern == custom
    session.refresh(b)
    assert b.current_sequence == 3
    assert identifiers.identifier_exists(session, custom)


def test_custom_identifier_not_allowed(session):
    name = unique('NCU-')
    ensure_building(name, allow_custom_id=False)
    with pytest.raises(CustomIdNotAllowed):
        identifiers.allocate_custom(session, name, unique('X-'))
    session.rollback()


def test_custom_identifier_duplicate(session):
    name = unique('DUP-')
    ensure_building(name, allow_custom_id=True)
    custom = unique('DUP-')
    identifiers.allocate_custom(session, name, custom)
    session.commit()
    with pytest.raises(DuplicateIdentifier):
        identifiers.allocate_custom(session, name, custom)
    session.rollback()


def test_custom_identifier_format_rejected(session):
    name = unique('FMT-')
    ensure_building(name, allow_custom_id=True)
    with pytest.raises(ValidationError):
        identifiers.allocate_custom(session, name, 'no spaces allowed')
    with pytest.raises(ValidationError):
        identifiers.allocate_custom(session, name, 'ab')
    session.rollback()


def test_collision_surfaces_without_retry(session, monkeypatch):
    name = unique('COL-')
    b = ensure_building(name, last_reset_year=2025)
    # A stray row occupying the next generated identifier
    session.add(RequestIdentifier(identifier=f'25-{b.building_code}-001', building=name, year=2025, sequence=1))
    session.commit()
    calls = []
    real_once = identifiers._allocate_once

    def counting(*args, **kwargs):
        calls.append(args)
        return real_once(*args, **kwargs)

    monkeypatch.setattr(identifiers, '_allocate_once', counting)
    with pytest.raises(DuplicateIdentifier):
        identifiers.allocate(session, name, 2025)
    assert len(calls) == 1
    session.rollback()
    session.refresh(b)
    assert b.current_sequence == 0


def test_stale_counter_is_retried_once(session, monkeypatch):
    name = unique('STA-')
    ensure_building(name, last_reset_year=2025)
    real_once = identifiers._allocate_once
    calls = []

    def stale_first(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise Conflict(description='counter changed')
        return real_once(*args, **kwargs)

    monkeypatch.setattr(identifiers, '_allocate_once', stale_first)
    ident = identifiers.allocate(session, name, 2025)
    session.commit()
    assert len(calls) == 2
    assert ident.endswith('-001')


def test_identifier_history_filters_by_building(session):
    name = unique('HIS-')
    ensure_building(name, last_reset_year=2025)
    for _ in range(3):
        identifiers.allocate(session, name, 2025)
        session.commit()
    page = identifiers.identifier_history(session, building=name, year=2025)
    assert page.total == 3
    assert [i['sequence'] for i in page.map(identifiers.identifier_json).items] == [3, 2, 1]
