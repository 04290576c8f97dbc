#!/usr/bin/env python
"""Idempotent seed script for request categories and building configurations.

Usage:
    python backend/scripts/seed_data.py                    # seed normally
    python backend/scripts/seed_data.py --dry-run          # run logic then rollback (no DB changes)
    python backend/scripts/seed_data.py --show-buildings   # print building -> code / sequence after seeding
"""
from __future__ import annotations
import os, sys, argparse, textwrap

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from sqlalchemy import select, text
from app import create_app, get_db  # type: ignore
from app.models.user import Base, Category
from app.models.building import BuildingConfig
import app.models.maintenance_request  # noqa: F401
import app.models.audit  # noqa: F401
from app.services.identifiers import current_year, generate_building_code

DEFAULT_CATEGORIES = ('Plumbing', 'Electrical', 'HVAC', 'Carpentry', 'Cleaning', 'General')

# building_name -> (building_code, allow_custom_id)
DEFAULT_BUILDINGS = {
    'ABRAJ-1': ('ABRAJ1', False),
    'ABRAJ-2': ('ABRAJ2', False),
    'Main Tower': ('MAIN', True),
}

SEED_CREATOR_ID = 0


def ensure_categories(session):
    existing = set(session.execute(select(Category.name)).scalars().all())
    created = 0
    for name in DEFAULT_CATEGORIES:
        if name not in existing:
            session.add(Category(name=name, is_active=True))
            created += 1
    return created


def ensure_buildings(session):
    existing = set(session.execute(select(BuildingConfig.building_name)).scalars().all())
    created = 0
    year = current_year()
    for name, (code, allow_custom) in DEFAULT_BUILDINGS.items():
        if name in existing:
            continue
        session.add(BuildingConfig(
            building_name=name,
            building_code=code or generate_building_code(name),
            display_name=f'Building {name}',
            current_sequence=0,
            last_reset_year=year,
            allow_custom_id=allow_custom,
            created_by=SEED_CREATOR_ID,
        ))
        created += 1
    return created


def print_building_summary(session):
    rows = session.execute(select(BuildingConfig).order_by(BuildingConfig.building_name)).scalars().all()
    if not rows:
        print('[INFO] No buildings present.')
        return
    name_w = max(len(b.building_name) for b in rows)
    print(f"{'Building'.ljust(name_w)} | Code       | Seq   | Custom")
    print('-' * (name_w + 32))
    for b in rows:
        print(f"{b.building_name.ljust(name_w)} | {b.building_code.ljust(10)} | {str(b.current_sequence).rjust(5)} | {b.allow_custom_id}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed maintenance categories & building configurations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_data.py\n  dry run: seed_data.py --dry-run\n  show buildings: seed_data.py --show-buildings\n""")
    )
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--show-buildings', action='store_true', help='Print building configurations after seeding')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM building_configs LIMIT 1'))
        except Exception:
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        finally:
            session.commit()

    with app.app_context():
        session = get_db()
        created_c = ensure_categories(session)
        created_b = ensure_buildings(session)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Categories would create: {created_c}, Buildings would create: {created_b}")
        else:
            session.commit()
            print(f"[DONE] Categories created: {created_c}, Buildings created: {created_b}")
        if args.show_buildings:
            print_building_summary(session)


if __name__ == '__main__':
    main()
