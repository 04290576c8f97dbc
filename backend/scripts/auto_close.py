#!/usr/bin/env python
"""Close COMPLETED requests the customer never confirmed. Meant for a daily cron.

Usage:
    python backend/scripts/auto_close.py            # cutoff from AUTO_CLOSE_CUTOFF_DAYS (default 3)
    python backend/scripts/auto_close.py --days 7

Exit codes:
  0 sweep finished (individual failures are logged, not fatal)
  2 invalid arguments
"""
from __future__ import annotations
import os, sys, argparse, logging

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from app import create_app, get_db  # type: ignore
from app.services.sweeper import run_auto_close_sweep


def parse_args():
    p = argparse.ArgumentParser(description='Auto-close stale COMPLETED maintenance requests')
    p.add_argument('--days', type=int, default=None, help='Cutoff in days (overrides AUTO_CLOSE_CUTOFF_DAYS)')
    return p.parse_args()


def main():
    args = parse_args()
    if args.days is not None and args.days < 0:
        print('[ERROR] --days must be >= 0')
        sys.exit(2)
    app = create_app()
    logging.basicConfig(level=app.config['LOG_LEVEL'], format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    with app.app_context():
        processed = run_auto_close_sweep(get_db(), cutoff_days=args.days)
    print(f"[DONE] Auto-closed requests: {processed}")


if __name__ == '__main__':
    main()
