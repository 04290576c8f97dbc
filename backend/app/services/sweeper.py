from __future__ import annotations
"""Auto-close sweep: COMPLETED requests the requester never confirmed or rejected
are closed once `completed_date` is older than the cutoff.

Each request is closed through `update_status` in its own transaction, so a crash
mid-sweep leaves earlier closes committed and the rest for the next run.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from flask import current_app, has_app_context
from sqlalchemy import select
from sqlalchemy.orm import Session
from app.constants.lifecycle import RequestStatus as S, AUTO_CLOSE_REASON, DEFAULT_AUTO_CLOSE_DAYS
from app.models.maintenance_request import MaintenanceRequest
from app.services.lifecycle import update_status
from app.services.policy import SYSTEM_ACTOR

logger = logging.getLogger(__name__)


def default_cutoff_days() -> int:
    if has_app_context():
        return int(current_app.config.get('AUTO_CLOSE_CUTOFF_DAYS', DEFAULT_AUTO_CLOSE_DAYS))
    return DEFAULT_AUTO_CLOSE_DAYS


def find_stale_completed(session: Session, cutoff: datetime):
    return list(session.execute(
        select(MaintenanceRequest.id).where(
            MaintenanceRequest.status == S.COMPLETED,
            MaintenanceRequest.completed_date.is_not(None),
            MaintenanceRequest.completed_date < cutoff,
        ).order_by(MaintenanceRequest.id.asc())
    ).scalars())


def run_auto_close_sweep(session: Session, cutoff_days: Optional[int] = None, now: Optional[datetime] = None) -> int:
    """Close stale COMPLETED requests; returns how many were closed."""
    days = default_cutoff_days() if cutoff_days is None else cutoff_days
    if days < 0:
        raise ValueError('cutoff_days must be >= 0')
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days)
    candidates = find_stale_completed(session, cutoff)
    # release the read transaction before per-item work
    session.commit()
    processed = 0
    for request_id in candidates:
        try:
            closed = update_status(session, request_id, S.CLOSED, AUTO_CLOSE_REASON, SYSTEM_ACTOR,
                                   completed_before=cutoff)
        except Exception:
            session.rollback()
            logger.exception('Auto-close failed for request %s', request_id)
            continue
        if closed is None:
            logger.info('Auto-close skipped request %s: no longer a stale completion', request_id)
            continue
        processed += 1
    if candidates:
        logger.info('Auto-close sweep closed %d of %d requests older than %d days', processed, len(candidates), days)
    return processed
