from __future__ import annotations
"""Outbound request events.

Events are blinker signals sent only after the owning transaction has committed.
Receivers run fire-and-forget: an exception in one is logged and swallowed so a
notification problem can never roll back or fail a lifecycle operation.

The default receiver resolves recipients and hands `(event, request_id, recipients)`
to the callable configured as NOTIFICATION_SINK (delivery itself lives outside
this service).
"""
import logging
from typing import Any, Dict, List, Optional
from blinker import Namespace
from flask import current_app, has_app_context
from sqlalchemy import select
from app import get_db
from app.constants.lifecycle import (
    ADMIN_ROLES, EVENT_REQUEST_CREATED, EVENT_STATUS_CHANGED, EVENT_REQUEST_ASSIGNED, EVENT_REQUEST_COMMENTED,
)
from app.models.user import User

logger = logging.getLogger(__name__)

_signals = Namespace()
request_created = _signals.signal(EVENT_REQUEST_CREATED)
request_status_changed = _signals.signal(EVENT_STATUS_CHANGED)
request_assigned = _signals.signal(EVENT_REQUEST_ASSIGNED)
request_commented = _signals.signal(EVENT_REQUEST_COMMENTED)

SIGNALS = {
    EVENT_REQUEST_CREATED: request_created,
    EVENT_STATUS_CHANGED: request_status_changed,
    EVENT_REQUEST_ASSIGNED: request_assigned,
    EVENT_REQUEST_COMMENTED: request_commented,
}


def event_payload(req, **extra) -> Dict[str, Any]:
    payload = {
        'request_id': req.id,
        'identifier': req.custom_identifier,
        'title': req.title,
        'building': req.building,
        'priority': req.priority,
        'status': req.status,
        'requested_by_id': req.requested_by_id,
        'assigned_to_id': req.assigned_to_id,
    }
    payload.update(extra)
    return payload


def publish(event: str, payload: Dict[str, Any]) -> int:
    """Deliver `payload` to every receiver of `event`; returns the count that succeeded."""
    signal = SIGNALS[event]
    delivered = 0
    for receiver in list(signal.receivers_for(event)):
        try:
            receiver(event, **payload)
            delivered += 1
        except Exception:
            logger.exception('Notification receiver failed for %s (request %s)', event, payload.get('request_id'))
    return delivered


def _admin_ids() -> List[int]:
    session = get_db()
    owned = not session.in_transaction()
    ids = list(session.execute(
        select(User.id).where(User.role.in_(sorted(ADMIN_ROLES)), User.is_active.is_(True))
    ).scalars())
    if owned:
        # end the read transaction this lookup opened
        session.commit()
    return ids


def resolve_recipients(event: str, payload: Dict[str, Any]) -> List[int]:
    ids: List[Optional[int]] = []
    if event == EVENT_REQUEST_CREATED:
        ids.extend(_admin_ids())
    elif event == EVENT_REQUEST_ASSIGNED:
        ids.extend([payload.get('to_technician_id'), payload.get('from_technician_id'), payload.get('requested_by_id')])
    elif event in (EVENT_STATUS_CHANGED, EVENT_REQUEST_COMMENTED):
        ids.extend([payload.get('requested_by_id'), payload.get('assigned_to_id')])
    actor_id = payload.get('actor_id')
    seen = []
    for i in ids:
        if i is not None and i != actor_id and i not in seen:
            seen.append(i)
    return seen


def dispatch_to_sink(event: str, **payload):
    recipients = resolve_recipients(event, payload)
    sink = current_app.config.get('NOTIFICATION_SINK') if has_app_context() else None
    if sink is None:
        logger.info('event %s request=%s recipients=%s', event, payload.get('request_id'), recipients)
        return
    sink(event, payload.get('request_id'), recipients)


def connect_default_subscribers():
    for signal in SIGNALS.values():
        signal.connect(dispatch_to_sink, weak=False)
