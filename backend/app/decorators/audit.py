from __future__ import annotations
"""Audit logging decorator for admin mutations of the building registry.

Usage:

@audit_log('BUILDING.CREATE', entity='BuildingConfig', entity_id_key='building_name',
           meta_keys=['building_code', 'allow_custom_id'])
def create_building(): ... return {'building_name': ..., ...}, 201

Parameters:
  action: required audit action code
  entity: optional entity label
  entity_id_key: key in the returned JSON object whose value becomes entity_id
  entity_id_arg: path parameter used when entity_id_key is absent from the payload
  meta_keys: keys projected from the returned JSON into meta
  meta_builder: callable(data, args, kwargs) -> dict; overrides meta_keys

Only successful responses (status < 400) are audited. The audit row is committed
separately from the handler's own transaction, so audit failures are logged and
never turn a committed change into an error response.
"""
import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional

from app.services.audit import add_audit
from app import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, tuple, dict], dict]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, args, kwargs)
            elif meta_keys:
                meta = {k: data.get(k) for k in meta_keys if k in data}
            else:
                meta = None
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except Exception:
                session.rollback()
                logger.exception('Failed to record audit entry %s for %s', action, entity_id)
            return rv
        return wrapper
    return outer
