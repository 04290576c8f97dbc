from __future__ import annotations
from typing import Any, Dict
from app.errors import ValidationError


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic filter builder.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': type/func, 'validate': callable(optional) } }
    Missing, None and empty-string params are skipped.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None or val == '':
            continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except ValidationError:
                raise
            except (TypeError, ValueError):
                raise ValidationError(description=f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            raise ValidationError(description=f'{name} invalid')
        query = meta['op'](query, val)
    return query
