from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional
from flask import request, make_response
from sqlalchemy.orm import Query
from app.config.pagination import normalize_pagination
from app.errors import ValidationError
import hashlib


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0

    def map(self, fn: Callable[[Any], Any]) -> 'Page':
        return Page([fn(i) for i in self.items], self.total, self.limit, self.offset)


def paginate(q: Query, limit_raw=None, offset_raw=None) -> Page:
    try:
        limit, offset = normalize_pagination(limit_raw, offset_raw)
    except ValueError as e:
        raise ValidationError(description=str(e))
    total = q.order_by(None).count()
    rows = q.offset(offset).limit(limit).all()
    return Page(rows, total, limit, offset)


def compute_etag(ids: Iterable[Any], total: int, limit: int, offset: int, version_seed: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{version_seed or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def make_cached_list_response(page: Page, version_seed: str = ''):
    """Render a JSON page with an ETag derived from ids, paging and row versions."""
    ids = [r.get('id') for r in page.items]
    etag = compute_etag(ids, page.total, page.limit, page.offset, version_seed)
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag:
        resp = make_response('', 304)
        resp.headers['ETag'] = etag
        return resp
    resp = make_response(build_list_payload(page.items, page.total, page.limit, page.offset))
    resp.headers['ETag'] = etag
    return resp


__all__ = ['Page', 'paginate', 'compute_etag', 'build_list_payload', 'make_cached_list_response']
