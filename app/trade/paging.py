# app/trade/paging.py
from __future__ import annotations

import math
from typing import Any, List, Optional, Tuple

from sqlalchemy.orm import Query

from ..config import settings
from ..schemas import Pagination

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


def _to_int(raw: Any, default: int) -> int:
    if raw is None:
        return default
    try:
        v = int(str(raw).strip())
    except ValueError:
        return default
    return v if v >= 1 else default


def parse_paging(page: Optional[str] = None, limit: Optional[str] = None) -> Tuple[int, int]:
    """Query-string page/limit; junk falls back to the defaults instead of failing."""
    p = _to_int(page, DEFAULT_PAGE)
    lim = min(_to_int(limit, DEFAULT_LIMIT), max(settings.max_page_size, 1))
    return p, lim


def paginate(q: Query, page: Optional[str] = None, limit: Optional[str] = None) -> Tuple[List[Any], Pagination]:
    """Run an already filtered + ordered query for one page."""
    p, lim = parse_paging(page, limit)
    total = q.order_by(None).count()
    rows = q.offset((p - 1) * lim).limit(lim).all()
    return rows, Pagination(page=p, limit=lim, total=total, pages=math.ceil(total / lim))
