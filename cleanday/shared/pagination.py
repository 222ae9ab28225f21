"""Offset pagination shared by list endpoints"""

import math

from sqlalchemy.orm import Query


def paginate(query: Query, page: int, limit: int) -> tuple[list, dict]:
    """Apply page/limit to a query and build the pagination block"""
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    pages = math.ceil(total / limit) if limit else 0
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": pages,
        "has_next": page < pages,
        "has_prev": page > 1,
    }
