# ================================
# PAGINATION HELPERS (utils/pagination.py)
# ================================

import math
from typing import Any, Dict, List, Callable, Optional
from sqlalchemy.orm import Query

def paginate(
    query: Query,
    page: int,
    page_size: int,
    mapper: Optional[Callable[[Any], Any]] = None
) -> Dict[str, Any]:
    """Apply offset/limit and return the standard list envelope"""
    total = query.order_by(None).count()
    rows: List[Any] = query.offset((page - 1) * page_size).limit(page_size).all()

    return {
        "items": [mapper(row) for row in rows] if mapper else rows,
        "total": total,
        "page": page,
        "size": page_size,
        "pages": math.ceil(total / page_size) if total > 0 else 0
    }
