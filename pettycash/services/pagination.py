"""
Page envelope matching the console's list responses
"""
import math
from typing import Optional

from pettycash.core.config import settings


def paginate(query, page: int = 1, per_page: Optional[int] = None) -> dict:
    per_page = settings.clamp_page_size(per_page)
    page = max(page or 1, 1)
    total = query.order_by(None).count()

    return {
        'data': query.offset((page - 1) * per_page).limit(per_page).all(),
        'current_page': page,
        'last_page': max(math.ceil(total / per_page), 1),
        'per_page': per_page,
        'total': total,
    }
