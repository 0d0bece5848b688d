"""
Page slicing for list endpoints
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, TypeVar

from .exceptions import ValidationError


T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of results plus the numbers a client needs to navigate"""
    items: List[T] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages
        }


def paginate(items: List[T], page: int = 1, limit: int = 10) -> Page[T]:
    """Slice an already-sorted list; pages are 1-based"""
    if page < 1:
        raise ValidationError("page must be at least 1", field="page")
    if limit < 1:
        raise ValidationError("limit must be at least 1", field="limit")

    start = (page - 1) * limit
    return Page(items=items[start:start + limit], page=page, limit=limit, total=len(items))
