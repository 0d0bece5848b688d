"""
Shared query parameters for paginated endpoints
"""

from typing import Optional
from fastapi import Depends, Query

from ..config import PawnLedgerConfig, get_config


def page_size(
    limit: Optional[int] = Query(None, ge=1),
    config: PawnLedgerConfig = Depends(get_config)
) -> int:
    """Requested page size, defaulted and capped by configuration"""
    if limit is None:
        return config.default_page_size
    return min(limit, config.max_page_size)
