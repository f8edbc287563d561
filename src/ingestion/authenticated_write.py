from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from src.core.models import AuthenticatedWriteRecord

from .responses import AUTHENTICATED_CORS_HEADERS, HandlerResponse


logger = logging.getLogger(__name__)

UNKNOWN_USER = "unknown"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def authenticated_write(
    claims: Optional[Mapping[str, Any]],
    *,
    clock: Callable[[], datetime] = _now_utc,
) -> HandlerResponse:
    """Echo the caller identity injected by the access-control layer.

    `claims` are trusted as-is; verification happens upstream. No store write.
    """

    user_id = str((claims or {}).get("sub") or UNKNOWN_USER)
    record = AuthenticatedWriteRecord(user_id=user_id, timestamp=clock().isoformat())
    logger.info("authenticated write userId=%s", record.user_id)
    return HandlerResponse(
        status_code=200,
        body={
            "message": "Successfully processed request",
            "userId": record.user_id,
            "timestamp": record.timestamp,
        },
        headers=dict(AUTHENTICATED_CORS_HEADERS),
    )
