"""POST /design-details: validate a submission and write it to the record store.

One side effect per call (a single put). The handler does not retry; a store
failure is reported as 500 and left to the caller.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Union

from src.contracts.validation import validate_design_details
from src.core.errors import ClientInputError, DependencyError
from src.core.ids import new_record_id
from src.core.models import SubmissionRecord
from src.core.record_store import RecordStore

from .responses import HandlerResponse, error_response


logger = logging.getLogger(__name__)

BODY_REQUIRED = "Request body is required"
INVALID_JSON = "Invalid JSON in request body"
SAVE_FAILED = "Failed to save design details"
SAVED = "Design details saved successfully"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_body(raw: Union[bytes, str, None]) -> Any:
    if raw is None or len(raw) == 0:
        raise ClientInputError(BODY_REQUIRED)
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ClientInputError(INVALID_JSON) from e


def build_record(body: Any, *, now: datetime, record_id: str) -> SubmissionRecord:
    details = validate_design_details(body)
    return SubmissionRecord(
        id=record_id,
        name=details.name,
        email=details.email,
        created_at=now.isoformat(),
    )


def submit_design_details(
    raw_body: Union[bytes, str, None],
    *,
    store: RecordStore,
    clock: Callable[[], datetime] = _now_utc,
    id_factory: Callable[[], str] = new_record_id,
) -> HandlerResponse:
    try:
        body = parse_body(raw_body)
        record = build_record(body, now=clock(), record_id=id_factory())
    except ClientInputError as e:
        logger.info("rejected design details: %s", e)
        return error_response(400, str(e))

    try:
        store.put(record.to_item())
    except DependencyError:
        logger.exception("failed to save design details id=%s", record.id)
        return error_response(500, SAVE_FAILED)

    logger.info("saved design details id=%s", record.id)
    return HandlerResponse(
        status_code=201,
        body={"message": SAVED, "id": record.id, "timestamp": record.created_at},
    )
