from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.core.errors import ClientInputError
from src.core.models import EventName


DESIGN_DETAILS_SHAPE_ERROR = "Invalid request body. Expected: { name: string, email: string }"

CHANGE_EVENT_REQUIRED_KEYS = {
    "event_id",
    "event_name",
    "partition_key",
    "produced_at",
}
CHANGE_EVENT_OPTIONAL_KEYS = {"new_image"}


@dataclass(frozen=True)
class DesignDetails:
    """Validated, trimmed design-details request body."""

    name: str
    email: str


def _require_exact_keys(obj: dict[str, Any], *, required: set[str], optional: set[str] | None = None) -> None:
    optional = optional or set()
    keys = set(obj.keys())
    missing = required - keys
    extra = keys - required - optional
    if missing:
        raise ClientInputError(f"missing keys: {sorted(missing)}")
    if extra:
        raise ClientInputError(f"extra keys not allowed in v1: {sorted(extra)}")


def _require_str(d: dict[str, Any], k: str) -> str:
    v = d.get(k)
    if not isinstance(v, str) or not v.strip():
        raise ClientInputError(f"{k} must be non-empty string")
    return v


def _parse_iso8601(s: str) -> datetime:
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError as e:
        raise ClientInputError(f"invalid ISO8601 timestamp: {s}") from e
    if dt.tzinfo is None:
        raise ClientInputError("timestamp must include timezone")
    return dt


def validate_design_details(body: Any) -> DesignDetails:
    """Validate a decoded request body as `{ name: string, email: string }`.

    Both fields must be strings that are non-blank after trimming. Extra keys are
    ignored. Email format is not checked beyond non-blankness. Pure: the same
    input always yields the same result.
    """

    if not isinstance(body, dict):
        raise ClientInputError(DESIGN_DETAILS_SHAPE_ERROR)
    try:
        name = _require_str(body, "name")
        email = _require_str(body, "email")
    except ClientInputError as e:
        raise ClientInputError(DESIGN_DETAILS_SHAPE_ERROR) from e
    return DesignDetails(name=name.strip(), email=email.strip())


def validate_change_event_dict(event: dict[str, Any]) -> None:
    """Strict v1 validation of a change-feed event on the wire.

    - no extra fields
    - event_name must be a known kind (unknown kinds are a contract error,
      non-INSERT kinds are valid and filtered later by the consumer)
    - new_image, when present, must be an object
    """

    if not isinstance(event, dict):
        raise ClientInputError("event must be object")
    _require_exact_keys(event, required=CHANGE_EVENT_REQUIRED_KEYS, optional=CHANGE_EVENT_OPTIONAL_KEYS)
    _require_str(event, "event_id")
    _require_str(event, "partition_key")
    _parse_iso8601(_require_str(event, "produced_at"))

    event_name = _require_str(event, "event_name")
    if event_name not in {e.value for e in EventName}:
        raise ClientInputError("event_name must be INSERT/MODIFY/REMOVE")

    new_image = event.get("new_image")
    if new_image is not None and not isinstance(new_image, dict):
        raise ClientInputError("new_image must be object or null")
