"""Change-feed consumer: turns INSERT events into thank-you emails.

Skippable events (non-INSERT, no snapshot, no usable email) are logged and
passed over. A notifier failure is re-raised so the feed worker retries the
whole batch.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from src.core.models import ChangeEvent, EventName


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send_thank_you(self, *, email: str, name: str) -> None:
        ...


def _usable(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def handle_event(event: ChangeEvent, notifier: Notifier) -> bool:
    """Process one event. Returns True when an email was sent."""
    if event.event_name != EventName.INSERT.value:
        logger.debug("skipping %s event %s", event.event_name, event.event_id)
        return False

    if not event.new_image:
        logger.warning("No new image found in event %s", event.event_id)
        return False

    email = _usable(event.new_image.get("email"))
    if not email:
        logger.warning("No email found in record %s, skipping", event.partition_key)
        return False

    name = event.new_image.get("name")
    name = name if isinstance(name, str) else ""
    try:
        notifier.send_thank_you(email=email, name=name)
    except Exception:
        logger.exception("Failed to send email to %s", email)
        raise
    return True


def handle_batch(events: Iterable[ChangeEvent], notifier: Notifier) -> int:
    sent = 0
    for event in events:
        if handle_event(event, notifier):
            sent += 1
    return sent
