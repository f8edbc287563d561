from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from src.core.errors import DependencyError
from src.core.models import ChangeEvent
from src.notifications.consumer import handle_batch, handle_event
from src.notifications.email_notifier import SUBJECT, EmailNotifier, OutboundEmail


def _event(name: str = "INSERT", image: Optional[dict[str, Any]] = None) -> ChangeEvent:
    return ChangeEvent(
        event_id="evt-1",
        event_name=name,
        partition_key="abc",
        produced_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        new_image=image,
    )


ADA = {"id": "abc", "name": "Ada", "email": "ada@example.com", "createdAt": "2026-01-01T00:00:00+00:00"}


class _RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def send_thank_you(self, *, email: str, name: str) -> None:
        self.calls.append((name, email))


class _RecordingTransport:
    def __init__(self, status: int = 202) -> None:
        self.status = status
        self.sent: list[OutboundEmail] = []

    def send(self, message: OutboundEmail) -> int:
        self.sent.append(message)
        return self.status


def test_insert_invokes_notifier_once_with_name_and_email() -> None:
    notifier = _RecordingNotifier()
    assert handle_event(_event(image=ADA), notifier) is True
    assert notifier.calls == [("Ada", "ada@example.com")]


def test_insert_composes_thank_you_subject() -> None:
    transport = _RecordingTransport()
    notifier = EmailNotifier(transport, sender="studio@example.com")

    handle_batch([_event(image=ADA)], notifier)

    [msg] = transport.sent
    assert msg.subject == "Thank you for your design details" == SUBJECT
    assert msg.to == "ada@example.com"
    assert msg.sender == "studio@example.com"


@pytest.mark.parametrize("kind", ["MODIFY", "REMOVE"])
def test_non_insert_events_are_skipped(kind: str) -> None:
    notifier = _RecordingNotifier()
    assert handle_batch([_event(kind, ADA)], notifier) == 0
    assert notifier.calls == []


@pytest.mark.parametrize(
    "image",
    [
        None,
        {},
        {"id": "abc", "name": "Ada"},
        {"id": "abc", "name": "Ada", "email": ""},
        {"id": "abc", "name": "Ada", "email": "   "},
        {"id": "abc", "name": "Ada", "email": None},
    ],
)
def test_events_without_usable_email_are_skipped_without_error(image) -> None:
    notifier = _RecordingNotifier()
    assert handle_batch([_event(image=image)], notifier) == 0
    assert notifier.calls == []


def test_notifier_failure_propagates() -> None:
    class _Failing:
        def send_thank_you(self, *, email: str, name: str) -> None:
            raise DependencyError("rejected")

    with pytest.raises(DependencyError):
        handle_batch([_event(image=ADA)], _Failing())


def test_batch_mixes_skips_and_sends() -> None:
    notifier = _RecordingNotifier()
    batch = [
        _event(image=ADA),
        _event("MODIFY", ADA),
        _event(image={"id": "x", "name": "Nobody"}),
        _event(image={"id": "y", "name": "Grace", "email": "grace@example.com"}),
    ]
    assert handle_batch(batch, notifier) == 2
    assert notifier.calls == [("Ada", "ada@example.com"), ("Grace", "grace@example.com")]
