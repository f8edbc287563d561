"""End-to-end pipeline: ingestion -> record store -> change feed -> consumer -> email.

Everything runs in-process with the in-memory store/feed and a recording
email transport; no Redis or SendGrid is contacted.
"""

from __future__ import annotations

import json

from src.core.change_feed import InMemoryChangeFeed
from src.core.models import ChangeEvent
from src.core.record_store import InMemoryRecordStore
from src.ingestion.design_details import submit_design_details
from src.notifications.consumer import handle_batch
from src.notifications.email_notifier import EmailNotifier, OutboundEmail


class _FlakyTransport:
    """Fails the first `failures` sends, then accepts."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.attempts = 0
        self.accepted: list[OutboundEmail] = []

    def send(self, message: OutboundEmail) -> int:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionError("provider unavailable")
        self.accepted.append(message)
        return 202


def _pipeline(failures: int = 0):
    feed = InMemoryChangeFeed()
    feed.ensure_consumer("LATEST")
    store = InMemoryRecordStore("design-details", feed=feed)
    transport = _FlakyTransport(failures)
    notifier = EmailNotifier(transport, sender="studio@example.com")

    def drain(**kw) -> None:
        def handler(events: list[ChangeEvent]) -> None:
            handle_batch(events, notifier)

        feed.run_worker(handler=handler, retry_backoff_seconds=0, stop_when_idle=True, **kw)

    return store, feed, transport, drain


def _submit(store, name: str, email: str):
    return submit_design_details(json.dumps({"name": name, "email": email}), store=store)


def test_submission_triggers_exactly_one_email() -> None:
    store, _, transport, drain = _pipeline()

    resp = _submit(store, "Ada", "ada@example.com")
    drain()

    assert resp.status_code == 201
    [msg] = transport.accepted
    assert (msg.to, msg.subject) == ("ada@example.com", "Thank you for your design details")
    assert "Hello Ada," in msg.text


def test_rejected_submission_sends_nothing() -> None:
    store, feed, transport, drain = _pipeline()

    assert _submit(store, "Ada", "   ").status_code == 400
    drain()

    assert feed.events == []
    assert transport.attempts == 0


def test_two_failures_then_success_is_three_attempts_one_send() -> None:
    store, feed, transport, drain = _pipeline(failures=2)

    _submit(store, "Ada", "ada@example.com")
    drain(retry_attempts=3)

    assert transport.attempts == 3
    assert len(transport.accepted) == 1
    assert feed.pending == 0


def test_persistent_failure_drops_only_that_record() -> None:
    store, feed, transport, drain = _pipeline(failures=3)

    _submit(store, "Ada", "ada@example.com")
    _submit(store, "Grace", "grace@example.com")
    drain(retry_attempts=3)

    # Ada's batch used all three attempts and was dropped; Grace went through.
    assert transport.attempts == 4
    assert [m.to for m in transport.accepted] == ["grace@example.com"]
    assert feed.pending == 0


def test_redelivery_sends_duplicate_email() -> None:
    store, feed, transport, drain = _pipeline()
    _submit(store, "Ada", "ada@example.com")

    # Consumer crashes after sending but before ack: the event comes back.
    [received] = feed.poll(batch_size=1)
    handle_batch([received.event], EmailNotifier(transport, sender="studio@example.com"))
    feed.redeliver_unacked()
    drain()

    assert [m.to for m in transport.accepted] == ["ada@example.com", "ada@example.com"]
