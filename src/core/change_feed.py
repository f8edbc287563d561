from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from .errors import ClientInputError
from .models import ChangeEvent

from src.contracts.validation import validate_change_event_dict


logger = logging.getLogger(__name__)

BatchHandler = Callable[[list[ChangeEvent]], None]

STARTING_POSITIONS = ("LATEST", "TRIM_HORIZON")


@dataclass(frozen=True)
class ReceivedEvent:
    message_id: str
    event: ChangeEvent


def encode_event(event: ChangeEvent) -> dict[str, str]:
    """Stream entry fields for one change event."""
    wire = event.to_wire()
    validate_change_event_dict(wire)
    return {"event": json.dumps(wire, ensure_ascii=False)}


def decode_event(body: str) -> ChangeEvent:
    wire = json.loads(body)
    validate_change_event_dict(wire)
    return ChangeEvent.from_wire(wire)


class ChangeFeed:
    """Ordered log of committed record writes, delivered at least once.

    Producers append; a consumer polls batches, runs a handler and acks.
    Ordering holds per partition key only.
    """

    idle_sleep_seconds: float = 0.0

    def append(self, event: ChangeEvent) -> None:  # pragma: no cover
        raise NotImplementedError

    def ensure_consumer(self, starting_position: str = "LATEST") -> None:  # pragma: no cover
        raise NotImplementedError

    def poll(self, *, batch_size: int) -> list[ReceivedEvent]:  # pragma: no cover
        raise NotImplementedError

    def ack(self, message_id: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def run_worker(
        self,
        *,
        handler: BatchHandler,
        batch_size: int = 1,
        retry_attempts: int = 3,
        invocation_timeout_seconds: float = 30.0,
        retry_backoff_seconds: float = 0.5,
        starting_position: str = "LATEST",
        stop_after_batches: int | None = None,
        stop_when_idle: bool = False,
    ) -> None:
        """Deliver batches to `handler` with bounded whole-batch retry.

        - A handler exception or a timeout fails the whole batch
        - Each batch gets at most `retry_attempts` invocations
        - After the last failed attempt the batch is acked and dropped (log only)
        - A timed-out invocation is abandoned, not cancelled; it may still complete
        - No deduplication: duplicates from redelivery reach the handler
        """

        if retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        self.ensure_consumer(starting_position)
        batches = 0
        while True:
            received = self.poll(batch_size=batch_size)
            if not received:
                if stop_when_idle:
                    return
                if self.idle_sleep_seconds:
                    time.sleep(self.idle_sleep_seconds)
                continue

            events = [r.event for r in received]
            for attempt in range(1, retry_attempts + 1):
                if self._invoke(handler, events, timeout=invocation_timeout_seconds, attempt=attempt):
                    break
                if attempt < retry_attempts:
                    time.sleep(retry_backoff_seconds)
            else:
                logger.error(
                    "dropping batch after %d failed attempts: event_ids=%s",
                    retry_attempts,
                    [e.event_id for e in events],
                )

            for r in received:
                self.ack(r.message_id)

            batches += 1
            if stop_after_batches is not None and batches >= stop_after_batches:
                return

    def _invoke(
        self,
        handler: BatchHandler,
        events: list[ChangeEvent],
        *,
        timeout: float,
        attempt: int,
    ) -> bool:
        # Fresh thread per attempt; an abandoned invocation keeps its own thread.
        outcome: dict[str, Any] = {}

        def _run() -> None:
            try:
                handler(events)
            except Exception as e:
                outcome["error"] = e
            else:
                outcome["ok"] = True

        t = threading.Thread(target=_run, name=f"feed-handler-{attempt}", daemon=True)
        t.start()
        t.join(timeout)
        if t.is_alive():
            logger.warning("batch handler timed out after %ss (attempt %d)", timeout, attempt)
            return False
        if "error" in outcome:
            logger.warning("batch handler failed (attempt %d): %s", attempt, outcome["error"])
            return False
        return True


class InMemoryChangeFeed(ChangeFeed):
    """Single-process feed for tests and local runs."""

    idle_sleep_seconds = 0.05

    def __init__(self) -> None:
        self._log: list[ReceivedEvent] = []
        self._cursor = 0
        self._positioned = False
        self._in_flight: dict[str, ReceivedEvent] = {}
        self._seq = 0

    def append(self, event: ChangeEvent) -> None:
        encode_event(event)
        self._seq += 1
        self._log.append(ReceivedEvent(message_id=f"{self._seq}-0", event=event))

    def ensure_consumer(self, starting_position: str = "LATEST") -> None:
        if starting_position not in STARTING_POSITIONS:
            raise ValueError(f"starting_position must be one of {STARTING_POSITIONS}")
        if not self._positioned:
            self._cursor = len(self._log) if starting_position == "LATEST" else 0
            self._positioned = True

    def poll(self, *, batch_size: int) -> list[ReceivedEvent]:
        if not self._positioned:
            self.ensure_consumer()
        out = self._log[self._cursor:self._cursor + batch_size]
        self._cursor += len(out)
        for r in out:
            self._in_flight[r.message_id] = r
        return out

    def ack(self, message_id: str) -> None:
        self._in_flight.pop(message_id, None)

    def redeliver_unacked(self) -> None:
        """Put in-flight (unacked) events back in front of the cursor, as after a crash."""
        if not self._in_flight:
            return
        pending = sorted(self._in_flight.values(), key=lambda r: int(r.message_id.split("-")[0]))
        self._in_flight.clear()
        self._log[self._cursor:self._cursor] = pending

    @property
    def events(self) -> list[ChangeEvent]:
        return [r.event for r in self._log]

    @property
    def pending(self) -> int:
        return len(self._in_flight)


class RedisStreamChangeFeed(ChangeFeed):
    """Redis Streams implementation.

    One stream per table; consumers share a group so several worker
    instances can split the feed. Delivered-but-unacked entries stay in the
    group's pending list: on startup a consumer first re-reads its own
    pending entries (id "0"), and every poll claims entries that another
    consumer has left idle for `claim_idle_ms` (XAUTOCLAIM) before reading
    new ones (">").
    """

    def __init__(
        self,
        redis_url: str,
        *,
        stream: str,
        group: str,
        consumer: str,
        block_ms: int = 5000,
        claim_idle_ms: int = 60000,
        client=None,
    ):
        self.redis_url = redis_url
        self.stream = stream
        self.group = group
        self.consumer = consumer
        self.block_ms = block_ms
        self.claim_idle_ms = claim_idle_ms
        self._client = client
        self._read_own_pending = True
        self._claim_start = "0-0"

    def _get_client(self):
        if self._client is None:
            import redis  # type: ignore

            self._client = redis.Redis.from_url(self.redis_url, decode_responses=True)
        return self._client

    def append(self, event: ChangeEvent) -> None:
        self._get_client().xadd(self.stream, encode_event(event))

    def ensure_consumer(self, starting_position: str = "LATEST") -> None:
        if starting_position not in STARTING_POSITIONS:
            raise ValueError(f"starting_position must be one of {STARTING_POSITIONS}")
        client = self._get_client()
        start_id = "$" if starting_position == "LATEST" else "0"
        try:
            client.xgroup_create(name=self.stream, groupname=self.group, id=start_id, mkstream=True)
        except Exception as e:
            # BUSYGROUP means it already exists.
            if "BUSYGROUP" not in str(e):
                raise
        self._read_own_pending = True

    def poll(self, *, batch_size: int) -> list[ReceivedEvent]:
        if self._read_own_pending:
            items = self._read("0", batch_size, block=None)
            if items:
                return self._decode(items)
            self._read_own_pending = False

        items = self._claim_idle(batch_size)
        if not items:
            items = self._read(">", batch_size, block=self.block_ms)
        return self._decode(items)

    def ack(self, message_id: str) -> None:
        self._get_client().xack(self.stream, self.group, message_id)

    def _read(self, from_id: str, batch_size: int, *, block: int | None) -> list:
        resp = self._get_client().xreadgroup(
            groupname=self.group,
            consumername=self.consumer,
            streams={self.stream: from_id},
            count=batch_size,
            block=block,
        )
        items: list = []
        for (_sname, entries) in resp or []:
            items.extend(entries)
        return items

    def _claim_idle(self, batch_size: int) -> list:
        resp = self._get_client().xautoclaim(
            self.stream,
            self.group,
            self.consumer,
            min_idle_time=self.claim_idle_ms,
            start_id=self._claim_start,
            count=batch_size,
        )
        # [next_start_id, entries] (+ deleted ids on Redis >= 7)
        self._claim_start = resp[0] or "0-0"
        claimed = list(resp[1])
        if claimed:
            logger.info("claimed %d idle feed entries for %s", len(claimed), self.consumer)
        return claimed

    def _decode(self, items: list) -> list[ReceivedEvent]:
        out: list[ReceivedEvent] = []
        for (msg_id, fields) in items:
            # Pending entries trimmed from the stream come back with no fields.
            body = dict(fields or {}).get("event")
            try:
                if not body:
                    raise ClientInputError("missing event field")
                event = decode_event(body)
            except ValueError as e:
                # Not retryable: a malformed entry would fail every attempt.
                logger.error("dropping malformed feed entry %s: %s", msg_id, e)
                self.ack(msg_id)
                continue
            out.append(ReceivedEvent(message_id=msg_id, event=event))
        return out
