"""Record store: durable keyed persistence for submission records.

Only `put` is needed. A store with a feed attached commits the record and
appends its INSERT change event as one unit, so an event is observable only
for committed writes and never for failed ones.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from src.contracts.streams import record_key
from src.core.change_feed import ChangeFeed, encode_event
from src.core.errors import DependencyError
from src.core.ids import new_event_id
from src.core.models import ChangeEvent, EventName


logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Interface for submission record persistence."""

    def put(self, item: dict[str, Any]) -> None:
        """Persist `item` keyed by item["id"]; raise DependencyError on failure."""
        ...


def insert_event_for(item: dict[str, Any]) -> ChangeEvent:
    return ChangeEvent(
        event_id=new_event_id(),
        event_name=EventName.INSERT.value,
        partition_key=str(item["id"]),
        produced_at=datetime.now(timezone.utc),
        new_image=dict(item),
    )


class InMemoryRecordStore:
    """In-memory implementation for testing."""

    def __init__(self, table_name: str, *, feed: Optional[ChangeFeed] = None) -> None:
        self.table_name = table_name
        self._feed = feed
        self._items: dict[str, dict[str, Any]] = {}
        self.fail_next: Optional[Exception] = None

    def put(self, item: dict[str, Any]) -> None:
        if self.fail_next is not None:
            err, self.fail_next = self.fail_next, None
            raise DependencyError(f"put failed for {self.table_name}") from err
        record_id = str(item["id"])
        self._items[record_id] = dict(item)
        if self._feed is not None:
            self._feed.append(insert_event_for(item))

    def get(self, record_id: str) -> Optional[dict[str, Any]]:
        item = self._items.get(record_id)
        return dict(item) if item is not None else None

    def __len__(self) -> int:
        return len(self._items)


class RedisRecordStore:
    """Redis implementation for production.

    Each record is a hash at `<table>:<id>`. When a feed stream is configured the
    HSET and the XADD run in one MULTI/EXEC transaction.
    """

    def __init__(self, redis_url: str, table_name: str, *, feed_stream: Optional[str] = None, client=None) -> None:
        self.redis_url = redis_url
        self.table_name = table_name
        self.feed_stream = feed_stream
        self._client = client

    def _get_client(self):
        if self._client is None:
            import redis  # type: ignore

            self._client = redis.Redis.from_url(self.redis_url, decode_responses=True)
        return self._client

    def put(self, item: dict[str, Any]) -> None:
        key = record_key(self.table_name, str(item["id"]))
        mapping = {k: v if isinstance(v, str) else json.dumps(v) for k, v in item.items()}
        try:
            pipe = self._get_client().pipeline(transaction=True)
            pipe.hset(key, mapping=mapping)
            if self.feed_stream is not None:
                pipe.xadd(self.feed_stream, encode_event(insert_event_for(item)))
            pipe.execute()
        except Exception as e:
            logger.exception("redis put failed for %s", key)
            raise DependencyError(f"put failed for {key}") from e
