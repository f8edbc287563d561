from __future__ import annotations

# v1 change-feed stream names. One stream per table that has a feed attached.


def feed_stream(table_name: str) -> str:
    return f"feed.{table_name}.v1"


def record_key(table_name: str, record_id: str) -> str:
    return f"{table_name}:{record_id}"
