"""Notification service - consumes the design-details change feed and sends emails.

This service:
1. Reads feed.design-details.v1 one event per batch, starting at the newest entry
2. Sends a thank-you email for every INSERT with a usable address
3. Retries a failed batch up to 3 times, then drops it with an error log line

Consumer Group: send-email-group
"""

from __future__ import annotations

import logging
import os

from src.contracts.streams import feed_stream
from src.core.change_feed import RedisStreamChangeFeed
from src.core.models import ChangeEvent
from src.core.settings import Settings, load_settings
from src.notifications.consumer import handle_batch
from src.notifications.email_notifier import EmailNotifier, SendGridTransport

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_notifier(settings: Settings) -> EmailNotifier:
    if not settings.sendgrid_api_key:
        raise ValueError("SENDGRID_API_KEY is required for the notification service")
    transport = SendGridTransport(settings.sendgrid_api_key)
    return EmailNotifier(transport, sender=settings.sender_email)


def create_feed(settings: Settings) -> RedisStreamChangeFeed:
    return RedisStreamChangeFeed(
        settings.redis_url,
        stream=feed_stream(settings.table_name),
        group=settings.feed_consumer_group,
        consumer=os.getenv("HOSTNAME", "send-email-1"),
    )


def main() -> None:
    """Run the notification service."""
    settings = load_settings()
    notifier = create_notifier(settings)
    feed = create_feed(settings)

    logger.info("Starting notification service...")
    logger.info(f"Consuming stream: {feed.stream} (group={feed.group}, consumer={feed.consumer})")

    def handler(events: list[ChangeEvent]) -> None:
        handle_batch(events, notifier)

    try:
        feed.run_worker(
            handler=handler,
            batch_size=settings.feed_batch_size,
            retry_attempts=settings.feed_retry_attempts,
            invocation_timeout_seconds=settings.feed_invocation_timeout_seconds,
            starting_position=settings.feed_starting_position,
        )
    except KeyboardInterrupt:
        logger.info("Shutting down notification service...")


if __name__ == "__main__":
    main()
