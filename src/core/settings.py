from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import os


ACCESS_MODES = ("open", "verified")

# Ingress throttle defaults per access mode: (requests per second, burst).
DEFAULT_THROTTLE = {
    "open": (10.0, 20),
    "verified": (100.0, 200),
}


@dataclass(frozen=True)
class Settings:
    env: str
    redis_url: str
    table_name: str
    sender_email: str
    feed_consumer_group: str = "send-email-group"
    feed_batch_size: int = 1
    feed_retry_attempts: int = 3
    feed_invocation_timeout_seconds: float = 30.0
    feed_starting_position: str = "LATEST"
    sendgrid_api_key: str | None = None
    access_mode: str = "open"
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    throttle_rate_per_second: float = 10.0
    throttle_burst: int = 20


def load_settings(path: str | Path = "config/settings.yaml") -> Settings:
    p = Path(path)

    # Keep imports optional at module import time (tests/tools may not need YAML).
    try:
        import yaml  # type: ignore
    except ModuleNotFoundError as e:  # pragma: no cover
        raise ModuleNotFoundError(
            "PyYAML is required to load config/settings.yaml. Install with: pip install pyyaml"
        ) from e

    data: Dict[str, Any] = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    redis_section = data.get("redis", {})
    store_section = data.get("store", {})
    feed_section = data.get("feed", {})
    email_section = data.get("email", {})
    access_section = data.get("access", {})

    # Env overrides (deployment supplies the table and sender identity).
    access_mode = os.getenv("DESIGN_HOUSE_ACCESS_MODE") or access_section.get("mode", "open")
    if access_mode not in ACCESS_MODES:
        raise ValueError(f"access mode must be one of {ACCESS_MODES}, got {access_mode!r}")

    default_rate, default_burst = DEFAULT_THROTTLE[access_mode]
    throttle_section = access_section.get("throttle", {}).get(access_mode, {})

    sender_email = os.getenv("SENDER_EMAIL") or email_section.get("sender")
    if not sender_email:
        raise ValueError("sender email must be configured (SENDER_EMAIL or email.sender)")

    return Settings(
        env=os.getenv("DESIGN_HOUSE_ENV") or data.get("env", "dev"),
        redis_url=os.getenv("DESIGN_HOUSE_REDIS_URL") or redis_section["url"],
        table_name=os.getenv("TABLE_NAME") or store_section["table_name"],
        sender_email=sender_email,
        feed_consumer_group=feed_section.get("consumer_group", "send-email-group"),
        feed_batch_size=int(feed_section.get("batch_size", 1)),
        feed_retry_attempts=int(feed_section.get("retry_attempts", 3)),
        feed_invocation_timeout_seconds=float(feed_section.get("invocation_timeout_seconds", 30)),
        feed_starting_position=str(feed_section.get("starting_position", "LATEST")),
        sendgrid_api_key=os.getenv("SENDGRID_API_KEY"),
        access_mode=access_mode,
        jwt_secret=os.getenv("DESIGN_HOUSE_JWT_SECRET"),
        jwt_algorithm=access_section.get("jwt_algorithm", "HS256"),
        throttle_rate_per_second=float(throttle_section.get("rate_per_second", default_rate)),
        throttle_burst=int(throttle_section.get("burst", default_burst)),
    )
