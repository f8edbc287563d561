from __future__ import annotations

from pathlib import Path

import pytest

from src.core.settings import load_settings


YAML = """
env: test
redis:
  url: redis://localhost:6379/1
store:
  table_name: design-details
email:
  sender: studio@example.com
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in (
        "DESIGN_HOUSE_ENV",
        "DESIGN_HOUSE_REDIS_URL",
        "TABLE_NAME",
        "SENDER_EMAIL",
        "SENDGRID_API_KEY",
        "DESIGN_HOUSE_ACCESS_MODE",
        "DESIGN_HOUSE_JWT_SECRET",
    ):
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path: Path, text: str = YAML) -> Path:
    p = tmp_path / "settings.yaml"
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_match_the_baseline_feed_wiring(tmp_path) -> None:
    s = load_settings(_write(tmp_path))
    assert s.env == "test"
    assert s.table_name == "design-details"
    assert s.sender_email == "studio@example.com"
    assert (s.feed_batch_size, s.feed_retry_attempts, s.feed_invocation_timeout_seconds) == (1, 3, 30.0)
    assert s.feed_starting_position == "LATEST"
    assert s.access_mode == "open"
    assert (s.throttle_rate_per_second, s.throttle_burst) == (10.0, 20)


def test_env_overrides_table_and_sender(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("TABLE_NAME", "design-details-prod")
    monkeypatch.setenv("SENDER_EMAIL", "hello@example.com")
    monkeypatch.setenv("DESIGN_HOUSE_REDIS_URL", "redis://cache:6379/0")
    s = load_settings(_write(tmp_path))
    assert s.table_name == "design-details-prod"
    assert s.sender_email == "hello@example.com"
    assert s.redis_url == "redis://cache:6379/0"


def test_verified_mode_uses_its_own_throttle(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DESIGN_HOUSE_ACCESS_MODE", "verified")
    monkeypatch.setenv("DESIGN_HOUSE_JWT_SECRET", "s3cret")
    s = load_settings(_write(tmp_path))
    assert s.access_mode == "verified"
    assert s.jwt_secret == "s3cret"
    assert (s.throttle_rate_per_second, s.throttle_burst) == (100.0, 200)


def test_unknown_access_mode_is_rejected(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DESIGN_HOUSE_ACCESS_MODE", "cognito")
    with pytest.raises(ValueError):
        load_settings(_write(tmp_path))


def test_sender_is_required(tmp_path) -> None:
    text = YAML.replace("email:\n  sender: studio@example.com\n", "")
    with pytest.raises(ValueError):
        load_settings(_write(tmp_path, text))


def test_repo_settings_file_loads() -> None:
    s = load_settings(Path("config") / "settings.yaml")
    assert s.table_name == "design-details"
    assert s.feed_retry_attempts == 3
