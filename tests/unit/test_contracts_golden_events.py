from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.contracts.validation import validate_change_event_dict
from src.core.errors import ClientInputError
from src.core.models import ChangeEvent


GOLDEN_DIR = Path("contracts") / "golden_events" / "v1"


@pytest.mark.parametrize("path", sorted(GOLDEN_DIR.glob("*.json")))
def test_golden_events_contract_validation(path: Path) -> None:
    ev = json.loads(path.read_text(encoding="utf-8"))
    if "invalid" in path.name:
        with pytest.raises(ClientInputError):
            validate_change_event_dict(ev)
    else:
        validate_change_event_dict(ev)


def test_golden_insert_round_trips_through_model() -> None:
    wire = json.loads((GOLDEN_DIR / "01_insert_valid.json").read_text(encoding="utf-8"))
    ev = ChangeEvent.from_wire(wire)
    assert ev.event_name == "INSERT"
    assert ev.partition_key == "abc"
    assert ev.to_wire() == wire
