from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class EventName(str, Enum):
    INSERT = "INSERT"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"


@dataclass(frozen=True)
class SubmissionRecord:
    id: str
    name: str
    email: str
    created_at: str  # ISO-8601, UTC

    def to_item(self) -> Dict[str, str]:
        """Stored (and change-feed snapshot) representation."""
        return {"id": self.id, "name": self.name, "email": self.email, "createdAt": self.created_at}


@dataclass(frozen=True)
class AuthenticatedWriteRecord:
    user_id: str
    timestamp: str


@dataclass(frozen=True)
class ChangeEvent:
    event_id: str
    event_name: str
    partition_key: str
    produced_at: datetime
    new_image: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        produced_at = self.produced_at
        if produced_at.tzinfo is None:
            produced_at = produced_at.replace(tzinfo=timezone.utc)
        return {
            "event_id": self.event_id,
            "event_name": self.event_name,
            "partition_key": self.partition_key,
            "produced_at": produced_at.isoformat(),
            "new_image": self.new_image,
        }

    @classmethod
    def from_wire(cls, d: Dict[str, Any]) -> "ChangeEvent":
        return cls(
            event_id=d["event_id"],
            event_name=d["event_name"],
            partition_key=d["partition_key"],
            produced_at=datetime.fromisoformat(str(d["produced_at"]).replace("Z", "+00:00")),
            new_image=d.get("new_image"),
        )
