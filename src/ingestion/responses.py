from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict


CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
}

AUTHENTICATED_CORS_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
}


@dataclass(frozen=True)
class HandlerResponse:
    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=lambda: dict(CORS_HEADERS))

    def json_body(self) -> str:
        return json.dumps(self.body)


def error_response(status_code: int, message: str, headers: Dict[str, str] | None = None) -> HandlerResponse:
    return HandlerResponse(status_code=status_code, body={"error": message}, headers=dict(headers or CORS_HEADERS))
