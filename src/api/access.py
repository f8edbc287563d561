"""Access-control policy chosen at deploy time.

`open`: no identity, calls reach the handlers anonymously.
`verified`: a bearer JWT is verified before the authenticated-write handler
runs and its claims are passed through. Tokens are never issued here.

The handlers are identical in both modes; only the claims they receive differ.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from src.core.settings import Settings


logger = logging.getLogger(__name__)


class AccessDenied(Exception):
    pass


@dataclass(frozen=True)
class AccessPolicy:
    mode: str
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if self.mode not in ("open", "verified"):
            raise ValueError(f"unknown access mode: {self.mode}")
        if self.mode == "verified" and not self.jwt_secret:
            raise ValueError("verified access mode requires a JWT secret")

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccessPolicy":
        return cls(mode=settings.access_mode, jwt_secret=settings.jwt_secret, jwt_algorithm=settings.jwt_algorithm)

    def claims_for(self, authorization: Optional[str]) -> Optional[Dict[str, Any]]:
        """Return verified claims, or None in open mode. Raises AccessDenied."""
        if self.mode == "open":
            return None

        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AccessDenied("missing bearer token")
        try:
            return jwt.decode(token.strip(), self.jwt_secret, algorithms=[self.jwt_algorithm])
        except JWTError as e:
            logger.info("rejected bearer token: %s", e)
            raise AccessDenied("invalid bearer token") from e
