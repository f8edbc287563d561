"""Error taxonomy shared by the ingestion and notification paths.

- ClientInputError: the caller sent something we cannot accept (HTTP 400, never retried)
- DependencyError: the record store or the email provider failed (HTTP 500, or batch retry on the feed)
"""

from __future__ import annotations


class ClientInputError(ValueError):
    pass


class DependencyError(RuntimeError):
    pass
