"""Ingestion endpoints.

Request/response handlers that sit behind the HTTP layer. They take the raw
request pieces plus explicitly passed service handles and return a
HandlerResponse; they never read configuration or the environment.
"""

from .responses import HandlerResponse

__all__ = ["HandlerResponse"]
