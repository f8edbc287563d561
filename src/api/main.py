from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request, Response
import uvicorn

from src.api.access import AccessDenied, AccessPolicy
from src.api.throttle import ThrottleMiddleware, TokenBucket
from src.contracts.streams import feed_stream
from src.core.record_store import RecordStore, RedisRecordStore
from src.core.settings import Settings, load_settings
from src.ingestion.authenticated_write import authenticated_write
from src.ingestion.design_details import submit_design_details
from src.ingestion.responses import AUTHENTICATED_CORS_HEADERS, CORS_HEADERS, HandlerResponse, error_response


logger = logging.getLogger(__name__)

PREFLIGHT_METHODS = "POST,OPTIONS"


@dataclass(frozen=True)
class Services:
    """Handles built once per process and passed into every request."""

    store: RecordStore
    access: AccessPolicy


def create_services(settings: Settings) -> Services:
    store = RedisRecordStore(
        settings.redis_url,
        settings.table_name,
        feed_stream=feed_stream(settings.table_name),
    )
    return Services(store=store, access=AccessPolicy.from_settings(settings))


def _to_response(result: HandlerResponse) -> Response:
    return Response(content=result.json_body(), status_code=result.status_code, headers=result.headers)


def _preflight(headers: dict[str, str]) -> Response:
    return Response(status_code=204, headers={**headers, "Access-Control-Allow-Methods": PREFLIGHT_METHODS})


def create_app(
    settings: Optional[Settings] = None,
    *,
    services: Optional[Services] = None,
    bucket: Optional[TokenBucket] = None,
) -> FastAPI:
    if services is None or bucket is None:
        settings = settings or load_settings()
    services = services or create_services(settings)
    bucket = bucket or TokenBucket(rate_per_second=settings.throttle_rate_per_second, burst=settings.throttle_burst)

    app = FastAPI(title="Design House API")
    app.add_middleware(ThrottleMiddleware, bucket=bucket)
    app.state.services = services

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/design-details")
    async def design_details(request: Request) -> Response:
        raw = await request.body()
        return _to_response(submit_design_details(raw, store=services.store))

    @app.options("/design-details")
    def design_details_preflight() -> Response:
        return _preflight(CORS_HEADERS)

    @app.post("/writeToDynamo")
    def write_to_dynamo(request: Request) -> Response:
        try:
            claims = services.access.claims_for(request.headers.get("authorization"))
        except AccessDenied as e:
            return _to_response(error_response(401, f"Unauthorized: {e}", AUTHENTICATED_CORS_HEADERS))
        return _to_response(authenticated_write(claims))

    @app.options("/writeToDynamo")
    def write_to_dynamo_preflight() -> Response:
        return _preflight(AUTHENTICATED_CORS_HEADERS)

    logger.info("API ready (access mode=%s)", services.access.mode)
    return app


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    uvicorn.run("src.api.main:create_app", factory=True, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
