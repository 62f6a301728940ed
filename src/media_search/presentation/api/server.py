"""
HTTP API Server for multi-source media search.

Endpoints:
    GET /api/search          - batch: settle every source, one JSON answer
    GET /api/search/stream   - SSE: start, one source_result per source, complete
    GET /api/search/one      - one source through the same pipeline
    GET /health              - liveness and catalog status

Every search endpoint authenticates through the container's Authenticator
and delegates to SearchPipeline. Errors are mapped from the exception
hierarchy: validation → 400, authentication → 401, anything else → 500.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from media_search import __version__
from media_search.container import ApplicationContainer, create_container, settings_from_env
from media_search.domain.entities import Principal
from media_search.shared.exceptions import (
    AuthenticationError,
    MediaSearchError,
    ValidationError,
    validate_keyword,
)

from .streaming import SSE_HEADERS, SSE_MEDIA_TYPE, EventChannel, pump_events, sse_frame, stop_writer

logger = logging.getLogger(__name__)


# Pydantic models for API responses
class SearchResponse(BaseModel):
    """Batch search response."""
    results: list[dict[str, Any]]
    total: int
    message: str | None = None
    debug: dict[str, Any] | None = None


class SingleSourceResponse(BaseModel):
    """Single-source search response."""
    results: list[dict[str, Any]]
    total: int
    source: str | None = None
    message: str | None = None


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str
    category: str | None = None
    severity: str | None = None
    retryable: bool = False
    suggestion: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    sources: int


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Missing or blank keyword"},
    401: {"model": ErrorResponse, "description": "Unauthenticated"},
    500: {"model": ErrorResponse, "description": "Policy or catalog failure"},
}


def status_for(error: MediaSearchError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthenticationError):
        return 401
    return 500


# =============================================================================
# Dependencies
# =============================================================================


def get_container(request: Request) -> ApplicationContainer:
    return request.app.state.container


def get_principal(
    request: Request,
    container: ApplicationContainer = Depends(get_container),
) -> Principal:
    """Authenticate the request (sync, so FastAPI runs it in the threadpool)."""
    return container.authenticator().authenticate(request.headers)


def pick_keyword(
    q: str | None = Query(default=None, description="Search keyword"),
    keyword: str | None = Query(default=None, description="Alias of q"),
) -> str | None:
    return q if q is not None else keyword


# =============================================================================
# App factory
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    container: ApplicationContainer = app.state.container
    logger.info(f"HTTP API server starting, catalog: {container.config.catalog_path()}")

    yield

    logger.info("HTTP API server shutting down")
    adapter = container.source_adapter()
    close = getattr(adapter, "close", None)
    if close is not None:
        await close()


def create_app(container: ApplicationContainer | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        container: Pre-configured container. Defaults to one configured
            from ``MEDIA_SEARCH_*`` environment variables.

    Returns:
        Configured FastAPI instance.
    """
    app = FastAPI(
        title="Media Search API",
        description="Aggregated video search over multiple upstream sources.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container or create_container()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MediaSearchError)
    async def handle_media_search_error(request: Request, exc: MediaSearchError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/health", response_model=HealthResponse)
    def health_check(container: ApplicationContainer = Depends(get_container)):
        """Health check endpoint."""
        try:
            catalog = container.catalog_store().load()
        except MediaSearchError as e:
            logger.warning(f"Health check: catalog unavailable: {e}")
            return HealthResponse(status="degraded", sources=0)
        return HealthResponse(status="healthy", sources=len(catalog.sources))

    @app.get(
        "/api/search",
        response_model=SearchResponse,
        response_model_exclude_unset=True,
        responses=ERROR_RESPONSES,
    )
    async def search(
        keyword: str | None = Depends(pick_keyword),
        debug: bool = Query(default=False, description="Attach session diagnostics"),
        principal: Principal = Depends(get_principal),
        container: ApplicationContainer = Depends(get_container),
    ):
        """
        Search every permitted source and return the classified, filtered results.

        Returns:
            SearchResponse; ``message="no sources"`` when the user may query none.
        """
        outcome = await container.pipeline().run_batch(principal, keyword)
        return outcome.to_dict(include_debug=debug)

    @app.get(
        "/api/search/one",
        response_model=SingleSourceResponse,
        response_model_exclude_unset=True,
        responses=ERROR_RESPONSES,
    )
    async def search_one(
        keyword: str | None = Depends(pick_keyword),
        source: str | None = Query(default=None, description="Source key or name"),
        principal: Principal = Depends(get_principal),
        container: ApplicationContainer = Depends(get_container),
    ):
        """Search a single permitted source (the first one when ``source`` is not permitted)."""
        outcome = await container.pipeline().run_batch(
            principal,
            keyword,
            source_key=source,
            single_source=True,
        )
        return outcome.to_dict()

    @app.get("/api/search/stream", responses=ERROR_RESPONSES)
    async def search_stream(
        request: Request,
        keyword: str | None = Depends(pick_keyword),
        principal: Principal = Depends(get_principal),
        container: ApplicationContainer = Depends(get_container),
    ):
        """
        Stream per-source batches as Server-Sent Events.

        Frames: ``start`` → ``source_result`` × N (completion order) →
        ``complete``, or a single ``error`` frame instead of ``complete``.
        """
        kw = validate_keyword(keyword)
        pipeline = container.pipeline()

        async def event_stream():
            channel = EventChannel()
            writer = asyncio.create_task(pump_events(pipeline.stream(principal, kw), channel))
            try:
                async for payload in channel:
                    if await request.is_disconnected():
                        logger.info(f"Client disconnected from stream for {kw!r}")
                        break
                    yield sse_frame(payload)
            finally:
                channel.close()
                await stop_writer(writer)

        return StreamingResponse(event_stream(), media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)

    return app


def run_api_server(
    host: str,
    port: int,
    container: ApplicationContainer | None = None,
    log_level: str = "info",
) -> None:
    """
    Run the HTTP API server.

    Args:
        host: Host to bind to
        port: Port to bind to
        container: Pre-configured container (defaults to environment settings)
        log_level: uvicorn log level
    """
    import uvicorn

    logger.info(f"Starting HTTP API server on {host}:{port}")
    uvicorn.run(create_app(container), host=host, port=port, log_level=log_level.lower())


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point: ``media-search --port 8080 --catalog catalog.yaml``."""
    import argparse

    settings = settings_from_env()

    parser = argparse.ArgumentParser(description="Media Search HTTP API Server")
    parser.add_argument("--host", default=settings["host"], help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings["port"], help="Port to bind to")
    parser.add_argument("--catalog", default=settings["catalog_path"], help="YAML catalog path")
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings["source_timeout"],
        help="Per-source timeout in seconds",
    )
    parser.add_argument(
        "--rate",
        type=float,
        default=settings["source_rate"],
        help="Requests per second allowed against one source",
    )
    parser.add_argument("--log-level", default=settings["log_level"], help="Logging level")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings.update(
        host=args.host,
        port=args.port,
        catalog_path=args.catalog,
        source_timeout=args.timeout,
        source_rate=args.rate,
        log_level=args.log_level.upper(),
    )
    run_api_server(
        host=args.host,
        port=args.port,
        container=create_container(settings),
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
